"""
ComfyPod Config - Configuration models.

Pydantic models for type-safe configuration.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, model_validator

from comfypod.config import constants


class ServicePorts(BaseModel):
    """Listening ports, fixed by the image layout."""

    comfyui: int = Field(default=constants.COMFYUI_PORT, ge=1, le=65535)
    jupyter: int = Field(default=constants.JUPYTER_PORT, ge=1, le=65535)
    filebrowser: int = Field(default=constants.FILEBROWSER_PORT, ge=1, le=65535)
    ssh: int = Field(default=constants.SSH_PORT, ge=1, le=65535)


class PodConfig(BaseModel):
    """Pod startup settings resolved from the environment."""

    workspace: Path = Field(default=constants.DEFAULT_WORKSPACE, description="Workspace root")
    comfyui_dir: Path | None = Field(default=None, description="ComfyUI installation directory")
    model_dir: Path | None = Field(default=None, description="Model root directory")
    models_file: Path | None = Field(default=None, description="Optional YAML model manifest")

    enable_jupyter: bool = Field(default=True, description="Launch Jupyter Notebook")
    debug: bool = Field(default=False, description="Run ComfyUI with --verbose")
    serverless: bool = Field(default=False, description="RunPod serverless endpoint")
    runpod: bool = Field(default=False, description="Running on RunPod")

    service_log_dir: Path = Field(
        default=constants.DEFAULT_SERVICE_LOG_DIR, description="Per-service log files"
    )
    filebrowser_db: Path = Field(default=constants.FILEBROWSER_DB)
    python_executable: str = Field(default="python", description="Interpreter for ComfyUI")

    jupyter_probe_delay: float = Field(default=constants.JUPYTER_PROBE_DELAY, ge=0, le=300)
    filebrowser_probe_delay: float = Field(default=constants.FILEBROWSER_PROBE_DELAY, ge=0, le=300)
    health_probe_timeout: float = Field(default=constants.HEALTH_PROBE_TIMEOUT, gt=0, le=3600)

    ports: ServicePorts = Field(default_factory=ServicePorts)

    @model_validator(mode="after")
    def _fill_workspace_paths(self) -> PodConfig:
        if self.comfyui_dir is None:
            self.comfyui_dir = self.workspace / constants.COMFYUI_SUBDIR
        if self.model_dir is None:
            self.model_dir = self.workspace / constants.MODELS_SUBDIR
        return self

    @property
    def comfyui_log(self) -> Path:
        return self.service_log_dir / "comfyui.log"

    @property
    def jupyter_log(self) -> Path:
        return self.service_log_dir / "jupyter.log"

    @property
    def filebrowser_log(self) -> Path:
        return self.service_log_dir / "filebrowser.log"
