"""
ComfyPod Orchestrator - Pod startup sequence.

Handles:
- RunPod environment detection (on-demand vs serverless)
- Health check and model validation (informational only)
- SSH, Jupyter and FileBrowser as best-effort background services
- ComfyUI in the foreground, binding the container lifetime to it

Warnings never halt startup. Only a missing ComfyUI installation aborts
before the server is launched, and the orchestrator returns 1 whenever
ComfyUI exits.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

from loguru import logger

from comfypod.config.loader import load_model_specs
from comfypod.config.models import PodConfig
from comfypod.core.exceptions import PrimaryServerMissingError, ServiceStartError
from comfypod.core.types import ServiceHandle, StartupStage
from comfypod.health.checks import print_health_report, run_health_checks
from comfypod.models.validator import run_model_validation
from comfypod.services.commands import comfyui_command, filebrowser_command, jupyter_command
from comfypod.services.launcher import launch_background, probe_liveness, run_foreground
from comfypod.services.ssh import ensure_ssh_daemon
from comfypod.ui.console import ConsoleUI, get_console
from comfypod.utils.logger import log_prefix

SEPARATOR = "=" * 40


class StartupOrchestrator:
    """
    Sequences the pod startup.

    Collaborators are injectable so the sequence can run against fakes:
    health_check and model_check return an exit code, launcher and
    liveness_probe follow launch_background and probe_liveness, and
    foreground_runner follows run_foreground.
    """

    def __init__(
        self,
        config: PodConfig,
        *,
        health_check: Callable[[], int] | None = None,
        model_check: Callable[[], int] | None = None,
        ssh_starter: Callable[[], bool] | None = None,
        launcher: Callable[..., ServiceHandle] | None = None,
        liveness_probe: Callable[[ServiceHandle], bool] | None = None,
        foreground_runner: Callable[[list[str], Path, Path], int] | None = None,
        ui: ConsoleUI | None = None,
    ) -> None:
        self.config = config
        self.ui = ui or get_console()
        self.stages: list[StartupStage] = [StartupStage.INIT]
        self.services: list[ServiceHandle] = []

        self._health_check = health_check or self._run_health_check
        self._model_check = model_check or self._run_model_check
        self._ssh_starter = ssh_starter or ensure_ssh_daemon
        self._launcher = launcher or launch_background
        self._liveness_probe = liveness_probe or probe_liveness
        self._foreground_runner = foreground_runner or run_foreground

    @property
    def stage(self) -> StartupStage:
        """Current startup stage."""
        return self.stages[-1]

    def _advance(self, stage: StartupStage) -> None:
        logger.debug(f"Startup stage: {self.stage} -> {stage}")
        self.stages.append(stage)

    def _best_effort(self, step: str, func: Callable[[], Any]) -> Any:
        """Run a secondary step; an unexpected error is logged, never raised."""
        try:
            return func()
        except Exception as e:
            logger.error(f"{log_prefix('✗')} Unexpected error during {step}: {e}")
            return None

    # -------------------------------------------------------------------------
    # Default sub-checks
    # -------------------------------------------------------------------------

    def _run_health_check(self) -> int:
        report = run_health_checks(timeout=self.config.health_probe_timeout)
        print_health_report(report, self.ui)
        return report.exit_code

    def _run_model_check(self) -> int:
        specs = load_model_specs(self.config.models_file)
        report = run_model_validation(self.config.model_dir, specs, self.ui)
        return report.exit_code

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    def log_environment(self) -> None:
        """Log the resolved startup configuration."""
        config = self.config
        logger.info(SEPARATOR)
        logger.info("ComfyUI Pod Startup")
        logger.info(SEPARATOR)
        logger.info(f"Workspace: {config.workspace}")
        logger.info(f"ComfyUI Directory: {config.comfyui_dir}")
        logger.info(f"Enable Jupyter: {'1' if config.enable_jupyter else '0'}")
        logger.info(f"Debug Mode: {'1' if config.debug else '0'}")
        logger.info(f"RunPod Environment: {str(config.runpod).lower()}")
        logger.info(f"Serverless Mode: {str(config.serverless).lower()}")
        logger.info(SEPARATOR)

    def check_health(self) -> int:
        """Run the health checker. A failing verdict is reported, not fatal."""
        logger.info("Running health checks...")
        code = self._health_check()
        if code != 0:
            logger.error(f"{log_prefix('✗')} Health check failed!")
            logger.warning("CUDA and GPU drivers may not be properly configured.")
            logger.warning("The pod will continue, but GPU access may not work.")
        else:
            logger.success(f"{log_prefix('✓')} Health check completed")
        return code

    def check_models(self) -> int:
        """
        Run the model validator.

        Corrupted models are logged as a failure but startup continues:
        ComfyUI is always attempted, even though it will likely fail to load
        a corrupted checkpoint.
        """
        logger.info("Validating models...")
        code = self._model_check()
        if code != 0:
            logger.error(f"{log_prefix('✗')} Model validation FAILED (corrupted files), continuing startup")
            logger.warning("Re-download the affected models, ComfyUI may not load them")
        else:
            logger.success(f"{log_prefix('✓')} Model validation passed")
            logger.info("Missing models, if any, may still be downloading")
        return code

    def start_ssh(self) -> bool:
        """Start sshd; failure is common without root and only warned."""
        logger.info("Starting SSH server...")
        if self._ssh_starter():
            logger.success(f"{log_prefix('✓')} SSH server started (port {self.config.ports.ssh})")
            return True
        logger.warning(f"{log_prefix('⚠️')} Could not start SSH server (may require root)")
        return False

    def _start_service(
        self,
        name: str,
        argv: list[str],
        log_path: Path,
        probe_delay: float,
        port: int,
    ) -> ServiceHandle | None:
        try:
            handle = self._launcher(name, argv, log_path, probe_delay, port=port)
        except ServiceStartError as e:
            logger.warning(f"{log_prefix('⚠️')} Failed to start {name}: {e.reason}")
            return None

        self.services.append(handle)
        if self._liveness_probe(handle):
            logger.success(
                f"{log_prefix('✓')} {name} started (port {port}, PID: {handle.process_id})"
            )
            logger.info(f"  Access: http://<pod-ip>:{port}")
        else:
            logger.warning(f"{log_prefix('⚠️')} Failed to start {name} (see {log_path})")
        return handle

    def start_jupyter(self) -> ServiceHandle | None:
        """Launch Jupyter Notebook when enabled."""
        if not self.config.enable_jupyter:
            logger.info("Jupyter disabled (set ENABLE_JUPYTER=1 to enable)")
            return None

        logger.info("Launching Jupyter Notebook...")
        return self._start_service(
            "Jupyter Notebook",
            jupyter_command(self.config),
            self.config.jupyter_log,
            self.config.jupyter_probe_delay,
            self.config.ports.jupyter,
        )

    def start_filebrowser(self) -> ServiceHandle | None:
        """Launch FileBrowser on the workspace."""
        logger.info("Launching FileBrowser...")
        try:
            self.config.filebrowser_db.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.debug(f"Cannot create {self.config.filebrowser_db.parent}: {e}")

        return self._start_service(
            "FileBrowser",
            filebrowser_command(self.config),
            self.config.filebrowser_log,
            self.config.filebrowser_probe_delay,
            self.config.ports.filebrowser,
        )

    def verify_primary_dir(self) -> Path:
        """
        Check the ComfyUI installation exists.

        Raises:
            PrimaryServerMissingError: If the directory is absent.
        """
        comfyui_dir = self.config.comfyui_dir
        if comfyui_dir is None or not comfyui_dir.is_dir():
            raise PrimaryServerMissingError(comfyui_dir or Path())
        return comfyui_dir

    def run_primary(self, comfyui_dir: Path) -> int:
        """Run ComfyUI in the foreground. Always returns 1 once it exits."""
        argv = comfyui_command(self.config)
        if self.config.debug:
            logger.info("Debug mode enabled - verbose output")
        if self.config.serverless:
            logger.info("Serverless mode detected")

        logger.info(f"Command: {' '.join(argv)}")
        logger.info(f"Logs: {self.config.comfyui_log}")
        logger.info(f"Web UI: http://0.0.0.0:{self.config.ports.comfyui}")

        self._advance(StartupStage.RUNNING)
        try:
            code = self._foreground_runner(argv, comfyui_dir, self.config.comfyui_log)
            logger.error(f"{log_prefix('✗')} ComfyUI process exited (code {code})")
        except ServiceStartError as e:
            logger.error(f"{log_prefix('✗')} ComfyUI could not be started: {e.reason}")
        self._advance(StartupStage.EXITED)
        return 1

    # -------------------------------------------------------------------------
    # Sequence
    # -------------------------------------------------------------------------

    def run(self) -> int:
        """
        Run the full startup sequence.

        Returns:
            1 when ComfyUI is missing or has exited. There is no success
            return: while ComfyUI runs this call blocks.
        """
        self.log_environment()

        self._best_effort("health check", self.check_health)
        self._advance(StartupStage.HEALTH_CHECKED)

        self._best_effort("model validation", self.check_models)
        self._advance(StartupStage.MODELS_CHECKED)

        self._best_effort("SSH startup", self.start_ssh)
        self._advance(StartupStage.SSH_ATTEMPTED)

        if self.config.enable_jupyter:
            self._best_effort("Jupyter startup", self.start_jupyter)
            self._advance(StartupStage.JUPYTER_ATTEMPTED)
        else:
            self.start_jupyter()
            self._advance(StartupStage.JUPYTER_SKIPPED)

        self._best_effort("FileBrowser startup", self.start_filebrowser)
        self._advance(StartupStage.FILEBROWSER_ATTEMPTED)

        logger.info(SEPARATOR)
        logger.info("Starting ComfyUI Server")
        logger.info(SEPARATOR)

        try:
            comfyui_dir = self.verify_primary_dir()
        except PrimaryServerMissingError as e:
            logger.error(f"{log_prefix('✗')} {e.message}")
            self._advance(StartupStage.PRIMARY_DIR_MISSING)
            self._advance(StartupStage.ABORTED)
            return 1

        self._advance(StartupStage.PRIMARY_DIR_OK)
        return self.run_primary(comfyui_dir)
