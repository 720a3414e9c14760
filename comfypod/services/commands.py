"""
ComfyPod Services - Command lines for the pod's processes.
"""

from __future__ import annotations

from comfypod.config.constants import BIND_ADDRESS
from comfypod.config.models import PodConfig


def jupyter_command(config: PodConfig) -> list[str]:
    """Jupyter Notebook without auth, rooted at the workspace."""
    return [
        "jupyter", "notebook",
        f"--ip={BIND_ADDRESS}",
        f"--port={config.ports.jupyter}",
        "--no-browser",
        "--allow-root",
        f"--notebook-dir={config.workspace}",
        "--NotebookApp.token=",
        "--NotebookApp.password=",
        "--NotebookApp.disable_check_xsrf=True",
        "--NotebookApp.allow_root=True",
    ]


def filebrowser_command(config: PodConfig) -> list[str]:
    """FileBrowser serving the workspace with its database in /tmp."""
    return [
        "filebrowser",
        "-r", str(config.workspace),
        "-a", BIND_ADDRESS,
        "-p", str(config.ports.filebrowser),
        "-d", str(config.filebrowser_db),
    ]


def comfyui_command(config: PodConfig) -> list[str]:
    """ComfyUI main.py with flags for debug and serverless modes."""
    argv = [
        config.python_executable, "main.py",
        "--listen", BIND_ADDRESS,
        "--port", str(config.ports.comfyui),
    ]
    if config.debug:
        argv.append("--verbose")
    if config.serverless:
        argv.append("--disable-auto-launch")
    return argv
