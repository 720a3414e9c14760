"""
ComfyPod Services - Auxiliary and primary process management.
"""

from comfypod.services.commands import comfyui_command, filebrowser_command, jupyter_command
from comfypod.services.launcher import (
    is_process_alive,
    launch_background,
    probe_liveness,
    run_foreground,
)
from comfypod.services.ssh import ensure_ssh_daemon

__all__ = [
    "comfyui_command",
    "ensure_ssh_daemon",
    "filebrowser_command",
    "is_process_alive",
    "jupyter_command",
    "launch_background",
    "probe_liveness",
    "run_foreground",
]
