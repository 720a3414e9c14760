"""
ComfyPod - GPU pod entrypoint for ComfyUI.

Checks the GPU environment and model files, starts the auxiliary
services, then runs ComfyUI in the foreground.
"""
from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("comfy-pod")
except PackageNotFoundError:
    # Package not installed, fallback to pyproject.toml
    __version__ = "0.1.0"

__author__ = "ComfyPod Contributors"
