"""
ComfyPod Configuration Constants.

Centralized constants for paths, ports, delays and compatibility thresholds.
"""

from pathlib import Path

from comfypod.core.types import ModelSpec

GIB = 1024**3

# Paths
DEFAULT_WORKSPACE = Path("/workspace")
COMFYUI_SUBDIR = "ComfyUI"
MODELS_SUBDIR = "models"
DEFAULT_SERVICE_LOG_DIR = Path("/var/log")
FILEBROWSER_DB = Path("/tmp/filebrowser.db")
SSH_HOST_KEY = Path("/etc/ssh/ssh_host_rsa_key")
SSH_INIT_SCRIPT = "/etc/init.d/ssh"

# Ports
COMFYUI_PORT = 8188
JUPYTER_PORT = 8888
FILEBROWSER_PORT = 8080
SSH_PORT = 22
BIND_ADDRESS = "0.0.0.0"

# Liveness probe delays (seconds)
JUPYTER_PROBE_DELAY = 3.0
FILEBROWSER_PROBE_DELAY = 2.0

# Health probes
HEALTH_PROBE_TIMEOUT = 60.0
WARN_ISSUE_LIMIT = 2  # 0 = pass, 1..2 = warn, 3+ = fail
BLACKWELL_MIN_CUDA_MAJOR = 13
FORWARD_COMPAT_CUDA_MAJOR = 12

# Model validation
HTML_SNIFF_BYTES = 100
HTML_SIGNATURES = (b"<!doctype", b"<html")

# Qwen Image Edit Rapid workflow
DEFAULT_MODEL_SPECS: tuple[ModelSpec, ...] = (
    ModelSpec("checkpoints/Qwen-Rapid-AIO-NSFW-v11.4.safetensors", 26 * GIB),  # 28.4 GB
    ModelSpec("text_encoders/qwen_2.5_vl_7b_fp8_scaled.safetensors", 8 * GIB),  # 9.38 GB
    ModelSpec("vae/qwen_image_vae.safetensors", int(0.2 * GIB)),  # 254 MB
)
