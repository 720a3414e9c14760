"""
ComfyPod Config - Configuration management.
"""

from comfypod.config.loader import load_config, load_model_specs
from comfypod.config.models import PodConfig, ServicePorts

__all__ = [
    "PodConfig",
    "ServicePorts",
    "load_config",
    "load_model_specs",
]
