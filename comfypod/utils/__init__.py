"""
ComfyPod Utils - Logging helpers.
"""

from comfypod.utils.logger import log_prefix, setup_logger, use_emoji_logs

__all__ = ["log_prefix", "setup_logger", "use_emoji_logs"]
