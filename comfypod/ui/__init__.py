"""
ComfyPod UI - Console output.
"""

from comfypod.ui.console import ConsoleUI, get_console

__all__ = ["ConsoleUI", "get_console"]
