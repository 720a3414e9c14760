"""
ComfyPod Services - SSH daemon.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

from loguru import logger

from comfypod.config.constants import SSH_HOST_KEY, SSH_INIT_SCRIPT

SSH_COMMAND_TIMEOUT = 60


def _run(argv: list[str]) -> bool:
    try:
        result = subprocess.run(
            argv,
            capture_output=True,
            text=True,
            timeout=SSH_COMMAND_TIMEOUT,
        )
    except subprocess.TimeoutExpired:
        logger.debug(f"{argv[0]} timed out")
        return False
    except OSError as e:
        logger.debug(f"{argv[0]} could not run: {e}")
        return False

    if result.returncode != 0:
        logger.debug(f"{' '.join(argv)} exited {result.returncode}: {result.stderr.strip()}")
    return result.returncode == 0


def ensure_ssh_daemon(
    host_key: Path = SSH_HOST_KEY,
    init_script: str = SSH_INIT_SCRIPT,
) -> bool:
    """
    Generate host keys if absent and start sshd.

    Returns:
        True if the daemon start command succeeded. Failure is expected in
        non-root pods and never raises.
    """
    if not host_key.exists():
        logger.info("Generating SSH host keys...")
        if not _run(["ssh-keygen", "-A"]):
            logger.warning("ssh-keygen -A failed, trying to start sshd anyway")

    return _run([init_script, "start"])
