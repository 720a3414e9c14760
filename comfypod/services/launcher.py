"""
ComfyPod Services - Process launching.

Background services are spawned detached, probed once after a fixed delay,
then left alone: no retry, no restart, no supervision. The primary server
runs in the foreground with its output teed to the console and a log file.
"""

from __future__ import annotations

import subprocess
import sys
import time
from collections.abc import Callable
from pathlib import Path
from typing import TextIO

import psutil
from loguru import logger

from comfypod.core.exceptions import ServiceStartError
from comfypod.core.types import ServiceHandle

# Popen objects of detached services, held until exit: a collected Popen
# whose child is still running emits ResourceWarning.
_children: list[subprocess.Popen] = []


def launch_background(
    name: str,
    argv: list[str],
    log_path: Path,
    probe_delay: float,
    port: int | None = None,
    cwd: Path | None = None,
) -> ServiceHandle:
    """
    Spawn a detached background process with output redirected to log_path.

    Args:
        name: Service name for logs.
        argv: Command line.
        log_path: File receiving stdout and stderr (truncated).
        probe_delay: Seconds to wait before the liveness probe.
        port: Listening port, informational.
        cwd: Working directory.

    Returns:
        ServiceHandle for the spawned process.

    Raises:
        ServiceStartError: If the binary is missing or the log cannot be opened.
    """
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(log_path, "w") as log_file:
            process = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=log_file,
                stderr=subprocess.STDOUT,
                cwd=cwd,
                start_new_session=True,
            )
    except FileNotFoundError:
        raise ServiceStartError(name, f"{argv[0]} not found") from None
    except OSError as e:
        raise ServiceStartError(name, str(e)) from e

    _children.append(process)
    logger.debug(f"Spawned {name} (PID {process.pid}): {' '.join(argv)}")

    return ServiceHandle(
        name=name,
        process_id=process.pid,
        liveness_probe_delay=probe_delay,
        log_file_path=log_path,
        port=port,
    )


def is_process_alive(pid: int) -> bool:
    """Check a PID is running; exited-but-unreaped children count as dead."""
    try:
        return psutil.Process(pid).status() != psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return False
    except psutil.AccessDenied:
        return True


def probe_liveness(
    handle: ServiceHandle,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """One-shot liveness probe after the handle's delay. Never retries."""
    sleep(handle.liveness_probe_delay)
    handle.alive = is_process_alive(handle.process_id)
    return handle.alive


def run_foreground(
    argv: list[str],
    cwd: Path,
    log_path: Path,
    stream: TextIO | None = None,
) -> int:
    """
    Run a process in the foreground until it exits.

    Combined stdout/stderr is written to stream and appended to log_path.

    Returns:
        The process exit code.

    Raises:
        ServiceStartError: If the process cannot be spawned.
    """
    stream = stream or sys.stdout

    log_file: TextIO | None
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        log_file = open(log_path, "a")
    except OSError as e:
        logger.warning(f"Cannot write {log_path}, console output only: {e}")
        log_file = None

    try:
        try:
            process = subprocess.Popen(
                argv,
                cwd=cwd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                bufsize=1,
            )
        except FileNotFoundError:
            raise ServiceStartError(argv[0], "not found") from None
        except OSError as e:
            raise ServiceStartError(argv[0], str(e)) from e

        assert process.stdout is not None
        with process.stdout:
            for line in process.stdout:
                stream.write(line)
                stream.flush()
                if log_file is not None:
                    log_file.write(line)
                    log_file.flush()
        return process.wait()
    finally:
        if log_file is not None:
            log_file.close()
