"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import io
from collections.abc import Generator
from pathlib import Path

import pytest
from loguru import logger

from comfypod.config.models import PodConfig
from comfypod.ui.console import ConsoleUI
from comfypod.utils.log_config import reset_log_config


@pytest.fixture(autouse=True)
def reset_logging() -> Generator[None, None, None]:
    """Reset cached log config and loguru sinks around each test."""
    reset_log_config()
    yield
    reset_log_config()
    logger.remove()


@pytest.fixture
def ui() -> ConsoleUI:
    """Console writing to an in-memory buffer."""
    return ConsoleUI(file=io.StringIO())


@pytest.fixture
def log_messages() -> Generator[list[str], None, None]:
    """Capture loguru messages as 'LEVEL|message' strings."""
    messages: list[str] = []
    handler_id = logger.add(
        lambda m: messages.append(m.rstrip("\n")),
        format="{level}|{message}",
        level="DEBUG",
    )
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def pod_config(tmp_path: Path) -> PodConfig:
    """Pod configuration rooted in a temporary workspace."""
    return PodConfig(
        workspace=tmp_path,
        service_log_dir=tmp_path / "logs",
        filebrowser_db=tmp_path / "filebrowser" / "filebrowser.db",
        jupyter_probe_delay=0,
        filebrowser_probe_delay=0,
    )
