"""
ComfyPod Health - GPU architecture and version helpers.
"""

from __future__ import annotations

import re

# Compute capability (major * 10 + minor) -> architecture family
ARCHITECTURES: dict[int, str] = {
    50: "Maxwell",
    60: "Pascal",
    70: "Volta",
    75: "Turing",
    80: "Ampere",
    86: "Ampere",
    89: "Ada",
    90: "Hopper",
    120: "Blackwell",
}
UNKNOWN_ARCHITECTURE = "Unknown"
BLACKWELL = "Blackwell"
ADA = "Ada"

# Product names sniffed from nvidia-smi output
_PRODUCT_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    (BLACKWELL, re.compile(r"RTX 5090|\bBlackwell\b", re.IGNORECASE)),
    (ADA, re.compile(r"RTX 4090|\bAda\b", re.IGNORECASE)),
)

_CUDA_VERSION_RE = re.compile(r"CUDA Version:\s*([0-9]+(?:\.[0-9]+)*)")


def sm_version(major: int, minor: int) -> int:
    """Collapse a (major, minor) capability into the sm_XY number."""
    return major * 10 + minor


def architecture_name(sm: int) -> str:
    """Map an sm number to its architecture family."""
    return ARCHITECTURES.get(sm, UNKNOWN_ARCHITECTURE)


def parse_cuda_version(nvidia_smi_output: str) -> str | None:
    """Extract the 'CUDA Version: X.Y' field from nvidia-smi output."""
    match = _CUDA_VERSION_RE.search(nvidia_smi_output)
    return match.group(1) if match else None


def parse_major(version: str | None) -> int | None:
    """
    Parse the major component of a dotted version string.

    Returns None for missing or unparseable versions rather than raising,
    since tool output formats drift across driver releases.
    """
    if not version:
        return None
    head = version.strip().split(".", 1)[0]
    try:
        return int(head)
    except ValueError:
        return None


def detect_products(nvidia_smi_output: str) -> list[str]:
    """Return the known architecture families named in nvidia-smi output."""
    return [family for family, pattern in _PRODUCT_PATTERNS if pattern.search(nvidia_smi_output)]
