"""
ComfyPod Health - Capability queries.

Narrow interfaces over the external tools the health checker depends on.
Production implementations shell out to nvidia-smi and to short Python
snippets importing torch, so this process never imports torch itself.
Tests substitute plain objects implementing the same protocols.
"""

from __future__ import annotations

import json
import shutil
import subprocess
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from loguru import logger

from comfypod.config.constants import HEALTH_PROBE_TIMEOUT
from comfypod.core.exceptions import ProbeError, ProbeTimeoutError
from comfypod.health.gpu import detect_products, parse_cuda_version

# =============================================================================
# Query Results
# =============================================================================


@dataclass
class DriverInfo:
    """What the driver management tool reported."""

    available: bool
    cuda_version: str | None = None
    products: list[str] = field(default_factory=list)
    output: str = ""
    error: str | None = None


@dataclass
class DeviceCapability:
    """Compute capability of the first visible accelerator."""

    available: bool
    major: int | None = None
    minor: int | None = None
    device_name: str | None = None
    error: str | None = None


@dataclass
class FrameworkInfo:
    """The ML framework's self-reported build."""

    installed: bool
    version: str | None = None
    cuda_version: str | None = None
    cuda_available: bool = False
    device_name: str | None = None
    error: str | None = None


@dataclass
class AllocationResult:
    """Outcome of allocating a tensor on the accelerator."""

    success: bool
    device_count: int = 0
    memory_gb: float | None = None
    error: str | None = None


# =============================================================================
# Protocols
# =============================================================================


@runtime_checkable
class DriverQuery(Protocol):
    """Queries the accelerator driver."""

    def query_driver(self) -> DriverInfo:
        ...


@runtime_checkable
class RuntimeCapabilityQuery(Protocol):
    """Queries the device compute capability."""

    def query_capability(self) -> DeviceCapability:
        ...


@runtime_checkable
class FrameworkVersionQuery(Protocol):
    """Queries the ML framework build and exercises the device."""

    def query_framework(self) -> FrameworkInfo:
        ...

    def try_allocation(self) -> AllocationResult:
        ...


# =============================================================================
# Subprocess helpers
# =============================================================================


def run_tool(argv: list[str], timeout: float) -> subprocess.CompletedProcess[str]:
    """
    Run an external tool, capturing output.

    Raises:
        ProbeError: If the binary is missing or cannot be executed.
        ProbeTimeoutError: If the tool does not finish within timeout.
    """
    tool = argv[0]
    logger.debug(f"Running probe: {' '.join(argv[:2])}")
    try:
        return subprocess.run(
            argv,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError:
        raise ProbeError(tool, "not found") from None
    except subprocess.TimeoutExpired:
        raise ProbeTimeoutError(tool, timeout) from None
    except OSError as e:
        raise ProbeError(tool, str(e)) from e


def parse_json_line(output: str, tool: str) -> dict[str, Any]:
    """Parse the last non-empty stdout line as a JSON object."""
    lines = [line for line in output.splitlines() if line.strip()]
    if not lines:
        raise ProbeError(tool, "no output")
    try:
        data = json.loads(lines[-1])
    except json.JSONDecodeError as e:
        raise ProbeError(tool, f"unparseable output: {lines[-1][:80]}") from e
    if not isinstance(data, dict):
        raise ProbeError(tool, "unexpected output shape")
    return data


# =============================================================================
# nvidia-smi
# =============================================================================


class NvidiaSmiQuery:
    """Driver query backed by nvidia-smi."""

    def __init__(self, binary: str = "nvidia-smi", timeout: float = HEALTH_PROBE_TIMEOUT):
        self.binary = binary
        self.timeout = timeout

    def query_driver(self) -> DriverInfo:
        if shutil.which(self.binary) is None:
            return DriverInfo(available=False, error=f"{self.binary} not found")

        try:
            result = run_tool([self.binary], self.timeout)
        except ProbeError as e:
            return DriverInfo(available=False, error=e.reason)

        if result.returncode != 0:
            error = (result.stderr or result.stdout).strip() or f"exit code {result.returncode}"
            return DriverInfo(available=False, output=result.stdout, error=error)

        return DriverInfo(
            available=True,
            cuda_version=parse_cuda_version(result.stdout),
            products=detect_products(result.stdout),
            output=result.stdout,
        )


# =============================================================================
# torch (run in a child interpreter)
# =============================================================================

_CAPABILITY_SNIPPET = """
import json
try:
    import torch
except ImportError:
    print(json.dumps({"available": False, "error": "torch not installed"}))
    raise SystemExit(0)
if torch.cuda.is_available():
    major, minor = torch.cuda.get_device_capability(0)
    print(json.dumps({"available": True, "major": major, "minor": minor,
                      "name": torch.cuda.get_device_name(0)}))
else:
    print(json.dumps({"available": False}))
"""

_FRAMEWORK_SNIPPET = """
import json
try:
    import torch
except ImportError as e:
    print(json.dumps({"installed": False, "error": str(e)}))
    raise SystemExit(0)
available = torch.cuda.is_available()
print(json.dumps({
    "installed": True,
    "version": torch.__version__,
    "cuda": torch.version.cuda,
    "available": available,
    "device": torch.cuda.get_device_name(0) if available else None,
}))
"""

_ALLOCATION_SNIPPET = """
import json
import torch
if not torch.cuda.is_available():
    print(json.dumps({"success": False, "error": "CUDA Available: False"}))
    raise SystemExit(1)
x = torch.randn(1000, 1000).cuda()
torch.cuda.synchronize()
print(json.dumps({
    "success": True,
    "device_count": torch.cuda.device_count(),
    "memory_gb": torch.cuda.get_device_properties(0).total_memory / 1e9,
}))
"""


class TorchQuery:
    """Capability and framework queries backed by a torch child process."""

    def __init__(self, python: str = "python3", timeout: float = HEALTH_PROBE_TIMEOUT):
        self.python = python
        self.timeout = timeout

    def _run_snippet(self, snippet: str) -> tuple[int, dict[str, Any]]:
        result = run_tool([self.python, "-c", snippet], self.timeout)
        if result.returncode != 0 and not result.stdout.strip():
            error = result.stderr.strip().splitlines()
            raise ProbeError(self.python, error[-1] if error else f"exit code {result.returncode}")
        return result.returncode, parse_json_line(result.stdout, self.python)

    def query_capability(self) -> DeviceCapability:
        try:
            _, data = self._run_snippet(_CAPABILITY_SNIPPET)
        except ProbeError as e:
            return DeviceCapability(available=False, error=e.reason)

        if not data.get("available"):
            return DeviceCapability(available=False, error=data.get("error"))
        return DeviceCapability(
            available=True,
            major=int(data["major"]),
            minor=int(data["minor"]),
            device_name=data.get("name"),
        )

    def query_framework(self) -> FrameworkInfo:
        try:
            _, data = self._run_snippet(_FRAMEWORK_SNIPPET)
        except ProbeError as e:
            return FrameworkInfo(installed=False, error=e.reason)

        if not data.get("installed"):
            return FrameworkInfo(installed=False, error=data.get("error"))
        return FrameworkInfo(
            installed=True,
            version=data.get("version"),
            cuda_version=data.get("cuda"),
            cuda_available=bool(data.get("available")),
            device_name=data.get("device"),
        )

    def try_allocation(self) -> AllocationResult:
        try:
            returncode, data = self._run_snippet(_ALLOCATION_SNIPPET)
        except ProbeError as e:
            return AllocationResult(success=False, error=e.reason)

        if returncode != 0 or not data.get("success"):
            return AllocationResult(success=False, error=data.get("error") or f"exit code {returncode}")
        return AllocationResult(
            success=True,
            device_count=int(data.get("device_count", 0)),
            memory_gb=data.get("memory_gb"),
        )
