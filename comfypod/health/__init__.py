"""
ComfyPod Health - GPU environment checks.

Verifies driver, architecture and framework compatibility.
"""

from comfypod.health.checks import (
    HealthReport,
    count_issues,
    exit_code_for,
    print_health_report,
    run_health_checks,
    verdict_for,
)
from comfypod.health.queries import (
    DriverQuery,
    FrameworkVersionQuery,
    NvidiaSmiQuery,
    RuntimeCapabilityQuery,
    TorchQuery,
)

__all__ = [
    "DriverQuery",
    "FrameworkVersionQuery",
    "HealthReport",
    "NvidiaSmiQuery",
    "RuntimeCapabilityQuery",
    "TorchQuery",
    "count_issues",
    "exit_code_for",
    "print_health_report",
    "run_health_checks",
    "verdict_for",
]
