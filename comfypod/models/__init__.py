"""
ComfyPod Models - Model file verification.
"""

from comfypod.models.validator import (
    ModelCheck,
    ModelReport,
    ValidationOutcome,
    classify_model,
    list_model_files,
    print_model_report,
    run_model_validation,
    validate_models,
)

__all__ = [
    "ModelCheck",
    "ModelReport",
    "ValidationOutcome",
    "classify_model",
    "list_model_files",
    "print_model_report",
    "run_model_validation",
    "validate_models",
]
