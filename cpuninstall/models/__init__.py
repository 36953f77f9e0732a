"""Data models for uninstall plans and run outcomes."""

from .options import UninstallOptions
from .plan import Notice, Phase, UninstallPlan
from .run_report import RunReport
from .step import Step, StepKind
from .step_record import StepRecord, StepStatus

__all__ = [
    "Notice",
    "Phase",
    "RunReport",
    "Step",
    "StepKind",
    "StepRecord",
    "StepStatus",
    "UninstallOptions",
    "UninstallPlan",
]
