"""Services that query and mutate the host."""

from .host import SystemHost
from .plan_loader import load_builtin_plan, load_plan, parse_plan
from .step_executor import StepExecutor
from .uninstall_service import UninstallService

__all__ = [
    "StepExecutor",
    "SystemHost",
    "UninstallService",
    "load_builtin_plan",
    "load_plan",
    "parse_plan",
]
