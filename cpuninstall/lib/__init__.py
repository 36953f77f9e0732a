"""cpuninstall utility library."""

from .exceptions import (
    CommandError,
    PlanError,
    PrivilegeError,
    StepDeclinedError,
    StepFailedError,
    UninstallError,
)

__all__ = [
    'UninstallError',
    'PrivilegeError',
    'PlanError',
    'CommandError',
    'StepFailedError',
    'StepDeclinedError',
]
