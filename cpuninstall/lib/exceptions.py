"""Exception hierarchy for uninstall runs."""

from typing import Any, Dict, List, Optional


class UninstallError(Exception):
    """Base exception for all uninstaller errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """Initialize uninstaller error."""
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for structured logs."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details
        }


class PrivilegeError(UninstallError):
    """Raised when the process lacks root privileges."""

    def __init__(self, message: str, euid: Optional[int] = None):
        """Initialize privilege error."""
        details = {}
        if euid is not None:
            details["euid"] = euid
        super().__init__(message, details)


class PlanError(UninstallError):
    """Raised when an uninstall plan cannot be loaded or is invalid."""

    def __init__(
        self,
        message: str,
        plan_source: Optional[str] = None,
        problems: Optional[List[str]] = None
    ):
        """Initialize plan error."""
        details = {}
        if plan_source:
            details["plan_source"] = plan_source
        if problems:
            details["problems"] = problems
        super().__init__(message, details)
        self.problems = problems or []


class CommandError(UninstallError):
    """Raised when a host command exits with a nonzero status."""

    def __init__(self, args: List[str], returncode: int, stderr: str = "", stdout: str = ""):
        """Initialize command error."""
        command = " ".join(args)
        output = (stderr or stdout or "").strip()
        message = f"'{command}' exited with status {returncode}"
        if output:
            message = f"{message}: {output.splitlines()[-1]}"
        super().__init__(message, {
            "command": command,
            "returncode": returncode,
            "stderr": stderr,
        })
        self.argv = list(args)
        self.returncode = returncode
        self.stderr = stderr
        self.stdout = stdout


class StepFailedError(UninstallError):
    """Raised by a step action when its mutation failed.

    Carries operator-facing remediation text. The runner records the failure
    and moves on to the next step.
    """

    def __init__(
        self,
        message: str,
        step_id: Optional[str] = None,
        remediation: Optional[str] = None,
        cause: Optional[BaseException] = None
    ):
        """Initialize step failure."""
        details = {}
        if step_id:
            details["step_id"] = step_id
        if cause is not None:
            details["cause"] = str(cause)
        super().__init__(message, details)
        self.step_id = step_id
        self.remediation = remediation
        self.cause = cause


class StepDeclinedError(UninstallError):
    """Raised by a step action when the operator chose nothing to change.

    The runner records the step as declined rather than done.
    """

    def __init__(self, message: str, step_id: Optional[str] = None):
        """Initialize step decline."""
        details = {}
        if step_id:
            details["step_id"] = step_id
        super().__init__(message, details)
        self.step_id = step_id
