"""StepRecord model tracking the outcome of one step."""

from enum import Enum

from pydantic import BaseModel, Field


class StepStatus(str, Enum):
    """Lifecycle state of a step within a run."""
    PENDING = "pending"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    APPROVED = "approved"
    NOT_APPLICABLE = "not_applicable"
    DECLINED = "declined"
    DONE = "done"
    FAILED = "failed"
    PLANNED = "planned"


TERMINAL_STATUSES = {
    StepStatus.NOT_APPLICABLE,
    StepStatus.DECLINED,
    StepStatus.DONE,
    StepStatus.FAILED,
    StepStatus.PLANNED,
}

_VALID_TRANSITIONS = {
    StepStatus.PENDING: [
        StepStatus.NOT_APPLICABLE,
        StepStatus.AWAITING_CONFIRMATION,
        StepStatus.APPROVED,
        StepStatus.DECLINED,
        StepStatus.PLANNED,
    ],
    StepStatus.AWAITING_CONFIRMATION: [
        StepStatus.DECLINED,
        StepStatus.APPROVED,
    ],
    StepStatus.APPROVED: [
        StepStatus.DONE,
        StepStatus.FAILED,
        StepStatus.DECLINED,
    ],
    StepStatus.NOT_APPLICABLE: [],
    StepStatus.DECLINED: [],
    StepStatus.DONE: [],
    StepStatus.FAILED: [],
    StepStatus.PLANNED: [],
}


class StepRecord(BaseModel):
    """Tracks the status of each step in an uninstall run."""

    step_id: str = Field(description="Identifier of the step")
    label: str = Field(description="Human-readable step description")
    phase: str | None = Field(default=None, description="Phase the step belongs to")
    status: StepStatus = Field(
        default=StepStatus.PENDING,
        description="Current status of the step"
    )
    message: str | None = Field(
        default=None,
        description="Skip reason, result or error details"
    )
    remediation: str | None = Field(
        default=None,
        description="Suggested manual remediation after a failure"
    )

    def transition_to(self, new_status: StepStatus) -> None:
        """Transition to a new status with validation."""
        if new_status not in _VALID_TRANSITIONS.get(self.status, []):
            raise ValueError(
                f"Invalid status transition from {self.status.value} to {new_status.value}"
            )

        self.status = new_status

    def mark_not_applicable(self, reason: str) -> None:
        """Mark step as skipped because its target is absent."""
        self.transition_to(StepStatus.NOT_APPLICABLE)
        self.message = reason

    def await_confirmation(self) -> None:
        """Mark step as waiting on the operator."""
        self.transition_to(StepStatus.AWAITING_CONFIRMATION)

    def approve(self) -> None:
        """Mark step as cleared to run."""
        self.transition_to(StepStatus.APPROVED)

    def mark_declined(self, reason: str = "declined by operator") -> None:
        """Mark step as declined; its target is left untouched."""
        self.transition_to(StepStatus.DECLINED)
        self.message = reason

    def mark_done(self, message: str | None = None) -> None:
        """Mark step as successfully applied."""
        self.transition_to(StepStatus.DONE)
        self.message = message

    def mark_failed(self, error_message: str, remediation: str | None = None) -> None:
        """Mark step as failed with error message."""
        self.transition_to(StepStatus.FAILED)
        self.message = error_message
        self.remediation = remediation

    def mark_planned(self) -> None:
        """Mark step as one a dry run would perform."""
        self.transition_to(StepStatus.PLANNED)
        self.message = "would run"

    @property
    def is_terminal(self) -> bool:
        """Check if step is in a terminal state."""
        return self.status in TERMINAL_STATUSES
