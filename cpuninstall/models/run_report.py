"""RunReport model accumulating per-step outcomes of an uninstall run."""

from datetime import datetime

from pydantic import BaseModel, Field, computed_field

from cpuninstall.models.step_record import StepRecord, StepStatus


class RunReport(BaseModel):
    """Ordered outcome of every step in a run."""

    total_steps: int = Field(
        default=0,
        description="Total number of steps in the plan"
    )
    records: list[StepRecord] = Field(
        default_factory=list,
        description="One record per processed step, in plan order"
    )
    dry_run: bool = Field(
        default=False,
        description="Whether the run only checked applicability"
    )
    start_time: datetime = Field(
        default_factory=datetime.now,
        description="When the run started"
    )
    end_time: datetime | None = Field(
        default=None,
        description="When the run completed"
    )

    def _count(self, status: StepStatus) -> int:
        return sum(1 for record in self.records if record.status == status)

    @computed_field
    @property
    def done_steps(self) -> int:
        """Steps whose mutation succeeded."""
        return self._count(StepStatus.DONE)

    @computed_field
    @property
    def failed_steps(self) -> int:
        """Steps whose mutation failed."""
        return self._count(StepStatus.FAILED)

    @computed_field
    @property
    def declined_steps(self) -> int:
        """Steps the operator declined."""
        return self._count(StepStatus.DECLINED)

    @computed_field
    @property
    def not_applicable_steps(self) -> int:
        """Steps skipped because the target was absent."""
        return self._count(StepStatus.NOT_APPLICABLE)

    @computed_field
    @property
    def planned_steps(self) -> int:
        """Steps a dry run would perform."""
        return self._count(StepStatus.PLANNED)

    @computed_field
    @property
    def is_complete(self) -> bool:
        """Check if every step has been processed."""
        return len(self.records) >= self.total_steps

    @computed_field
    @property
    def has_failures(self) -> bool:
        """Check if there were any failures."""
        return self.failed_steps > 0

    @computed_field
    @property
    def duration_seconds(self) -> float:
        """Calculate run duration in seconds."""
        end = self.end_time or datetime.now()
        return (end - self.start_time).total_seconds()

    def add(self, record: StepRecord) -> None:
        """Append the record of a finished step."""
        if not record.is_terminal:
            raise ValueError(f"Step {record.step_id} is still {record.status.value}")
        self.records.append(record)

    def get(self, step_id: str) -> StepRecord | None:
        """Find the record for a step id."""
        return next((r for r in self.records if r.step_id == step_id), None)

    def changed_step_ids(self) -> list[str]:
        """Ids of steps that mutated (or, in a dry run, would mutate) the host."""
        changed = {StepStatus.DONE, StepStatus.PLANNED}
        return [r.step_id for r in self.records if r.status in changed]

    def failures(self) -> list[StepRecord]:
        """Records of failed steps."""
        return [r for r in self.records if r.status == StepStatus.FAILED]

    def mark_complete(self) -> None:
        """Mark the run as complete."""
        self.end_time = datetime.now()

    def get_summary(self) -> dict:
        """Get a summary of the run."""
        return {
            "total": self.total_steps,
            "done": self.done_steps,
            "failed": self.failed_steps,
            "declined": self.declined_steps,
            "not_applicable": self.not_applicable_steps,
            "planned": self.planned_steps,
            "duration": f"{self.duration_seconds:.1f}s",
            "dry_run": self.dry_run,
        }
