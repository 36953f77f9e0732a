"""UninstallPlan model: the declarative, ordered step table."""

from collections.abc import Iterator
from fnmatch import fnmatchcase

from pydantic import BaseModel, ConfigDict, Field, model_validator

from cpuninstall.models.step import Step


class Phase(BaseModel):
    """A titled group of steps, used for display only."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    title: str = Field(..., description="Phase heading")
    steps: list[Step] = Field(default_factory=list)


class Notice(BaseModel):
    """Manual-check guidance printed after the run."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    message: str = Field(..., description="Guidance text")
    show_file: str | None = Field(
        default=None,
        description="Host file whose current contents are printed with the notice"
    )
    when_skipped: str | None = Field(
        default=None,
        description="Step id; the notice is printed only when that step had nothing to do"
    )


class UninstallPlan(BaseModel):
    """Complete ordered list of steps for one product on one distribution."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    name: str = Field(..., description="Plan name shown to the operator")
    description: str | None = Field(default=None)
    gates: dict[str, str] = Field(
        default_factory=dict,
        description="Gate name to confirmation question"
    )
    phases: list[Phase] = Field(default_factory=list)
    notices: list[Notice] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_references(self) -> "UninstallPlan":
        """Check step id uniqueness, gate and notice references and ``needs`` patterns."""
        problems = []
        seen: set[str] = set()
        earlier: list[str] = []

        for step in self.steps:
            step_id = step.step_id
            if step_id in seen:
                problems.append(f"duplicate step id '{step_id}'")
            seen.add(step_id)

            if step.gate and step.gate not in self.gates:
                problems.append(f"step '{step_id}' references undeclared gate '{step.gate}'")

            for pattern in step.needs:
                if not any(fnmatchcase(prior, pattern) for prior in earlier):
                    problems.append(
                        f"step '{step_id}' needs '{pattern}' but no earlier step matches it"
                    )
            earlier.append(step_id)

        for notice in self.notices:
            if notice.when_skipped and notice.when_skipped not in seen:
                problems.append(f"notice references unknown step '{notice.when_skipped}'")

        if problems:
            raise ValueError("; ".join(problems))
        return self

    @property
    def steps(self) -> list[Step]:
        """All steps in execution order."""
        return [step for phase in self.phases for step in phase.steps]

    def iter_steps(self) -> Iterator[tuple[Phase, Step]]:
        """Yield each step together with its phase, in execution order."""
        for phase in self.phases:
            for step in phase.steps:
                yield phase, step

    def get_step(self, step_id: str) -> Step | None:
        """Find a step by id."""
        return next((s for s in self.steps if s.step_id == step_id), None)
