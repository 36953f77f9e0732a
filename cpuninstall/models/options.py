"""UninstallOptions model for per-run options."""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator


class UninstallOptions(BaseModel):
    """Options for a single uninstall run."""
    model_config = ConfigDict(validate_assignment=True)

    dry_run: bool = Field(
        default=False,
        description="Check applicability only; mutate nothing and ask nothing"
    )
    verbose: bool = Field(
        default=False,
        description="Show a per-step results table"
    )
    plan_file: Path | None = Field(
        default=None,
        description="Custom YAML plan to run instead of the bundled one"
    )

    @field_validator('plan_file')
    @classmethod
    def validate_plan_file(cls, v: Path | None) -> Path | None:
        """Validate plan file path if given."""
        if v is not None and not v.is_file():
            raise ValueError(f"Plan file does not exist: {v}")
        return v
