"""Loading and validation of declarative uninstall plans."""

from importlib import resources
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from cpuninstall.core.lib_logger import get_logger
from cpuninstall.lib.exceptions import PlanError
from cpuninstall.lib.yaml_utils import load_yaml_file, load_yaml_text
from cpuninstall.models.plan import UninstallPlan

logger = get_logger(__name__)

BUILTIN_PLAN = "cyberpanel_almalinux.yaml"


def _expand_targets(data: dict[str, Any]) -> dict[str, Any]:
    """Expand ``targets: [a, b]`` shorthand into one step per target."""
    for phase in data.get("phases") or []:
        if not isinstance(phase, dict):
            continue
        expanded = []
        for step in phase.get("steps") or []:
            if isinstance(step, dict) and "targets" in step:
                template = {k: v for k, v in step.items() if k != "targets"}
                for target in step["targets"] or []:
                    expanded.append({**template, "target": target})
            else:
                expanded.append(step)
        phase["steps"] = expanded
    return data


def _format_errors(error: ValidationError) -> list[str]:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        problems.append(f"{location}: {item['msg']}" if location else item["msg"])
    return problems


def parse_plan(data: dict[str, Any], source: str = "<plan>") -> UninstallPlan:
    """Validate raw plan data into an UninstallPlan."""
    try:
        plan = UninstallPlan.model_validate(_expand_targets(data))
    except ValidationError as e:
        problems = _format_errors(e)
        raise PlanError(
            f"Invalid uninstall plan {source}: {len(problems)} problem(s)",
            plan_source=source,
            problems=problems
        ) from e
    logger.debug(f"Loaded plan '{plan.name}' with {len(plan.steps)} steps from {source}")
    return plan


def load_builtin_plan() -> UninstallPlan:
    """Load the bundled CyberPanel-on-AlmaLinux plan."""
    text = resources.files("cpuninstall.data").joinpath(BUILTIN_PLAN).read_text(encoding="utf-8")
    return parse_plan(load_yaml_text(text, source=BUILTIN_PLAN), source=BUILTIN_PLAN)


def load_plan(plan_file: Path | None = None) -> UninstallPlan:
    """Load a plan from a YAML file, or the bundled plan when none is given."""
    if plan_file is None:
        return load_builtin_plan()
    return parse_plan(load_yaml_file(plan_file), source=str(plan_file))
