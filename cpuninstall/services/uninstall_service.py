"""Uninstall service: runs a plan step by step without ever aborting the run."""

from fnmatch import fnmatchcase

from cpuninstall.core.lib_logger import get_logger
from cpuninstall.lib.exceptions import StepDeclinedError, StepFailedError
from cpuninstall.models.options import UninstallOptions
from cpuninstall.models.plan import Phase, UninstallPlan
from cpuninstall.models.run_report import RunReport
from cpuninstall.models.step import Step
from cpuninstall.models.step_record import StepRecord
from cpuninstall.services.step_executor import StepExecutor

logger = get_logger(__name__)


class UninstallService:
    """Best-effort runner over a declarative uninstall plan.

    Every step is checked, confirmed when destructive, applied and recorded.
    A failing step is recorded with remediation guidance and the run moves
    on; nothing a step does can unwind past the step boundary.
    """

    def __init__(
        self,
        plan: UninstallPlan,
        executor: StepExecutor,
        prompter,
        reporter=None
    ):
        """Initialize the uninstall service."""
        self.plan = plan
        self.executor = executor
        self.prompter = prompter
        self.reporter = reporter
        self.report = RunReport(total_steps=len(plan.steps))
        self._gate_answers: dict[str, bool] = {}

    def execute(self, options: UninstallOptions | None = None) -> RunReport:
        """Run every step of the plan in order and return the report."""
        options = options or UninstallOptions()
        self.report.dry_run = options.dry_run

        current_phase: Phase | None = None
        for index, (phase, step) in enumerate(self.plan.iter_steps(), start=1):
            if phase is not current_phase:
                current_phase = phase
                if self.reporter:
                    self.reporter.phase_started(phase)
            if self.reporter:
                self.reporter.step_started(index, self.report.total_steps, step)

            record = self.run_step(step, options, phase=phase.title)
            self.report.add(record)

            if self.reporter:
                self.reporter.step_finished(record)

        self.report.mark_complete()
        logger.info(f"Run finished: {self.report.get_summary()}")
        return self.report

    def run_step(
        self,
        step: Step,
        options: UninstallOptions,
        phase: str | None = None
    ) -> StepRecord:
        """Take one step from pending to a terminal state."""
        log = logger.with_context(step_id=step.step_id)
        record = StepRecord(step_id=step.step_id, label=step.display_name, phase=phase)

        if step.gate and not self._gate_open(step.gate, options):
            record.mark_declined(f"skipped: '{step.gate}' removal was declined")
            log.info(f"Declined by gate {step.gate}: {step.display_name}")
            return record

        if step.needs and not self._needs_met(step):
            record.mark_not_applicable("nothing changed earlier in this run")
            log.info(f"Not needed: {step.display_name}")
            return record

        try:
            reason = self.executor.check(step)
        except Exception as e:
            log.exception(f"Applicability check failed for {step.display_name}")
            record.approve()
            record.mark_failed(f"could not check state: {e}", self.executor.remediation(step))
            return record

        if reason:
            record.mark_not_applicable(reason)
            log.info(f"Skipping {step.display_name}: {reason}")
            return record

        if options.dry_run:
            record.mark_planned()
            return record

        if step.destructive:
            record.await_confirmation()
            if not self.prompter.confirm(self.executor.render_prompt(step)):
                record.mark_declined()
                log.info(f"Operator declined: {step.display_name}")
                return record

        record.approve()
        try:
            message = self.executor.apply(step)
        except StepDeclinedError as e:
            log.info(f"Operator chose nothing for {step.display_name}: {e.message}")
            record.mark_declined(e.message)
        except StepFailedError as e:
            log.error(f"{step.display_name} failed: {e.message}")
            record.mark_failed(e.message, e.remediation)
        except Exception as e:
            log.exception(f"Unexpected error in {step.display_name}")
            record.mark_failed(f"unexpected error: {e}", self.executor.remediation(step))
        else:
            log.info(f"Done: {step.display_name}")
            record.mark_done(message)
        return record

    def _gate_open(self, gate: str, options: UninstallOptions) -> bool:
        """Ask a gate question once per run; dry runs never ask."""
        if options.dry_run:
            return True
        if gate not in self._gate_answers:
            self._gate_answers[gate] = self.prompter.confirm(self.plan.gates[gate])
            if not self._gate_answers[gate]:
                logger.info(f"Gate '{gate}' declined")
        return self._gate_answers[gate]

    def _needs_met(self, step: Step) -> bool:
        changed = self.report.changed_step_ids()
        return any(
            fnmatchcase(step_id, pattern)
            for pattern in step.needs
            for step_id in changed
        )
