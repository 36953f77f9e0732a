"""Console rendering of run progress, results and notices."""

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from cpuninstall.models.plan import Notice, Phase, UninstallPlan
from cpuninstall.models.run_report import RunReport
from cpuninstall.models.step import Step
from cpuninstall.models.step_record import StepRecord, StepStatus
from cpuninstall.services.host import SystemHost

_STATUS_STYLE = {
    StepStatus.DONE: ("green", "done"),
    StepStatus.FAILED: ("red", "FAILED"),
    StepStatus.DECLINED: ("yellow", "declined"),
    StepStatus.NOT_APPLICABLE: ("dim", "skipped"),
    StepStatus.PLANNED: ("cyan", "would run"),
}


class ConsoleReporter:
    """Prints one progress line per step as the run advances."""

    def __init__(self, console: Console):
        """Initialize the reporter."""
        self.console = console

    def phase_started(self, phase: Phase) -> None:
        self.console.print(f"\n[bold cyan]== {escape(phase.title)} ==[/bold cyan]")

    def step_started(self, index: int, total: int, step: Step) -> None:
        self.console.print(f"[dim]{escape(f'[{index}/{total}]')}[/dim] {escape(step.display_name)}")

    def step_finished(self, record: StepRecord) -> None:
        style, word = _STATUS_STYLE.get(record.status, ("white", record.status.value))
        detail = f": {escape(record.message)}" if record.message and record.message != word else ""
        if record.status == StepStatus.NOT_APPLICABLE:
            self.console.print(f"  [{style}]not found / skipping{detail}[/{style}]")
        else:
            self.console.print(f"  [{style}]{word}{detail}[/{style}]")
        if record.status == StepStatus.FAILED and record.remediation:
            for line in record.remediation.splitlines():
                self.console.print(f"  [yellow]{escape(line)}[/yellow]")


def print_banner(console: Console, plan: UninstallPlan) -> None:
    """Print the up-front warning."""
    console.print(Panel(
        f"[bold]{escape(plan.name)} uninstaller[/bold]\n\n"
        "This will stop services, remove packages and files, and revert system "
        "configuration changes. It can lead to data loss or system instability.\n"
        "Have a [bold]FULL BACKUP[/bold] of the server before proceeding.",
        title="[bold red]WARNING[/bold red]",
        border_style="red"
    ))


def display_plan(console: Console, plan: UninstallPlan) -> None:
    """Display every step the plan contains."""
    table = Table(title=f"Steps in plan: {plan.name}", show_header=True, header_style="bold magenta")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Phase", style="cyan")
    table.add_column("Step", style="yellow")
    table.add_column("Confirm", style="red")

    for index, (phase, step) in enumerate(plan.iter_steps(), start=1):
        confirm = "yes" if step.destructive else ""
        if step.gate:
            confirm = f"{confirm} ({step.gate})".strip()
        table.add_row(str(index), escape(phase.title), escape(step.display_name), confirm)

    console.print(table)


def display_results(console: Console, report: RunReport) -> None:
    """Display a per-step results table."""
    table = Table(title="Step results", show_header=True, header_style="bold magenta")
    table.add_column("Step", style="yellow")
    table.add_column("Status")
    table.add_column("Details", style="dim")

    for record in report.records:
        style, word = _STATUS_STYLE.get(record.status, ("white", record.status.value))
        table.add_row(escape(record.label), f"[{style}]{word}[/{style}]", escape(record.message or ""))

    console.print(table)


def display_summary(console: Console, report: RunReport) -> None:
    """Print the summary panel and repeat remediation for every failure."""
    lines = [
        f"[green]Done:[/green] {report.done_steps} steps",
        f"[red]Failed:[/red] {report.failed_steps} steps",
        f"[yellow]Declined:[/yellow] {report.declined_steps} steps",
        f"[dim]Not applicable:[/dim] {report.not_applicable_steps} steps",
    ]
    if report.dry_run:
        lines.insert(0, f"[cyan]Would run:[/cyan] {report.planned_steps} steps")
    console.print(Panel("\n".join(lines), title="Summary", border_style="cyan"))

    failures = report.failures()
    if failures:
        console.print("\n[bold red]Steps that need manual attention:[/bold red]")
        for record in failures:
            console.print(f"  [red]-[/red] {escape(record.label)}: {escape(record.message or '')}")
            for line in (record.remediation or "").splitlines():
                console.print(f"      {escape(line)}")


def display_notices(console: Console, notices: list[Notice], host: SystemHost, report: RunReport) -> None:
    """Print manual-check guidance, with file contents where requested.

    A notice tied to a step through ``when_skipped`` is printed only when the
    report records that step as not applicable.
    """
    due = [notice for notice in notices if _notice_due(notice, report)]
    if not due:
        return
    console.print("\n[bold]Manual checks[/bold]")
    for notice in due:
        console.print(f"\n[yellow]*[/yellow] {escape(notice.message)}")
        if notice.show_file:
            content = host.read_text(notice.show_file)
            if content is None:
                console.print(f"  [dim]{escape(notice.show_file)} not found[/dim]")
            else:
                console.print(f"  [dim]Current {escape(notice.show_file)}:[/dim]")
                console.print(escape(content.rstrip("\n")), highlight=False)


def _notice_due(notice: Notice, report: RunReport) -> bool:
    if not notice.when_skipped:
        return True
    record = report.get(notice.when_skipped)
    return record is not None and record.status == StepStatus.NOT_APPLICABLE
