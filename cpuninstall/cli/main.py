"""Main CLI entry point for cpuninstall."""

import os
import sys
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from cpuninstall.cli.prompts import OperatorPrompter
from cpuninstall.cli.reporting import (
    ConsoleReporter,
    display_notices,
    display_plan,
    display_results,
    display_summary,
    print_banner,
)
from cpuninstall.core.config import get_config
from cpuninstall.core.lib_logger import get_logger, setup_logging
from cpuninstall.lib.exceptions import CommandError, PlanError, PrivilegeError
from cpuninstall.models.options import UninstallOptions
from cpuninstall.services.host import SystemHost
from cpuninstall.services.plan_loader import load_plan
from cpuninstall.services.step_executor import StepExecutor
from cpuninstall.services.uninstall_service import UninstallService
from cpuninstall.version import __version__

logger = get_logger(__name__)
console = Console()


def require_root() -> None:
    """Raise PrivilegeError unless running with an effective uid of 0."""
    euid = os.geteuid()
    if euid != 0:
        raise PrivilegeError("This script must be run as root.", euid=euid)


@click.command()
@click.version_option(__version__, "--version", "-v", prog_name="cpuninstall", help="Show version and exit")
@click.option(
    '--dry-run',
    is_flag=True,
    help='Check what would be changed without changing anything'
)
@click.option(
    '--verbose',
    is_flag=True,
    help='Show the plan and a per-step results table'
)
@click.option(
    '--plan',
    'plan_file',
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Run a custom YAML uninstall plan'
)
@click.option(
    '--debug',
    is_flag=True,
    help='Enable debug logging'
)
@click.option(
    '--log-file',
    type=click.Path(dir_okay=False, path_type=Path),
    help='Also write a JSON log to this file'
)
def main(
    dry_run: bool,
    verbose: bool,
    plan_file: Optional[Path],
    debug: bool,
    log_file: Optional[Path]
):
    """Uninstall CyberPanel from an AlmaLinux server.

    Stops CyberPanel services, removes its packages and files, and reverts
    the system configuration changes its installer made. Every destructive
    step asks first; answering anything but 'y' leaves the target alone.

    WARNING: Have a full backup of the server before running this.
    """
    try:
        require_root()
    except PrivilegeError as e:
        console.print(f"[red]{e.message}[/red]")
        sys.exit(1)

    try:
        config = get_config()
        if debug:
            config.debug = True
        if log_file:
            config.log_file = log_file
        if plan_file:
            config.plan_file = plan_file
    except ValidationError as e:
        console.print("[red]Invalid configuration:[/red]")
        for error in e.errors():
            field = ".".join(str(part) for part in error["loc"]) or "config"
            console.print(f"  [red]-[/red] {escape(field)}: {escape(error['msg'])}")
        sys.exit(2)
    setup_logging(config)

    try:
        plan = load_plan(config.plan_file)
    except PlanError as e:
        console.print(f"[red]{escape(e.message)}[/red]")
        for problem in e.problems:
            console.print(f"  [red]-[/red] {escape(problem)}")
        sys.exit(2)

    options = UninstallOptions(dry_run=dry_run, verbose=verbose, plan_file=config.plan_file)
    prompter = OperatorPrompter()

    print_banner(console, plan)
    if options.verbose:
        display_plan(console, plan)

    if options.dry_run:
        console.print("[cyan]Dry run: nothing will be changed and no step will ask for confirmation.[/cyan]")
    elif not prompter.confirm("Are you sure you want to proceed with the uninstallation?"):
        console.print("Uninstallation aborted by user.")
        sys.exit(0)

    host = SystemHost(config.root_dir, package_manager=config.package_manager)
    executor = StepExecutor(host, config=config, prompter=prompter)
    service = UninstallService(plan, executor, prompter, reporter=ConsoleReporter(console))
    report = service.execute(options)

    console.print()
    if options.verbose:
        display_results(console, report)
    display_summary(console, report)
    display_notices(console, plan.notices, host, report)

    if options.dry_run:
        console.print("\n[cyan]Dry run complete. Nothing was changed.[/cyan]")
        sys.exit(0)

    console.print("\n[bold green]CyberPanel uninstallation process finished.[/bold green]")
    console.print("Review the output above for failed steps and manual checks.")

    if prompter.confirm("A system reboot is recommended. Reboot now?"):
        console.print("Rebooting...")
        try:
            host.reboot()
        except CommandError as e:
            logger.error(f"Reboot failed: {e.message}")
            console.print(f"[red]Reboot failed: {escape(e.message)}. Reboot manually.[/red]")
    else:
        console.print("Please reboot your system manually at your earliest convenience.")

    sys.exit(0)


if __name__ == "__main__":
    main()
