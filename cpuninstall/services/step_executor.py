"""Step executor: applicability checks and actions for each step kind."""

import re

from cpuninstall.core.config import UninstallerConfig, get_config
from cpuninstall.core.lib_logger import get_logger
from cpuninstall.lib.exceptions import CommandError, StepDeclinedError, StepFailedError
from cpuninstall.models.step import Step, StepKind
from cpuninstall.services.host import SystemHost

logger = get_logger(__name__)

_SELINUX_MODE = re.compile(r"^(\s*SELINUX=)(\w+)", re.MULTILINE)

FSTAB = "/etc/fstab"
AUTORELABEL = "/.autorelabel"


def _normalize(text: str) -> str:
    return " ".join(text.split())


def _line_matches(line: str, patterns: list[str]) -> bool:
    """Whitespace-insensitive substring match against any pattern."""
    normalized = _normalize(line)
    return any(_normalize(pattern) in normalized for pattern in patterns)


class StepExecutor:
    """Checks and applies individual steps against a host.

    ``check`` never mutates anything; ``apply`` performs the mutation and
    raises :class:`StepFailedError` (with remediation text) when it fails.
    """

    def __init__(
        self,
        host: SystemHost,
        config: UninstallerConfig | None = None,
        prompter=None
    ):
        """Initialize the step executor."""
        self.host = host
        self.config = config or get_config()
        self.prompter = prompter

        self._checks = {
            StepKind.STOP_SERVICE: self._check_stop_service,
            StepKind.DISABLE_SERVICE: self._check_disable_service,
            StepKind.DAEMON_RELOAD: self._always,
            StepKind.RESTART_SERVICE: self._check_unit_known,
            StepKind.ENABLE_SERVICE: self._check_enable_service,
            StepKind.RESTORE_MASKED_SERVICE: self._check_restore_masked_service,
            StepKind.REMOVE_PATH: self._check_remove_path,
            StepKind.REMOVE_SYMLINK: self._check_remove_symlink,
            StepKind.REMOVE_MATCHING_DIRS: self._check_remove_matching_dirs,
            StepKind.REMOVE_PACKAGE: self._check_remove_package,
            StepKind.AUTOREMOVE_PACKAGES: self._always,
            StepKind.CLEAN_PACKAGE_CACHE: self._always,
            StepKind.RESTORE_SELINUX: self._check_restore_selinux,
            StepKind.DELETE_CONFIG_LINES: self._check_delete_config_lines,
            StepKind.RELOAD_SYSCTL: self._always,
            StepKind.RESTORE_BACKUP: self._check_restore_backup,
            StepKind.REMOVE_SWAP_FILE: self._check_remove_swap_file,
            StepKind.CLEAN_CRONTAB: self._check_clean_crontab,
            StepKind.REMOVE_HOME_DIRECTORIES: self._check_remove_home_directories,
            StepKind.REMOVE_USER: self._check_remove_user,
        }
        self._actions = {
            StepKind.STOP_SERVICE: self._stop_service,
            StepKind.DISABLE_SERVICE: self._disable_service,
            StepKind.DAEMON_RELOAD: self._daemon_reload,
            StepKind.RESTART_SERVICE: self._restart_service,
            StepKind.ENABLE_SERVICE: self._enable_service,
            StepKind.RESTORE_MASKED_SERVICE: self._restore_masked_service,
            StepKind.REMOVE_PATH: self._remove_path,
            StepKind.REMOVE_SYMLINK: self._remove_symlink,
            StepKind.REMOVE_MATCHING_DIRS: self._remove_matching_dirs,
            StepKind.REMOVE_PACKAGE: self._remove_package,
            StepKind.AUTOREMOVE_PACKAGES: self._autoremove_packages,
            StepKind.CLEAN_PACKAGE_CACHE: self._clean_package_cache,
            StepKind.RESTORE_SELINUX: self._restore_selinux,
            StepKind.DELETE_CONFIG_LINES: self._delete_config_lines,
            StepKind.RELOAD_SYSCTL: self._reload_sysctl,
            StepKind.RESTORE_BACKUP: self._restore_backup,
            StepKind.REMOVE_SWAP_FILE: self._remove_swap_file,
            StepKind.CLEAN_CRONTAB: self._clean_crontab,
            StepKind.REMOVE_HOME_DIRECTORIES: self._remove_home_directories,
            StepKind.REMOVE_USER: self._remove_user,
        }

    def check(self, step: Step) -> str | None:
        """Return why the step does not apply, or None when it does."""
        return self._checks[step.kind](step)

    def apply(self, step: Step) -> str:
        """Perform the step's mutation and return a short result message."""
        logger.info(f"Executing: {step.display_name}")
        try:
            return self._actions[step.kind](step)
        except (StepFailedError, StepDeclinedError):
            raise
        except (CommandError, OSError) as e:
            raise StepFailedError(
                str(e),
                step_id=step.step_id,
                remediation=self.remediation(step),
                cause=e
            ) from e

    def render_prompt(self, step: Step) -> str:
        """Confirmation question for a destructive step, filled in from live state."""
        context = {"target": step.target}
        if step.kind == StepKind.RESTORE_SELINUX:
            context["mode"] = self._selinux_mode(step) or "unknown"
        try:
            return step.prompt.format(**context)
        except (KeyError, IndexError):
            return step.prompt

    def remediation(self, step: Step) -> str:
        """Manual remediation guidance for a failed step."""
        target = step.target
        if step.kind == StepKind.REMOVE_PACKAGE:
            if self.config.is_guarded(target):
                return (
                    f"CRITICAL PACKAGE: {target} removal failed. Its uninstall scriptlets are "
                    "known to be problematic and forcing removal can leave the system unbootable.\n"
                    "If you are prepared for system repair or an OS reinstall, you may run:\n"
                    f"  -> rpm -e --noscripts --nodeps {target}\n"
                    "  -> then re-run cpuninstall.\n"
                    f"cpuninstall will NOT force-remove '{target}'."
                )
            return (
                f"Run '{self.config.package_manager} remove --assumeno {target}' to inspect "
                f"dependencies, or 'rpm -e --noscripts --nodeps {target}' as a last resort. "
                "Make sure this package is dealt with manually if it matters."
            )
        if step.kind in (
            StepKind.STOP_SERVICE,
            StepKind.DISABLE_SERVICE,
            StepKind.RESTART_SERVICE,
            StepKind.ENABLE_SERVICE,
            StepKind.RESTORE_MASKED_SERVICE,
        ):
            return f"Check 'systemctl status {target}' and 'journalctl -u {target}'."
        if step.kind == StepKind.DAEMON_RELOAD:
            return "Run 'systemctl daemon-reload' manually."
        if step.kind in (StepKind.AUTOREMOVE_PACKAGES, StepKind.CLEAN_PACKAGE_CACHE):
            return f"Inspect '{self.config.package_manager}' output and rerun the command manually."
        if step.kind == StepKind.RESTORE_SELINUX:
            return f"Edit {target} by hand and set SELINUX=enforcing, then reboot."
        if step.kind == StepKind.RELOAD_SYSCTL:
            return "Run 'sysctl -p' manually and fix any setting it rejects."
        if step.kind == StepKind.CLEAN_CRONTAB:
            return f"Edit the crontab with 'crontab -e -u {target}' and remove the entries."
        if step.kind == StepKind.REMOVE_USER:
            return f"Remove the user manually with 'userdel -r {target}' and 'groupdel {target}'."
        if step.kind in (StepKind.DELETE_CONFIG_LINES, StepKind.RESTORE_BACKUP, StepKind.REMOVE_SWAP_FILE):
            return f"Review {target} by hand and revert the CyberPanel changes."
        return f"Remove {target} manually once the cause is resolved."

    # -- checks -----------------------------------------------------------

    def _always(self, step: Step) -> str | None:
        return None

    def _check_unit_known(self, step: Step) -> str | None:
        if not self.host.unit_known(step.target):
            return f"{step.target} not found"
        return None

    def _check_stop_service(self, step: Step) -> str | None:
        reason = self._check_unit_known(step)
        if reason:
            return reason
        if not self.host.unit_active(step.target):
            return f"{step.target} is not running"
        return None

    def _check_disable_service(self, step: Step) -> str | None:
        reason = self._check_unit_known(step)
        if reason:
            return reason
        if not self.host.unit_enabled(step.target):
            return f"{step.target} is not enabled"
        return None

    def _check_enable_service(self, step: Step) -> str | None:
        if not any(self.host.exists(f"{base}/{step.target}") for base in step.unit_paths):
            return f"{step.target} unit file not found"
        if self.host.unit_enabled(step.target):
            return f"{step.target} is already enabled"
        return None

    def _masked_unit(self, step: Step) -> str | None:
        for unit in [step.target, *step.alternatives]:
            if self.host.unit_masked(unit):
                return unit
        return None

    def _check_restore_masked_service(self, step: Step) -> str | None:
        if self._masked_unit(step) is None:
            units = " nor ".join([step.target, *step.alternatives])
            return f"{units} is not masked"
        return None

    def _check_remove_path(self, step: Step) -> str | None:
        if not self.host.glob(step.target):
            return f"{step.target} not found"
        if step.marker_file:
            content = self.host.read_text(step.marker_file)
            if content is None or step.marker_text not in content:
                return (
                    f"{step.target} exists but {step.marker_file} does not mention "
                    f"'{step.marker_text}'; keeping it"
                )
        return None

    def _check_remove_symlink(self, step: Step) -> str | None:
        if not self.host.is_symlink(step.target):
            if self.host.exists(step.target):
                return f"{step.target} is not a symlink; keeping it"
            return f"{step.target} not found"
        return None

    def _check_remove_matching_dirs(self, step: Step) -> str | None:
        if not self.host.find_directories(step.target, step.name):
            return f"no '{step.name}' directories under {step.target}"
        return None

    def _check_remove_package(self, step: Step) -> str | None:
        if not self.host.package_installed(step.target):
            return f"package {step.target} is not installed"
        return None

    def _selinux_mode(self, step: Step) -> str | None:
        content = self.host.read_text(step.target)
        if content is None:
            return None
        match = _SELINUX_MODE.search(content)
        return match.group(2) if match else None

    def _check_restore_selinux(self, step: Step) -> str | None:
        if self.host.read_text(step.target) is None:
            return f"{step.target} not found"
        mode = self._selinux_mode(step)
        if mode not in ("disabled", "permissive"):
            return f"SELinux mode is '{mode}'; nothing to restore"
        return None

    def _check_delete_config_lines(self, step: Step) -> str | None:
        content = self.host.read_text(step.target)
        if content is None:
            return f"{step.target} not found"
        if not any(_line_matches(line, step.patterns) for line in content.splitlines()):
            return f"no matching lines in {step.target}"
        return None

    def _check_restore_backup(self, step: Step) -> str | None:
        if not self.host.exists(step.backup):
            return f"no {step.backup} found; check {step.target} manually"
        return None

    def _check_remove_swap_file(self, step: Step) -> str | None:
        fstab = self.host.read_text(FSTAB) or ""
        if step.target not in fstab and not self.host.exists(step.target):
            return f"no swap file at {step.target}"
        return None

    def _check_clean_crontab(self, step: Step) -> str | None:
        crontab = self.host.read_crontab(step.target)
        if not any(_line_matches(line, step.patterns) for line in crontab.splitlines()):
            return f"no matching entries in {step.target}'s crontab"
        return None

    def _check_remove_home_directories(self, step: Step) -> str | None:
        if not self.host.subdirectories(step.target):
            return f"no directories in {step.target}"
        return None

    def _check_remove_user(self, step: Step) -> str | None:
        if not self.host.user_exists(step.target):
            return f"user {step.target} does not exist"
        return None

    # -- actions ----------------------------------------------------------

    def _stop_service(self, step: Step) -> str:
        self.host.systemctl("stop", step.target)
        return f"{step.target} stopped"

    def _disable_service(self, step: Step) -> str:
        self.host.systemctl("disable", step.target)
        return f"{step.target} disabled"

    def _daemon_reload(self, step: Step) -> str:
        self.host.systemctl("daemon-reload")
        return "systemd daemon reloaded"

    def _restart_service(self, step: Step) -> str:
        self.host.systemctl("restart", step.target)
        return f"{step.target} restarted"

    def _enable_service(self, step: Step) -> str:
        unit = step.target
        if self.host.unit_masked(unit):
            self.host.systemctl("unmask", unit)
        self.host.systemctl("enable", unit)
        self.host.systemctl("start", unit)
        return f"{unit} enabled and started"

    def _restore_masked_service(self, step: Step) -> str:
        unit = self._masked_unit(step)
        if unit is None:
            return "no masked unit left to restore"
        self.host.systemctl("unmask", unit)
        self.host.systemctl("enable", unit)
        self.host.systemctl("start", unit)
        return f"{unit} unmasked, enabled and started"

    def _remove_path(self, step: Step) -> str:
        removed = []
        for path in self.host.glob(step.target):
            self.host.remove(path)
            removed.append(self.host.host_path(path))
        return f"removed {', '.join(removed)}"

    def _remove_symlink(self, step: Step) -> str:
        self.host.remove(self.host.path(step.target))
        return f"removed symlink {step.target}"

    def _remove_matching_dirs(self, step: Step) -> str:
        directories = self.host.find_directories(step.target, step.name)
        for path in directories:
            self.host.remove(path)
        return f"removed {len(directories)} '{step.name}' directories"

    def _remove_package(self, step: Step) -> str:
        try:
            self.host.remove_package(step.target, self.config.critical_exclude_packages)
        except CommandError as e:
            # Never forced, guarded or not; the operator gets instructions instead
            raise StepFailedError(
                f"{self.config.package_manager} remove for {step.target} failed: {e.message}",
                step_id=step.step_id,
                remediation=self.remediation(step),
                cause=e
            ) from e
        return f"{step.target} removed"

    def _autoremove_packages(self, step: Step) -> str:
        self.host.autoremove(self.config.critical_exclude_packages)
        return "orphaned dependencies removed"

    def _clean_package_cache(self, step: Step) -> str:
        self.host.clean_package_cache()
        return "package cache cleaned"

    def _restore_selinux(self, step: Step) -> str:
        content = self.host.read_text(step.target) or ""
        mode = self._selinux_mode(step)
        updated = _SELINUX_MODE.sub(r"\1enforcing", content)
        self.host.write_text(step.target, updated)
        if mode == "disabled":
            self.host.touch(AUTORELABEL)
            return (
                "SELinux set to 'enforcing'; the filesystem will be relabeled on next boot. "
                "A reboot is required."
            )
        return "SELinux set to 'enforcing'; a reboot is recommended."

    def _delete_config_lines(self, step: Step) -> str:
        content = self.host.read_text(step.target) or ""
        kept = []
        removed = 0
        for line in content.splitlines():
            if _line_matches(line, step.patterns):
                removed += 1
                continue
            if step.drop_blank_lines and not line.strip():
                continue
            kept.append(line)
        text = "\n".join(kept)
        if kept:
            text += "\n"
        self.host.write_text(step.target, text)
        return f"removed {removed} line(s) from {step.target}"

    def _reload_sysctl(self, step: Step) -> str:
        self.host.reload_sysctl()
        return "sysctl settings applied"

    def _restore_backup(self, step: Step) -> str:
        # os.replace overwrites the current file (or dangling resolver symlink)
        if self.host.is_symlink(step.target):
            self.host.remove(self.host.path(step.target))
        self.host.replace(step.backup, step.target)
        return f"{step.target} restored from {step.backup}"

    def _remove_swap_file(self, step: Step) -> str:
        fstab = self.host.read_text(FSTAB)
        if fstab is not None and step.target in fstab:
            kept = [line for line in fstab.splitlines() if step.target not in line]
            self.host.write_text(FSTAB, "\n".join(kept) + ("\n" if kept else ""))
            if not self.host.swapoff(step.target):
                logger.debug(f"swapoff {step.target} failed; swap was probably inactive")
        if self.host.exists(step.target):
            self.host.remove(self.host.path(step.target))
        return f"swap file {step.target} removed"

    def _clean_crontab(self, step: Step) -> str:
        lines = self.host.read_crontab(step.target).splitlines()
        kept = [line for line in lines if not _line_matches(line, step.patterns)]
        self.host.write_crontab(step.target, "\n".join(kept) + ("\n" if kept else ""))
        return f"removed {len(lines) - len(kept)} crontab line(s)"

    def _remove_home_directories(self, step: Step) -> str:
        if self.prompter is None:
            raise StepDeclinedError("no operator available to choose directories", step_id=step.step_id)

        self.prompter.echo(
            f"Directories in {step.target}. Confirm which belong to CyberPanel websites.\n"
            "WARNING: deleting a directory removes ALL of its content."
        )
        for directory in self.host.subdirectories(step.target):
            self.prompter.echo(f"  {directory}")

        answer = self.prompter.ask_text(
            f"Enter space-separated {step.target} directories to delete "
            f"(e.g. {step.target}/example.com), or press Enter to skip"
        )
        selected = answer.split()
        if not selected:
            raise StepDeclinedError("no directories selected", step_id=step.step_id)

        deleted = []
        errors = []
        for entry in selected:
            if not entry.startswith("/"):
                entry = f"{step.target.rstrip('/')}/{entry}"
            if not self.host.is_within(entry, step.target):
                logger.warning(f"Refusing to delete {entry}: not inside {step.target}")
                self.prompter.echo(f"  Skipping {entry}: not inside {step.target}")
                continue
            if not self.host.is_dir(entry):
                self.prompter.echo(f"  Warning: directory {entry} not found. Skipping.")
                continue
            try:
                self.host.remove(self.host.path(entry))
                deleted.append(entry)
            except OSError as e:
                errors.append(f"{entry}: {e}")

        if errors:
            raise StepFailedError(
                f"could not delete {'; '.join(errors)}",
                step_id=step.step_id,
                remediation="Delete the remaining directories by hand with 'rm -rf'."
            )
        if not deleted:
            raise StepDeclinedError("no selected directory was deleted", step_id=step.step_id)
        return f"deleted {len(deleted)} of {len(selected)} selected directories"

    def _remove_user(self, step: Step) -> str:
        self.host.delete_user(step.target)
        return f"user {step.target} and its home directory removed"
