"""Step model describing one best-effort uninstall action."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class StepKind(str, Enum):
    """Family of action a step performs."""
    STOP_SERVICE = "stop_service"
    DISABLE_SERVICE = "disable_service"
    DAEMON_RELOAD = "daemon_reload"
    RESTART_SERVICE = "restart_service"
    ENABLE_SERVICE = "enable_service"
    RESTORE_MASKED_SERVICE = "restore_masked_service"
    REMOVE_PATH = "remove_path"
    REMOVE_SYMLINK = "remove_symlink"
    REMOVE_MATCHING_DIRS = "remove_matching_dirs"
    REMOVE_PACKAGE = "remove_package"
    AUTOREMOVE_PACKAGES = "autoremove_packages"
    CLEAN_PACKAGE_CACHE = "clean_package_cache"
    RESTORE_SELINUX = "restore_selinux"
    DELETE_CONFIG_LINES = "delete_config_lines"
    RELOAD_SYSCTL = "reload_sysctl"
    RESTORE_BACKUP = "restore_backup"
    REMOVE_SWAP_FILE = "remove_swap_file"
    CLEAN_CRONTAB = "clean_crontab"
    REMOVE_HOME_DIRECTORIES = "remove_home_directories"
    REMOVE_USER = "remove_user"


# Kinds that act on the host as a whole rather than on a named target
UNTARGETED_KINDS = {
    StepKind.DAEMON_RELOAD,
    StepKind.AUTOREMOVE_PACKAGES,
    StepKind.CLEAN_PACKAGE_CACHE,
    StepKind.RELOAD_SYSCTL,
}

_KIND_DISPLAY = {
    StepKind.STOP_SERVICE: "Stopping service",
    StepKind.DISABLE_SERVICE: "Disabling service",
    StepKind.DAEMON_RELOAD: "Reloading systemd daemon",
    StepKind.RESTART_SERVICE: "Restarting service",
    StepKind.ENABLE_SERVICE: "Re-enabling service",
    StepKind.RESTORE_MASKED_SERVICE: "Restoring masked service",
    StepKind.REMOVE_PATH: "Removing",
    StepKind.REMOVE_SYMLINK: "Removing symlink",
    StepKind.REMOVE_MATCHING_DIRS: "Removing matching directories under",
    StepKind.REMOVE_PACKAGE: "Removing package",
    StepKind.AUTOREMOVE_PACKAGES: "Removing orphaned dependencies",
    StepKind.CLEAN_PACKAGE_CACHE: "Cleaning package cache",
    StepKind.RESTORE_SELINUX: "Restoring SELinux enforcing mode in",
    StepKind.DELETE_CONFIG_LINES: "Reverting lines in",
    StepKind.RELOAD_SYSCTL: "Applying sysctl settings",
    StepKind.RESTORE_BACKUP: "Restoring",
    StepKind.REMOVE_SWAP_FILE: "Removing swap file",
    StepKind.CLEAN_CRONTAB: "Cleaning crontab of",
    StepKind.REMOVE_HOME_DIRECTORIES: "Removing website directories in",
    StepKind.REMOVE_USER: "Removing user",
}


class Step(BaseModel):
    """A single idempotent, independently skippable system mutation."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    kind: StepKind = Field(description="Action family")
    target: str = Field(
        default="",
        description="Service unit, package glob, path glob, user or config file"
    )
    id: str = Field(
        default="",
        description="Unique identifier, defaults to '<kind>:<target>'"
    )
    label: str = Field(
        default="",
        description="Human-readable description"
    )
    destructive: bool = Field(
        default=False,
        description="Whether the operator must confirm before the action runs"
    )
    prompt: str | None = Field(
        default=None,
        description="Confirmation question for destructive steps"
    )
    gate: str | None = Field(
        default=None,
        description="Name of a shared confirmation covering a group of steps"
    )
    needs: list[str] = Field(
        default_factory=list,
        description="Step id patterns; applies only if one of them succeeded earlier"
    )

    # Kind-specific parameters
    patterns: list[str] = Field(default_factory=list)
    name: str | None = Field(default=None)
    backup: str | None = Field(default=None)
    unit_paths: list[str] = Field(
        default_factory=lambda: ["/usr/lib/systemd/system", "/etc/systemd/system"]
    )
    alternatives: list[str] = Field(default_factory=list)
    marker_file: str | None = Field(default=None)
    marker_text: str | None = Field(default=None)
    drop_blank_lines: bool = Field(default=False)

    @model_validator(mode="after")
    def validate_parameters(self) -> "Step":
        """Check that each kind carries the parameters it needs."""
        if self.kind not in UNTARGETED_KINDS and not self.target:
            raise ValueError(f"{self.kind.value} step requires a target")
        if self.destructive and not self.prompt:
            raise ValueError(f"destructive step '{self.step_id}' requires a prompt")
        if self.kind in (StepKind.DELETE_CONFIG_LINES, StepKind.CLEAN_CRONTAB) and not self.patterns:
            raise ValueError(f"{self.kind.value} step requires patterns")
        if self.kind == StepKind.REMOVE_MATCHING_DIRS and not self.name:
            raise ValueError("remove_matching_dirs step requires a directory name")
        if self.kind == StepKind.RESTORE_BACKUP and not self.backup:
            raise ValueError("restore_backup step requires a backup path")
        if bool(self.marker_file) != bool(self.marker_text):
            raise ValueError("marker_file and marker_text must be given together")
        return self

    @property
    def step_id(self) -> str:
        """Identifier used for ``needs`` matching and reporting."""
        if self.id:
            return self.id
        if self.target:
            return f"{self.kind.value}:{self.target}"
        return self.kind.value

    @property
    def display_name(self) -> str:
        """Get human-readable step description."""
        if self.label:
            return self.label
        action = _KIND_DISPLAY.get(self.kind, self.kind.value)
        return f"{action} {self.target}".strip()
