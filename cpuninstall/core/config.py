"""Unified configuration management for cpuninstall."""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_GUARDED_PACKAGES = ["openlitespeed"]

# Never handed to the package manager for removal, not even as a dependency
DEFAULT_CRITICAL_EXCLUDES = [
    "kernel",
    "kernel*",
    "kernel-core",
    "kernel-modules",
    "kernel-modules-core",
    "kernel-headers",
    "glibc",
    "systemd",
    "dnf",
    "rpm",
    "bash",
    "filesystem",
]


class UninstallerConfig(BaseSettings):
    """cpuninstall configuration with environment variable support."""

    # Host settings
    root_dir: Path = Field(default=Path("/"))
    package_manager: str = Field(default="dnf")

    # Package removal policy
    guarded_packages: list[str] = Field(
        default_factory=lambda: list(DEFAULT_GUARDED_PACKAGES)
    )
    critical_exclude_packages: list[str] = Field(
        default_factory=lambda: list(DEFAULT_CRITICAL_EXCLUDES)
    )

    # Plan selection
    plan_file: Path | None = Field(default=None)

    # Logging configuration
    debug: bool = Field(default=False)
    log_level: str = Field(default="WARNING")
    log_file: Path | None = Field(default=None)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="CPUNINSTALL_",
        validate_assignment=True
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level name."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        level = v.upper()
        if level not in allowed:
            raise ValueError(f"Log level must be one of: {sorted(allowed)}")
        return level

    @field_validator("root_dir")
    @classmethod
    def validate_root_dir(cls, v: Path) -> Path:
        """Expand and require an absolute root directory."""
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"root_dir must be absolute: {v}")
        return path

    def is_guarded(self, package: str) -> bool:
        """Check whether a package must never be force-removed."""
        return package in self.guarded_packages


# Global configuration instance
_config: UninstallerConfig | None = None


def get_config() -> UninstallerConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = UninstallerConfig()
    return _config


def reload_config() -> UninstallerConfig:
    """Reload configuration from environment and files."""
    global _config
    _config = UninstallerConfig()
    return _config
