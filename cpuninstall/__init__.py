# cpuninstall - CyberPanel uninstaller for AlmaLinux

# Import subpackages to ensure they are discovered by the build system
from . import cli, core, lib, models, services

__all__ = ["cli", "core", "lib", "models", "services"]
