"""Narrow facade over the live host: commands, files, units, packages and users.

Every query and mutation the uninstaller performs goes through
:class:`SystemHost`. File paths are host-absolute strings (``/etc/hosts``)
resolved against ``root_dir``, so the whole tree can be pointed at a
scratch directory.
"""

import os
import shutil
import subprocess
from collections.abc import Callable
from fnmatch import fnmatchcase
from glob import has_magic
from pathlib import Path, PurePosixPath

from cpuninstall.core.lib_logger import get_logger
from cpuninstall.lib.exceptions import CommandError

logger = get_logger(__name__)

CommandRunner = Callable[..., subprocess.CompletedProcess]


class SystemHost:
    """The machine being cleaned."""

    def __init__(
        self,
        root_dir: Path = Path("/"),
        runner: CommandRunner | None = None,
        package_manager: str = "dnf"
    ):
        """Initialize the host facade."""
        self.root_dir = Path(root_dir)
        self.package_manager = package_manager
        self._runner = runner or subprocess.run

    # -- commands ---------------------------------------------------------

    def run(self, args: list[str], input: str | None = None) -> subprocess.CompletedProcess:
        """Run a command to completion and return its result without raising."""
        logger.debug(f"Running: {' '.join(args)}")
        try:
            return self._runner(
                args,
                capture_output=True,
                text=True,
                input=input,
                check=False
            )
        except FileNotFoundError as e:
            logger.warning(f"Command not found: {args[0]}")
            return subprocess.CompletedProcess(args, 127, "", str(e))

    def run_checked(self, args: list[str], input: str | None = None) -> subprocess.CompletedProcess:
        """Run a command and raise CommandError on a nonzero exit status."""
        result = self.run(args, input=input)
        if result.returncode != 0:
            raise CommandError(args, result.returncode, result.stderr or "", result.stdout or "")
        return result

    # -- files ------------------------------------------------------------

    def path(self, host_path: str) -> Path:
        """Resolve a host-absolute path below ``root_dir``."""
        return self.root_dir / host_path.lstrip("/")

    def host_path(self, path: Path) -> str:
        """Map a resolved path back to its host-absolute form."""
        return "/" + path.relative_to(self.root_dir).as_posix()

    def glob(self, pattern: str) -> list[Path]:
        """Existing paths (including dangling symlinks) matching a host glob."""
        if has_magic(pattern):
            return sorted(self.root_dir.glob(pattern.lstrip("/")))
        path = self.path(pattern)
        return [path] if path.exists() or path.is_symlink() else []

    def exists(self, host_path: str) -> bool:
        path = self.path(host_path)
        return path.exists() or path.is_symlink()

    def is_dir(self, host_path: str) -> bool:
        path = self.path(host_path)
        return path.is_dir() and not path.is_symlink()

    def is_symlink(self, host_path: str) -> bool:
        return self.path(host_path).is_symlink()

    def read_text(self, host_path: str) -> str | None:
        """Read a host file, or None when it does not exist."""
        path = self.path(host_path)
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8", errors="replace")

    def write_text(self, host_path: str, text: str) -> None:
        """Rewrite a host file in place, keeping its permissions."""
        path = self.path(host_path)
        logger.debug(f"Rewriting {host_path}")
        path.write_text(text, encoding="utf-8")

    def touch(self, host_path: str) -> None:
        self.path(host_path).touch()

    def remove(self, path: Path) -> None:
        """Delete a file, symlink or directory tree."""
        logger.info(f"Deleting {self.host_path(path)}")
        if path.is_symlink() or not path.is_dir():
            path.unlink()
        else:
            shutil.rmtree(path)

    def replace(self, source: str, destination: str) -> None:
        """Move ``source`` over ``destination``."""
        logger.info(f"Moving {source} to {destination}")
        os.replace(self.path(source), self.path(destination))

    def subdirectories(self, host_path: str) -> list[str]:
        """Host paths of the directories directly inside ``host_path``."""
        path = self.path(host_path)
        if not path.is_dir():
            return []
        return sorted(
            self.host_path(child) for child in path.iterdir()
            if child.is_dir() and not child.is_symlink()
        )

    def find_directories(self, host_path: str, name: str) -> list[Path]:
        """Directories named ``name`` anywhere below ``host_path``, outermost first."""
        base = self.path(host_path)
        if not base.is_dir():
            return []
        found = []
        for current, dirnames, _ in os.walk(base):
            for dirname in list(dirnames):
                if fnmatchcase(dirname, name):
                    found.append(Path(current) / dirname)
                    dirnames.remove(dirname)  # nothing left to find inside
        return sorted(found)

    def is_within(self, host_path: str, parent: str) -> bool:
        """Check that ``host_path`` lies strictly below ``parent``."""
        child = PurePosixPath(os.path.normpath(host_path))
        return PurePosixPath(parent) in child.parents

    # -- systemd ----------------------------------------------------------

    def unit_known(self, unit: str) -> bool:
        return self.run(["systemctl", "cat", unit]).returncode == 0

    def unit_active(self, unit: str) -> bool:
        return self.run(["systemctl", "is-active", "--quiet", unit]).returncode == 0

    def unit_enabled(self, unit: str) -> bool:
        return self.run(["systemctl", "is-enabled", "--quiet", unit]).returncode == 0

    def unit_masked(self, unit: str) -> bool:
        result = self.run(["systemctl", "is-enabled", unit])
        return (result.stdout or "").strip() == "masked"

    def systemctl(self, action: str, unit: str | None = None) -> None:
        args = ["systemctl", action]
        if unit:
            args.append(unit)
        self.run_checked(args)

    # -- packages ---------------------------------------------------------

    def package_installed(self, pattern: str) -> bool:
        """Check whether the package manager or rpm knows an installed package."""
        if self.run([self.package_manager, "list", "installed", pattern]).returncode == 0:
            return True
        return self.run(["rpm", "-q", pattern]).returncode == 0

    def remove_package(self, pattern: str, excludes: list[str]) -> None:
        self.run_checked(
            [self.package_manager, "remove", "-y", pattern]
            + [f"--exclude={name}" for name in excludes]
        )

    def autoremove(self, excludes: list[str]) -> None:
        self.run_checked(
            [self.package_manager, "autoremove", "-y"]
            + [f"--exclude={name}" for name in excludes]
        )

    def clean_package_cache(self) -> None:
        self.run_checked([self.package_manager, "clean", "all"])

    # -- users, cron and kernel settings ----------------------------------

    def user_exists(self, user: str) -> bool:
        return self.run(["id", user]).returncode == 0

    def delete_user(self, user: str) -> None:
        """Delete a user with its home directory, then its group if one is left."""
        self.run_checked(["userdel", "-r", user])
        result = self.run(["groupdel", user])
        if result.returncode != 0:
            logger.debug(f"groupdel {user} exited with {result.returncode}")

    def read_crontab(self, user: str) -> str:
        """A user's crontab, or an empty string when there is none."""
        result = self.run(["crontab", "-l", "-u", user])
        if result.returncode != 0:
            return ""
        return result.stdout or ""

    def write_crontab(self, user: str, text: str) -> None:
        self.run_checked(["crontab", "-u", user, "-"], input=text)

    def swapoff(self, host_path: str) -> bool:
        return self.run(["swapoff", host_path]).returncode == 0

    def reload_sysctl(self) -> None:
        self.run_checked(["sysctl", "-p"])

    def reboot(self) -> None:
        self.run_checked(["reboot"])
