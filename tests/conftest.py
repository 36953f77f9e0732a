"""Test configuration and fixtures for cpuninstall tests."""

import subprocess
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Dict, List, Optional

import pytest
from click.testing import CliRunner

from cpuninstall.core.config import UninstallerConfig
from cpuninstall.services.host import SystemHost
from cpuninstall.services.step_executor import StepExecutor

# Commands that only query state
_QUERIES = [
    ["systemctl", "cat"],
    ["systemctl", "is-active"],
    ["systemctl", "is-enabled"],
    ["dnf", "list"],
    ["rpm", "-q"],
    ["id"],
    ["crontab", "-l"],
]


class FakeSystem:
    """Stateful stand-in for the commands the host facade runs.

    Used as the ``runner`` of a :class:`SystemHost`. Units, packages, users
    and crontabs are plain data; commands update them the way the real tools
    would. Every call is recorded.
    """

    def __init__(self):
        self.units: Dict[str, Dict[str, bool]] = {}
        self.packages: set = set()
        self.failing_packages: set = set()
        self.users: set = set()
        self.crontabs: Dict[str, str] = {}
        self.fail_commands: Dict[tuple, str] = {}
        self.calls: List[List[str]] = []
        self.rebooted = False

    # -- state helpers ----------------------------------------------------

    def add_unit(self, name: str, active: bool = False, enabled: bool = False, masked: bool = False):
        self.units[name] = {"active": active, "enabled": enabled, "masked": masked}

    def mutating_calls(self) -> List[List[str]]:
        """Recorded calls that would change the system."""
        return [
            call for call in self.calls
            if not any(call[:len(query)] == query for query in _QUERIES)
        ]

    def called(self, *args: str) -> bool:
        return list(args) in self.calls

    # -- runner -----------------------------------------------------------

    def __call__(self, args, capture_output=True, text=True, input=None, check=False):
        args = list(args)
        self.calls.append(args)

        for prefix, stderr in self.fail_commands.items():
            if tuple(args[:len(prefix)]) == prefix:
                return self._result(args, 1, stderr=stderr)

        handler = {
            "systemctl": self._systemctl,
            "dnf": self._dnf,
            "rpm": self._rpm,
            "id": self._id,
            "userdel": self._userdel,
            "groupdel": lambda a, i: self._result(a, 0),
            "crontab": self._crontab,
            "sysctl": lambda a, i: self._result(a, 0),
            "swapoff": lambda a, i: self._result(a, 0),
            "reboot": self._reboot,
        }.get(args[0])
        if handler is None:
            return self._result(args, 127, stderr=f"{args[0]}: command not found")
        return handler(args, input)

    @staticmethod
    def _result(args, returncode, stdout="", stderr=""):
        return subprocess.CompletedProcess(args, returncode, stdout, stderr)

    def _systemctl(self, args, _input):
        action = args[1]
        if action == "daemon-reload":
            return self._result(args, 0)

        unit_name = args[-1]
        unit = self.units.get(unit_name)
        if unit is None:
            return self._result(args, 1 if action.startswith("is-") else 5,
                                stderr=f"Unit {unit_name} could not be found.")

        if action == "cat":
            return self._result(args, 0, stdout=f"# /usr/lib/systemd/system/{unit_name}\n")
        if action == "is-active":
            return self._result(args, 0 if unit["active"] else 3)
        if action == "is-enabled":
            if unit["masked"]:
                state = "masked"
            else:
                state = "enabled" if unit["enabled"] else "disabled"
            return self._result(args, 0 if state == "enabled" else 1, stdout=f"{state}\n")
        if action == "stop":
            unit["active"] = False
        elif action == "disable":
            unit["enabled"] = False
        elif action == "unmask":
            unit["masked"] = False
        elif action in ("enable", "start", "restart"):
            if unit["masked"]:
                return self._result(args, 1, stderr=f"Failed to {action} unit: Unit {unit_name} is masked.")
            if action == "enable":
                unit["enabled"] = True
            else:
                unit["active"] = True
        return self._result(args, 0)

    def _matching_packages(self, pattern: str) -> List[str]:
        return sorted(p for p in self.packages if fnmatchcase(p, pattern))

    def _dnf(self, args, _input):
        action = args[1]
        if action == "list":
            matches = self._matching_packages(args[-1])
            if not matches:
                return self._result(args, 1, stderr="Error: No matching Packages to list")
            return self._result(args, 0, stdout="\n".join(matches) + "\n")
        if action == "remove":
            matches = self._matching_packages(args[3])
            if not matches:
                return self._result(args, 1, stderr="No packages marked for removal.")
            if any(p in self.failing_packages for p in matches):
                return self._result(
                    args, 1,
                    stderr="Error in PREUN scriptlet in rpm package openlitespeed\nError: Transaction failed"
                )
            self.packages.difference_update(matches)
            return self._result(args, 0, stdout="Complete!\n")
        return self._result(args, 0)

    def _rpm(self, args, _input):
        if args[1] == "-q" and self._matching_packages(args[2]):
            return self._result(args, 0)
        return self._result(args, 1, stdout=f"package {args[-1]} is not installed\n")

    def _id(self, args, _input):
        return self._result(args, 0 if args[1] in self.users else 1)

    def _userdel(self, args, _input):
        user = args[-1]
        if user not in self.users:
            return self._result(args, 6, stderr=f"userdel: user '{user}' does not exist")
        self.users.discard(user)
        return self._result(args, 0)

    def _crontab(self, args, input):
        user = args[args.index("-u") + 1]
        if "-l" in args:
            if user not in self.crontabs:
                return self._result(args, 1, stderr=f"no crontab for {user}")
            return self._result(args, 0, stdout=self.crontabs[user])
        self.crontabs[user] = input or ""
        return self._result(args, 0)

    def _reboot(self, args, _input):
        self.rebooted = True
        return self._result(args, 0)


class ScriptedPrompter:
    """Operator stand-in with canned answers.

    ``answers`` maps a substring of the question to the answer; any other
    question is answered "no", like an operator pressing Enter.
    """

    def __init__(self, answers: Optional[Dict[str, bool]] = None, texts: Optional[List[str]] = None):
        self.answers = answers or {}
        self.texts = list(texts or [])
        self.questions: List[str] = []
        self.echoed: List[str] = []

    def confirm(self, question: str) -> bool:
        self.questions.append(question)
        for fragment, answer in self.answers.items():
            if fragment in question:
                return answer
        return False

    def ask_text(self, question: str) -> str:
        self.questions.append(question)
        return self.texts.pop(0) if self.texts else ""

    def echo(self, message: str) -> None:
        self.echoed.append(message)


def write_host_file(root: Path, host_path: str, content: str = "") -> Path:
    """Create a file at a host-absolute path below ``root``."""
    path = root / host_path.lstrip("/")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


def populate_cyberpanel(root: Path, system: FakeSystem) -> None:
    """Lay down a typical CyberPanel installation on a scratch root."""
    for unit in ("lscpd.service", "lsws.service", "mariadb.service"):
        system.add_unit(unit, active=True, enabled=True)
    system.add_unit("systemd-resolved.service")
    system.add_unit("systemd-networkd.service", active=True, enabled=True)
    system.add_unit("httpd.service", masked=True)
    write_host_file(root, "/usr/lib/systemd/system/systemd-resolved.service", "[Unit]\n")

    system.packages.update({
        "openlitespeed", "lsphp74", "lsphp74-common", "lsphp81",
        "mariadb-server", "redis", "bash", "kernel",
    })
    system.users.update({"cyberpanel", "lsadm", "alice"})
    system.crontabs["root"] = (
        "0 0 * * * /usr/local/bin/cyberpanel_upgrade\n"
        "*/3 * * * * /usr/local/lsws/bin/lswsctrl   restart\n"
        "15 3 * * * /usr/local/bin/backup.sh\n"
    )

    write_host_file(root, "/usr/local/CyberCP/manage.py", "# django\n")
    write_host_file(root, "/usr/local/lsws/bin/lswsctrl", "#!/bin/sh\n")
    write_host_file(root, "/etc/cyberpanel/machineIP", "10.0.0.1\n")
    write_host_file(root, "/root/.pip/pip.conf", "# written by cyberpanel.sh\n[global]\n")
    write_host_file(root, "/root/cyberpanel.sh", "#!/bin/sh\n")
    write_host_file(root, "/var/opt/lsws/lsphp74/session/sess_1", "")
    write_host_file(root, "/var/opt/lsws/lsphp81/session/sess_2", "")
    write_host_file(root, "/var/opt/lsws/keep/data", "keep\n")

    write_host_file(root, "/etc/selinux/config", "SELINUX=disabled\nSELINUXTYPE=targeted\n")
    write_host_file(
        root, "/etc/rc.d/rc.local",
        "#!/bin/bash\n\ntouch /var/lock/subsys/local\n"
        "echo 1000000 > /proc/sys/kernel/pid_max\n"
        "echo 1 > /sys/kernel/mm/ksm/run\n\n"
        "nohup watchdog lsws > /dev/null 2>&1 &\n"
    )
    write_host_file(
        root, "/etc/sysctl.conf",
        "net.ipv4.ip_forward = 1\nfs.file-max = 65535\nvm.swappiness = 10\n"
    )
    write_host_file(
        root, "/etc/security/limits.conf",
        "# limits\n* soft nofile 65535\n* hard nofile 65535\n"
        "root soft nproc 65535\n@admins hard nproc 100\n"
    )
    write_host_file(root, "/etc/resolv.conf", "nameserver 8.8.8.8\n")
    write_host_file(root, "/etc/resolv.conf_bak", "nameserver 192.168.1.1\n")
    write_host_file(
        root, "/etc/fstab",
        "UUID=abcd / xfs defaults 0 0\n/cyberpanel.swap swap swap defaults 0 0\n"
    )
    write_host_file(root, "/cyberpanel.swap", "\0" * 16)
    write_host_file(root, "/etc/yum.repos.d/litespeed.repo", "[litespeed]\n")
    write_host_file(root, "/etc/yum.repos.d/lux-release-7.repo", "[lux]\n")
    write_host_file(root, "/etc/yum.repos.d/almalinux-baseos.repo", "[baseos]\n")

    (root / "usr/bin").mkdir(parents=True, exist_ok=True)
    (root / "usr/bin/php").symlink_to("/usr/local/lsws/lsphp74/bin/php")
    write_host_file(root, "/home/example.com/public_html/index.html", "<html></html>\n")
    write_host_file(root, "/etc/hosts", "127.0.0.1 localhost\n127.0.0.1 server.example.com\n")


@pytest.fixture
def fake_system() -> FakeSystem:
    """Fresh fake command runner with nothing installed."""
    return FakeSystem()


@pytest.fixture
def host(tmp_path: Path, fake_system: FakeSystem) -> SystemHost:
    """Host facade rooted at a temporary directory."""
    return SystemHost(tmp_path, runner=fake_system)


@pytest.fixture
def test_config(tmp_path: Path) -> UninstallerConfig:
    """Create test configuration rooted at a temporary directory."""
    return UninstallerConfig(root_dir=tmp_path)


@pytest.fixture
def prompter() -> ScriptedPrompter:
    """Operator who answers "no" to everything."""
    return ScriptedPrompter()


@pytest.fixture
def executor(host: SystemHost, test_config: UninstallerConfig, prompter: ScriptedPrompter) -> StepExecutor:
    """Step executor wired to the temporary host."""
    return StepExecutor(host, config=test_config, prompter=prompter)


@pytest.fixture
def cli_runner() -> CliRunner:
    """Create CLI runner for testing Click commands."""
    return CliRunner()
