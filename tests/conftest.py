"""Shared test fixtures — scripted command runner and in-memory host fakes."""

from __future__ import annotations

from collections import namedtuple
from pathlib import Path

import pytest

from spoofctl.collaborators.base import Severity
from spoofctl.config import SpoofConfig
from spoofctl.net.interfaces import InterfaceInventory
from spoofctl.pf.controller import PacketFilterController, PacketFilterStatus
from spoofctl.proxy.controller import ProxySettingController, ServiceProxyState
from spoofctl.runner import CmdResult
from spoofctl.state.manager import RedirectionStateManager
from spoofctl.state.models import Outcome

MockStat = namedtuple("MockStat", ["isup"])


class FakeRunner:
    """Records commands and answers them from prefix-matched responses.

    Later registrations win; unmatched commands succeed with no output.
    """

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.inputs: list[str | None] = []
        self._responses: list[tuple[tuple[str, ...], int, str, str]] = []

    def on(self, *prefix: str, returncode: int = 0, stdout: str = "", stderr: str = "") -> None:
        self._responses.insert(0, (prefix, returncode, stdout, stderr))

    def run(self, args, input=None, timeout=None) -> CmdResult:
        args = list(args)
        self.calls.append(args)
        self.inputs.append(input)
        for prefix, rc, out, err in self._responses:
            if tuple(args[: len(prefix)]) == prefix:
                return CmdResult(args, rc, out, err)
        return CmdResult(args, 0, "", "")

    def called(self, *prefix: str) -> list[list[str]]:
        return [c for c in self.calls if tuple(c[: len(prefix)]) == prefix]


class FakePacketFilter(PacketFilterController):
    """pf with anchors held in memory; the rule file is real (under tmp_path)."""

    def __init__(self, rule_file: Path) -> None:
        super().__init__(FakeRunner(), rule_file)
        self.enabled = False
        self.anchors: dict[str, str] = {}
        self.mutations: list[tuple[str, str]] = []
        self.reject_rules = False

    def apply(self, anchor: str, rule_text: str) -> Outcome:
        self.rule_file.write_text(rule_text)
        self.mutations.append(("apply", anchor))
        if self.reject_rules:
            return Outcome.failure("syntax error", rule_text)
        self.anchors[anchor] = rule_text
        return Outcome.success(f"Rules loaded into anchor {anchor}")

    def ensure_enabled(self) -> Outcome:
        if not self.enabled:
            self.mutations.append(("enable", ""))
            self.enabled = True
        return Outcome.success("pf enabled")

    def remove(self, anchor: str) -> Outcome:
        self.mutations.append(("remove", anchor))
        self.anchors.pop(anchor, None)
        return Outcome.success(f"Flushed anchor {anchor}")

    def status(self, anchor: str) -> PacketFilterStatus:
        rules = self.anchors.get(anchor, "")
        return PacketFilterStatus(self.enabled, bool(rules), rules.strip())


class FakeProxy(ProxySettingController):
    """networksetup with per-service state in memory.

    ``enable_all``/``disable_all`` are inherited so aggregation is real.
    """

    def __init__(self, services: list[str], failing: set[str] | None = None) -> None:
        super().__init__(FakeRunner())
        self.state = {name: False for name in services}
        self.failing = failing or set()
        self.listing_fails = False

    def list_services(self) -> list[str]:
        if self.listing_fails:
            raise RuntimeError("Could not list network services: boom")
        return list(self.state)

    def enable(self, service: str, target_host: str, target_port: int) -> Outcome:
        if service in self.failing:
            return Outcome.failure("-setwebproxy: not a recognized network service")
        self.state[service] = True
        return Outcome.success()

    def disable(self, service: str) -> Outcome:
        if service in self.failing:
            return Outcome.failure("-setwebproxystate: failed")
        self.state[service] = False
        return Outcome.success()

    def get_state(self, service: str) -> ServiceProxyState | None:
        if service not in self.state:
            return None
        on = self.state[service]
        return ServiceProxyState(on, on, "127.0.0.1" if on else "", 53210 if on else 0)


class FakeSupervisor:
    def __init__(self, plist_path: Path) -> None:
        self.plist_path = plist_path
        self.loaded = False
        self.fail_start = False
        self.calls: list[str] = []

    def register(self, binary: str, port: int) -> Outcome:
        self.calls.append("register")
        self.plist_path.write_text(f"{binary} -p {port}")
        return Outcome.success(f"Wrote LaunchDaemon: {self.plist_path}")

    def is_registered(self) -> bool:
        return self.plist_path.exists()

    def start(self, binary: str, port: int) -> Outcome:
        self.calls.append("start")
        if self.fail_start:
            return Outcome.failure("launchctl bootstrap failed: Input/output error")
        self.register(binary, port)
        self.loaded = True
        return Outcome.success(f"Daemon started on port {port}")

    def stop(self) -> Outcome:
        self.calls.append("stop")
        self.loaded = False
        return Outcome.success("Daemon stopped")

    def unregister(self) -> Outcome:
        self.calls.append("unregister")
        self.plist_path.unlink(missing_ok=True)
        return Outcome.success(f"Removed {self.plist_path}")

    def is_loaded(self) -> bool | None:
        return self.loaded

    def is_running(self) -> bool | None:
        return self.loaded


class FakePackages:
    def __init__(self, binary: str | None = "/opt/homebrew/bin/spoofdpi") -> None:
        self.binary = binary
        self.managed = True
        self.install_fails = False
        self.uninstalled = False

    def locate(self) -> str | None:
        return self.binary

    def install(self) -> Outcome:
        if self.install_fails:
            return Outcome.failure("Homebrew not found")
        self.binary = "/opt/homebrew/bin/spoofdpi"
        return Outcome.success(f"Installed SpoofDPI: {self.binary}", self.binary)

    def is_managed(self) -> bool:
        return self.binary is not None and self.managed

    def uninstall(self) -> Outcome:
        self.uninstalled = True
        self.binary = None
        return Outcome.success("Uninstalled spoofdpi")


class RecordingNotifier:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str, Severity]] = []

    def notify(self, title: str, message: str, severity: Severity = Severity.INFO) -> None:
        self.sent.append((title, message, severity))


class Host:
    """Bundle of fakes plus a factory for a manager wired to them."""

    def __init__(self, tmp_path: Path) -> None:
        self.config = SpoofConfig(
            plist_path=tmp_path / "com.spoofdpi.plist",
            log_dir=tmp_path / "logs",
            rule_file=tmp_path / "pf_spoofdpi_rules.conf",
            config_file=tmp_path / "config.yaml",
        )
        self.interfaces: dict[str, MockStat] = {
            "lo0": MockStat(True),
            "en0": MockStat(True),
            "en1": MockStat(False),
            "utun3": MockStat(True),
        }
        self.pf = FakePacketFilter(self.config.rule_file)
        self.proxy = FakeProxy(["Wi-Fi", "Thunderbolt Bridge", "USB LAN"])
        self.supervisor = FakeSupervisor(self.config.plist_path)
        self.packages = FakePackages()
        self.notifier = RecordingNotifier()
        self.progress: list[tuple[str, str]] = []
        self.privileged = True

    def manager(self, **config_overrides) -> RedirectionStateManager:
        for key, value in config_overrides.items():
            setattr(self.config, key, value)
        return RedirectionStateManager(
            config=self.config,
            inventory=InterfaceInventory(stats_provider=lambda: self.interfaces),
            packet_filter=self.pf,
            proxy=self.proxy,
            supervisor=self.supervisor,
            packages=self.packages,
            notifier=self.notifier,
            on_progress=lambda msg, level: self.progress.append((msg, level)),
            is_privileged=lambda: self.privileged,
            confirm_interval=0,
        )


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def host(tmp_path: Path) -> Host:
    return Host(tmp_path)
