"""Redirection state manager — orchestrates inventory, rules, pf, proxies.

The manager keeps no model of what it configured. Every action and every
status query reads the host's live state, because anything here can also
be changed by hand with networksetup/pfctl/launchctl.
"""

from __future__ import annotations

import functools
import logging
import shutil
import time
from collections.abc import Callable
from typing import TypeVar

from spoofctl.collaborators.base import (
    Notifier,
    PackageSource,
    ServiceSupervisor,
    Severity,
)
from spoofctl.config import SpoofConfig
from spoofctl.errors import NoValidInterfacesError, PreconditionError, ValidationError
from spoofctl.net.interfaces import InterfaceInventory
from spoofctl.pf.controller import PacketFilterController
from spoofctl.pf.rules import compile_rules
from spoofctl.proxy.controller import ProxySettingController
from spoofctl.runner import CommandRunner, is_root
from spoofctl.state.models import (
    ActionReport,
    ActionStatus,
    RedirectionState,
    StepOutcome,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, str], None]
F = TypeVar("F", bound=Callable[..., ActionReport])

NOTHING_TO_REMOVE = "nothing to remove"


def _action(name: str) -> Callable[[F], F]:
    """Run the wrapped body against a fresh report; aborts become failures."""

    def decorator(method: F) -> F:
        @functools.wraps(method)
        def wrapper(self: RedirectionStateManager) -> ActionReport:
            report = ActionReport(action=name)
            try:
                method(self, report)
            except (PreconditionError, ValidationError) as e:
                report.fail(str(e))
                self._progress(str(e), "error")
                self._notifier.notify("Error", str(e), Severity.ERROR)
            return report

        return wrapper  # type: ignore[return-value]

    return decorator


class RedirectionStateManager:
    """Caller-facing enable/disable/status/uninstall operations."""

    def __init__(
        self,
        config: SpoofConfig,
        inventory: InterfaceInventory,
        packet_filter: PacketFilterController,
        proxy: ProxySettingController,
        supervisor: ServiceSupervisor,
        packages: PackageSource,
        notifier: Notifier,
        on_progress: ProgressCallback | None = None,
        is_privileged: Callable[[], bool] = is_root,
        confirm_attempts: int = 5,
        confirm_interval: float = 0.5,
    ) -> None:
        self._config = config
        self._inventory = inventory
        self._pf = packet_filter
        self._proxy = proxy
        self._supervisor = supervisor
        self._packages = packages
        self._notifier = notifier
        self._on_progress = on_progress
        self._is_privileged = is_privileged
        self._confirm_attempts = confirm_attempts
        self._confirm_interval = confirm_interval

    @classmethod
    def from_config(
        cls, config: SpoofConfig, on_progress: ProgressCallback | None = None
    ) -> RedirectionStateManager:
        """Wire up the real macOS-backed components."""
        from spoofctl.collaborators.homebrew import HomebrewPackageSource
        from spoofctl.collaborators.launchd import LaunchdSupervisor
        from spoofctl.collaborators.notify import NullNotifier, OsascriptNotifier

        runner = CommandRunner(timeout=config.command_timeout)
        notifier: Notifier
        if config.notifications_enabled:
            notifier = OsascriptNotifier(runner)
        else:
            notifier = NullNotifier()
        return cls(
            config=config,
            inventory=InterfaceInventory(),
            packet_filter=PacketFilterController(runner, config.rule_file),
            proxy=ProxySettingController(runner),
            supervisor=LaunchdSupervisor(
                runner, config.label, config.plist_path, config.log_dir
            ),
            packages=HomebrewPackageSource(runner, config.binary_path),
            notifier=notifier,
            on_progress=on_progress,
        )

    # -- actions ---------------------------------------------------------

    @_action("install")
    def install(self, report: ActionReport) -> None:
        self._require_root()
        self._progress("Installing SpoofDPI (via Homebrew) if missing...")

        binary = self._packages.locate()
        if binary:
            report.add_step("install binary", StepOutcome.SKIPPED, f"already present: {binary}")
        else:
            outcome = self._packages.install()
            if not outcome.ok:
                report.add_step("install binary", StepOutcome.FAILED, outcome.reason)
                report.status = ActionStatus.FAILURE
                self._progress(outcome.reason, "error")
                self._notifier.notify("Error", "Failed to install SpoofDPI", Severity.ERROR)
                return
            binary = outcome.detail or self._packages.locate()
            report.add_step("install binary", StepOutcome.DONE, outcome.reason)
        self._progress(f"SpoofDPI binary: {binary}")
        report.details["binary"] = binary

        registered = self._supervisor.register(binary, self._config.port)
        self._record(report, "register daemon", registered.ok, registered.reason)

        report.settle_from_steps()
        if report.ok:
            self._notifier.notify(
                "Installation Complete", "SpoofDPI installed successfully", Severity.SUCCESS
            )

    @_action("enable-proxy")
    def enable_proxy(self, report: ActionReport) -> None:
        self._require_root()
        binary = self._require_binary()
        port = self._config.port

        self._progress(f"Starting SpoofDPI daemon on port {port}...")
        started = self._supervisor.start(binary, port)
        self._record(report, "start daemon", started.ok, started.reason)
        running = started.ok and self._await_running()
        if started.ok:
            self._record(
                report,
                "confirm daemon running",
                running,
                "running" if running else "daemon did not reach the running state",
            )
        report.details["daemon_running"] = running

        if not running:
            report.status = ActionStatus.FAILURE
            self._progress("SpoofDPI daemon is not running; system proxies left unchanged", "error")
            self._notifier.notify("Error", "SpoofDPI daemon failed to start", Severity.ERROR)
            return

        batch = self._proxy.enable_all(self._config.proxy_host, port)
        if batch.listing_error:
            report.add_step("list network services", StepOutcome.FAILED, batch.listing_error)
        for service in batch.succeeded:
            self._progress(f"Enabled proxy on service: {service}")
            report.add_step(f"proxy {service}", StepOutcome.DONE, "proxy enabled")
        for service, reason in batch.failed.items():
            self._progress(f"Could not enable proxy on service {service}: {reason}", "warn")
            report.add_step(f"proxy {service}", StepOutcome.FAILED, reason)
        report.details["services_enabled"] = list(batch.succeeded)
        report.details["services_failed"] = dict(batch.failed)

        if not batch.succeeded:
            report.status = ActionStatus.FAILURE
            self._progress("No network service accepted the proxy settings", "error")
            self._notifier.notify(
                "Error", "No network service accepted the proxy settings", Severity.ERROR
            )
            return

        report.status = ActionStatus.PARTIAL if batch.failed else ActionStatus.SUCCESS
        self._notifier.notify(
            "Proxy Enabled", f"System proxy configured for port {port}", Severity.SUCCESS
        )

    @_action("disable-proxy")
    def disable_proxy(self, report: ActionReport) -> None:
        self._require_root()
        self._clear_proxies(report)
        self._stop_daemon(report)
        report.settle_from_steps()
        if report.status is ActionStatus.SUCCESS:
            self._notifier.notify(
                "Proxy Disabled", "System proxy settings have been cleared", Severity.INFO
            )
        else:
            self._notifier.notify("Error", "Proxy could not be fully disabled", Severity.ERROR)

    @_action("enable-redirect")
    def enable_redirect(self, report: ActionReport) -> None:
        self._require_root()
        self._require_binary()
        port = self._config.port
        requested = self._config.interfaces_requested

        self._progress(f"Enabling pf transparent redirection to port {port}...")
        if requested:
            self._progress(f"Using custom interfaces: {','.join(requested)}")

        selection = self._inventory.select(requested)
        if selection.auto_detected:
            detected = " ".join(selection.valid_names + selection.invalid)
            self._progress(f"Auto-detected interfaces: {detected or '(none)'}")
        for name in selection.valid_names:
            self._progress(f"✓ Interface {name} is valid and active")
        for name in selection.invalid:
            self._progress(f"✗ Interface {name} is not available or inactive", "warn")
            report.warnings.append(f"Skipped interface {name}: not available or inactive")

        report.details["interfaces_used"] = selection.valid_names
        report.details["interfaces_skipped"] = list(selection.invalid)

        if not selection.valid:
            raise NoValidInterfacesError(selection.invalid)

        ruleset = compile_rules(selection.valid, port, self._config.proxy_host)
        report.details["rules"] = ruleset.text

        applied = self._pf.apply(self._config.anchor, ruleset.text)
        self._record(report, "load pf rules", applied.ok, applied.reason)
        if not applied.ok:
            report.details["attempted_rules"] = applied.detail
            report.status = ActionStatus.FAILURE
            self._progress(applied.reason, "error")
            self._notifier.notify("Error", "Could not load pf redirection rules", Severity.ERROR)
            return

        enabled = self._pf.ensure_enabled()
        self._record(report, "enable pf", enabled.ok, enabled.reason)
        if not enabled.ok:
            report.status = ActionStatus.FAILURE
            self._notifier.notify("Error", enabled.reason, Severity.ERROR)
            return

        used = ", ".join(selection.valid_names)
        self._progress(f"pf transparent redirection enabled on interfaces: {used}")
        if selection.invalid:
            self._progress(f"Skipped interfaces: {' '.join(selection.invalid)}", "warn")
        report.status = ActionStatus.SUCCESS
        self._notifier.notify(
            "Transparent Mode Enabled", f"pf redirection active on: {used}", Severity.SUCCESS
        )

    @_action("disable-redirect")
    def disable_redirect(self, report: ActionReport) -> None:
        self._require_root()
        self._progress("Disabling pf transparent redirection...")
        self._flush_redirect(report)
        self._remove_rule_file(report)
        report.settle_from_steps()
        if report.status is ActionStatus.SUCCESS:
            self._progress("pf transparent redirection disabled.")
            self._notifier.notify(
                "Transparent Mode Disabled", "pf redirection rules have been removed", Severity.INFO
            )
        else:
            self._notifier.notify(
                "Error", "pf redirection could not be fully disabled", Severity.ERROR
            )

    @_action("status")
    def status(self, report: ActionReport) -> None:
        state = RedirectionState()
        self._query_proxy_state(state)
        self._query_redirect_state(state)
        report.state = state

    @_action("proxy-status")
    def proxy_status(self, report: ActionReport) -> None:
        state = RedirectionState()
        self._query_proxy_state(state)
        report.state = state

    @_action("redirect-status")
    def redirect_status(self, report: ActionReport) -> None:
        state = RedirectionState()
        self._query_redirect_state(state)
        report.state = state

    @_action("uninstall")
    def uninstall(self, report: ActionReport) -> None:
        """Remove every trace; each step runs whatever happened before it."""
        self._require_root()
        self._progress("Starting complete SpoofDPI uninstall...")

        phases: list[tuple[str, Callable[[ActionReport], None]]] = [
            ("Disabling pf redirection rules", self._flush_redirect),
            ("Disabling system proxy settings", self._clear_proxies),
            ("Stopping and removing LaunchDaemon", self._stop_daemon),
            ("Removing log files", self._remove_logs),
            ("Cleaning temporary files", self._remove_rule_file),
            ("Checking SpoofDPI binary", self._remove_binary),
        ]
        for index, (title, phase) in enumerate(phases, start=1):
            self._progress(f"Step {index}/{len(phases)}: {title}...")
            try:
                phase(report)
            except (OSError, RuntimeError) as e:
                logger.warning("Uninstall step failed: %s: %s", title, e)
                report.add_step(title.lower(), StepOutcome.FAILED, str(e))

        report.settle_from_steps()
        report.details["removed"] = [s.name for s in report.steps if s.result is StepOutcome.DONE]
        report.details["skipped"] = [s.name for s in report.steps if s.result is StepOutcome.SKIPPED]
        if report.status is ActionStatus.SUCCESS:
            self._notifier.notify(
                "Uninstall Complete", "All SpoofDPI components have been removed", Severity.SUCCESS
            )
        else:
            self._notifier.notify("Error", "Uninstall finished with errors", Severity.ERROR)

    # -- steps -----------------------------------------------------------

    def _flush_redirect(self, report: ActionReport) -> None:
        anchor = self._config.anchor
        current = self._pf.status(anchor)
        if current.group_has_rules is False:
            report.add_step(
                "flush pf anchor", StepOutcome.SKIPPED, f"{NOTHING_TO_REMOVE} (anchor {anchor} empty)"
            )
        else:
            flushed = self._pf.remove(anchor)
            if flushed.ok and not flushed.changed:
                report.add_step(
                    "flush pf anchor",
                    StepOutcome.SKIPPED,
                    f"{NOTHING_TO_REMOVE} (anchor {anchor} not loaded)",
                )
            else:
                self._record(report, "flush pf anchor", flushed.ok, flushed.reason)

    def _remove_rule_file(self, report: ActionReport) -> None:
        if self._pf.discard_rule_file():
            report.add_step("remove rule file", StepOutcome.DONE, str(self._pf.rule_file))
        else:
            report.add_step("remove rule file", StepOutcome.SKIPPED, NOTHING_TO_REMOVE)

    def _clear_proxies(self, report: ActionReport) -> None:
        batch = self._proxy.disable_all()
        if batch.listing_error:
            report.add_step("list network services", StepOutcome.FAILED, batch.listing_error)
            return
        for service in batch.succeeded:
            self._progress(f"Disabled proxy on service: {service}")
            report.add_step(f"proxy {service}", StepOutcome.DONE, "proxy disabled")
        for service in batch.skipped:
            report.add_step(
                f"proxy {service}", StepOutcome.SKIPPED, f"{NOTHING_TO_REMOVE} (proxy already off)"
            )
        for service, reason in batch.failed.items():
            self._progress(f"Could not disable proxy on service {service}: {reason}", "warn")
            report.add_step(f"proxy {service}", StepOutcome.FAILED, reason)
        if not (batch.succeeded or batch.skipped or batch.failed):
            report.add_step("system proxies", StepOutcome.SKIPPED, f"{NOTHING_TO_REMOVE} (no services)")

    def _stop_daemon(self, report: ActionReport) -> None:
        if self._supervisor.is_loaded() is False:
            report.add_step("stop daemon", StepOutcome.SKIPPED, f"{NOTHING_TO_REMOVE} (not loaded)")
        else:
            stopped = self._supervisor.stop()
            self._record(report, "stop daemon", stopped.ok, stopped.reason)

        if not self._supervisor.is_registered():
            report.add_step("remove LaunchDaemon plist", StepOutcome.SKIPPED, NOTHING_TO_REMOVE)
        else:
            removed = self._supervisor.unregister()
            self._record(report, "remove LaunchDaemon plist", removed.ok, removed.reason)

    def _remove_logs(self, report: ActionReport) -> None:
        log_dir = self._config.log_dir
        if not log_dir.exists():
            report.add_step("remove log directory", StepOutcome.SKIPPED, NOTHING_TO_REMOVE)
            return
        shutil.rmtree(log_dir)
        self._progress(f"Removed log directory: {log_dir}")
        report.add_step("remove log directory", StepOutcome.DONE, str(log_dir))

    def _remove_binary(self, report: ActionReport) -> None:
        name = "remove SpoofDPI binary"
        if self._config.keep_binary:
            report.add_step(name, StepOutcome.SKIPPED, "kept as requested")
            return
        binary = self._packages.locate()
        if binary is None:
            report.add_step(name, StepOutcome.SKIPPED, NOTHING_TO_REMOVE)
            return
        if not self._packages.is_managed():
            report.add_step(name, StepOutcome.SKIPPED, f"{binary} not installed via Homebrew")
            return
        if not self._config.remove_binary:
            self._progress("To remove it completely, run: brew uninstall spoofdpi")
            self._progress("Or set SPOOFDPI_REMOVE_BINARY=1 to auto-remove during uninstall.")
            report.add_step(name, StepOutcome.SKIPPED, f"{binary} left in place")
            return
        outcome = self._packages.uninstall()
        self._record(report, name, outcome.ok, outcome.reason)

    # -- status queries --------------------------------------------------

    def _query_proxy_state(self, state: RedirectionState) -> None:
        state.daemon_loaded = self._supervisor.is_loaded()
        state.daemon_running = self._supervisor.is_running() if state.daemon_loaded else False
        if state.daemon_loaded is None:
            state.daemon_running = None
        try:
            services = self._proxy.list_services()
        except RuntimeError as e:
            logger.warning("%s", e)
            state.proxy_enabled_per_service = None
            return
        per_service: dict[str, bool | None] = {}
        for service in services:
            current = self._proxy.get_state(service)
            per_service[service] = None if current is None else current.enabled
        state.proxy_enabled_per_service = per_service

    def _query_redirect_state(self, state: RedirectionState) -> None:
        pf_status = self._pf.status(self._config.anchor)
        state.packet_filter_enabled = pf_status.filter_enabled
        state.redirect_rules_active = pf_status.group_has_rules
        state.loaded_rules = pf_status.rules

    # -- helpers ---------------------------------------------------------

    def _require_root(self) -> None:
        if not self._is_privileged():
            raise PreconditionError("Please run as root (use: sudo spoofctl ...)")

    def _require_binary(self) -> str:
        binary = self._packages.locate()
        if binary is None:
            raise PreconditionError("spoofdpi binary not found. Run with --install first.")
        return binary

    def _await_running(self) -> bool:
        for attempt in range(self._confirm_attempts):
            if self._supervisor.is_running():
                return True
            if attempt + 1 < self._confirm_attempts:
                time.sleep(self._confirm_interval)
        return False

    def _record(self, report: ActionReport, name: str, ok: bool, message: str) -> None:
        report.add_step(name, StepOutcome.DONE if ok else StepOutcome.FAILED, message)
        if ok:
            if message:
                self._progress(message)
        else:
            self._progress(f"{name} failed: {message}", "error")

    def _progress(self, message: str, level: str = "info") -> None:
        log = {"warn": logger.warning, "error": logger.error}.get(level, logger.info)
        log("%s", message)
        if self._on_progress:
            self._on_progress(message, level)
