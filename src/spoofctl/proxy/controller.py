"""Proxy setting controller — per-service web proxies via networksetup."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from spoofctl.runner import CmdResult, CommandRunner
from spoofctl.state.models import Outcome

logger = logging.getLogger(__name__)


@dataclass
class ServiceProxyState:
    """Web (HTTP) and secure web (HTTPS) proxy settings for one service."""

    web_enabled: bool
    secure_enabled: bool
    server: str = ""
    port: int = 0

    @property
    def enabled(self) -> bool:
        return self.web_enabled and self.secure_enabled

    @property
    def any_enabled(self) -> bool:
        return self.web_enabled or self.secure_enabled


@dataclass
class BatchResult:
    """Aggregate of a per-service operation."""

    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)
    listing_error: str = ""

    @property
    def attempted(self) -> int:
        return len(self.succeeded) + len(self.failed)


class ProxySettingController:
    """Wraps ``networksetup`` for the web and secure web proxy settings."""

    def __init__(self, runner: CommandRunner) -> None:
        self._runner = runner

    def list_services(self) -> list[str]:
        """Names of configurable network services, header line excluded.

        Disabled services are listed with a leading ``*``; the marker is
        stripped since networksetup addresses them by their bare name.
        """
        result = self._runner.run(["networksetup", "-listallnetworkservices"])
        if not result.ok:
            raise RuntimeError(f"Could not list network services: {result.error_text()}")

        services = []
        for line in result.stdout.splitlines():
            if not line.strip() or "asterisk" in line.lower():
                continue
            name = line.lstrip("*").strip()
            if name:
                services.append(name)
        return services

    def enable(self, service: str, target_host: str, target_port: int) -> Outcome:
        """Point both proxies at the target, then switch them on.

        Targets go first so the service never uses a stale target.
        """
        steps = [
            ["networksetup", "-setwebproxy", service, target_host, str(target_port), "off"],
            ["networksetup", "-setsecurewebproxy", service, target_host, str(target_port), "off"],
            ["networksetup", "-setwebproxystate", service, "on"],
            ["networksetup", "-setsecurewebproxystate", service, "on"],
        ]
        for args in steps:
            result = self._runner.run(args)
            if not _accepted(result):
                logger.warning("%s failed for %s: %s", args[1], service, result.error_text())
                return Outcome.failure(f"{args[1]}: {result.error_text()}")
        logger.info("Proxy enabled on %s -> %s:%d", service, target_host, target_port)
        return Outcome.success()

    def disable(self, service: str) -> Outcome:
        """Switch both proxies off; the stored target is left in place."""
        errors = []
        for flag in ("-setwebproxystate", "-setsecurewebproxystate"):
            result = self._runner.run(["networksetup", flag, service, "off"])
            if not _accepted(result):
                errors.append(f"{flag}: {result.error_text()}")
        if errors:
            logger.warning("Could not fully disable proxy on %s: %s", service, "; ".join(errors))
            return Outcome.failure("; ".join(errors))
        logger.info("Proxy disabled on %s", service)
        return Outcome.success()

    def get_state(self, service: str) -> ServiceProxyState | None:
        web = self._read(["networksetup", "-getwebproxy", service])
        secure = self._read(["networksetup", "-getsecurewebproxy", service])
        if web is None or secure is None:
            return None
        return ServiceProxyState(
            web_enabled=_is_yes(web.get("enabled")),
            secure_enabled=_is_yes(secure.get("enabled")),
            server=web.get("server", ""),
            port=_to_int(web.get("port")),
        )

    def enable_all(
        self,
        target_host: str,
        target_port: int,
        services: Iterable[str] | None = None,
    ) -> BatchResult:
        batch = BatchResult()
        names = self._resolve_services(services, batch)
        for service in names:
            outcome = self.enable(service, target_host, target_port)
            if outcome.ok:
                batch.succeeded.append(service)
            else:
                batch.failed[service] = outcome.reason
        return batch

    def disable_all(self, services: Iterable[str] | None = None) -> BatchResult:
        """Disable everywhere, skipping services whose proxies are already off."""
        batch = BatchResult()
        names = self._resolve_services(services, batch)
        for service in names:
            current = self.get_state(service)
            if current is not None and not current.any_enabled:
                batch.skipped.append(service)
                continue
            outcome = self.disable(service)
            if outcome.ok:
                batch.succeeded.append(service)
            else:
                batch.failed[service] = outcome.reason
        return batch

    def _resolve_services(
        self, services: Iterable[str] | None, batch: BatchResult
    ) -> list[str]:
        if services is not None:
            return list(services)
        try:
            return self.list_services()
        except RuntimeError as e:
            batch.listing_error = str(e)
            logger.error("%s", e)
            return []

    def _read(self, args: list[str]) -> dict[str, str] | None:
        result = self._runner.run(args)
        if not _accepted(result):
            return None
        fields: dict[str, str] = {}
        for line in result.stdout.splitlines():
            key, sep, value = line.partition(":")
            if sep:
                fields[key.strip().lower()] = value.strip()
        return fields


def _accepted(result: CmdResult) -> bool:
    # networksetup exits 0 on some errors and reports them on stdout
    if not result.ok:
        return False
    text = (result.stdout + result.stderr).lower()
    return "** error" not in text and "not a recognized network service" not in text


def _is_yes(value: str | None) -> bool:
    return (value or "").strip().lower() in ("yes", "1", "on")


def _to_int(value: str | None) -> int:
    try:
        return int(value or 0)
    except ValueError:
        return 0
