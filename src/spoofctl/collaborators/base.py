"""Collaborator protocols — contracts the state manager depends on."""

from __future__ import annotations

import enum
from typing import Protocol

from spoofctl.state.models import Outcome


class Severity(enum.Enum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


class Notifier(Protocol):
    """Fire-and-forget user notification sink."""

    def notify(self, title: str, message: str, severity: Severity = Severity.INFO) -> None:
        """Deliver a notification. Must never raise."""
        ...


class PackageSource(Protocol):
    """Finds or installs the proxy binary."""

    def locate(self) -> str | None:
        """Return the binary path, or None if not installed."""
        ...

    def install(self) -> Outcome:
        ...

    def is_managed(self) -> bool:
        """Whether the installed binary is owned by this package source."""
        ...

    def uninstall(self) -> Outcome:
        ...


class ServiceSupervisor(Protocol):
    """Boot-time supervision of the proxy process."""

    def register(self, binary: str, port: int) -> Outcome:
        ...

    def is_registered(self) -> bool:
        ...

    def start(self, binary: str, port: int) -> Outcome:
        ...

    def stop(self) -> Outcome:
        ...

    def unregister(self) -> Outcome:
        ...

    def is_loaded(self) -> bool | None:
        ...

    def is_running(self) -> bool | None:
        ...
