"""Interface inventory — discover candidate interfaces and check liveness.

Nothing here is cached: interfaces come and go (VPN tunnels especially),
so every call re-reads the host's interface table.
"""

from __future__ import annotations

import enum
import logging
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

import psutil

logger = logging.getLogger(__name__)

AUTO_DETECT_LIMIT = 10

StatsProvider = Callable[[], Mapping[str, Any]]


class InterfaceKind(enum.Enum):
    """Interface family, derived from the name only."""

    ETHERNET = "ethernet"
    TUNNEL = "tunnel"
    BRIDGE = "bridge"
    OTHER = "other"


_KIND_PATTERNS: tuple[tuple[re.Pattern[str], InterfaceKind], ...] = (
    (re.compile(r"^en\d+$"), InterfaceKind.ETHERNET),
    (re.compile(r"^utun\d+$"), InterfaceKind.TUNNEL),
    (re.compile(r"^ipsec\d+$"), InterfaceKind.TUNNEL),
    (re.compile(r"^bridge\d+$"), InterfaceKind.BRIDGE),
)


def classify_interface(name: str) -> InterfaceKind:
    for pattern, kind in _KIND_PATTERNS:
        if pattern.match(name):
            return kind
    return InterfaceKind.OTHER


@dataclass(frozen=True)
class NetworkInterface:
    """A host network interface as seen at query time."""

    name: str
    kind: InterfaceKind
    is_active: bool


@dataclass
class InterfaceSelection:
    """Candidates split into usable interfaces and skipped names."""

    valid: list[NetworkInterface] = field(default_factory=list)
    invalid: list[str] = field(default_factory=list)
    auto_detected: bool = True

    @property
    def valid_names(self) -> list[str]:
        return [iface.name for iface in self.valid]


class InterfaceInventory:
    """Reads the interface table through psutil (or an injected provider)."""

    def __init__(
        self,
        stats_provider: StatsProvider | None = None,
        limit: int = AUTO_DETECT_LIMIT,
    ) -> None:
        self._stats_provider = stats_provider or psutil.net_if_stats
        self._limit = limit

    def list_candidate_interfaces(
        self, filter: Iterable[str] | None = None
    ) -> list[NetworkInterface]:
        """Return candidate interfaces with liveness filled in.

        Without a filter, only names matching a known kind are considered,
        in OS order, capped at the auto-detect limit. With a filter, every
        requested name is a candidate whether or not it matches a pattern.
        """
        try:
            stats = dict(self._stats_provider())
        except (OSError, psutil.Error) as e:
            logger.warning("Could not read interface table: %s", e)
            stats = {}

        if filter is None:
            names = [
                name
                for name in stats
                if classify_interface(name) is not InterfaceKind.OTHER
            ][: self._limit]
        else:
            names = _dedupe(n.strip() for n in filter)

        return [
            NetworkInterface(
                name=name,
                kind=classify_interface(name),
                is_active=_is_up(stats.get(name)),
            )
            for name in names
        ]

    def select(self, filter: Iterable[str] | None = None) -> InterfaceSelection:
        """Split candidates into valid (present and up) and invalid names."""
        selection = InterfaceSelection(auto_detected=filter is None)
        for iface in self.list_candidate_interfaces(filter):
            if iface.is_active:
                selection.valid.append(iface)
                logger.debug("Interface %s (%s) is up", iface.name, iface.kind.value)
            else:
                selection.invalid.append(iface.name)
                logger.warning("Interface %s is not available or inactive", iface.name)
        return selection


def _is_up(stat: Any) -> bool:
    return bool(stat is not None and getattr(stat, "isup", False))


def _dedupe(names: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for name in names:
        if name and name not in seen:
            seen.add(name)
            out.append(name)
    return out
