"""Redirect rule compiler — interfaces + port → pf ``rdr`` ruleset text."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from spoofctl.errors import EmptyRulesetError
from spoofctl.net.interfaces import NetworkInterface

MATCH_PORTS = (80, 443)
LOOPBACK = "127.0.0.1"


@dataclass(frozen=True)
class RedirectRule:
    """Rewrite TCP traffic to ``port`` on ``interface`` to the local proxy."""

    interface: str
    port: int
    target_host: str
    target_port: int
    protocol: str = "tcp"

    def render(self) -> str:
        return (
            f"rdr on {self.interface} inet proto {self.protocol} "
            f"from any to any port {self.port} "
            f"-> {self.target_host} port {self.target_port}"
        )


@dataclass(frozen=True)
class RuleSet:
    rules: tuple[RedirectRule, ...]

    @property
    def interfaces(self) -> list[str]:
        seen: list[str] = []
        for rule in self.rules:
            if rule.interface not in seen:
                seen.append(rule.interface)
        return seen

    @property
    def text(self) -> str:
        return "".join(rule.render() + "\n" for rule in self.rules)


def compile_rules(
    valid_interfaces: Sequence[NetworkInterface],
    port: int,
    target_host: str = LOOPBACK,
) -> RuleSet:
    """Build the ruleset: one port-80 and one port-443 rule per interface.

    Output depends only on the ordered input, so the same call always
    yields byte-identical text.
    """
    if not 1 <= port <= 65535:
        raise ValueError(f"Invalid target port: {port}")
    if not valid_interfaces:
        raise EmptyRulesetError()

    rules = tuple(
        RedirectRule(
            interface=iface.name,
            port=match_port,
            target_host=target_host,
            target_port=port,
        )
        for iface in valid_interfaces
        for match_port in MATCH_PORTS
    )
    return RuleSet(rules=rules)
