"""Packet-filter controller — load/flush a named pf anchor via pfctl.

Only the named anchor is touched; the host's main ruleset and any other
anchors are left alone.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from spoofctl.runner import CommandRunner
from spoofctl.state.models import Outcome

logger = logging.getLogger(__name__)

_ENABLED_MARKER = "Status: Enabled"
_DISABLED_MARKER = "Status: Disabled"


@dataclass
class PacketFilterStatus:
    filter_enabled: bool | None
    group_has_rules: bool | None
    rules: str = ""


class PacketFilterController:
    """Applies redirect rules to one pf anchor through ``pfctl``."""

    def __init__(self, runner: CommandRunner, rule_file: Path) -> None:
        self._runner = runner
        self.rule_file = Path(rule_file)

    def apply(self, anchor: str, rule_text: str) -> Outcome:
        """Load ``rule_text`` into ``anchor``, replacing whatever it held.

        The text is kept in the rule file so a failed load can be inspected.
        """
        try:
            self.rule_file.write_text(rule_text, encoding="utf-8")
        except OSError as e:
            return Outcome.failure(f"Could not write {self.rule_file}: {e}", rule_text)

        result = self._runner.run(["pfctl", "-a", anchor, "-f", str(self.rule_file)])
        if not result.ok:
            logger.error("pfctl rejected rules for anchor %s: %s", anchor, result.error_text())
            return Outcome.failure(
                f"Could not load pf rules into anchor {anchor}: {result.error_text()}",
                rule_text,
            )
        logger.info("Loaded %d rule line(s) into anchor %s", rule_text.count("\n"), anchor)
        return Outcome.success(f"Rules loaded into anchor {anchor}")

    def is_enabled(self) -> bool | None:
        result = self._runner.run(["pfctl", "-s", "info"])
        # pfctl prints the status line even with a non-zero exit on some hosts
        text = result.stdout + result.stderr
        if _ENABLED_MARKER in text:
            return True
        if _DISABLED_MARKER in text:
            return False
        return None

    def ensure_enabled(self) -> Outcome:
        """Turn pf on unless it already is."""
        if self.is_enabled():
            return Outcome.success("pf already enabled")

        result = self._runner.run(["pfctl", "-e"])
        if result.ok or "already enabled" in (result.stdout + result.stderr):
            logger.info("pf enabled")
            return Outcome.success("pf enabled")
        return Outcome.failure(f"Could not enable pf: {result.error_text()}")

    def remove(self, anchor: str) -> Outcome:
        """Flush every rule in ``anchor``; an anchor never loaded is fine."""
        result = self._runner.run(["pfctl", "-a", anchor, "-F", "all"])
        if result.ok:
            logger.info("Flushed anchor %s", anchor)
            return Outcome.success(f"Flushed anchor {anchor}")
        text = (result.stdout + result.stderr).lower()
        if "does not exist" in text or "no such" in text:
            return Outcome.unchanged(f"Anchor {anchor} was not loaded")
        return Outcome.failure(f"Could not flush anchor {anchor}: {result.error_text()}")

    def status(self, anchor: str) -> PacketFilterStatus:
        enabled = self.is_enabled()
        # rdr rules live in the translation (nat) section, not filter rules
        result = self._runner.run(["pfctl", "-a", anchor, "-s", "nat"])
        if result.ok:
            rules = result.stdout.strip()
            has_rules: bool | None = any(
                line.lstrip().startswith("rdr") for line in rules.splitlines()
            )
        else:
            rules = ""
            has_rules = None
        return PacketFilterStatus(filter_enabled=enabled, group_has_rules=has_rules, rules=rules)

    def discard_rule_file(self) -> bool:
        """Delete the transient rule file; True if one was removed."""
        try:
            self.rule_file.unlink()
        except FileNotFoundError:
            return False
        logger.info("Removed %s", self.rule_file)
        return True
