"""Report models shared by the controllers, the state manager, and the CLI."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Outcome:
    """Success, or failure with a reason, from one controller call."""

    ok: bool
    reason: str = ""
    detail: str = ""
    changed: bool = True

    @classmethod
    def success(cls, reason: str = "", detail: str = "") -> Outcome:
        return cls(True, reason, detail)

    @classmethod
    def unchanged(cls, reason: str = "") -> Outcome:
        """Success where the host was already in the requested state."""
        return cls(True, reason, changed=False)

    @classmethod
    def failure(cls, reason: str, detail: str = "") -> Outcome:
        return cls(False, reason, detail)


class ActionStatus(enum.Enum):
    """Overall verdict of an action; ordered by severity."""

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    @property
    def exit_code(self) -> int:
        return _EXIT_CODES[self]


_SEVERITY = {ActionStatus.SUCCESS: 0, ActionStatus.PARTIAL: 1, ActionStatus.FAILURE: 2}
_EXIT_CODES = {ActionStatus.SUCCESS: 0, ActionStatus.PARTIAL: 3, ActionStatus.FAILURE: 1}


class StepOutcome(enum.Enum):
    DONE = "done"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class StepResult:
    name: str
    result: StepOutcome
    message: str = ""


@dataclass
class RedirectionState:
    """Live view of the host; ``None`` in any field means "unknown"."""

    daemon_loaded: bool | None = None
    daemon_running: bool | None = None
    proxy_enabled_per_service: dict[str, bool | None] | None = None
    packet_filter_enabled: bool | None = None
    redirect_rules_active: bool | None = None
    loaded_rules: str = ""


@dataclass
class ActionReport:
    """Everything one action did, including failures it tolerated."""

    action: str
    status: ActionStatus = ActionStatus.SUCCESS
    steps: list[StepResult] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    details: dict[str, Any] = field(default_factory=dict)
    state: RedirectionState | None = None

    @property
    def ok(self) -> bool:
        return self.status is not ActionStatus.FAILURE

    def add_step(self, name: str, result: StepOutcome, message: str = "") -> StepResult:
        step = StepResult(name, result, message)
        self.steps.append(step)
        if result is StepOutcome.FAILED:
            self.errors.append(f"{name}: {message}" if message else name)
        return step

    def fail(self, message: str) -> ActionReport:
        self.status = ActionStatus.FAILURE
        self.errors.append(message)
        return self

    def settle_from_steps(self) -> ActionReport:
        """Derive status: no failed steps → success, all failed → failure."""
        failed = sum(1 for s in self.steps if s.result is StepOutcome.FAILED)
        if failed == 0:
            self.status = ActionStatus.SUCCESS
        elif failed == len(self.steps):
            self.status = ActionStatus.FAILURE
        else:
            self.status = ActionStatus.PARTIAL
        return self


def worst_status(statuses: list[ActionStatus]) -> ActionStatus:
    """Fold statuses into the most severe one; empty folds to success."""
    worst = ActionStatus.SUCCESS
    for status in statuses:
        if status.severity > worst.severity:
            worst = status
    return worst
