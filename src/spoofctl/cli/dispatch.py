"""Ordered action plan and the reducer that folds reports into an exit code."""

from __future__ import annotations

import enum
from collections.abc import Callable, Iterable

from spoofctl.state.manager import RedirectionStateManager
from spoofctl.state.models import ActionReport, worst_status


class Action(enum.Enum):
    """CLI actions; declaration order is execution order."""

    INSTALL = "install"
    ENABLE_PROXY = "enable-proxy"
    DISABLE_PROXY = "disable-proxy"
    STATUS = "status"
    ENABLE_REDIRECT = "enable-redirect"
    DISABLE_REDIRECT = "disable-redirect"
    REDIRECT_STATUS = "redirect-status"
    UNINSTALL = "uninstall"

    @property
    def method_name(self) -> str:
        return self.value.replace("-", "_")


def plan_actions(selected: Iterable[Action]) -> list[Action]:
    """Deduplicate and put the requested actions into execution order."""
    chosen = set(selected)
    return [action for action in Action if action in chosen]


def run_actions(
    manager: RedirectionStateManager,
    actions: Iterable[Action],
    on_report: Callable[[Action, ActionReport], None] | None = None,
) -> list[ActionReport]:
    """Run every action in order; a failed action never stops the next one."""
    reports = []
    for action in actions:
        report: ActionReport = getattr(manager, action.method_name)()
        reports.append(report)
        if on_report:
            on_report(action, report)
    return reports


def exit_code(reports: Iterable[ActionReport]) -> int:
    """Exit code of the most severe report (0 when nothing ran)."""
    return worst_status([r.status for r in reports]).exit_code
