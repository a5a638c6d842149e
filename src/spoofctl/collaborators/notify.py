"""Desktop notifications through osascript."""

from __future__ import annotations

import logging

from spoofctl.collaborators.base import Severity
from spoofctl.runner import CommandRunner

logger = logging.getLogger(__name__)

APP_TITLE = "SpoofDPI"


class OsascriptNotifier:
    """Posts macOS notifications; delivery failures are only logged."""

    def __init__(self, runner: CommandRunner, timeout: float = 5.0) -> None:
        self._runner = runner
        self._timeout = timeout

    def notify(self, title: str, message: str, severity: Severity = Severity.INFO) -> None:
        subtitle = "Error" if severity is Severity.ERROR and not title else title
        script = (
            f"display notification {_quote(message)} "
            f"with title {_quote(APP_TITLE)} subtitle {_quote(subtitle)}"
        )
        result = self._runner.run(["osascript", "-e", script], timeout=self._timeout)
        if not result.ok:
            logger.debug("Notification not delivered: %s", result.error_text())


class NullNotifier:
    """Used when notifications are disabled."""

    def notify(self, title: str, message: str, severity: Severity = Severity.INFO) -> None:
        logger.debug("notification suppressed: [%s] %s", title, message)


def _quote(text: str) -> str:
    """AppleScript string literal."""
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'
