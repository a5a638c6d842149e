"""Tests for the external command runner."""

from __future__ import annotations

import subprocess
from unittest.mock import MagicMock, patch

from spoofctl.runner import (
    RC_NOT_EXECUTABLE,
    RC_NOT_FOUND,
    RC_TIMEOUT,
    CmdResult,
    CommandRunner,
)


@patch("spoofctl.runner.subprocess.run")
def test_run_captures_output(mock_run: MagicMock):
    mock_run.return_value = subprocess.CompletedProcess(
        ["pfctl", "-s", "info"], 0, stdout="Status: Enabled\n", stderr=""
    )

    result = CommandRunner(timeout=3).run(["pfctl", "-s", "info"])

    assert result.ok
    assert result.stdout == "Status: Enabled\n"
    kwargs = mock_run.call_args.kwargs
    assert kwargs["timeout"] == 3
    assert kwargs["capture_output"] is True
    assert kwargs["text"] is True


@patch("spoofctl.runner.subprocess.run", side_effect=FileNotFoundError)
def test_missing_binary_is_a_result(mock_run: MagicMock):
    result = CommandRunner().run(["networksetup", "-listallnetworkservices"])

    assert not result.ok
    assert result.returncode == RC_NOT_FOUND
    assert "command not found" in result.error_text()


@patch(
    "spoofctl.runner.subprocess.run",
    side_effect=subprocess.TimeoutExpired(cmd="launchctl", timeout=1),
)
def test_timeout_is_a_result(mock_run: MagicMock):
    result = CommandRunner(timeout=1).run(["launchctl", "print", "system/com.spoofdpi"])

    assert result.returncode == RC_TIMEOUT
    assert "timed out" in result.error_text()


def test_error_text_prefers_last_stderr_line():
    result = CmdResult(["pfctl"], 1, "", "pfctl: warning\npfctl: Syntax error in config\n")
    assert result.error_text() == "pfctl: Syntax error in config"
    assert CmdResult(["x"], 2).error_text() == "exit code 2"


@patch("spoofctl.runner.subprocess.run", side_effect=PermissionError(13, "Permission denied"))
def test_unexecutable_binary_is_a_result(mock_run: MagicMock):
    result = CommandRunner().run(["osascript", "-e", "display notification \"hi\""])

    assert not result.ok
    assert result.returncode == RC_NOT_EXECUTABLE
    assert "Permission denied" in result.error_text()


@patch("spoofctl.runner.subprocess.run")
def test_undecodable_output_is_replaced(mock_run: MagicMock):
    mock_run.return_value = subprocess.CompletedProcess(["networksetup"], 0, stdout="Wi�Fi\n")

    result = CommandRunner().run(["networksetup", "-listallnetworkservices"])

    assert mock_run.call_args.kwargs["errors"] == "replace"
    assert result.stdout == "Wi�Fi\n"
