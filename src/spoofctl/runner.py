"""Bounded-timeout wrapper around external macOS utilities."""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Shell conventions for "not found", "not executable", and "timed out"
RC_NOT_FOUND = 127
RC_TIMEOUT = 124
RC_NOT_EXECUTABLE = 126

DEFAULT_TIMEOUT = 15.0


@dataclass
class CmdResult:
    """Captured result of one external command."""

    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def cmd(self) -> str:
        return " ".join(self.args)

    def error_text(self) -> str:
        """Best single-line description of why the command failed."""
        text = (self.stderr or self.stdout).strip()
        if text:
            return text.splitlines()[-1]
        return f"exit code {self.returncode}"


class CommandRunner:
    """Runs external commands with captured output and a timeout.

    Missing executables and timeouts are reported as results, not raised,
    so callers handle every failure mode through ``CmdResult.ok``.
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.timeout = timeout

    def run(
        self,
        args: list[str],
        input: str | None = None,
        timeout: float | None = None,
    ) -> CmdResult:
        args = list(args)
        logger.debug("exec: %s", " ".join(args))
        try:
            proc = subprocess.run(
                args,
                input=input,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=timeout if timeout is not None else self.timeout,
            )
        except FileNotFoundError:
            logger.debug("command not found: %s", args[0])
            return CmdResult(args, RC_NOT_FOUND, "", f"{args[0]}: command not found")
        except subprocess.TimeoutExpired:
            logger.warning("Timed out: %s", " ".join(args))
            return CmdResult(args, RC_TIMEOUT, "", f"{args[0]}: timed out")
        except OSError as e:
            logger.warning("Could not run %s: %s", args[0], e)
            return CmdResult(args, RC_NOT_EXECUTABLE, "", f"{args[0]}: {e.strerror or e}")
        return CmdResult(args, proc.returncode, proc.stdout or "", proc.stderr or "")


def is_root() -> bool:
    """Whether the current process has root privileges."""
    return os.geteuid() == 0
