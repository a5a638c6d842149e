"""Homebrew package source for the spoofdpi binary."""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

from spoofctl.runner import CmdResult, CommandRunner
from spoofctl.state.models import Outcome

logger = logging.getLogger(__name__)

FORMULA = "spoofdpi"
_BREW_LOCATIONS = ("/opt/homebrew/bin/brew", "/usr/local/bin/brew")
_BIN_LOCATIONS = ("/opt/homebrew/bin/spoofdpi", "/usr/local/bin/spoofdpi")

# brew install/update can take minutes
_INSTALL_TIMEOUT = 600.0


class HomebrewPackageSource:
    """Locates spoofdpi on disk and installs/removes it through Homebrew.

    Homebrew itself is never bootstrapped from the network: a missing
    ``brew`` is reported as an install failure.
    """

    def __init__(self, runner: CommandRunner, explicit_path: str | None = None) -> None:
        self._runner = runner
        self._explicit_path = explicit_path

    def locate(self) -> str | None:
        if self._explicit_path and _is_executable(self._explicit_path):
            return self._explicit_path

        found = shutil.which(FORMULA)
        if found:
            return found

        for candidate in _BIN_LOCATIONS:
            if _is_executable(candidate):
                return candidate

        brew = self._brew()
        if brew:
            result = self._brew_run([brew, "--prefix"])
            prefix = result.stdout.strip()
            if result.ok and prefix:
                candidate = str(Path(prefix) / "bin" / FORMULA)
                if _is_executable(candidate):
                    return candidate
        return None

    def install(self) -> Outcome:
        existing = self.locate()
        if existing:
            return Outcome.success(f"SpoofDPI already present: {existing}", existing)

        brew = self._brew()
        if brew is None:
            return Outcome.failure(
                "Homebrew not found; install it from https://brew.sh or set SPOOFDPI_BIN"
            )

        result = self._brew_run([brew, "install", FORMULA], timeout=_INSTALL_TIMEOUT)
        if not result.ok:
            logger.warning("brew install %s failed, retrying after brew update", FORMULA)
            self._brew_run([brew, "update"], timeout=_INSTALL_TIMEOUT)
            result = self._brew_run([brew, "install", FORMULA], timeout=_INSTALL_TIMEOUT)
            if not result.ok:
                return Outcome.failure(
                    f"Could not install SpoofDPI via Homebrew: {result.error_text()}"
                )

        path = self.locate()
        if path is None:
            return Outcome.failure("brew install succeeded but spoofdpi binary not found")
        return Outcome.success(f"Installed SpoofDPI: {path}", path)

    def is_managed(self) -> bool:
        brew = self._brew()
        if brew is None:
            return False
        return self._brew_run([brew, "list", FORMULA]).ok

    def uninstall(self) -> Outcome:
        brew = self._brew()
        if brew is None:
            return Outcome.failure("Homebrew not found")
        result = self._brew_run([brew, "uninstall", FORMULA], timeout=_INSTALL_TIMEOUT)
        if result.ok:
            return Outcome.success(f"Uninstalled {FORMULA}")
        return Outcome.failure(f"brew uninstall {FORMULA} failed: {result.error_text()}")

    def _brew(self) -> str | None:
        found = shutil.which("brew")
        if found:
            return found
        for candidate in _BREW_LOCATIONS:
            if _is_executable(candidate):
                return candidate
        return None

    def _brew_run(self, args: list[str], timeout: float | None = None) -> CmdResult:
        sudo_user = os.environ.get("SUDO_USER")
        if os.geteuid() == 0 and sudo_user and sudo_user != "root":
            args = ["sudo", "-u", sudo_user, *args]
        return self._runner.run(args, timeout=timeout)


def _is_executable(path: str) -> bool:
    return os.path.isfile(path) and os.access(path, os.X_OK)
