"""launchd supervisor — run spoofdpi as a system LaunchDaemon."""

from __future__ import annotations

import logging
import os
import plistlib
from pathlib import Path

from spoofctl.runner import CommandRunner
from spoofctl.state.models import Outcome

logger = logging.getLogger(__name__)


class LaunchdSupervisor:
    """Registers, starts and stops the proxy under ``system/<label>``."""

    def __init__(
        self,
        runner: CommandRunner,
        label: str,
        plist_path: Path,
        log_dir: Path,
    ) -> None:
        self._runner = runner
        self.label = label
        self.plist_path = Path(plist_path)
        self.log_dir = Path(log_dir)

    @property
    def _target(self) -> str:
        return f"system/{self.label}"

    def build_plist(self, binary: str, port: int) -> dict:
        return {
            "Label": self.label,
            "ProgramArguments": [binary, "-p", str(port)],
            "RunAtLoad": True,
            "KeepAlive": True,
            "StandardOutPath": str(self.log_dir / "out.log"),
            "StandardErrorPath": str(self.log_dir / "err.log"),
        }

    def register(self, binary: str, port: int) -> Outcome:
        """Write the LaunchDaemon plist and prepare its log files."""
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            for name in ("out.log", "err.log"):
                log_file = self.log_dir / name
                log_file.touch(exist_ok=True)
                log_file.chmod(0o644)

            self.plist_path.parent.mkdir(parents=True, exist_ok=True)
            with self.plist_path.open("wb") as fh:
                plistlib.dump(self.build_plist(binary, port), fh)
            self.plist_path.chmod(0o644)
            if os.geteuid() == 0:
                os.chown(self.plist_path, 0, 0)  # root:wheel
        except OSError as e:
            return Outcome.failure(f"Could not write {self.plist_path}: {e}")

        logger.info("Wrote LaunchDaemon %s", self.plist_path)
        return Outcome.success(f"Wrote LaunchDaemon: {self.plist_path}")

    def is_registered(self) -> bool:
        return self.plist_path.is_file()

    def start(self, binary: str, port: int) -> Outcome:
        """(Re)write the plist for ``port`` and bootstrap it, replacing any loaded copy."""
        registered = self.register(binary, port)
        if not registered.ok:
            return registered

        if self.is_loaded():
            logger.info("Daemon already loaded, replacing")
            self._runner.run(["launchctl", "bootout", self._target])

        result = self._runner.run(["launchctl", "bootstrap", "system", str(self.plist_path)])
        if not result.ok:
            return Outcome.failure(f"launchctl bootstrap failed: {result.error_text()}")
        self._runner.run(["launchctl", "enable", self._target])
        kick = self._runner.run(["launchctl", "kickstart", "-k", self._target])
        if not kick.ok:
            return Outcome.failure(f"launchctl kickstart failed: {kick.error_text()}")
        return Outcome.success(f"Daemon started on port {port}")

    def stop(self) -> Outcome:
        loaded = self.is_loaded()
        if loaded is False:
            return Outcome.success("Daemon not loaded")
        result = self._runner.run(["launchctl", "bootout", self._target])
        if not result.ok and self.is_loaded() is not False:
            return Outcome.failure(f"launchctl bootout failed: {result.error_text()}")
        logger.info("Daemon %s stopped", self.label)
        return Outcome.success("Daemon stopped")

    def unregister(self) -> Outcome:
        try:
            self.plist_path.unlink()
        except FileNotFoundError:
            return Outcome.success("LaunchDaemon plist not present")
        except OSError as e:
            return Outcome.failure(f"Could not remove {self.plist_path}: {e}")
        logger.info("Removed %s", self.plist_path)
        return Outcome.success(f"Removed {self.plist_path}")

    def is_loaded(self) -> bool | None:
        result = self._runner.run(["launchctl", "print", self._target])
        if result.ok:
            return True
        # 113: "Could not find service" in the requested domain
        if result.returncode == 113 or "could not find service" in result.stderr.lower():
            return False
        return None

    def is_running(self) -> bool | None:
        result = self._runner.run(["launchctl", "print", self._target])
        if not result.ok:
            return False if result.returncode == 113 else None
        for line in result.stdout.splitlines():
            key, sep, value = line.strip().partition("=")
            if sep and key.strip() == "state":
                return value.strip() == "running"
        return None
