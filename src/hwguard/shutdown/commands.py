"""OS shutdown, reboot and cancel commands.

Wraps the platform ``shutdown`` binary. Windows takes the grace period in
seconds (``shutdown /s /t 60``); POSIX takes whole minutes
(``shutdown -h +1``), so POSIX delays are rounded up.

Example usage:
    from hwguard.shutdown import SystemShutdown

    commander = SystemShutdown(platform="auto")
    commander.request_shutdown(60, "CPU too hot")
    commander.cancel_shutdown()
"""

from __future__ import annotations

import math
import subprocess
import sys
from typing import List, Literal, Optional

import structlog

from hwguard.exceptions import NoPendingShutdownError, ShutdownCommandError

log = structlog.get_logger()

Platform = Literal["auto", "windows", "posix"]

# stderr fragments meaning "nothing to cancel"
_NOTHING_PENDING_MARKERS = (
    "unable to abort",
    "no scheduled shutdown",
    "no shutdown scheduled",
    "(1116)",
)


def resolve_platform(platform: Platform) -> Literal["windows", "posix"]:
    """Resolve ``auto`` to the running operating system's command syntax."""
    if platform != "auto":
        return platform
    return "windows" if sys.platform.startswith("win") else "posix"


class SystemShutdown:
    """Issues shutdown/reboot/cancel commands to the operating system.

    Every command runs with a bounded timeout. Failures raise
    ShutdownCommandError; the caller decides whether that matters.
    """

    def __init__(
        self,
        platform: Platform = "auto",
        dry_run: bool = False,
        request_timeout: float = 10.0,
        cancel_timeout: float = 5.0,
    ) -> None:
        """Initialize the commander.

        Args:
            platform: Command syntax to use, or "auto" to detect.
            dry_run: Log commands instead of executing them.
            request_timeout: Seconds a shutdown/reboot command may take.
            cancel_timeout: Seconds a cancel command may take.
        """
        self.platform = resolve_platform(platform)
        self.dry_run = dry_run
        self.request_timeout = request_timeout
        self.cancel_timeout = cancel_timeout

    def build_request_command(self, delay: int, reason: str, reboot: bool = False) -> List[str]:
        """Build the argv for a delayed shutdown or reboot."""
        delay = max(0, int(delay))
        if self.platform == "windows":
            return ["shutdown", "/r" if reboot else "/s", "/t", str(delay), "/c", reason]
        minutes = math.ceil(delay / 60)
        return ["shutdown", "-r" if reboot else "-h", f"+{minutes}", reason]

    def build_cancel_command(self) -> List[str]:
        """Build the argv that aborts a pending shutdown."""
        if self.platform == "windows":
            return ["shutdown", "/a"]
        return ["shutdown", "-c"]

    def request_shutdown(self, delay: int, reason: str) -> None:
        """Schedule a power-off after ``delay`` seconds.

        Raises:
            ShutdownCommandError: If the command fails or times out.
        """
        self._run(self.build_request_command(delay, reason), self.request_timeout)
        log.warning("shutdown_scheduled", delay=delay, platform=self.platform)

    def request_reboot(self, delay: int, reason: str) -> None:
        """Schedule a reboot after ``delay`` seconds.

        Raises:
            ShutdownCommandError: If the command fails or times out.
        """
        self._run(self.build_request_command(delay, reason, reboot=True), self.request_timeout)
        log.warning("reboot_scheduled", delay=delay, platform=self.platform)

    def cancel_shutdown(self) -> None:
        """Abort a pending shutdown or reboot.

        Raises:
            NoPendingShutdownError: If the OS reports nothing to abort.
            ShutdownCommandError: For any other failure.
        """
        try:
            self._run(self.build_cancel_command(), self.cancel_timeout)
        except ShutdownCommandError as e:
            details = (e.details or "").lower()
            if any(marker in details for marker in _NOTHING_PENDING_MARKERS):
                raise NoPendingShutdownError(command=e.command, details=e.details) from e
            raise
        log.info("shutdown_cancelled", platform=self.platform)

    def _run(self, argv: List[str], timeout: float) -> None:
        command = subprocess.list2cmdline(argv)
        if self.dry_run:
            log.info("shutdown_command_dry_run", command=command)
            return

        try:
            result = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False,
            )
        except FileNotFoundError as e:
            raise ShutdownCommandError(
                "shutdown command not found", command=command, details=str(e)
            ) from e
        except subprocess.TimeoutExpired as e:
            raise ShutdownCommandError(
                f"shutdown command timed out after {timeout}s", command=command
            ) from e
        except OSError as e:
            raise ShutdownCommandError(
                "shutdown command could not be started", command=command, details=str(e)
            ) from e

        if result.returncode != 0:
            details: Optional[str] = (result.stderr or result.stdout or "").strip() or None
            raise ShutdownCommandError(
                f"shutdown command exited with status {result.returncode}",
                command=command,
                details=details,
            )
