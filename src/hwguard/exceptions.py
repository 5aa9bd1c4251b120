"""Custom exceptions for hwguard.

All exceptions inherit from HwGuardError for consistent error handling.
Each exception carries an optional hint aimed at the operator.
"""

from typing import Optional


class HwGuardError(Exception):
    """Base exception for all hwguard errors.

    Attributes:
        message: Human-readable error message.
        hint: Optional troubleshooting hint.
        exit_code: Suggested exit code for the CLI.
    """

    exit_code: int = 1

    def __init__(
        self,
        message: str,
        hint: Optional[str] = None,
        exit_code: Optional[int] = None,
    ) -> None:
        self.message = message
        self.hint = hint
        if exit_code is not None:
            self.exit_code = exit_code
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the exception message with optional hint."""
        if self.hint:
            return f"{self.message}\n\nHint: {self.hint}"
        return self.message


class SensorError(HwGuardError):
    """A temperature resolver could not produce a reading.

    Raised by individual resolvers; the resolver chain converts it into
    absent values so it never reaches the thermal guard.
    """

    def __init__(self, source: str, message: str) -> None:
        self.source = source
        super().__init__(message=f"{source}: {message}")


class ShutdownCommandError(HwGuardError):
    """The OS shutdown/reboot/cancel command failed.

    This typically occurs when:
    - The service is not running with enough privileges
    - The shutdown binary is missing from PATH
    - The command did not finish within its timeout
    """

    def __init__(
        self,
        message: str,
        command: Optional[str] = None,
        details: Optional[str] = None,
    ) -> None:
        self.command = command
        self.details = details
        hint = None
        if details:
            hint = details
        super().__init__(message=message, hint=hint)


class NoPendingShutdownError(ShutdownCommandError):
    """Cancel was requested but the OS reports nothing to abort."""

    def __init__(self, command: Optional[str] = None, details: Optional[str] = None) -> None:
        super().__init__(
            message="No pending shutdown/reboot to cancel",
            command=command,
            details=details,
        )


class ClientError(HwGuardError):
    """Cannot reach or talk to a running hwguard instance.

    This typically occurs when:
    - The service is not running
    - A different host/port is configured
    """

    exit_code: int = 2

    def __init__(
        self,
        message: str = "Cannot connect to hwguard service",
        hint: Optional[str] = None,
    ) -> None:
        if hint is None:
            hint = (
                "Is the hwguard service running? Check HWGUARD_HOST and "
                "HWGUARD_PORT match the running instance."
            )
        super().__init__(message=message, hint=hint, exit_code=2)
