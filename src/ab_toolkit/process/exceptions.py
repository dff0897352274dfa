from __future__ import annotations


class ProcessError(Exception):
    """Base exception for the process module."""

    def __init__(self, message: str, command_line: str) -> None:
        super().__init__(message)
        self.command_line = command_line


class ProcessStartError(ProcessError):
    """Raised when an external command cannot be started."""

    def __init__(self, command_line: str) -> None:
        super().__init__(f'command failed to start "{command_line}"', command_line)


class ProcessExitError(ProcessError):
    """Raised when an external command exits with a non-zero status."""

    def __init__(self, command_line: str, returncode: int) -> None:
        super().__init__(
            f'command "{command_line}" failed with exit code {returncode}',
            command_line,
        )
        self.returncode = returncode


class ProcessCancelledError(ProcessError):
    """Raised when an external command is killed because its signal fired."""

    def __init__(self, command_line: str) -> None:
        super().__init__(
            f'command "{command_line}" did not complete, cancelled', command_line
        )


class PipeError(ProcessError):
    """Raised when bytes cannot be copied between piped processes."""

    def __init__(self, command_line: str) -> None:
        super().__init__(
            f'failed to pipe between processes "{command_line}"', command_line
        )
