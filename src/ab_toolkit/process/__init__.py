from __future__ import annotations

from .exceptions import (
    PipeError,
    ProcessCancelledError,
    ProcessError,
    ProcessExitError,
    ProcessStartError,
)
from .model import CancelSignal, Process
from .runner import pipe, run

__all__ = [
    "CancelSignal",
    "PipeError",
    "Process",
    "ProcessCancelledError",
    "ProcessError",
    "ProcessExitError",
    "ProcessStartError",
    "pipe",
    "run",
]
