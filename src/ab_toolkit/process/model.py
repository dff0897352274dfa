from __future__ import annotations

import math
import os
import shlex
from collections.abc import Generator, Mapping
from contextlib import contextmanager
from datetime import timedelta
from pathlib import Path

import anyio
from attrs import define, field, frozen


@frozen
class Process:
    """Description of one external command invocation."""

    command: str
    args: tuple[str, ...] = field(factory=tuple, converter=tuple)
    cwd: Path | None = None
    env: Mapping[str, str] = field(factory=dict, repr=False)
    """Overrides merged over the ambient environment."""

    @property
    def argv(self) -> list[str]:
        return [self.command, *self.args]

    @property
    def command_line(self) -> str:
        return shlex.join(self.argv)

    def environment(self) -> dict[str, str] | None:
        if not self.env:
            return None
        return {**os.environ, **self.env}


@define
class CancelSignal:
    """
    Cancellation signal shared by one or more process invocations.

    The signal fires when `cancel()` is called or when the anyio clock passes
    `deadline`, whichever comes first. Must be used from inside an event loop.
    """

    deadline: float = math.inf

    _cancelled: bool = field(init=False, default=False)
    _scopes: set[anyio.CancelScope] = field(init=False, factory=set)

    @classmethod
    def after(cls, timeout: timedelta) -> CancelSignal:
        return cls(deadline=anyio.current_time() + timeout.total_seconds())

    @property
    def cancelled(self) -> bool:
        return self._cancelled or anyio.current_time() >= self.deadline

    def cancel(self) -> None:
        self._cancelled = True
        for scope in self._scopes:
            scope.cancel()

    @contextmanager
    def scope(self) -> Generator[anyio.CancelScope]:
        """Open a cancel scope that is cancelled when this signal fires."""
        with anyio.CancelScope(deadline=self.deadline) as scope:
            if self._cancelled:
                scope.cancel()
            self._scopes.add(scope)
            try:
                yield scope
            finally:
                self._scopes.discard(scope)
