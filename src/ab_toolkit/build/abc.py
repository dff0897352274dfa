from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ab_toolkit.credentials import CredentialSet
    from ab_toolkit.process import CancelSignal, Process


class RunProtocol(Protocol):
    async def __call__(
        self, process: Process, cancel: CancelSignal | None = None
    ) -> None: ...


class PipeProtocol(Protocol):
    async def __call__(
        self, source: Process, sink: Process, cancel: CancelSignal | None = None
    ) -> None: ...


class ArchiverProtocol(Protocol):
    async def __call__(
        self,
        archive: Path,
        root: Path,
        *,
        includes: Sequence[str] | None = None,
        excludes: Sequence[str] | None = None,
    ) -> None:
        """
        Write every file under `root` into the zip file `archive`.

        Args:
            archive: Destination zip file. Never added to itself.
            root: Directory whose contents are archived, stored relative to it.
            includes: When given, only paths matching one of these are kept.
            excludes: Paths matching one of these are dropped.

        Raises:
            OSError: The archive could not be written.
            ValueError: A file could not be stored in the archive.
        """
        ...


class CredentialProviderProtocol(Protocol):
    async def load(self) -> CredentialSet: ...
