from __future__ import annotations

import shutil
from collections.abc import Sequence
from typing import Final

import anyio
from anyio import to_thread

from ab_toolkit.build.container import BACKENDS

type Requirement = tuple[str, ...]
"""Alternative executables, any one of which satisfies the requirement."""

PREREQUISITES: Final[tuple[Requirement, ...]] = (
    BACKENDS,
    ("git",),
    ("make",),
    ("npm",),
    ("aws",),
)


class PrerequisiteError(Exception):
    """Raised when required command line tools are not installed."""

    def __init__(self, missing: Sequence[str]) -> None:
        super().__init__(f"prerequisites not met: {', '.join(missing)} not available")
        self.missing = list(missing)


def _which_any(alternatives: Requirement) -> str | None:
    for executable in alternatives:
        if path := shutil.which(executable):
            return path
    return None


async def check_prerequisites(
    requirements: Sequence[Requirement] = PREREQUISITES,
) -> None:
    """Look up every requirement on PATH concurrently."""
    missing: dict[int, str] = {}

    async def check(idx: int, alternatives: Requirement) -> None:
        if await to_thread.run_sync(_which_any, alternatives) is None:
            missing[idx] = " or ".join(alternatives)

    async with anyio.create_task_group() as tg:
        for idx, alternatives in enumerate(requirements):
            tg.start_soon(check, idx, alternatives)

    if missing:
        raise PrerequisiteError([missing[idx] for idx in sorted(missing)])
