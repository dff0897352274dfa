from __future__ import annotations

from loguru import logger

from .build import BuildIdentification, Builder, BuildTaskSet
from .credentials import CredentialLoader, CredentialSet
from .process import CancelSignal, Process, pipe, run

logger.disable("ab_toolkit")

__all__ = [
    "BuildIdentification",
    "BuildTaskSet",
    "Builder",
    "CancelSignal",
    "CredentialLoader",
    "CredentialSet",
    "Process",
    "pipe",
    "run",
]
