from __future__ import annotations

from .exceptions import SourceError
from .github import GitHubSource

__all__ = [
    "GitHubSource",
    "SourceError",
]
