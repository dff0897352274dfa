from __future__ import annotations


class SourceError(Exception):
    """Raised when a repository cannot be fetched at the requested commit."""
