from __future__ import annotations

from .exceptions import ConfigurationError

__all__ = [
    "ConfigurationError",
]
