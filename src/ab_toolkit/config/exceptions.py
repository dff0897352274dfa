from __future__ import annotations


class ConfigurationError(Exception):
    """Raised when build configuration is missing, unreadable or unsupported."""
