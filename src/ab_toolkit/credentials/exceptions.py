from __future__ import annotations

from typing import Literal

type CredentialSource = Literal["token", "credentials", "identity"]


class CredentialError(Exception):
    """Raised when one of the concurrent credential fetches fails."""

    def __init__(self, source: CredentialSource, message: str) -> None:
        super().__init__(message)
        self.source: CredentialSource = source
