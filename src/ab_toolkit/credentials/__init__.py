from __future__ import annotations

from .exceptions import CredentialError, CredentialSource
from .loader import (
    GITHUB_TOKEN_SECRET_ID,
    CredentialLoader,
    CredentialResolver,
    IdentityGetter,
    SecretReader,
    SessionResolver,
)
from .model import INJECTED_VARS, AwsCredentials, CredentialSet

__all__ = [
    "GITHUB_TOKEN_SECRET_ID",
    "INJECTED_VARS",
    "AwsCredentials",
    "CredentialError",
    "CredentialLoader",
    "CredentialResolver",
    "CredentialSet",
    "CredentialSource",
    "IdentityGetter",
    "SecretReader",
    "SessionResolver",
]
