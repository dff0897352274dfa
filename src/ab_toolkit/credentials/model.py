from __future__ import annotations

from typing import Final

from attrs import field, frozen

ACCESS_KEY_ID_VAR: Final = "AWS_ACCESS_KEY_ID"
SECRET_ACCESS_KEY_VAR: Final = "AWS_SECRET_ACCESS_KEY"
SESSION_TOKEN_VAR: Final = "AWS_SESSION_TOKEN"
GITHUB_TOKEN_VAR: Final = "GITHUB_ACCESS_TOKEN"

INJECTED_VARS: Final[tuple[str, ...]] = (
    ACCESS_KEY_ID_VAR,
    SECRET_ACCESS_KEY_VAR,
    SESSION_TOKEN_VAR,
    GITHUB_TOKEN_VAR,
)


@frozen
class AwsCredentials:
    """Resolved AWS access keys."""

    access_key: str
    secret_key: str = field(repr=False)
    token: str | None = field(default=None, repr=False)


@frozen
class CredentialSet:
    """
    Credentials for a single build task.

    Created fresh by `CredentialLoader.load` before each task and never
    persisted.
    """

    aws: AwsCredentials
    github_token: str = field(repr=False)
    account_id: str
    region: str

    @property
    def registry(self) -> str:
        return f"{self.account_id}.dkr.ecr.{self.region}.amazonaws.com"

    @property
    def bucket(self) -> str:
        return f"artifacts-{self.account_id}-{self.region}"

    def environment(self) -> dict[str, str]:
        """Environment variables injected into build commands."""
        return {
            ACCESS_KEY_ID_VAR: self.aws.access_key,
            SECRET_ACCESS_KEY_VAR: self.aws.secret_key,
            SESSION_TOKEN_VAR: self.aws.token or "",
            GITHUB_TOKEN_VAR: self.github_token,
        }
