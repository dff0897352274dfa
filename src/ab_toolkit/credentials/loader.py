from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, Final, Protocol, cast

import anyio
import boto3
from anyio import to_thread
from attrs import define, frozen
from botocore.exceptions import NoCredentialsError
from loguru import logger

from ab_toolkit.config.exceptions import ConfigurationError

from .exceptions import CredentialError, CredentialSource
from .model import AwsCredentials, CredentialSet

GITHUB_TOKEN_SECRET_ID: Final = "aws-basics/github-app/token"


class SecretReader(Protocol):
    def get_secret_value(self, *, SecretId: str) -> Mapping[str, Any]: ...


class IdentityGetter(Protocol):
    def get_caller_identity(self) -> Mapping[str, Any]: ...


class CredentialResolver(Protocol):
    def __call__(self) -> AwsCredentials:
        """Resolve AWS credentials through the default provider chain."""
        ...


@frozen
class SessionResolver:
    """Resolves credentials from a new boto3 session on every call."""

    profile: str | None = None
    region: str | None = None

    def __call__(self) -> AwsCredentials:
        session = boto3.Session(profile_name=self.profile, region_name=self.region)
        credentials = session.get_credentials()
        if credentials is None:
            raise NoCredentialsError()

        resolved = credentials.get_frozen_credentials()
        return AwsCredentials(
            access_key=resolved.access_key,
            secret_key=resolved.secret_key,
            token=resolved.token,
        )


@define
class CredentialLoader:
    """Concurrently fetches the credentials a build task needs."""

    secrets: SecretReader
    identity: IdentityGetter
    resolve: CredentialResolver
    region: str
    secret_id: str = GITHUB_TOKEN_SECRET_ID

    @classmethod
    def from_session(
        cls, *, profile: str | None = None, region: str | None = None
    ) -> CredentialLoader:
        session = boto3.Session(profile_name=profile, region_name=region)
        if not session.region_name:
            raise ConfigurationError("no AWS region configured")

        return cls(
            secrets=session.client("secretsmanager"),
            identity=session.client("sts"),
            resolve=SessionResolver(profile=profile, region=session.region_name),
            region=session.region_name,
        )

    async def load(self) -> CredentialSet:
        """
        Fetch the GitHub token, AWS credentials and AWS account id.

        The three fetches run concurrently and all of them run to completion,
        even when one fails early.

        Raises:
            CredentialError: At least one fetch failed. The first failure in
                token, credentials, identity order is reported.
        """
        fetches: tuple[tuple[CredentialSource, str, Callable[[], object]], ...] = (
            (
                "token",
                "failed to retrieve token from AWS Secrets Manager",
                self._fetch_token,
            ),
            ("credentials", "failed to acquire AWS credentials", self.resolve),
            ("identity", "failed to get AWS identity", self._lookup_account),
        )
        results: dict[CredentialSource, object] = {}
        failures: dict[CredentialSource, Exception] = {}

        async def fetch(source: CredentialSource, func: Callable[[], object]) -> None:
            try:
                results[source] = await to_thread.run_sync(func)
            except Exception as e:
                failures[source] = e

        async with anyio.create_task_group() as tg:
            for source, _, func in fetches:
                tg.start_soon(fetch, source, func)

        for source, message, _ in fetches:
            if source in failures:
                logger.debug("Credential fetch {} failed", source)
                raise CredentialError(source, message) from failures[source]

        return CredentialSet(
            aws=cast(AwsCredentials, results["credentials"]),
            github_token=cast(str, results["token"]),
            account_id=cast(str, results["identity"]),
            region=self.region,
        )

    def _fetch_token(self) -> str:
        response = self.secrets.get_secret_value(SecretId=self.secret_id)
        return response["SecretString"]

    def _lookup_account(self) -> str:
        response = self.identity.get_caller_identity()
        return response["Account"]
