from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Final

import boto3
from anyio import to_thread
from attrs import define, field
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from ab_toolkit.build.abc import RunProtocol
from ab_toolkit.credentials import GITHUB_TOKEN_SECRET_ID, SecretReader
from ab_toolkit.credentials.model import GITHUB_TOKEN_VAR
from ab_toolkit.process import CancelSignal, Process, ProcessError
from ab_toolkit.process import run as run_process

from .exceptions import SourceError

GITHUB_URL: Final = "https://github.com"

# Reads the token from the environment so it never lands on a command line
# or in .git/config.
CREDENTIAL_HELPER: Final = (
    "!f() { echo username=x-access-token; "
    f'echo "password=${GITHUB_TOKEN_VAR}"; }}; f'
)


@define
class GitHubSource:
    """Fetches a single commit of a GitHub repository into a fresh directory."""

    secrets: SecretReader
    secret_id: str = GITHUB_TOKEN_SECRET_ID
    run: RunProtocol = run_process
    cancel: CancelSignal | None = None

    _token: str | None = field(init=False, default=None, repr=False)

    @classmethod
    def from_session(
        cls,
        *,
        profile: str | None = None,
        region: str | None = None,
        cancel: CancelSignal | None = None,
    ) -> GitHubSource:
        session = boto3.Session(profile_name=profile, region_name=region)
        return cls(secrets=session.client("secretsmanager"), cancel=cancel)

    async def clone(
        self, repository: str, commit: str, *, parent: Path | None = None
    ) -> Path:
        """
        Check out `commit` of `repository` (an `owner/name` slug).

        Only the requested commit is fetched. Returns the new directory.

        Raises:
            SourceError: The token could not be read or a git command failed.
        """
        token = await self._get_token()
        try:
            directory = Path(
                tempfile.mkdtemp(prefix=f"{repository.replace('/', '-')}-", dir=parent)
            )
        except OSError as e:
            raise SourceError("could not create temporary directory") from e
        logger.info("Cloning {}@{} into {}", repository, commit, directory)

        steps = (
            Process("git", ("init", "--quiet"), cwd=directory),
            Process(
                "git",
                ("remote", "add", "origin", f"{GITHUB_URL}/{repository}"),
                cwd=directory,
            ),
            Process(
                "git",
                (
                    "-c",
                    f"credential.helper={CREDENTIAL_HELPER}",
                    "fetch",
                    "--depth=1",
                    "origin",
                    commit,
                ),
                cwd=directory,
                env={GITHUB_TOKEN_VAR: token},
            ),
            Process("git", ("reset", "--hard", "FETCH_HEAD"), cwd=directory),
        )
        for step in steps:
            try:
                await self.run(step, self.cancel)
            except ProcessError as e:
                raise SourceError(
                    f"failed to clone GitHub repository github.com/{repository}"
                ) from e

        return directory

    async def _get_token(self) -> str:
        if self._token is None:
            try:
                response = await to_thread.run_sync(
                    lambda: self.secrets.get_secret_value(SecretId=self.secret_id)
                )
                self._token = response["SecretString"]
            except (BotoCoreError, ClientError, KeyError) as e:
                raise SourceError("could not acquire github access token") from e
        return self._token
