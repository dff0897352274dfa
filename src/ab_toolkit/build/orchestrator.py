from __future__ import annotations

import zipfile
from collections.abc import Sequence
from pathlib import Path
from typing import assert_never

from attrs import define, field
from loguru import logger

from ab_toolkit.config import ConfigurationError
from ab_toolkit.credentials import CredentialError
from ab_toolkit.process import CancelSignal, Process, ProcessError
from ab_toolkit.process import pipe as pipe_process
from ab_toolkit.process import run as run_process

from .abc import (
    ArchiverProtocol,
    CredentialProviderProtocol,
    PipeProtocol,
    RunProtocol,
)
from .archive import DEPENDENCY_DIR, OUTPUT_DIR, ZipArchiver
from .container import (
    build_image_command,
    build_login_commands,
    build_push_command,
    get_backend,
    image_tag,
)
from .exceptions import (
    ArchiveError,
    BuildError,
    BundleBuildError,
    ImageBuildError,
    ImagePushError,
    RegistryLoginError,
    TaskFailedError,
    UploadError,
)
from .model import (
    BuildTaskSet,
    ContainerImageBuildSpec,
    FunctionBundleBuildSpec,
    Runtime,
)
from .schema import BuildIdentification, BuildTask, ContainerImage, FunctionBundle

_TASK_ERRORS = (BuildError, ProcessError, CredentialError, ConfigurationError)


@define
class Builder:
    """
    Runs every configured build for one repository commit, one task at a time.

    Credentials are loaded again before each task. The first failing task stops
    the run; artifacts published by earlier tasks are left in place.
    """

    credentials: CredentialProviderProtocol

    run: RunProtocol = run_process
    pipe: PipeProtocol = pipe_process
    archive: ArchiverProtocol = field(factory=ZipArchiver)

    backend: str | None = None
    """Container CLI to use. Detected from PATH when not set."""

    cancel: CancelSignal | None = None
    """Signal shared by every command this builder starts."""

    async def build_all(
        self, identification: BuildIdentification, builds: BuildTaskSet
    ) -> None:
        """
        Build every task in `builds`: function bundles first, then images.

        Raises:
            TaskFailedError: A task failed. Its kind and index are attached and
                the underlying error is chained as the cause.
        """
        with logger.contextualize(
            repository=identification.repository, commit=identification.commit
        ):
            for task in builds.tasks():
                logger.info("Starting {} build {}", task.kind, task.index)
                try:
                    await self.build(identification, task)
                except _TASK_ERRORS as e:
                    logger.error("Build failed for {} {}", task.kind, task.index)
                    raise TaskFailedError(task.kind, task.index) from e

            logger.info("Completed {} builds", len(builds))

    async def build(self, identification: BuildIdentification, task: BuildTask) -> None:
        match task:
            case FunctionBundle(spec=spec):
                await self.function_bundle(identification, spec)
            case ContainerImage(spec=spec):
                await self.container_image(identification, spec)
            case _:
                assert_never(task)

    async def container_image(
        self, identification: BuildIdentification, spec: ContainerImageBuildSpec
    ) -> None:
        credentials = await self.credentials.load()
        backend = self.backend or get_backend()
        tag = image_tag(credentials, identification.repository)

        password, login = build_login_commands(credentials, backend=backend)
        try:
            await self.pipe(password, login, self.cancel)
        except ProcessError as e:
            raise RegistryLoginError("failed to log into ecr") from e

        build = build_image_command(
            identification, spec, credentials, tag=tag, backend=backend
        )
        try:
            await self.run(build, self.cancel)
        except ProcessError as e:
            raise ImageBuildError(f"{backend} build failed") from e

        push = build_push_command(identification, tag=tag, backend=backend)
        try:
            await self.run(push, self.cancel)
        except ProcessError as e:
            raise ImagePushError(f"{backend} push failed") from e

    async def function_bundle(
        self, identification: BuildIdentification, spec: FunctionBundleBuildSpec
    ) -> None:
        runtime = spec.runtime_kind
        argv = spec.build_argv()
        credentials = await self.credentials.load()
        directory = identification.directory

        build = Process(
            argv[0],
            argv[1:],
            cwd=directory,
            env=credentials.environment(),
        )
        try:
            await self.run(build, self.cancel)
        except ProcessError as e:
            raise BundleBuildError(f'failed to run "{build.command_line}"') from e

        archive = directory / identification.archive_name
        match runtime:
            case Runtime.GO:
                await self._archive(archive, directory / OUTPUT_DIR)
            case Runtime.NODEJS:
                includes = [*spec.includes, DEPENDENCY_DIR] if spec.includes else None
                await self._archive(
                    archive, directory, includes=includes, excludes=spec.excludes
                )
            case _:
                assert_never(runtime)

        destination = (
            f"s3://{credentials.bucket}/{identification.repository}/{archive.name}"
        )
        upload = Process("aws", ("s3", "cp", str(archive), destination), cwd=directory)
        try:
            await self.run(upload, self.cancel)
        except ProcessError as e:
            raise UploadError("failed upload to S3") from e

    async def _archive(
        self,
        archive: Path,
        root: Path,
        *,
        includes: Sequence[str] | None = None,
        excludes: Sequence[str] | None = None,
    ) -> None:
        try:
            await self.archive(
                archive, root, includes=includes, excludes=excludes or None
            )
        except (OSError, ValueError, zipfile.BadZipFile) as e:
            raise ArchiveError("failed to create zip archive") from e
