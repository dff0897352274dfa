from __future__ import annotations

import shutil
from datetime import timedelta
from pathlib import Path
from typing import Final

from anyio import to_thread
from botocore.exceptions import BotoCoreError
from cyclopts import App
from cyclopts.config import Env
from loguru import logger

from ab_toolkit.build import (
    BuildError,
    Builder,
    BuildIdentification,
    BuildTaskSet,
    ContainerImage,
    ContainerImageBuildSpec,
    FunctionBundle,
    FunctionBundleBuildSpec,
    Runtime,
)
from ab_toolkit.config import ConfigurationError
from ab_toolkit.config.io import BUILDS_FILE, read_builds, write_builds
from ab_toolkit.credentials import CredentialError, CredentialLoader
from ab_toolkit.logging import setup_logging
from ab_toolkit.process import CancelSignal, ProcessError
from ab_toolkit.source import GitHubSource, SourceError
from ab_toolkit.utils.prerequisites import PrerequisiteError, check_prerequisites

ENV_PREFIX: Final = "AB_TOOLKIT_"
RUN_ERRORS: Final = (
    BotoCoreError,
    BuildError,
    ConfigurationError,
    CredentialError,
    PrerequisiteError,
    ProcessError,
    SourceError,
)

app = App(
    name="ab-toolkit",
    help="Tools for interacting with aws-basics systems.",
    config=Env(ENV_PREFIX, command=False),
)

# Build subcommands
build_app = App(
    name="build",
    help="Tools for building artifacts to deploy on AWS.",
    config=Env(ENV_PREFIX, command=False),
)
app.command(build_app)


def describe_error(error: BaseException) -> str:
    """Join the messages of an exception and its chained causes."""
    parts: list[str] = []
    current: BaseException | None = error
    while current is not None:
        parts.append(str(current) or type(current).__name__)
        current = current.__cause__
    return ": ".join(parts)


async def remove_checkout(directory: Path) -> None:
    def warn(function, path, error: BaseException) -> None:
        logger.warning("Could not remove {}: {}", path, error)

    logger.debug("Removing checkout {}", directory)
    await to_thread.run_sync(lambda: shutil.rmtree(directory, onexc=warn))


@build_app.command(name="run")
async def run_builds(
    repository: str,
    commit: str,
    *,
    timeout: float | None = None,
    profile: str | None = None,
    region: str | None = None,
    workdir: Path | None = None,
    keep: bool = False,
    log_level: str = "INFO",
) -> None:
    """
    Run all builds defined by a repository's builds.yaml file.

    Triggers defined in builds.yaml are not consulted.

    Parameters
    ----------
    repository
        GitHub repository as owner/name.
    commit
        Commit SHA to build.
    timeout
        Seconds after which every running command is killed.
    profile
        AWS profile to use instead of the default credential chain.
    region
        AWS region; defaults to the profile's region.
    workdir
        Parent directory for the checkout; defaults to the system temp dir.
    keep
        Leave the checkout in place instead of removing it after the builds.
    log_level
        Minimum log level.
    """
    setup_logging(log_level)

    try:
        await check_prerequisites()
        cancel = CancelSignal.after(timedelta(seconds=timeout)) if timeout else None

        source = GitHubSource.from_session(
            profile=profile, region=region, cancel=cancel
        )
        directory = await source.clone(repository, commit, parent=workdir)
        try:
            builds = read_builds(directory)
            builder = Builder(
                credentials=CredentialLoader.from_session(
                    profile=profile, region=region
                ),
                cancel=cancel,
            )
            await builder.build_all(
                BuildIdentification(repository, commit, directory), builds
            )
        finally:
            if not keep:
                await remove_checkout(directory)
    except RUN_ERRORS as e:
        logger.error(describe_error(e))
        raise SystemExit(1) from e

    logger.info("All builds for {}@{} succeeded", repository, commit)


@build_app.command
async def check(*, log_level: str = "INFO") -> None:
    """Check that the command line tools builds rely on are installed."""
    setup_logging(log_level)

    try:
        await check_prerequisites()
    except PrerequisiteError as e:
        logger.error(describe_error(e))
        raise SystemExit(1) from e

    logger.info("All prerequisites are available")


@build_app.command
def show(directory: Path = Path()) -> None:
    """Print the builds configured in a directory, in execution order."""
    try:
        for task in read_builds(directory).tasks():
            match task:
                case FunctionBundle(spec=spec):
                    detail = f"{spec.runtime} ({' '.join(spec.build_argv())})"
                case ContainerImage(spec=spec):
                    detail = f"{spec.dockerfile} in {spec.context}"
            print(f"{task.kind} {task.index}: {detail}")
    except ConfigurationError as e:
        raise SystemExit(describe_error(e)) from e


@build_app.command
def init(
    directory: Path = Path(),
    *,
    image: bool = False,
    bundle: Runtime | None = None,
    replace: bool = False,
) -> None:
    """
    Add default builds to a directory's builds.yaml.

    Parameters
    ----------
    directory
        Repository root holding builds.yaml.
    image
        Add a container image build using ./Dockerfile.
    bundle
        Add a function bundle build for this runtime.
    replace
        Overwrite an existing builds.yaml instead of appending to it.
    """
    updates = BuildTaskSet()
    if bundle is not None:
        updates.lambda_bundles.append(FunctionBundleBuildSpec(runtime=bundle.value))
    if image:
        updates.docker_images.append(ContainerImageBuildSpec())
    if not len(updates):
        raise SystemExit("Nothing to add, pass --image and/or --bundle.")

    if not replace and (directory / BUILDS_FILE).exists():
        try:
            existing = read_builds(directory)
        except ConfigurationError as e:
            raise SystemExit(describe_error(e)) from e
        updates = BuildTaskSet(
            docker_images=[*existing.docker_images, *updates.docker_images],
            lambda_bundles=[*existing.lambda_bundles, *updates.lambda_bundles],
        )

    path = write_builds(directory, updates)
    print(f"Wrote {path}")


def main() -> None:
    app()
