from __future__ import annotations

import shutil
from typing import TYPE_CHECKING, Final

from ab_toolkit.credentials import INJECTED_VARS
from ab_toolkit.process import Process

from .exceptions import ContainerBackendError

if TYPE_CHECKING:
    from ab_toolkit.credentials import CredentialSet

    from .model import ContainerImageBuildSpec
    from .schema import BuildIdentification

BACKENDS: Final[tuple[str, ...]] = ("docker", "podman", "nerdctl")
REGISTRY_USERNAME: Final = "AWS"


def get_backend() -> str:
    """Detect available docker-compatible backend."""
    for backend in BACKENDS:
        if shutil.which(backend):
            return backend
    raise ContainerBackendError(
        f"No docker-compatible backend found ({', '.join(BACKENDS)})"
    )


def image_tag(credentials: CredentialSet, repository: str) -> str:
    return f"{credentials.registry}/{repository}"


def build_login_commands(
    credentials: CredentialSet, *, backend: str
) -> tuple[Process, Process]:
    """Return the password fetch and login commands, to be piped together."""
    password = Process(
        "aws",
        ("ecr", "get-login-password", "--region", credentials.region),
    )
    login = Process(
        backend,
        (
            "login",
            "--username",
            REGISTRY_USERNAME,
            "--password-stdin",
            credentials.registry,
        ),
    )
    return password, login


def build_image_command(
    identification: BuildIdentification,
    spec: ContainerImageBuildSpec,
    credentials: CredentialSet,
    *,
    tag: str,
    backend: str,
) -> Process:
    directory = identification.directory
    cmd = ["build"]

    # name-only build args take their values from the environment
    for name in INJECTED_VARS:
        cmd.extend(["--build-arg", name])

    cmd.extend(["--tag", tag])
    cmd.extend(["--file", str(directory / spec.dockerfile)])
    cmd.append(str(directory / spec.context))

    return Process(
        backend,
        cmd,
        cwd=directory,
        env=credentials.environment(),
    )


def build_push_command(
    identification: BuildIdentification, *, tag: str, backend: str
) -> Process:
    return Process(backend, ("push", tag), cwd=identification.directory)
