from __future__ import annotations

from collections.abc import Iterator
from enum import StrEnum
from typing import TYPE_CHECKING, Final

from pydantic import BaseModel, ConfigDict, Field

from ab_toolkit.config.exceptions import ConfigurationError

from .schema import ContainerImage, FunctionBundle

if TYPE_CHECKING:
    from .schema import BuildTask


class Runtime(StrEnum):
    """Managed function runtimes that bundles can be built for."""

    GO = "go1.x"
    """Bundle the contents of the `dist` directory."""

    NODEJS = "nodejs14.x"
    """Bundle the source directory, always keeping `node_modules`."""


DEFAULT_BUILD_COMMANDS: Final[dict[Runtime, str]] = {
    Runtime.GO: "make build",
    Runtime.NODEJS: "npm ci",
}


class Triggers(BaseModel):
    """Branches and commit-message keywords that should start a build."""

    model_config = ConfigDict(frozen=True)

    branches: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)

    @classmethod
    def default(cls) -> Triggers:
        return cls(keywords=["[build]"])

    def matches(self, branch: str, message: str) -> bool:
        if branch in self.branches:
            return True
        return any(keyword in message for keyword in self.keywords)


class ContainerImageBuildSpec(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    dockerfile: str = "Dockerfile"
    """Path to the Dockerfile, relative to the source directory."""

    context: str = "."
    """Build context, relative to the source directory."""

    triggers: Triggers = Field(default_factory=Triggers.default)


class FunctionBundleBuildSpec(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    runtime: str = Runtime.GO.value
    """
    Runtime identifier. Kept as a plain string so an unsupported value is
    reported when the bundle is built rather than when the file is read.
    """

    command: str | list[str] | None = Field(default=None, alias="cmd")
    """
    Build command. A string is split on whitespace with no quoting support;
    a list is used as the argument vector as-is. Defaults per runtime.
    """

    includes: list[str] | None = None
    excludes: list[str] | None = None
    triggers: Triggers = Field(default_factory=Triggers.default)

    @property
    def runtime_kind(self) -> Runtime:
        try:
            return Runtime(self.runtime)
        except ValueError as e:
            raise ConfigurationError(f"unknown runtime {self.runtime}") from e

    def build_argv(self) -> list[str]:
        command = self.command
        if command is None:
            command = DEFAULT_BUILD_COMMANDS[self.runtime_kind]

        argv = command.split() if isinstance(command, str) else list(command)
        if not argv:
            raise ConfigurationError("build command is empty")
        return argv


class BuildTaskSet(BaseModel):
    """All builds configured for a repository, as read from `builds.yaml`."""

    model_config = ConfigDict(populate_by_name=True)

    docker_images: list[ContainerImageBuildSpec] = Field(
        default_factory=list, alias="docker-images"
    )
    lambda_bundles: list[FunctionBundleBuildSpec] = Field(
        default_factory=list, alias="lambda-bundles"
    )

    def tasks(self) -> Iterator[BuildTask]:
        """Yield tasks in execution order: every bundle, then every image."""
        for index, bundle in enumerate(self.lambda_bundles):
            yield FunctionBundle(index=index, spec=bundle)
        for index, image in enumerate(self.docker_images):
            yield ContainerImage(index=index, spec=image)

    def __len__(self) -> int:
        return len(self.lambda_bundles) + len(self.docker_images)
