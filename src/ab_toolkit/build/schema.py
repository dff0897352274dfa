from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, ClassVar

from attrs import field, frozen

if TYPE_CHECKING:
    from .model import ContainerImageBuildSpec, FunctionBundleBuildSpec


@frozen
class BuildIdentification:
    """Identifies one build run: a repository at a commit, checked out locally."""

    repository: str
    commit: str
    directory: Path = field(converter=Path)

    @property
    def archive_name(self) -> str:
        return f"{self.commit}.zip"


@frozen
class FunctionBundle:
    kind: ClassVar[str] = "function bundle"

    index: int
    spec: FunctionBundleBuildSpec


@frozen
class ContainerImage:
    kind: ClassVar[str] = "container image"

    index: int
    spec: ContainerImageBuildSpec


type BuildTask = FunctionBundle | ContainerImage
