from __future__ import annotations

from .archive import ZipArchiver
from .exceptions import (
    ArchiveError,
    BuildError,
    BundleBuildError,
    ContainerBackendError,
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
    Triggers,
)
from .orchestrator import Builder
from .schema import BuildIdentification, BuildTask, ContainerImage, FunctionBundle

__all__ = [
    "ArchiveError",
    "BuildError",
    "BuildIdentification",
    "BuildTask",
    "BuildTaskSet",
    "Builder",
    "BundleBuildError",
    "ContainerBackendError",
    "ContainerImage",
    "ContainerImageBuildSpec",
    "FunctionBundle",
    "FunctionBundleBuildSpec",
    "ImageBuildError",
    "ImagePushError",
    "RegistryLoginError",
    "Runtime",
    "TaskFailedError",
    "Triggers",
    "UploadError",
    "ZipArchiver",
]
