from __future__ import annotations


class BuildError(Exception):
    """Base exception for the build module."""


class ContainerBackendError(BuildError):
    """Raised when no docker-compatible container CLI is installed."""


class RegistryLoginError(BuildError):
    """Raised when logging into the container registry fails."""


class ImageBuildError(BuildError):
    """Raised when a container image build fails."""


class ImagePushError(BuildError):
    """Raised when pushing a container image fails."""


class BundleBuildError(BuildError):
    """Raised when a function bundle's build command fails."""


class ArchiveError(BuildError):
    """Raised when a function bundle archive cannot be created."""


class UploadError(BuildError):
    """Raised when uploading a function bundle archive fails."""


class TaskFailedError(BuildError):
    """Raised by the orchestrator for the first build task that failed."""

    def __init__(self, kind: str, index: int) -> None:
        super().__init__(f"build failed for {kind} {index}")
        self.kind = kind
        self.index = index
