"""Reading and writing a repository's `builds.yaml`."""

from __future__ import annotations

from pathlib import Path
from typing import Final

import yaml
from loguru import logger
from pydantic import ValidationError

from ab_toolkit.build.model import BuildTaskSet

from .exceptions import ConfigurationError

BUILDS_FILE: Final = "builds.yaml"


def read_builds(directory: Path) -> BuildTaskSet:
    """
    Parse the `builds.yaml` file in `directory`.

    Raises:
        ConfigurationError: The file is missing or cannot be parsed.
    """
    path = directory / BUILDS_FILE
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise ConfigurationError(f"{directory} does not contain {BUILDS_FILE}") from e
    except OSError as e:
        raise ConfigurationError(f"failed to read {path}") from e

    try:
        data = yaml.safe_load(content) or {}
        builds = BuildTaskSet.model_validate(data)
    except (yaml.YAMLError, ValidationError) as e:
        raise ConfigurationError(f"failed to parse {BUILDS_FILE}") from e

    logger.debug(
        "Loaded {} bundle and {} image builds from {}",
        len(builds.lambda_bundles),
        len(builds.docker_images),
        path,
    )
    return builds


def write_builds(directory: Path, builds: BuildTaskSet) -> Path:
    """Serialize `builds` to `builds.yaml` in `directory`, replacing it."""
    path = directory / BUILDS_FILE
    data = builds.model_dump(by_alias=True, exclude_none=True)
    path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    return path
