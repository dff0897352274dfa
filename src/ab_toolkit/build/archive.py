from __future__ import annotations

import zipfile
from collections.abc import Sequence
from fnmatch import fnmatch
from functools import partial
from pathlib import Path
from typing import Final

from anyio import to_thread
from attrs import frozen
from loguru import logger

OUTPUT_DIR: Final = "dist"
DEPENDENCY_DIR: Final = "node_modules"
SKIPPED_DIRS: Final[tuple[str, ...]] = (".git",)


def _matches(path: str, patterns: Sequence[str]) -> bool:
    for pattern in patterns:
        prefix = pattern.rstrip("/")
        if path == prefix or path.startswith(f"{prefix}/") or fnmatch(path, pattern):
            return True
    return False


def collect_files(
    root: Path,
    *,
    includes: Sequence[str] | None = None,
    excludes: Sequence[str] | None = None,
    skip: Path | None = None,
) -> list[str]:
    """
    List files under `root` as sorted posix paths relative to `root`.

    A pattern matches a path when it names the path itself, one of its parent
    directories, or matches it as an `fnmatch` glob.
    """
    if not root.is_dir():
        raise NotADirectoryError(f"archive root {root} is not a directory")

    skip = skip.resolve() if skip else None
    files: list[str] = []
    for path in root.rglob("*"):
        if not path.is_file() or path.resolve() == skip:
            continue
        relative = path.relative_to(root).as_posix()
        if _matches(relative, SKIPPED_DIRS):
            continue
        if includes and not _matches(relative, includes):
            continue
        if excludes and _matches(relative, excludes):
            continue
        files.append(relative)

    return sorted(files)


def write_zip(
    archive: Path,
    root: Path,
    *,
    includes: Sequence[str] | None = None,
    excludes: Sequence[str] | None = None,
    compression: int = zipfile.ZIP_DEFLATED,
) -> int:
    files = collect_files(root, includes=includes, excludes=excludes, skip=archive)
    try:
        # pre-1980 mtimes are clamped instead of rejected
        with zipfile.ZipFile(
            archive, "w", compression=compression, strict_timestamps=False
        ) as zf:
            for relative in files:
                zf.write(root / relative, arcname=relative)
    except Exception:
        archive.unlink(missing_ok=True)
        raise
    return len(files)


@frozen
class ZipArchiver:
    """Writes bundle archives with `zipfile` in a worker thread."""

    compression: int = zipfile.ZIP_DEFLATED

    async def __call__(
        self,
        archive: Path,
        root: Path,
        *,
        includes: Sequence[str] | None = None,
        excludes: Sequence[str] | None = None,
    ) -> None:
        logger.info("Archiving {} into {}", root, archive.name)
        count = await to_thread.run_sync(
            partial(
                write_zip,
                archive,
                root,
                includes=includes,
                excludes=excludes,
                compression=self.compression,
            )
        )
        logger.debug("Wrote {} files to {}", count, archive)
