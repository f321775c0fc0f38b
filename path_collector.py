#!/usr/bin/env python3
"""Directory walker that discovers the source images for a run."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, Optional, Union

from gif_errors import WalkError

DEFAULT_EXTENSIONS = ("jpg", "jpeg")

log = logging.getLogger("giffer")


def _normalize_extensions(extensions: Iterable[str]) -> frozenset[str]:
    return frozenset(ext.lower().lstrip(".") for ext in extensions)


def _extension(name: str) -> str:
    _, dot, ext = name.rpartition(".")
    return ext.lower() if dot else ""


def _walk(directory: Path, wanted: frozenset[str], found: list[Path], logger: logging.Logger) -> None:
    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as exc:
        logger.warning("Skipping unreadable directory %s: %s", directory, exc)
        return

    for entry in entries:
        path = Path(entry.path)
        try:
            is_dir = entry.is_dir(follow_symlinks=False)
        except OSError as exc:
            logger.warning("Skipping %s: %s", path, exc)
            continue

        if is_dir:
            logger.debug("Descending into %s", path)
            _walk(path, wanted, found, logger)
            continue

        if _extension(entry.name) not in wanted:
            logger.debug("Skipping non-matching file %s", path)
            continue

        logger.debug("Found file %s", path)
        found.append(path)


def collect(
    root: Union[str, Path],
    extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    logger: Optional[logging.Logger] = None,
) -> list[Path]:
    """
    Return every file under ``root`` whose extension is in ``extensions``.

    Entries are visited depth-first in lexical name order, descending into a
    subdirectory at the point where its name sorts. The returned order is the
    frame order of the animation.

    Raises:
        WalkError: if ``root`` does not exist, is not a directory, or cannot
            be listed. Unreadable subdirectories below the root are logged
            and skipped.
    """
    logger = logger or log
    root_path = Path(root).expanduser()

    if not root_path.exists():
        raise WalkError(f"Root directory not found: {root_path}")
    if not root_path.is_dir():
        raise WalkError(f"Root is not a directory: {root_path}")
    try:
        os.scandir(root_path).close()
    except OSError as exc:
        raise WalkError(f"Cannot read root directory {root_path}: {exc}") from exc

    found: list[Path] = []
    _walk(root_path, _normalize_extensions(extensions), found, logger)
    return found
