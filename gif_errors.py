#!/usr/bin/env python3
"""Error taxonomy for giffer runs."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union


class GifferError(Exception):
    """Base class for every failure the CLI reports to the user."""


class WalkError(GifferError):
    """The root directory cannot be traversed."""


class NoInputError(GifferError):
    """No eligible image files were found under the root."""


class FrameError(GifferError):
    """A single source file could not be turned into a frame."""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        super().__init__(message)
        self.path = Path(path) if path is not None else None


class OpenError(FrameError):
    """The source file could not be opened for reading."""


class DecodeError(FrameError):
    """The source bytes are not a decodable JPEG."""


class EncodeError(GifferError):
    """The animated GIF could not be built or written."""


class OutputExistsError(EncodeError):
    """The output destination already exists and will not be overwritten."""


class ConfigError(GifferError):
    """The configuration file is missing or malformed."""
