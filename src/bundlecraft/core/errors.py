"""Bundlecraft error types and utilities."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path


def atomic_write(path: Path, content: str) -> None:
    """Write content to a file atomically using temp file + rename.

    Writes to a temporary file in the same directory, fsyncs it,
    then atomically replaces the target path.
    """
    fd, tmp = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        os.write(fd, content.encode())
        os.fsync(fd)
        os.close(fd)
        os.replace(tmp, str(path))
    except BaseException:
        os.close(fd)
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


class BundlecraftError(Exception):
    """Base exception for Bundlecraft."""

    pass


class AssemblyError(BundlecraftError):
    """Error raised inside the assembly pipeline."""

    pass


class CatalogMissingError(AssemblyError):
    """Catalog context is absent but declared steps need it for matching.

    Raised by the step builder and always caught by the decision engine,
    which turns it into the MANUAL abort path.
    """

    def __init__(self, hint_count: int):
        self.hint_count = hint_count
        super().__init__(
            f"Catalog context is missing but {hint_count} collection hint(s) need matching"
        )


class ConfigError(BundlecraftError):
    """Invalid assembly configuration value."""

    pass


class CaseFileError(BundlecraftError):
    """A case file could not be read or has the wrong shape."""

    pass
