"""
Temporary file management for pipeline runs.

Each run gets a private directory under a writable base, and every path
handed out is registered so it can be removed when the run ends, whether
the run succeeded, failed in a stage, or blew up unexpectedly.

Filenames are timestamp-based with a short random suffix. That makes a
same-millisecond collision unlikely but not impossible; the per-run
directory is what actually keeps concurrent runs apart.
"""

import logging
import os
import secrets
import tempfile
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


SERVERLESS_TEMP_BASE = "/tmp"


def resolve_temp_base(deployment_environment: str) -> str:
    """
    Pick the base directory for working files.

    Serverless images only allow writes under /tmp; elsewhere we follow
    the platform's temp dir (which honours TMPDIR).
    """
    if deployment_environment == "serverless":
        return SERVERLESS_TEMP_BASE
    return tempfile.gettempdir()


def _timestamp_ms() -> int:
    return int(time.time() * 1000)


class WorkingSet:
    """
    The temp paths allocated for one pipeline run.

    Paths are only registered, never created; stages write to them.
    teardown() is idempotent.
    """

    def __init__(self, directory: Path) -> None:
        self.directory = directory
        self._paths: list[Path] = []
        self._torn_down = False

    @property
    def paths(self) -> list[Path]:
        return list(self._paths)

    def allocate(self, prefix: str, suffix: str = ".mp4") -> str:
        """Reserve a path like input_1718000000000_a1b2.mp4 in the run directory."""
        name = f"{prefix}_{_timestamp_ms()}_{secrets.token_hex(2)}{suffix}"
        path = self.directory / name
        self._paths.append(path)
        return str(path)

    def adopt(self, path: str) -> str:
        """Register a path created elsewhere (e.g. a renamed upload copy)."""
        self._paths.append(Path(path))
        return path

    def teardown(self) -> int:
        """
        Remove every allocated path and the run directory.

        Missing files are fine. Returns how many files were actually removed.
        """
        if self._torn_down:
            return 0
        self._torn_down = True

        removed = 0
        for path in self._paths:
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(
                    "Failed to remove temp file",
                    extra={"path": str(path), "error": str(e)}
                )

        # Strategies may leave side files (.part, .ytdl) next to their target
        if self.directory.exists():
            for leftover in self.directory.iterdir():
                try:
                    leftover.unlink()
                    removed += 1
                except OSError as e:
                    logger.warning(
                        "Failed to remove leftover temp file",
                        extra={"path": str(leftover), "error": str(e)}
                    )
            try:
                self.directory.rmdir()
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(
                    "Failed to remove run directory",
                    extra={"path": str(self.directory), "error": str(e)}
                )

        logger.debug(
            "Working set torn down",
            extra={"directory": str(self.directory), "removed": removed}
        )
        return removed


class TempResourceManager:
    """
    Hands out working sets under one base directory.

    Holds no per-run state, so one instance is shared across concurrent
    requests.
    """

    def __init__(self, base_dir: Optional[str] = None) -> None:
        self._base_dir = Path(base_dir or tempfile.gettempdir())

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def verify_writable(self) -> None:
        """Fail fast with a configuration error if we can't write to the base."""
        if not self._base_dir.is_dir():
            raise ConfigurationError(f"Temp directory does not exist: {self._base_dir}")
        if not os.access(self._base_dir, os.W_OK | os.X_OK):
            raise ConfigurationError(f"Temp directory is not writable: {self._base_dir}")

    def create(self) -> WorkingSet:
        self.verify_writable()
        name = f"clip_{_timestamp_ms()}_{secrets.token_hex(4)}"
        directory = self._base_dir / name
        try:
            directory.mkdir()
        except OSError as e:
            raise ConfigurationError(f"Cannot create run directory {directory}: {e}") from e
        return WorkingSet(directory)

    @contextmanager
    def open(self) -> Iterator[WorkingSet]:
        """
        Provide a working set with guaranteed cleanup.

        Usage:
            with manager.open() as working_set:
                path = working_set.allocate("input")
                ...
        """
        working_set = self.create()
        try:
            yield working_set
        finally:
            working_set.teardown()
