"""Per-request workspace directories.

Each job gets its own directory under the workspace root. The directory is
the isolation boundary between concurrent requests, so nothing here takes a
lock. Inputs are written owner-read-only before the prover starts, and the
whole directory is removed when the request ends, whatever the outcome.
"""

import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional, Union

from .errors import ResourceError
from .logs import StructuredLogger
from .types import JobRequest

# File names shared with the prover binary
FORMULA_FILE = "formula.txt"
OPTIONS_FILE = "options.json"
SUMMARY_FILE = "result.yaml"

CONTRACT_FILES = frozenset({FORMULA_FILE, OPTIONS_FILE, SUMMARY_FILE})

WORKSPACE_PREFIX = "tmp-"
RESTRICTIVE_MODE = 0o400
PERMISSIVE_MODE = 0o600


class Workspace:
    """A request-private directory. Use as a context manager."""

    def __init__(self, path: Path, logger: StructuredLogger, job_id: Optional[str] = None):
        self.path = path
        self.job_id = job_id
        self.logger = logger
        self._destroyed = False

    @property
    def name(self) -> str:
        return self.path.name

    def __enter__(self) -> "Workspace":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.destroy()

    def write_input(self, name: str, data: Union[str, bytes], restrictive: bool = True) -> Path:
        """Create *name* inside the workspace. Never overwrites."""
        if not name or name in (".", "..") or os.sep in name or (os.altsep and os.altsep in name):
            raise ResourceError(
                f"Invalid input file name: {name!r}",
                error_code="WORKSPACE_WRITE_FAILED",
                job_id=self.job_id,
            )
        if isinstance(data, str):
            data = data.encode("utf-8")

        target = self.path / name
        mode = RESTRICTIVE_MODE if restrictive else PERMISSIVE_MODE
        try:
            fd = os.open(target, os.O_WRONLY | os.O_CREAT | os.O_EXCL, mode)
            with os.fdopen(fd, "wb") as f:
                f.write(data)
        except OSError as e:
            raise ResourceError(
                f"Failed to write {name}: {e}",
                error_code="WORKSPACE_WRITE_FAILED",
                job_id=self.job_id,
                context={"workspace": self.name},
            ) from e
        return target

    def write_inputs(self, request: JobRequest) -> None:
        """Write the formula and options files the prover reads."""
        try:
            options = json.dumps(request.options, indent=2)
        except (TypeError, ValueError) as e:
            raise ResourceError(
                f"Options are not JSON serializable: {e}",
                error_code="WORKSPACE_WRITE_FAILED",
                job_id=self.job_id,
            ) from e
        self.write_input(FORMULA_FILE, request.formula)
        self.write_input(OPTIONS_FILE, options)

    def list_entries(self) -> List[Path]:
        """Entries in the workspace, sorted by name."""
        try:
            return sorted(self.path.iterdir(), key=lambda p: p.name)
        except OSError as e:
            raise ResourceError(
                f"Failed to list workspace: {e}",
                error_code="WORKSPACE_LIST_FAILED",
                job_id=self.job_id,
                context={"workspace": self.name},
            ) from e

    def destroy(self) -> None:
        """Remove the workspace. Failures are logged, never raised."""
        if self._destroyed:
            return
        self._destroyed = True
        try:
            shutil.rmtree(self.path)
        except OSError as e:
            self.logger.error("Failed to clean up workspace", workspace=self.name, error=str(e))
        else:
            self.logger.info("Cleaned up workspace", workspace=self.name)


class WorkspaceManager:
    """Allocates uniquely named workspaces under a shared root."""

    def __init__(self, root: Union[str, Path], logger: StructuredLogger):
        self.root = Path(root)
        self.logger = logger

    def create(self, job_id: Optional[str] = None, logger: Optional[StructuredLogger] = None) -> Workspace:
        """Create a fresh 0700 directory with a random name.

        *logger* (usually bound to the job id) is used for the workspace's own
        log lines and by the executor and harvester working on it.
        """
        logger = (logger or self.logger).bind(job_id=job_id)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            path = Path(tempfile.mkdtemp(prefix=WORKSPACE_PREFIX, dir=self.root))
        except OSError as e:
            raise ResourceError(
                f"Failed to create workspace under {self.root}: {e}",
                error_code="WORKSPACE_CREATE_FAILED",
                job_id=job_id,
            ) from e
        logger.info("Created workspace", workspace=path.name)
        return Workspace(path, logger, job_id=job_id)
