"""Runner configuration.

Resolved once at startup from environment variables and passed explicitly
to the orchestrator. Deployment variants (tracing builds, Windows builds,
flat vs. extension-grouped files) are all decided here.
"""

import os
import shlex
import sys
from pathlib import Path
from typing import List, Mapping, Optional

from pydantic import BaseModel, Field

from .types import FileGrouping, ResultFieldPolicy

BINARY_NAME = "prover"


class RunnerConfig(BaseModel):
    """Configuration for the job pipeline."""
    bin_dir: Path = Field(default=Path("bin"), description="Directory holding prover builds")
    workspace_root: Path = Field(default=Path("."), description="Parent of per-request workspaces")
    file_grouping: FileGrouping = FileGrouping.EXTENSION
    result_fields: ResultFieldPolicy = ResultFieldPolicy.LENIENT
    kill_grace_ms: int = Field(default=500, ge=0, description="SIGTERM to SIGKILL delay on timeout")
    extra_args: List[str] = Field(default_factory=list, description="Flags passed before --out")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RunnerConfig":
        """Build config from PROVER_* environment variables."""
        env = os.environ if environ is None else environ
        return cls(
            bin_dir=Path(env.get("PROVER_BIN_DIR", "bin")),
            workspace_root=Path(env.get("PROVER_WORKSPACE_ROOT", ".")),
            file_grouping=FileGrouping(env.get("PROVER_FILE_GROUPING", FileGrouping.EXTENSION.value)),
            result_fields=ResultFieldPolicy(env.get("PROVER_RESULT_FIELDS", ResultFieldPolicy.LENIENT.value)),
            kill_grace_ms=int(env.get("PROVER_KILL_GRACE_MS", "500")),
            extra_args=shlex.split(env.get("PROVER_EXTRA_ARGS", "")),
        )

    @property
    def kill_grace_seconds(self) -> float:
        return self.kill_grace_ms / 1000

    def resolve_binary(self, trace: bool, platform: Optional[str] = None) -> Path:
        """Pick the prover build for the request flags and host OS.

        prover, prover-trace, prover-windows.exe, prover-trace-windows.exe
        """
        platform = sys.platform if platform is None else platform
        name = BINARY_NAME
        if trace:
            name += "-trace"
        if platform.startswith("win"):
            name += "-windows.exe"
        return self.bin_dir / name
