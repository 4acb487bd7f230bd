"""Prover runner type definitions (Pydantic models).

Defines the job request accepted over HTTP, the outcome of one prover
execution, and the harvested job result. All structures are
JSON-serializable so they can be logged and returned as-is.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictBool, StrictInt


class FileGrouping(str, Enum):
    """How harvested output files are keyed in the result."""
    FLAT = "flat"            # filename -> content
    EXTENSION = "extension"  # extension -> base name -> content


class ResultFieldPolicy(str, Enum):
    """When `stdout` and `timed_out` are added to the summary."""
    LENIENT = "lenient"  # only when non-empty / true
    STRICT = "strict"    # always


class JobRequest(BaseModel):
    """A single prover job. Immutable once accepted."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    formula: str = Field(..., min_length=1, description="Formula to prove")
    options: Dict[str, Any] = Field(..., description="Prover options, written as options.json")
    timeout_seconds: StrictInt = Field(
        ...,
        ge=1,
        le=10,
        validation_alias=AliasChoices("timeout_seconds", "timeout"),
        description="Wall-clock budget for the prover run",
    )
    trace: StrictBool = Field(default=False, description="Run the tracing prover build")


class ExecutionOutcome(BaseModel):
    """What happened when the prover binary was run."""
    exited_normally: bool = False
    timed_out: bool = False
    captured_output: str = ""
    return_code: Optional[int] = None
    start_error: Optional[str] = None
    duration_s: float = 0.0

    @property
    def launched(self) -> bool:
        return self.start_error is None


class JobResult(BaseModel):
    """Harvested result returned to the caller."""
    summary: Dict[str, Any] = Field(default_factory=dict)
    files: Dict[str, Any] = Field(default_factory=dict)
