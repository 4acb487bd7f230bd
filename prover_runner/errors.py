"""
prover_runner/errors.py

Runner errors raised by the job pipeline.
All errors carry structured data for logging and for the HTTP error body.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class RunnerError(Exception):
    """Base class for fatal pipeline errors."""
    message: str
    error_code: str
    job_id: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "job_id": self.job_id,
            "context": self.context,
        }

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


@dataclass
class ResourceError(RunnerError):
    """Workspace could not be created, written or listed."""

    def __init__(self, message: str, error_code: str = "RESOURCE_ERROR", **kwargs):
        super().__init__(message=message, error_code=error_code, **kwargs)


@dataclass
class SummaryError(ResourceError):
    """The prover's result summary is missing or unparseable."""
    path: Optional[str] = None

    def __init__(self, message: str, path: Optional[str] = None, **kwargs):
        super().__init__(message=message, error_code="SUMMARY_INVALID", **kwargs)
        self.path = path


@dataclass
class ExecutionStartError(RunnerError):
    """The prover binary could not be launched."""
    binary: Optional[str] = None

    def __init__(self, message: str, binary: Optional[str] = None, **kwargs):
        super().__init__(message=message, error_code="LAUNCH_FAILED", **kwargs)
        self.binary = binary

    def to_dict(self) -> Dict[str, Any]:
        base = super().to_dict()
        base["binary"] = self.binary
        return base
