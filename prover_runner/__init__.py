"""Prover runner - request-scoped theorem prover execution.

Materializes a job into a private workspace, runs the prover binary under a
wall-clock budget and harvests whatever it wrote, even after a timeout.
"""

from .types import JobRequest, JobResult, ExecutionOutcome, FileGrouping, ResultFieldPolicy
from .errors import RunnerError, ResourceError, SummaryError, ExecutionStartError
from .config import RunnerConfig
from .logs import StructuredLogger
from .workspace import Workspace, WorkspaceManager, FORMULA_FILE, OPTIONS_FILE, SUMMARY_FILE
from .executor import BoundedExecutor, terminate_process_tree
from .harvester import ArtifactHarvester, split_filename
from .orchestrator import JobOrchestrator, generate_job_id

__version__ = "1.0.0"

__all__ = [
    "JobRequest",
    "JobResult",
    "ExecutionOutcome",
    "FileGrouping",
    "ResultFieldPolicy",
    "RunnerError",
    "ResourceError",
    "SummaryError",
    "ExecutionStartError",
    "RunnerConfig",
    "StructuredLogger",
    "Workspace",
    "WorkspaceManager",
    "FORMULA_FILE",
    "OPTIONS_FILE",
    "SUMMARY_FILE",
    "BoundedExecutor",
    "terminate_process_tree",
    "ArtifactHarvester",
    "split_filename",
    "JobOrchestrator",
    "generate_job_id",
]
