"""Request orchestration: workspace -> prover -> harvest -> teardown."""

import uuid
from typing import Optional

from .config import RunnerConfig
from .errors import ExecutionStartError
from .executor import BoundedExecutor
from .harvester import ArtifactHarvester
from .logs import StructuredLogger
from .types import JobRequest, JobResult
from .workspace import WorkspaceManager


def generate_job_id(prefix: str = "job") -> str:
    """Generate a unique ID with prefix."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class JobOrchestrator:
    """Runs one job request end to end.

    Fatal steps (workspace creation, input writes, launch failure, bad summary)
    raise a RunnerError. A timeout is not fatal: the workspace is still
    harvested and the result carries the timeout flag. The workspace is
    removed on every exit path.
    """

    def __init__(
        self,
        config: RunnerConfig,
        logger: StructuredLogger,
        workspaces: Optional[WorkspaceManager] = None,
        executor: Optional[BoundedExecutor] = None,
        harvester: Optional[ArtifactHarvester] = None,
    ):
        self.config = config
        self.logger = logger
        self.workspaces = workspaces or WorkspaceManager(config.workspace_root, logger)
        self.executor = executor or BoundedExecutor(config.kill_grace_seconds)
        self.harvester = harvester or ArtifactHarvester(config.file_grouping, config.result_fields)

    def run(self, request: JobRequest, job_id: Optional[str] = None) -> JobResult:
        job_id = job_id or generate_job_id()
        log = self.logger.bind(job_id=job_id)
        log.info(
            "Request parsed",
            timeout_s=request.timeout_seconds,
            trace=request.trace,
            formula_len=len(request.formula),
        )

        binary = self.config.resolve_binary(request.trace)

        with self.workspaces.create(job_id, logger=log) as workspace:
            workspace.write_inputs(request)

            outcome = self.executor.run(
                workspace,
                binary,
                self.config.extra_args,
                timeout=request.timeout_seconds,
            )
            if not outcome.launched:
                raise ExecutionStartError(
                    f"Failed to start prover: {outcome.start_error}",
                    binary=str(binary),
                    job_id=job_id,
                )

            result = self.harvester.collect(workspace, outcome)

        log.info("Request completed", timed_out=outcome.timed_out, file_groups=len(result.files))
        return result
