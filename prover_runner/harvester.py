"""Artifact harvesting.

After the prover has finished, timed out or failed, read the summary it must
always write and gather every other non-empty file it left in the workspace.
A missing or malformed summary is fatal; an unreadable individual output file
is logged and skipped.
"""

from typing import Any, Dict, Tuple

import yaml

from .errors import SummaryError
from .types import ExecutionOutcome, FileGrouping, JobResult, ResultFieldPolicy
from .workspace import CONTRACT_FILES, SUMMARY_FILE, Workspace

STDOUT_KEY = "stdout"
TIMED_OUT_KEY = "timed_out"


def split_filename(filename: str) -> Tuple[str, str]:
    """Split at the first dot: 'proof.log' -> ('proof', 'log').

    'a.b.c' -> ('a', 'b.c'); 'README' -> ('README', '').
    """
    base, _, ext = filename.partition(".")
    return base, ext


class ArtifactHarvester:
    """Builds a JobResult from a workspace and an execution outcome."""

    def __init__(
        self,
        grouping: FileGrouping = FileGrouping.EXTENSION,
        field_policy: ResultFieldPolicy = ResultFieldPolicy.LENIENT,
    ):
        self.grouping = grouping
        self.field_policy = field_policy

    def collect(self, workspace: Workspace, outcome: ExecutionOutcome) -> JobResult:
        summary = self.read_summary(workspace)
        self.augment(summary, outcome)
        return JobResult(summary=summary, files=self.collect_files(workspace))

    def read_summary(self, workspace: Workspace) -> Dict[str, Any]:
        path = workspace.path / SUMMARY_FILE
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise SummaryError(
                f"Failed to read {SUMMARY_FILE}: {e}", path=str(path), job_id=workspace.job_id
            ) from e

        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise SummaryError(
                f"Failed to parse {SUMMARY_FILE}: {e}", path=str(path), job_id=workspace.job_id
            ) from e

        if not isinstance(data, dict):
            raise SummaryError(
                f"{SUMMARY_FILE} must be a mapping, got {type(data).__name__}",
                path=str(path),
                job_id=workspace.job_id,
            )
        # YAML allows non-string keys (1, yes, null); the summary is keyed by text
        return {str(key): value for key, value in data.items()}

    def augment(self, summary: Dict[str, Any], outcome: ExecutionOutcome) -> None:
        """Add captured output and the timeout flag per the field policy."""
        if self.field_policy == ResultFieldPolicy.STRICT:
            summary[STDOUT_KEY] = outcome.captured_output
            summary[TIMED_OUT_KEY] = outcome.timed_out
            return
        if outcome.captured_output:
            summary[STDOUT_KEY] = outcome.captured_output
        if outcome.timed_out:
            summary[TIMED_OUT_KEY] = True

    def collect_files(self, workspace: Workspace) -> Dict[str, Any]:
        log = workspace.logger
        files: Dict[str, Any] = {}

        for entry in workspace.list_entries():
            filename = entry.name
            if filename in CONTRACT_FILES:
                continue
            if entry.is_symlink() or not entry.is_file():
                log.warning("Skipping non-file output", file=filename)
                continue

            try:
                content = entry.read_text(encoding="utf-8", errors="replace")
            except OSError as e:
                log.error("Failed to read output file", file=filename, error=str(e))
                continue

            if content == "":
                continue

            if self.grouping == FileGrouping.FLAT:
                files[filename] = content
            else:
                base, ext = split_filename(filename)
                files.setdefault(ext, {})[base] = content

        return files
