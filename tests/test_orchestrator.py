"""
tests/test_orchestrator.py

End-to-end tests for JobOrchestrator against fake prover binaries.

Validates:
1. Scenarios: immediate summary, sleeping prover, extra output files
2. Workspace cleanup on every exit path
3. Fatal vs. soft failures
4. Isolation between concurrent requests
"""

import sys
import time
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest

from prover_runner import (
    ExecutionStartError,
    FileGrouping,
    JobOrchestrator,
    JobRequest,
    ResourceError,
    SummaryError,
)

from conftest import leftover_workspaces

pytestmark = pytest.mark.skipif(sys.platform.startswith("win"), reason="POSIX fake provers")

ECHO_PROVER = """
formula = (out / "formula.txt").read_text()
options = json.loads((out / "options.json").read_text())
(out / "result.yaml").write_text(json.dumps({
    "formula": formula,
    "options": options,
    "workspace": out.name,
}))
"""


def _request(**overrides) -> JobRequest:
    fields = {"formula": "P -> P", "options": {}, "timeout_seconds": 2}
    fields.update(overrides)
    return JobRequest(**fields)


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------

class TestScenarios:

    def test_immediate_valid_summary(self, make_prover, config, logger, workspace_root):
        make_prover("""
            (out / "result.yaml").write_text("valid: true\\n")
        """)
        result = JobOrchestrator(config, logger).run(_request())

        assert result.summary == {"valid": True}
        assert result.files == {}
        assert leftover_workspaces(workspace_root) == []

    def test_sleeping_prover_reports_timeout(self, make_prover, config, logger, workspace_root):
        make_prover("""
            (out / "result.yaml").write_text("valid: false\\n")
            time.sleep(5)
        """)
        started = time.monotonic()
        result = JobOrchestrator(config, logger).run(_request(timeout_seconds=2))
        elapsed = time.monotonic() - started

        assert result.summary["timed_out"] is True
        assert result.summary["valid"] is False
        assert elapsed < 4.5
        assert leftover_workspaces(workspace_root) == []

    def test_extra_output_file_grouped_by_extension(self, make_prover, config, logger):
        make_prover("""
            (out / "result.yaml").write_text("valid: true\\n")
            (out / "proof.log").write_text("ok")
        """)
        result = JobOrchestrator(config, logger).run(_request())
        assert result.files == {"log": {"proof": "ok"}}

    def test_extra_output_file_flat(self, make_prover, config, logger):
        make_prover("""
            (out / "result.yaml").write_text("valid: true\\n")
            (out / "proof.log").write_text("ok")
        """)
        flat = config.model_copy(update={"file_grouping": FileGrouping.FLAT})
        result = JobOrchestrator(flat, logger).run(_request())
        assert result.files == {"proof.log": "ok"}

    def test_partial_files_harvested_after_timeout(self, make_prover, config, logger):
        make_prover("""
            (out / "result.yaml").write_text("valid: false\\n")
            (out / "search.log").write_text("depth 1")
            print("searching", flush=True)
            time.sleep(30)
        """)
        result = JobOrchestrator(config, logger).run(_request(timeout_seconds=1))

        assert result.summary["timed_out"] is True
        assert "searching" in result.summary["stdout"]
        assert result.files == {"log": {"search": "depth 1"}}

    def test_non_zero_exit_is_soft(self, make_prover, config, logger):
        make_prover("""
            (out / "result.yaml").write_text("valid: false\\nerror: parse error\\n")
            print("parse error at 1:3")
            sys.exit(2)
        """)
        result = JobOrchestrator(config, logger).run(_request(formula="P ->"))
        assert result.summary == {
            "valid": False,
            "error": "parse error",
            "stdout": "parse error at 1:3\n",
        }


# ---------------------------------------------------------------------------
# Inputs and binary selection
# ---------------------------------------------------------------------------

class TestInputs:

    def test_prover_sees_formula_and_options(self, make_prover, config, logger):
        make_prover(ECHO_PROVER)
        result = JobOrchestrator(config, logger).run(
            _request(formula="A & B -> A", options={"a": 1, "b": "x"})
        )
        assert result.summary["formula"] == "A & B -> A"
        assert result.summary["options"] == {"a": 1, "b": "x"}

    def test_trace_flag_selects_trace_build(self, make_prover, config, logger):
        make_prover("""(out / "result.yaml").write_text("build: release\\n")\n""")
        make_prover("""(out / "result.yaml").write_text("build: trace\\n")\n""", name="prover-trace")
        orchestrator = JobOrchestrator(config, logger)

        assert orchestrator.run(_request(trace=False)).summary == {"build": "release"}
        assert orchestrator.run(_request(trace=True)).summary == {"build": "trace"}

    def test_extra_args_are_passed(self, make_prover, config, logger):
        make_prover("""
            (out / "result.yaml").write_text(json.dumps({"argv": sys.argv[1:-2]}))
        """)
        cfg = config.model_copy(update={"extra_args": ["--proof-format", "latex"]})
        result = JobOrchestrator(cfg, logger).run(_request())
        assert result.summary == {"argv": ["--proof-format", "latex"]}

    def test_every_log_line_has_job_id(self, make_prover, config, logger, log_entries):
        make_prover("""(out / "result.yaml").write_text("valid: true\\n")\n""")
        JobOrchestrator(config, logger).run(_request(), job_id="job-fixed")

        assert log_entries
        assert {e["job_id"] for e in log_entries} == {"job-fixed"}
        messages = [e["message"] for e in log_entries]
        assert messages[0] == "Request parsed"
        assert "Cleaned up workspace" in messages
        assert messages[-1] == "Request completed"


# ---------------------------------------------------------------------------
# Fatal failures still clean up
# ---------------------------------------------------------------------------

class TestFatalFailures:

    def test_missing_summary(self, make_prover, config, logger, workspace_root):
        make_prover("""
            (out / "proof.log").write_text("no summary")
        """)
        with pytest.raises(SummaryError):
            JobOrchestrator(config, logger).run(_request())
        assert leftover_workspaces(workspace_root) == []

    def test_malformed_summary(self, make_prover, config, logger, workspace_root):
        make_prover("""
            (out / "result.yaml").write_text("valid: [true\\n")
        """)
        with pytest.raises(SummaryError):
            JobOrchestrator(config, logger).run(_request())
        assert leftover_workspaces(workspace_root) == []

    def test_timeout_without_summary(self, make_prover, config, logger, workspace_root):
        make_prover("""
            time.sleep(30)
        """)
        with pytest.raises(SummaryError):
            JobOrchestrator(config, logger).run(_request(timeout_seconds=1))
        assert leftover_workspaces(workspace_root) == []

    def test_launch_failure(self, config, logger, workspace_root):
        with pytest.raises(ExecutionStartError) as exc_info:
            JobOrchestrator(config, logger).run(_request(), job_id="job-missing")
        assert exc_info.value.error_code == "LAUNCH_FAILED"
        assert exc_info.value.job_id == "job-missing"
        assert exc_info.value.binary.endswith("prover")
        assert leftover_workspaces(workspace_root) == []

    def test_input_write_failure_aborts_before_launch(self, config, logger, workspace_root):
        executor = MagicMock()
        orchestrator = JobOrchestrator(config, logger, executor=executor)
        with pytest.raises(ResourceError):
            orchestrator.run(_request(options={"bad": {1, 2}}))
        executor.run.assert_not_called()
        assert leftover_workspaces(workspace_root) == []

    def test_workspace_creation_failure(self, tmp_path, config, logger):
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        cfg = config.model_copy(update={"workspace_root": blocker})
        with pytest.raises(ResourceError) as exc_info:
            JobOrchestrator(cfg, logger).run(_request())
        assert exc_info.value.error_code == "WORKSPACE_CREATE_FAILED"


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------

class TestConcurrency:

    def test_concurrent_requests_are_isolated(self, make_prover, config, logger, workspace_root):
        make_prover(ECHO_PROVER + "time.sleep(0.3)\n")
        orchestrator = JobOrchestrator(config, logger)
        formulas = [f"P{i} -> P{i}" for i in range(6)]

        with ThreadPoolExecutor(max_workers=6) as pool:
            results = list(pool.map(lambda f: orchestrator.run(_request(formula=f)), formulas))

        assert [r.summary["formula"] for r in results] == formulas
        assert len({r.summary["workspace"] for r in results}) == len(formulas)
        assert leftover_workspaces(workspace_root) == []
