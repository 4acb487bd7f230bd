"""
tests/conftest.py

Shared fixtures: fake prover binaries, a capturing log sink and a runner
config pointing at per-test directories.
"""

import os
import stat
import sys
import textwrap
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from prover_runner import RunnerConfig, StructuredLogger

# Every fake prover gets `out` (the workspace path) before its body runs
FAKE_PROVER_HEADER = """#!{python}
import json
import os
import signal
import subprocess
import sys
import time
from pathlib import Path

out = Path(sys.argv[sys.argv.index("--out") + 1])
"""


def write_fake_prover(path: Path, body: str, executable: bool = True) -> Path:
    """Write a Python script that behaves like the prover binary."""
    path.write_text(FAKE_PROVER_HEADER.format(python=sys.executable) + textwrap.dedent(body))
    if executable:
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


def process_alive(pid: int) -> bool:
    """True while *pid* exists and is not a zombie (Linux /proc)."""
    try:
        stat_line = Path(f"/proc/{pid}/stat").read_text()
    except (FileNotFoundError, ProcessLookupError):
        return False
    state = stat_line.rsplit(")", 1)[1].split()[0]
    return state != "Z"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def log_entries():
    return []


@pytest.fixture
def logger(log_entries):
    return StructuredLogger(source="test", sink=log_entries.append)


@pytest.fixture
def bin_dir(tmp_path):
    d = tmp_path / "bin"
    d.mkdir()
    return d


@pytest.fixture
def workspace_root(tmp_path):
    return tmp_path / "work"


@pytest.fixture
def make_prover(bin_dir):
    def _make(body: str, name: str = "prover", executable: bool = True) -> Path:
        return write_fake_prover(bin_dir / name, body, executable=executable)
    return _make


@pytest.fixture
def config(bin_dir, workspace_root):
    return RunnerConfig(bin_dir=bin_dir, workspace_root=workspace_root, kill_grace_ms=200)


def leftover_workspaces(root: Path) -> list:
    if not root.exists():
        return []
    return sorted(os.listdir(root))
