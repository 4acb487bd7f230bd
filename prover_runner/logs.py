"""Structured JSON logging for the prover runner.

One JSON object per line with timestamp, level, message and source, plus any
correlation fields. The logger is passed to each component instead of being
a module global, so tests can hand in a capturing sink.
"""

import json
import time
from typing import Any, Callable, Dict, Optional

Sink = Callable[[Dict[str, Any]], None]


def stdout_sink(entry: Dict[str, Any]) -> None:
    """Print a log entry as a JSON line."""
    print(json.dumps(entry, default=str), flush=True)


class StructuredLogger:
    """Emit structured logs, optionally bound to correlation fields."""

    def __init__(self, source: str = "prover_runner", sink: Optional[Sink] = None, **bound: Any):
        self.source = source
        self.sink = sink or stdout_sink
        self._bound = {k: v for k, v in bound.items() if v is not None}

    def bind(self, **fields: Any) -> "StructuredLogger":
        """Return a logger that adds *fields* to every entry."""
        return StructuredLogger(self.source, self.sink, **{**self._bound, **fields})

    def log(self, level: str, message: str, **fields: Any) -> None:
        entry = {
            "timestamp": time.time(),
            "level": level,
            "message": message,
            "source": self.source,
            **self._bound,
            **{k: v for k, v in fields.items() if v is not None},
        }
        self.sink(entry)

    def info(self, message: str, **fields: Any) -> None:
        self.log("INFO", message, **fields)

    def warning(self, message: str, **fields: Any) -> None:
        self.log("WARNING", message, **fields)

    def error(self, message: str, **fields: Any) -> None:
        self.log("ERROR", message, **fields)
