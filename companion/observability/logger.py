"""
JSONL event log for the client.

Every record is a flat dict with an "event_type" key, written as one
line of compact JSON to stdout and flushed at once. Records without a
"ts_ms" get the current wall-clock time.
"""

from __future__ import annotations

import json
import sys
import time
from typing import Any, Callable, Mapping


def _write_stdout(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()


# Output sink (patchable in tests)
_print: Callable[[str], None] = _write_stdout

_enabled: bool = True


def configure(*, enabled: bool) -> None:
    """Switch event output on or off (AppConfig.enable_json_logs)."""
    global _enabled  # pylint: disable=global-statement
    _enabled = enabled


def _encode(record: Mapping[str, Any]) -> str:
    return json.dumps(record, ensure_ascii=False, separators=(",", ":"))


def log_event(event: Mapping[str, Any]) -> None:
    """
    Emit one record. Never raises.

    A record that cannot be serialized is replaced by a
    LOGGER_SERIALIZATION_ERROR record carrying its repr.
    """
    if not _enabled:
        return

    record = dict(event)
    record.setdefault("ts_ms", int(time.time() * 1000))

    try:
        line = _encode(record)
    except (TypeError, ValueError) as e:
        line = _encode({
            "ts_ms": record["ts_ms"],
            "event_type": "LOGGER_SERIALIZATION_ERROR",
            "source_event_type": repr(record.get("event_type")),
            "error": str(e),
            "record_repr": repr(record),
        })

    _print(line)
