"""
ClaimGuard Utilities
=====================

Shared helper functions for logging, call correlation, hashing,
and text processing used across all modules.
"""

from __future__ import annotations

import contextvars
import hashlib
import json
import logging
import sys
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator


# ── Call correlation ───────────────────────────────────────────────

_call_id: contextvars.ContextVar[str] = contextvars.ContextVar("claimguard_call_id", default="-")


def generate_call_id() -> str:
    """
    Generate a unique ID for one validation call.

    Format: claim-{timestamp}-{short_uuid}
    Example: claim-20250209-143022-a1b2c3d4
    """
    timestamp = time.strftime("%Y%m%d-%H%M%S")
    short_id = uuid.uuid4().hex[:8]
    return f"claim-{timestamp}-{short_id}"


def current_call_id() -> str:
    """Call ID bound to the running task, or '-' outside a call."""
    return _call_id.get()


@contextmanager
def call_context(call_id: str) -> Iterator[str]:
    """
    Bind a call ID to every log record emitted inside the block.

    The binding is a context variable, so concurrent asyncio tasks
    each see their own ID.
    """
    token = _call_id.set(call_id)
    try:
        yield call_id
    finally:
        _call_id.reset(token)


class CallIdFilter(logging.Filter):
    """Attach the current call ID to each record as ``record.call_id``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.call_id = _call_id.get()
        return True


# ── Hashing ────────────────────────────────────────────────────────

def compute_content_hash(obj: Any) -> str:
    """
    Compute a content-addressable hash for any JSON-serializable object.

    Used for audit record integrity: the hash of the record content
    (excluding the hash field) is stored in the record.
    """
    canonical = json.dumps(obj, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


# ── Logging ────────────────────────────────────────────────────────

class JsonFormatter(logging.Formatter):
    """One JSON object per record, including the call ID."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "module": record.module,
            "call_id": getattr(record, "call_id", current_call_id()),
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def setup_logging(
    level: str = "INFO",
    format_style: str = "text",
) -> logging.Logger:
    """
    Configure structured logging for ClaimGuard.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
        format_style: "json" for structured logs, "text" for human-readable.

    Returns:
        Configured Logger instance.
    """
    logger = logging.getLogger("claimguard")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.addFilter(CallIdFilter())

    if format_style == "json":
        handler.setFormatter(JsonFormatter())
    else:
        fmt = "%(asctime)s | %(levelname)-8s | %(call_id)s | %(name)s | %(message)s"
        handler.setFormatter(logging.Formatter(fmt, datefmt="%H:%M:%S"))

    logger.addHandler(handler)
    return logger


# ── Text Processing Helpers ────────────────────────────────────────

def normalize_whitespace(text: str) -> str:
    """Collapse multiple whitespace characters into single spaces and strip."""
    return " ".join(text.split())


# ── File I/O Helpers ───────────────────────────────────────────────

def save_json(data: Any, path: str | Path, indent: int = 2) -> Path:
    """Save data as formatted JSON file with UTF-8 encoding."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=indent, ensure_ascii=False, default=str)
    return path


def load_json(path: str | Path) -> Any:
    """Load a JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_jsonl(path: str | Path) -> list[Any]:
    """Load a JSON Lines file, skipping blank lines."""
    with open(path, "r", encoding="utf-8") as f:
        return [json.loads(line) for line in f if line.strip()]
