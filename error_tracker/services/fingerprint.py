"""
Stack normalization and deterministic error ids.

Identical failures must map to the same id across processes and hosts, so
frames pointing into the interpreter, its standard library or installed
third-party packages are stripped before hashing. Only frames in
application code (and the traceback headers/messages) contribute.
"""

import hashlib
import re
import sysconfig
from typing import Any, List, Optional

from error_tracker.models.failure import Fault, Opaque, classify_failure

ERROR_ID_LENGTH = 8

_PYTHON_FRAME = re.compile(r'^\s*File "(?P<path>[^"]+)", line \d+')

_STDLIB_DIR = sysconfig.get_paths().get("stdlib") or ""

# Substrings that mark a frame as runtime or dependency code
NOISE_MARKERS = (
    "site-packages",
    "dist-packages",
    "<frozen ",
    # Foreign runtimes forwarding their own traces
    "node:internal",
    "node:timers",
    "node_modules",
)


def _is_python_noise(path: str) -> bool:
    if any(marker in path for marker in NOISE_MARKERS):
        return True
    return bool(_STDLIB_DIR) and path.startswith(_STDLIB_DIR)


def _is_foreign_frame(line: str) -> bool:
    return line.strip().startswith("at ")


def clean_stack_trace(stack: Optional[str]) -> str:
    """
    Remove runtime and third-party frames from a stack trace.

    Non-frame lines (the traceback header, chained-exception separators
    and the final ``Type: message`` line) are always kept, as are frames
    inside application code. A dropped Python frame takes its indented
    source lines with it. Never raises; empty input yields an empty string.

    Args:
        stack: Raw formatted traceback

    Returns:
        Cleaned traceback with original line order preserved
    """
    if not stack:
        return ""

    kept: List[str] = []
    skipping_frame_body = False

    for line in stack.split("\n"):
        match = _PYTHON_FRAME.match(line)
        if match:
            skipping_frame_body = _is_python_noise(match.group("path"))
            if not skipping_frame_body:
                kept.append(line)
            continue

        if _is_foreign_frame(line):
            skipping_frame_body = False
            if not any(marker in line for marker in NOISE_MARKERS):
                kept.append(line)
            continue

        if skipping_frame_body and line.startswith("    "):
            continue

        skipping_frame_body = False
        kept.append(line)

    return "\n".join(kept)


def generate_error_id(error: Any, context: str) -> str:
    """
    Derive a short deterministic id from a failure and its context label.

    The hashed material is the context label followed by the cleaned stack
    when the failure carries one, else its message, else its text. The
    sha256 digest is cut to 8 hex characters; truncation collisions are an
    accepted risk.

    Args:
        error: Raised exception, failure variant or any other value
        context: Short label of the failing operation, e.g. ``command:pay``

    Returns:
        8-character hex error id
    """
    failure = classify_failure(error)
    material = context

    if isinstance(failure, Fault):
        material += clean_stack_trace(failure.stack) if failure.stack else failure.message
    elif isinstance(failure, Opaque):
        material += failure.text
    else:
        material += failure.message

    return hashlib.sha256(material.encode("utf-8")).hexdigest()[:ERROR_ID_LENGTH]
