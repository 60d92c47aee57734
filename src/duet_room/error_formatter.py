# Area: Shared
"""Error formatting for structured room event error logs."""

from __future__ import annotations
import json
from typing import Any, List, Optional


def format_error_block(
    error_type: str,
    raw_payload: Any,
    validation_errors: Optional[List[str]],
) -> str:
    """Format a structured error block for a rejected inbound frame."""
    from datetime import datetime, timezone

    timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"

    lines = [
        "",
        "=" * 64,
        " ROOM EVENT REJECTED — FRAME DROPPED",
        "=" * 64,
        f" Timestamp:    {timestamp}",
        f" Error Type:   {error_type}",
        "",
        " ── RAW FRAME " + "─" * 50,
        indent_payload(raw_payload),
    ]

    if validation_errors:
        lines.append("")
        lines.append(" ── VALIDATION ERRORS " + "─" * 42)
        for error in validation_errors:
            lines.append(f" • {error}")

    lines.append("")
    lines.append("=" * 64)
    lines.append("")

    return "\n".join(lines)


def indent_payload(data: Any, indent: int = 2) -> str:
    """Format a raw frame with indentation for error logs."""
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except (json.JSONDecodeError, ValueError):
            return f" {data!r}"
    try:
        formatted = json.dumps(data, indent=indent, default=str, ensure_ascii=False)
        return "\n".join(" " + line for line in formatted.split("\n"))
    except Exception:
        return f" {repr(data)}"
