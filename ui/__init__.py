"""UI layer -- console output and result formatters."""

from .output import (
    console,
    create_result_json,
    format_latency_summary,
    format_state,
    format_status_line,
    format_text_result,
    save_json,
)

__all__ = [
    "console",
    "create_result_json",
    "format_latency_summary",
    "format_state",
    "format_status_line",
    "format_text_result",
    "save_json",
]
