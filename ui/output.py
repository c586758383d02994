"""
Output formatting -- console status lines, speed-test JSON export, plain text.
"""
from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from rich.console import Console

from meter.history import LatencyPoint
from meter.speedtest import Completed, Failed, Idle, SpeedTestState, Testing
from meter.stats import LatencyStats, format_bitrate, format_latency, format_throughput
from meter.throughput import ThroughputSample

console = Console()


# ---------------------------------------------------------------------------
# Console lines
# ---------------------------------------------------------------------------

def format_status_line(
    sample: ThroughputSample,
    latest: Optional[LatencyPoint] = None,
) -> str:
    """``↓1.2K ↑300B`` plus the latest ping when one is known."""
    line = f"↓{format_throughput(sample.download_bps)} ↑{format_throughput(sample.upload_bps)}"
    if latest is not None:
        line += f"  ping {format_latency(latest.latency_ms)}"
    return line


def format_state(state: SpeedTestState) -> str:
    if isinstance(state, Testing):
        return f"{state.phase.value}... {state.progress:.0%}"
    if isinstance(state, Completed):
        return (
            f"Download {format_bitrate(state.download_bps)}  "
            f"Upload {format_bitrate(state.upload_bps)}"
        )
    if isinstance(state, Failed):
        return "Speed test failed"
    if isinstance(state, Idle):
        return "Idle"
    return str(state)


def format_latency_summary(stats: LatencyStats) -> str:
    if not stats.attempts:
        return "No latency samples"
    if not stats.count:
        return f"{stats.attempts} probes, all failed"
    return (
        f"{stats.attempts} probes  "
        f"min {stats.min:.1f} / mean {stats.mean:.1f} / max {stats.max:.1f} ms  "
        f"jitter {stats.jitter:.2f} ms  loss {stats.loss_percent:.1f}%"
    )


# ---------------------------------------------------------------------------
# JSON export
# ---------------------------------------------------------------------------

def create_result_json(
    state: SpeedTestState,
    latency_points: Optional[List[LatencyPoint]] = None,
) -> Dict[str, Any]:
    """Build a JSON-serialisable dict describing a finished speed test."""
    download = state.download_bps if isinstance(state, Completed) else 0.0
    upload = state.upload_bps if isinstance(state, Completed) else 0.0

    result: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "status": "completed" if isinstance(state, Completed) else "failed",
        "download": {
            "bytes_per_sec": round(download, 2),
            "mbps": round(download * 8 / 1_000_000, 2),
        },
        "upload": {
            "bytes_per_sec": round(upload, 2),
            "mbps": round(upload * 8 / 1_000_000, 2),
        },
    }

    if latency_points:
        result["latency"] = LatencyStats.from_points(latency_points).to_dict()

    return result


def save_json(result: Dict[str, Any], filepath: str) -> None:
    """Write *result* to *filepath* atomically (write-tmp then rename)."""
    dir_path = os.path.dirname(filepath) or "."
    tmp = os.path.join(dir_path, f".tmp_{os.path.basename(filepath)}")

    try:
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(result, fh, indent=2, ensure_ascii=False)
        os.replace(tmp, filepath)
    except OSError as exc:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise OSError(f"Failed to save JSON to {filepath}: {exc}") from exc


def format_text_result(result: Dict[str, Any]) -> str:
    sep = "=" * 40
    lines = [
        sep,
        "Speed Test Results",
        sep,
        f"Status:   {result.get('status', '?')}",
        f"Download: {result['download']['mbps']:.2f} Mbps",
        f"Upload:   {result['upload']['mbps']:.2f} Mbps",
    ]
    latency = result.get("latency")
    if latency:
        lines.append(
            f"Ping:     {latency['mean']:.1f} ms "
            f"(jitter {latency['jitter']:.2f} ms, loss {latency['loss_percent']:.1f}%)"
        )
    lines.append(sep)
    return "\n".join(lines)
