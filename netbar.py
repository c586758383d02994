#!/usr/bin/env python3
"""
netbar -- live network throughput / latency monitor and speed test.

Usage::

    python netbar.py                        # live status line, Ctrl-C to stop
    python netbar.py --duration 30          # monitor for 30 seconds
    python netbar.py --speedtest            # one download + upload test
    python netbar.py --speedtest --json     # result document to stdout
    python netbar.py --speedtest -o r.json  # save result document
    python netbar.py --probe-host 8.8.8.8 --probe-port 53
"""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, Dict, List, Optional

from meter.config import load_config
from meter.constants import (
    MAX_INTERVAL,
    MAX_PROBE_TIMEOUT,
    MIN_INTERVAL,
    MIN_PROBE_TIMEOUT,
)
from meter.latency import LatencyProbe
from meter.logging_setup import configure_logging
from meter.monitor import NetworkMonitor
from meter.speedtest import Phase, SpeedTestController, SpeedTestState, Testing
from meter.stats import LatencyStats
from ui.output import (
    console,
    create_result_json,
    format_latency_summary,
    format_state,
    format_status_line,
    format_text_result,
    save_json,
)

_PRE_TEST_PROBES = 3


# ---------------------------------------------------------------------------
# Parameter validation
# ---------------------------------------------------------------------------

def _validate(
    sample_interval: float,
    probe_interval: float,
    probe_timeout: float,
    probe_port: int,
) -> None:
    """Raise ``ValueError`` if any parameter is out of range."""
    if not MIN_INTERVAL <= sample_interval <= MAX_INTERVAL:
        raise ValueError(f"Sample interval must be between {MIN_INTERVAL} and {MAX_INTERVAL} s")
    if not MIN_INTERVAL <= probe_interval <= MAX_INTERVAL:
        raise ValueError(f"Probe interval must be between {MIN_INTERVAL} and {MAX_INTERVAL} s")
    if not MIN_PROBE_TIMEOUT <= probe_timeout <= MAX_PROBE_TIMEOUT:
        raise ValueError(
            f"Probe timeout must be between {MIN_PROBE_TIMEOUT} and {MAX_PROBE_TIMEOUT} s"
        )
    if not 0 < probe_port < 65536:
        raise ValueError("Probe port must be between 1 and 65535")


# ---------------------------------------------------------------------------
# Monitor mode
# ---------------------------------------------------------------------------

async def run_monitor(
    *,
    probe: LatencyProbe,
    sample_interval: float,
    probe_interval: float,
    duration: float = 0.0,
) -> LatencyStats:
    """Print a status line per sample until *duration* elapses or Ctrl-C."""
    monitor = NetworkMonitor(
        probe=probe,
        sample_interval=sample_interval,
        probe_interval=probe_interval,
    )
    monitor.on_throughput = lambda sample: console.print(
        format_status_line(sample, monitor.history.latest()), highlight=False
    )

    monitor.start()
    try:
        if duration > 0:
            await asyncio.sleep(duration)
        else:
            await asyncio.Event().wait()
    except asyncio.CancelledError:
        pass
    finally:
        await monitor.stop()

    stats = LatencyStats.from_points(monitor.history.get_recent())
    console.print(f"\n[bold]Latency (last 5 min):[/bold] {format_latency_summary(stats)}")
    return stats


# ---------------------------------------------------------------------------
# Speed test mode
# ---------------------------------------------------------------------------

async def run_speedtest(
    *,
    probe: LatencyProbe,
    download_urls: List[str],
    upload_url: str,
    request_timeout: float,
    json_output: bool = False,
    output_file: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """Run one speed test and return the result document (None if cancelled)."""
    show_ui = not json_output

    monitor = NetworkMonitor(probe=probe)
    for _ in range(_PRE_TEST_PROBES):
        await monitor.probe_once()

    controller = SpeedTestController(
        download_urls=download_urls,
        upload_url=upload_url,
        request_timeout=request_timeout,
    )
    final: List[SpeedTestState] = []
    last_phase: List[Optional[Phase]] = [None]

    def _on_state(state: SpeedTestState) -> None:
        if state.is_terminal:
            final.append(state)
        if not show_ui:
            return
        # One line per phase plus the final result.
        if isinstance(state, Testing):
            if state.phase is last_phase[0]:
                return
            last_phase[0] = state.phase
            console.print(f"[dim]{format_state(state)}[/dim]")
        else:
            console.print(f"[bold]{format_state(state)}[/bold]")

    controller.subscribe(_on_state)
    controller.start()
    try:
        await controller.wait()
    except asyncio.CancelledError:
        controller.cancel()
        if show_ui:
            console.print("\n[yellow]Speed test cancelled[/yellow]")
        return None

    if not final:
        return None

    result = create_result_json(final[-1], monitor.history.get_recent())

    if json_output:
        print(json.dumps(result, indent=2))
    else:
        console.print(format_text_result(result), highlight=False)

    if output_file:
        save_json(result, output_file)
        if show_ui:
            console.print(f"\n[green]Results saved to:[/green] {output_file}")

    return result


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def main() -> None:
    config = load_config()

    parser = argparse.ArgumentParser(
        description="netbar -- network throughput, latency and speed test",
    )
    parser.add_argument("--speedtest", action="store_true", help="Run an active speed test and exit")
    parser.add_argument("--json", "-j", action="store_true", help="Print the speed test result as JSON")
    parser.add_argument("--output", "-o", type=str, metavar="FILE", help="Save the speed test result to a JSON file")
    parser.add_argument("--duration", type=float, default=0.0, metavar="SECS", help="Stop monitoring after SECS (default: run until Ctrl-C)")
    parser.add_argument("--interval", type=float, default=config["sample_interval"], metavar="SECS", help="Seconds between throughput samples")
    parser.add_argument("--probe-interval", type=float, default=config["probe_interval"], metavar="SECS", help="Seconds between latency probes")
    parser.add_argument("--probe-host", type=str, default=config["probe_host"], metavar="HOST", help="Latency probe target host")
    parser.add_argument("--probe-port", type=int, default=config["probe_port"], metavar="PORT", help="Latency probe target port")
    parser.add_argument("--probe-timeout", type=float, default=config["probe_timeout"], metavar="SECS", help="Latency probe timeout")
    parser.add_argument("--log-level", type=str, default=config["log_level"], help="Logging level (default: WARNING)")
    parser.add_argument("--log-file", type=str, default=config["log_file"] or None, metavar="FILE", help="Also log to a rotating file")

    args = parser.parse_args()

    configure_logging(args.log_level, args.log_file, console=console)

    try:
        _validate(
            sample_interval=args.interval,
            probe_interval=args.probe_interval,
            probe_timeout=args.probe_timeout,
            probe_port=args.probe_port,
        )
    except ValueError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        sys.exit(1)

    probe = LatencyProbe(host=args.probe_host, port=args.probe_port, timeout=args.probe_timeout)

    try:
        if args.speedtest:
            result = asyncio.run(
                run_speedtest(
                    probe=probe,
                    download_urls=list(config["download_urls"]),
                    upload_url=config["upload_url"],
                    request_timeout=float(config["request_timeout"]),
                    json_output=args.json,
                    output_file=args.output,
                )
            )
            if result is None or result["status"] != "completed":
                sys.exit(1)
        else:
            asyncio.run(
                run_monitor(
                    probe=probe,
                    sample_interval=args.interval,
                    probe_interval=args.probe_interval,
                    duration=args.duration,
                )
            )
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped[/yellow]")
        sys.exit(1)
    except OSError as exc:
        console.print(f"\n[red]Error: {exc}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
