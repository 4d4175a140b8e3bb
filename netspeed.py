#!/usr/bin/env python3
"""
netspeed -- single-shot ping, download and upload measurement over HTTP.

Usage::

    python netspeed.py                              # rich dashboard
    python netspeed.py --url https://example.net    # measure another server
    python netspeed.py --simple                     # plain text
    python netspeed.py --json                       # JSON to stdout
    python netspeed.py -o result.json               # save to file
    python netspeed.py --csv log.csv                # append CSV row
    python netspeed.py --repeat 5 --interval 60     # five independent runs
    python netspeed.py --serve --port 8080          # run the test backend
"""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
import time
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from meter.config import config_path, load_config, set_config_value
from meter.constants import MAX_TIMEOUT, MIN_TIMEOUT
from meter.logging_setup import configure_logging
from meter.sequencer import PhaseSequencer
from meter.transfer import TransferExecutor
from ui.dashboard import GaugeDisplay, console, err_console, print_final_results, print_header
from ui.output import append_csv, create_result_json, format_text_result, save_json


# ---------------------------------------------------------------------------
# Parameter validation
# ---------------------------------------------------------------------------

def _validate(base_url: str, timeout: float, repeat: int, interval: float) -> None:
    """Raise ``ValueError`` if any parameter is out of range."""
    parsed = urlparse(base_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"URL must be an absolute http(s) URL, got {base_url!r}")
    if not MIN_TIMEOUT <= timeout <= MAX_TIMEOUT:
        raise ValueError(f"Timeout must be between {MIN_TIMEOUT} and {MAX_TIMEOUT} s")
    if repeat < 1:
        raise ValueError("Repeat must be >= 1")
    if interval < 0:
        raise ValueError("Interval must be >= 0")


# ---------------------------------------------------------------------------
# Core runner
# ---------------------------------------------------------------------------

async def run_measurement(
    base_url: str,
    *,
    timeout: float,
    json_output: bool = False,
    simple: bool = False,
    output_file: Optional[str] = None,
    csv_file: Optional[str] = None,
) -> Dict[str, Any]:
    """Execute one ping/download/upload sequence and return a JSON-ready dict."""
    show_ui = not json_output and not simple

    if show_ui:
        print_header(base_url)

    async with TransferExecutor(timeout=timeout) as executor:
        sequencer = PhaseSequencer(executor, base_url)

        if show_ui:
            gauge = GaugeDisplay()
            unsubscribe = sequencer.subscribe(gauge.update)
            gauge.start()
            try:
                report = await sequencer.start()
            finally:
                gauge.stop()
                unsubscribe()
        else:
            report = await sequencer.start()

    if show_ui:
        print_final_results(report, base_url)
    elif simple:
        print(format_text_result(report, base_url))

    result_json = create_result_json(report, base_url)

    if json_output:
        print(json.dumps(result_json, indent=2))

    if output_file:
        save_json(result_json, output_file)
        if not json_output:
            console.print(f"[green]Results saved to:[/green] {output_file}")

    if csv_file:
        append_csv(csv_file, report, base_url)
        if not json_output:
            console.print(f"[green]CSV row appended to:[/green] {csv_file}")

    return result_json


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def main() -> None:
    config = load_config()

    parser = argparse.ArgumentParser(
        description="netspeed -- ping, download and upload measurement over HTTP",
    )
    # Target
    parser.add_argument("--url", type=str, default=config["base_url"], metavar="URL", help=f"Server base URL (default: {config['base_url']})")
    parser.add_argument("--timeout", type=float, default=float(config["timeout"]), metavar="SECS", help="Timeout in seconds for ping and upload; for the download, the longest allowed pause between chunks")
    parser.add_argument("--remember", action="store_true", help="Save --url as the default server")

    # Output modes
    parser.add_argument("--json", "-j", action="store_true", help="Output results as JSON")
    parser.add_argument("--output", "-o", type=str, metavar="FILE", help="Save results to JSON file")
    parser.add_argument("--csv", type=str, metavar="FILE", help="Append results as CSV row")
    parser.add_argument("--simple", "-s", action="store_true", help="Simple output mode (no dashboard)")
    parser.add_argument("--log-level", type=str, default=config["log_level"], metavar="LEVEL", help="Logging level (default: WARNING)")

    # Repeat mode
    parser.add_argument("--repeat", type=int, default=1, metavar="N", help="Run the measurement N times (default: 1)")
    parser.add_argument("--interval", type=float, default=60.0, metavar="SECS", help="Seconds between repeated runs (default: 60)")

    # Backend
    parser.add_argument("--serve", action="store_true", help="Run the measurement backend instead of the client")
    parser.add_argument("--host", type=str, default="127.0.0.1", help="Backend bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8080, help="Backend port (default: 8080)")
    parser.add_argument("--payload", type=str, metavar="FILE", help="Serve the download payload from FILE")

    args = parser.parse_args()

    configure_logging(args.log_level, console=err_console)

    if args.serve:
        from backend.app import run_server
        run_server(host=args.host, port=args.port, payload_path=args.payload)
        return

    try:
        _validate(base_url=args.url, timeout=args.timeout, repeat=args.repeat, interval=args.interval)
    except ValueError as exc:
        err_console.print(f"[red]Error: {exc}[/red]")
        sys.exit(1)

    if args.remember:
        set_config_value("base_url", args.url)
        console.print(f"[dim]Saved default server to {config_path()}[/dim]")

    try:
        for run_idx in range(args.repeat):
            if args.repeat > 1 and not args.json:
                console.print(f"\n[bold cyan]--- Run {run_idx + 1}/{args.repeat} ---[/bold cyan]")

            asyncio.run(
                run_measurement(
                    args.url,
                    timeout=args.timeout,
                    json_output=args.json,
                    simple=args.simple,
                    output_file=args.output,
                    csv_file=args.csv,
                )
            )

            if run_idx < args.repeat - 1:
                if not args.json:
                    console.print(f"[dim]Next run in {args.interval:.0f}s...[/dim]")
                time.sleep(args.interval)

    except KeyboardInterrupt:
        console.print("\n[yellow]Measurement cancelled by user[/yellow]")
        sys.exit(1)
    except Exception as exc:
        err_console.print(f"\n[red]Error: {exc}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
