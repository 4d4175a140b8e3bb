"""
Output formatting -- JSON export, plain text, and CSV.
"""
from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from typing import Any, Dict

from meter.sequencer import MeasurementReport


def create_result_json(report: MeasurementReport, base_url: str) -> Dict[str, Any]:
    """Build a JSON-serialisable dict of one measurement."""
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "server": base_url,
        "ping": report.ping_ms,
        "download": report.download_mbps,
        "upload": report.upload_mbps,
        "results": [r.to_dict() for r in report.results.values()],
    }


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


# ---------------------------------------------------------------------------
# Plain-text / CSV helpers
# ---------------------------------------------------------------------------

def format_text_result(report: MeasurementReport, base_url: str) -> str:
    sep = "=" * 40
    mid = "-" * 40
    return (
        f"{sep}\n"
        f"Speed Results\n"
        f"{sep}\n"
        f"Server: {base_url}\n"
        f"{mid}\n"
        f"Ping: {report.ping_ms:.0f} ms\n"
        f"Download: {report.download_mbps:.1f} Mbps\n"
        f"Upload: {report.upload_mbps:.1f} Mbps\n"
        f"{sep}"
    )


def _csv_escape(value: str) -> str:
    """Quote a CSV field if it contains a comma, quote or newline."""
    if any(ch in value for ch in (",", '"', "\n", "\r")):
        return '"' + value.replace('"', '""') + '"'
    return value


def format_csv_header() -> str:
    return "timestamp,server,ping_ms,download_mbps,upload_mbps"


def format_csv_row(report: MeasurementReport, base_url: str) -> str:
    ts = datetime.now(timezone.utc).isoformat()
    return (
        f"{ts},{_csv_escape(base_url)},{report.ping_ms:.0f},"
        f"{report.download_mbps:.1f},{report.upload_mbps:.1f}"
    )


def append_csv(path: str, report: MeasurementReport, base_url: str) -> None:
    """Append a single CSV row, writing the header if the file is new."""
    write_header = not os.path.isfile(path) or os.path.getsize(path) == 0
    with open(path, "a", encoding="utf-8") as fh:
        if write_header:
            fh.write(format_csv_header() + "\n")
        fh.write(format_csv_row(report, base_url) + "\n")
