# scripts/smoke.py
"""
Smoke Test Script for the usagestats reporting loop.

Runs the real service end-to-end for a few seconds: a throwaway data
directory, a local collector on an ephemeral port, short timers. It then
restarts the service on the same directory to show counters carrying over.

Usage
-----
1. Default run (3 seconds per pass):
    $ uv run python scripts/smoke.py

2. Longer passes:
    $ uv run python scripts/smoke.py --seconds 10
"""

import argparse
import json
import logging
import sys
import tempfile
import threading
import time
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from usagestats.core.lifecycle import AnalyticsService
from usagestats.core.reporter import Reporter
from usagestats.core.stats import CounterStatsProvider
from usagestats.core.storage import FileStorage

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

RECEIVED: list[dict[str, Any]] = []


class CollectorHandler(BaseHTTPRequestHandler):
    """Accept every POST and keep the decoded payload."""

    def do_POST(self) -> None:  # noqa: N802
        length = int(self.headers.get("Content-Length", "0"))
        RECEIVED.append(json.loads(self.rfile.read(length)))
        self.send_response(200)
        self.end_headers()

    def log_message(self, format: str, *args: Any) -> None:
        return


def run_pass(data_dir: Path, url: str, seconds: float) -> None:
    """Run one service lifetime against `data_dir`, simulating some traffic."""
    provider = CounterStatsProvider()
    provider.set_apps_count(3)
    service = AnalyticsService(
        FileStorage(data_dir),
        provider,
        Reporter(url=url, timeout_seconds=5),
        grace_period=0.2,
        snapshot_frequency=0.5,
        upload_frequency=1.0,
    )

    with service:
        deadline = time.monotonic() + seconds
        while time.monotonic() < deadline:
            provider.record_ingest("pyspy")
            provider.incr("render")
            time.sleep(0.1)

    print(f"  uploads attempted: {service.uploads}")


def main() -> None:
    """Execute the smoke test workflow."""
    parser = argparse.ArgumentParser(description="Run usagestats Smoke Test")
    parser.add_argument("--seconds", "-s", type=float, default=3.0, help="Duration of each pass")
    args = parser.parse_args()

    server = HTTPServer(("127.0.0.1", 0), CollectorHandler)
    threading.Thread(target=server.serve_forever, daemon=True).start()
    url = f"http://127.0.0.1:{server.server_address[1]}/api/events"

    with tempfile.TemporaryDirectory() as tmp:
        data_dir = Path(tmp)
        (data_dir / "main").mkdir()
        (data_dir / "main" / "blob.db").write_bytes(b"\0" * 1024)

        for n in (1, 2):
            print(f"\n▶ Pass {n} ({args.seconds:.1f}s)")
            run_pass(data_dir, url, args.seconds)
            persisted = json.loads((data_dir / "analytics.json").read_text(encoding="utf-8"))
            print(f"  persisted storage_main: {persisted['storage_main']}")

    server.shutdown()

    print("\n" + "=" * 60)
    print(f"✅ Collector received {len(RECEIVED)} report(s)")
    print("=" * 60)
    if RECEIVED:
        last = RECEIVED[-1]
        for key in ("install_id", "upload_index", "storage_main", "controller_ingest", "apps_count"):
            print(f"  {key:<18} {last.get(key)}")


if __name__ == "__main__":
    main()
