from __future__ import annotations

import argparse
import time

from gbfsstats.config.settings import get_settings
from gbfsstats.core.logging import configure_logging
from gbfsstats.services import factory


def main() -> int:
    ap = argparse.ArgumentParser(
        description="Run collection (and optionally the retention sweep) on a fixed interval, locally."
    )
    ap.add_argument("--interval-seconds", type=float, default=15 * 60)
    ap.add_argument(
        "--cleanup-every-seconds",
        type=float,
        default=0,
        help="Also run the retention sweep at this cadence (0 disables).",
    )
    ap.add_argument("--once", action="store_true", help="Run a single pass and exit.")
    args = ap.parse_args()

    configure_logging()
    settings = get_settings()
    collector = factory.collector()
    sweeper = factory.sweeper() if args.cleanup_every_seconds > 0 else None

    print("collect daemon starting")
    print("providers:", ", ".join(settings.provider_names()))
    print("stats_table:", settings.storage.stats_table)
    print("bucket:", settings.storage.bucket)
    print("interval_seconds:", float(args.interval_seconds))
    print("cleanup_every_seconds:", float(args.cleanup_every_seconds))

    last_cleanup = 0.0
    while True:
        started = time.monotonic()
        summary = collector.run()
        print(f"[collect] ok={summary.success_count} failed={summary.failure_count}")
        for r in summary.results:
            if r.status == "error":
                print(f"[error] provider={r.provider}: {r.error}")

        if sweeper is not None and time.monotonic() - last_cleanup >= float(args.cleanup_every_seconds):
            try:
                result = sweeper.run()
                print(f"[cleanup] deleted={result.deleted}")
            except Exception as e:
                print(f"[error] cleanup: {type(e).__name__}: {e}")
            last_cleanup = time.monotonic()

        if args.once:
            return 0 if summary.failure_count == 0 else 1

        elapsed = time.monotonic() - started
        time.sleep(max(1.0, float(args.interval_seconds) - elapsed))


if __name__ == "__main__":
    raise SystemExit(main())
