"""
GBFS Stats CLI entrypoint.

This CLI runs the same units of work as the deployed functions, against the tables and
bucket named in settings (or `.env`). Useful for backfills, manual sweeps and debugging.
"""

from __future__ import annotations

import argparse
import json
from typing import Any

from gbfsstats.config.settings import get_settings
from gbfsstats.core.logging import configure_logging
from gbfsstats.core.time import utc_isoformat
from gbfsstats.domain.models import ProviderConfig
from gbfsstats.services import factory
from gbfsstats.services.retention import CleanupError


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _selected_providers(names: list[str]) -> list[ProviderConfig]:
    """Configured providers, optionally restricted to `names` (unknown names are an error)."""
    providers = get_settings().require_providers()
    if not names:
        return providers
    by_name = {p.name: p for p in providers}
    unknown = [n for n in names if n not in by_name]
    if unknown:
        raise ValueError(f"Unknown provider(s): {', '.join(unknown)}")
    return [by_name[n] for n in names]


def _cmd_collect(args: argparse.Namespace) -> int:
    providers = _selected_providers(args.provider)
    summary = factory.collector().run(providers)
    if args.json:
        _print_json(summary.model_dump(mode="json"))
    else:
        for r in summary.results:
            if r.status == "success":
                print(f"{r.provider}: ok bikes={r.total_bikes} active_stations={r.active_stations}")
            else:
                print(f"{r.provider}: error {r.error}")
        print(f"{summary.success_count}/{summary.total} providers collected")
    return 0 if summary.failure_count == 0 else 1


def _cmd_cleanup(args: argparse.Namespace) -> int:
    settings = get_settings()
    providers = list(args.provider) or settings.provider_names()
    if args.discover:
        for name in factory.stats_table().scan_providers():
            if name not in providers:
                providers.append(name)
    if not providers:
        settings.require_providers()

    try:
        result = factory.sweeper().run(providers)
    except CleanupError as e:
        _print_json(e.as_dict())
        return 1
    _print_json(result.model_dump(mode="json", by_alias=True))
    return 0


def _cmd_latest(args: argparse.Namespace) -> int:
    names = list(args.provider) or get_settings().provider_names()
    snapshot = factory.latest_reader().read(names)
    _print_json(snapshot.model_dump(mode="json"))
    return 0


def _cmd_stats(args: argparse.Namespace) -> int:
    service = factory.query_service()
    start, end = service.resolve_window(args.start, args.end)
    records = service.query(start, end, provider=args.provider)
    if args.json:
        _print_json([r.model_dump(mode="json") for r in records])
        return 0

    print(f"{len(records)} records between {utc_isoformat(start)} and {utc_isoformat(end)}")
    for r in records:
        print(
            f"{utc_isoformat(r.timestamp)}  {r.provider:<20} bikes={r.total_bikes_available:<6}"
            f" docks={r.total_docks_available:<6} active={r.active_stations}/{r.total_stations}"
        )
    return 0


def _cmd_providers(_: argparse.Namespace) -> int:
    _print_json([p.model_dump() for p in get_settings().providers])
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the gbfsstats CLI."""
    parser = argparse.ArgumentParser(prog="gbfsstats")
    sub = parser.add_subparsers(dest="command", required=True)

    col = sub.add_parser("collect", help="Fetch every configured provider once and store the snapshots.")
    col.add_argument("--provider", action="append", default=[], help="Repeatable. Omit to collect all providers.")
    col.add_argument("--json", action="store_true", help="Output the run summary as JSON")
    col.set_defaults(func=_cmd_collect)

    clean = sub.add_parser("cleanup", help="Delete records older than the retention window.")
    clean.add_argument("--provider", action="append", default=[], help="Repeatable. Omit to sweep all providers.")
    clean.add_argument(
        "--discover",
        action="store_true",
        help="Also sweep providers found in the table (e.g. ones removed from config).",
    )
    clean.set_defaults(func=_cmd_cleanup)

    latest = sub.add_parser("latest", help="Show the latest snapshot per provider.")
    latest.add_argument("--provider", action="append", default=[])
    latest.set_defaults(func=_cmd_latest)

    stats = sub.add_parser("stats", help="Query stored stats in a time window (default: the last hour).")
    stats.add_argument("--start", default=None, help="ISO datetime (e.g. 2024-01-01T00:00:00Z)")
    stats.add_argument("--end", default=None, help="ISO datetime (e.g. 2024-01-02T12:00:00Z)")
    stats.add_argument("--provider", default=None)
    stats.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    stats.set_defaults(func=_cmd_stats)

    prov = sub.add_parser("providers", help="List configured providers.")
    prov.set_defaults(func=_cmd_providers)
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint callable used by `python -m gbfsstats.cli`."""
    configure_logging()
    parser = build_parser()
    args = parser.parse_args(argv)
    func: Any = getattr(args, "func")
    return int(func(args))


if __name__ == "__main__":
    raise SystemExit(main())
