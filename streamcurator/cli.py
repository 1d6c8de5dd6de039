"""Command-line sync runner.

    python -m streamcurator.cli sync [--user-id N] [--provider-id N] [--ignore tvg_id,logo]
    python -m streamcurator.cli testmissing [--user-id N] [--provider-id N]
    python -m streamcurator.cli fixup [--user-id N]
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys

from streamcurator.database import DB_NAME, init_db
from streamcurator.models.config import IGNORABLE_FIELDS
from streamcurator.models.sync import SyncSummary
from streamcurator.services.config_service import ConfigService
from streamcurator.services.http_client import HttpClientService
from streamcurator.services.missing_service import MissingService
from streamcurator.services.provider_service import ProviderService
from streamcurator.services.stream_service import StreamService
from streamcurator.services.sync_service import SyncService

logger = logging.getLogger(__name__)

ACTIONS = ("sync", "testmissing", "fixup")


def parse_ignore(value: str) -> list[str]:
    """Split a comma-separated ignore list; raises ``ValueError`` on unknown fields."""
    fields = [f.strip() for f in value.split(",") if f.strip()]
    invalid = [f for f in fields if f not in IGNORABLE_FIELDS]
    if invalid:
        raise ValueError(
            f"Invalid ignore field(s): {', '.join(invalid)}. Valid fields: {', '.join(IGNORABLE_FIELDS)}"
        )
    return fields


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="streamcurator", description="Provider sync runner")
    parser.add_argument("action", choices=ACTIONS)
    parser.add_argument("--user-id", type=int, default=None, help="Only process this user's providers")
    parser.add_argument("--provider-id", type=int, default=None, help="Only process this provider")
    parser.add_argument("--ignore", default="", help=f"Comma-separated fields to leave untouched: {', '.join(IGNORABLE_FIELDS)}")
    parser.add_argument("--data-dir", default=os.environ.get("DATA_DIR", "./data"))
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def build_sync_service(data_dir: str, ignore_fields: list[str] | None = None) -> SyncService:
    os.makedirs(data_dir, exist_ok=True)
    init_db(os.path.join(data_dir, DB_NAME))
    cfg = ConfigService(data_dir)
    cfg.load()
    if ignore_fields:
        # Command-line ignore list applies to this run only
        cfg.config.setdefault("options", {}).setdefault("sync", {})["ignore_fields"] = ignore_fields
    return SyncService(
        cfg,
        HttpClientService(),
        ProviderService(data_dir),
        StreamService(data_dir),
        MissingService(data_dir),
    )


async def run(action: str, sync: SyncService, user_id: int | None, provider_id: int | None) -> SyncSummary:
    try:
        if action == "sync":
            return await sync.run_sync(user_id, provider_id)
        if action == "testmissing":
            return await sync.run_missing(user_id, provider_id)
        return sync.run_fixup(user_id)
    finally:
        await sync.http_client.close()


def print_summary(summary: SyncSummary) -> None:
    print(f"Action:    {summary.action}")
    print(f"Providers: {summary.providers}")
    print(f"Streams:   {summary.streams}")
    print(f"Errors:    {summary.errors}")
    for result in summary.results:
        status = f"error: {result.error}" if result.error else f"{result.added} added, {result.updated} updated, {result.total} total"
        print(f"  [{result.provider_id}] {result.provider_name}: {status}")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        ignore_fields = parse_ignore(args.ignore)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    sync = build_sync_service(args.data_dir, ignore_fields)
    summary = asyncio.run(run(args.action, sync, args.user_id, args.provider_id))
    print_summary(summary)
    return 1 if summary.errors else 0


if __name__ == "__main__":
    sys.exit(main())
