from __future__ import annotations

import argparse
import asyncio
import logging
from datetime import datetime, timezone

from uoa_watch.config.settings import Settings, get_settings
from uoa_watch.ingest.snapshot import load_snapshot
from uoa_watch.notify.webhook import LogNotifier, WebhookNotifier
from uoa_watch.observability.logging import configure_logging
from uoa_watch.services.scanner import ScanResult, execute_run
from uoa_watch.storage.backends import open_state_store

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="uoa-watch",
        description="Scan an unusual-options snapshot and notify new Large, Golden and Cluster signals",
    )
    parser.add_argument(
        "--snapshot",
        default=None,
        help="Path to a captured core-api JSON payload (default: settings snapshot_path)",
    )
    parser.add_argument(
        "--state",
        default=None,
        help="Path to the durable state store (default: settings state_path)",
    )
    parser.add_argument(
        "--backend",
        choices=("json", "duckdb"),
        default=None,
        help="State store backend (default: settings state_backend)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log payloads instead of posting them to webhooks",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override the configured log level",
    )
    return parser


async def _run(args: argparse.Namespace, settings: Settings) -> ScanResult:
    records = load_snapshot(args.snapshot or settings.snapshot_path)
    store = open_state_store(args.backend or settings.state_backend, args.state or settings.state_path)
    config = settings.detection_config()
    now = datetime.now(timezone.utc)
    if args.dry_run:
        return await execute_run(records, store, LogNotifier(), config, now)
    async with WebhookNotifier.from_settings(settings) as notifier:
        return await execute_run(records, store, notifier, config, now)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = get_settings()
    configure_logging(args.log_level or settings.effective_log_level)

    if not args.dry_run and not settings.has_webhooks:
        LOGGER.error("Configure UOA_WATCH_WEBHOOK_LARGE / UOA_WATCH_WEBHOOK_GOLDEN or pass --dry-run")
        return 1

    try:
        asyncio.run(_run(args, settings))
    except KeyboardInterrupt:
        LOGGER.info("Scan interrupted; state left untouched.")
        return 130
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
