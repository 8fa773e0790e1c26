#!/usr/bin/env python3
from __future__ import annotations

# ruff: noqa: E402
import argparse
import os
import sys

# Ensure project root is in path for local execution.
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

from careers_sync.config.settings import get_settings
from careers_sync.job_fetcher.logging_utils import configure_logging
from careers_sync.job_fetcher.registry import available_strategies, build_enabled_strategies
from careers_sync.job_fetcher.runner import (
    build_fetch_service,
    build_http_client,
    build_webhook_sink,
    scrape_and_sync,
)
from careers_sync.job_fetcher.sinks import JsonFileSink, StdoutSink, WebhookConfigError
from careers_sync.observability import get_observability

SOURCES = ("drivehr", "manual", "webhook", "github-actions", "automated")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Scrape careers-page job postings and sync them to the webhook.")
    parser.add_argument("--list", action="store_true", help="List available fetch strategies and exit.")
    parser.add_argument("--strategy", help="Use a single fetch strategy by name (e.g. html, browser).")
    parser.add_argument("--dry-run", action="store_true", help="Print normalized jobs to stdout (no delivery).")
    parser.add_argument("--output", help="Write normalized jobs to a JSON file instead of the webhook.")
    parser.add_argument(
        "--force-sync",
        action="store_true",
        help="Deliver even when no jobs were found (default: FORCE_SYNC).",
    )
    parser.add_argument("--source", choices=SOURCES, default="github-actions", help="Source tag for the batch.")
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings.runtime.log_level)

    registry = available_strategies(settings)
    if args.list:
        print("Available strategies:", ", ".join(sorted(registry.keys())))
        print("Enabled strategies:", ", ".join(settings.source.strategy_names))
        return 0

    if args.strategy:
        name = args.strategy.strip().lower()
        if name not in registry:
            print(f"Unknown strategy: {args.strategy}")
            print("Available strategies:", ", ".join(sorted(registry.keys())))
            return 2
        strategies = build_enabled_strategies(settings, [name])
    else:
        strategies = build_enabled_strategies(settings)

    config = settings.source_config()
    if not config.company_id and not config.careers_url:
        print("DRIVEHR_COMPANY_ID or DRIVEHR_CAREERS_URL is required.")
        return 2

    observability = get_observability("careers-sync-cli")
    run_id = os.getenv("GITHUB_RUN_ID") or None

    with build_http_client(settings) as http:
        if args.dry_run:
            sink = StdoutSink()
        elif args.output:
            sink = JsonFileSink(args.output, run_id=run_id)
        else:
            try:
                sink = build_webhook_sink(settings, http, observability=observability)
            except WebhookConfigError as e:
                print(f"Webhook configuration error: {e}")
                print("Set WP_API_URL and WEBHOOK_SECRET, or pass --dry-run / --output.")
                return 2

        service = build_fetch_service(settings, http, strategies=strategies, observability=observability)
        result = scrape_and_sync(
            service,
            sink,
            config,
            source=args.source,
            force_sync=args.force_sync or settings.runtime.force_sync,
            run_id=run_id,
        )

    print(
        f"Run summary run_id={result.run_id} method={result.method} scraped={result.jobs_scraped} "
        f"synced={result.jobs_synced} skipped_sync={result.sync_skipped} total_s={result.total_time_s:.3f}"
    )
    if not result.success:
        print(f"Error: {result.error}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
