# ============================================================================
#  main.py — Sync Entry Point
#  Version: 2.0.0
#  CHANGES: init / run / loop commands over the batch cursor driver
# ============================================================================
import argparse
import json
import logging
import os
import sys
import time

from batch_driver import BatchDriver
from catalog_source import HttpCatalogSource, JsonCatalogSource
from config import SyncConfig
from errors import ConfigError
from models import BatchFilter
from rate_limiter import EndpointClass, RateLimiter, RetryPolicy
from shopify_client import ShopifyClient
from sync_engine import SyncEngine

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Catalog to Shopify Sync")
    parser.add_argument("command", choices=["init", "run", "loop"], help="init: count, run: one batch, loop: run to completion")
    parser.add_argument("--env-file", default=".env", help="dotenv file to load")
    parser.add_argument("--brand-id", type=int, help="Only records of this brand")
    parser.add_argument("--ids", help="Comma-separated source ids (overrides brand filter)")
    parser.add_argument("--offset", type=int, default=0, help="Records to skip before the cursor")
    parser.add_argument("--limit", type=int, help="Max records for the whole run")
    parser.add_argument("--cursor", type=int, help="Resume cursor (default: state file or 0)")
    parser.add_argument("--batch-size", type=int, help="Records per batch (default: BATCH_SIZE or 1)")
    parser.add_argument("--state-file", default=".sync_cursor.json", help="Where loop persists the cursor")
    parser.add_argument("--sleep-ms", type=int, default=150, help="Pause between batches in loop")
    parser.add_argument("--budget-s", type=float, help="Wall-clock budget for loop")
    parser.add_argument("--dry-run", action="store_true", help="Simulate only")
    parser.add_argument("--insert-only", action="store_true", help="Skip lookup; always create")
    parser.add_argument("--no-variants", action="store_true", help="Skip variant sync")
    parser.add_argument("--no-inventory", action="store_true", help="Skip inventory sync")
    parser.add_argument("--no-translations", action="store_true", help="Skip translations")
    parser.add_argument("--no-images", action="store_true", help="Skip images")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    return parser


def build_filter(args) -> BatchFilter:
    ids = [int(x) for x in args.ids.split(",") if x.strip()] if args.ids else []
    return BatchFilter(brand_id=args.brand_id, product_ids=ids, offset=args.offset, limit=args.limit)


def build_driver(config: SyncConfig) -> BatchDriver:
    if config.catalog_path:
        source = JsonCatalogSource(config.catalog_path)
    elif config.catalog_url:
        source = HttpCatalogSource(config.catalog_url, config.catalog_token)
    else:
        raise ConfigError("Set CATALOG_PATH or CATALOG_URL", missing=["CATALOG_PATH"])
    limiter = RateLimiter({
        EndpointClass.BULK: config.bulk_min_interval,
        EndpointClass.INVENTORY: config.inventory_min_interval,
    })
    shop = ShopifyClient(config.domain, config.token, config.api_version,
                         rate_limiter=limiter, retry_policy=RetryPolicy(max_retries=config.max_retries))
    return BatchDriver(source, SyncEngine(shop, config))


def read_cursor(path: str) -> int:
    if not os.path.exists(path):
        return 0
    with open(path, "r", encoding="utf-8") as fh:
        return int(json.load(fh).get("cursor", 0))


def write_cursor(path: str, cursor: int, finished: bool):
    with open(path, "w", encoding="utf-8") as fh:
        json.dump({"cursor": cursor, "finished": finished, "updated_at": time.strftime("%Y-%m-%dT%H:%M:%S")}, fh)


def run_loop(driver: BatchDriver, filter_: BatchFilter, cursor: int, batch_size: int, state_file: str,
             sleep_ms: int = 150, budget_s=None) -> int:
    """Calls next() until finished, persisting the cursor after every batch."""
    deadline = time.monotonic() + budget_s if budget_s else None
    processed = failed = 0
    while True:
        result = driver.next(filter_, cursor, batch_size)
        if not result.ok:
            logger.error(f"Batch failed at cursor {cursor}: {result.error}")
            return 1
        processed += result.processed
        failed += result.failed
        write_cursor(state_file, result.cursor_next, result.finished)
        if result.finished:
            logger.info(f"Finished: processed={processed} failed={failed} cursor={result.cursor_next}")
            return 0
        if result.cursor_next == cursor:
            logger.error(f"cursor_stuck at {cursor}")
            return 2
        cursor = result.cursor_next
        if deadline is not None and time.monotonic() >= deadline:
            logger.info(f"Budget reached: processed={processed} failed={failed} cursor={cursor}")
            return 0
        time.sleep(sleep_ms / 1000.0)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    config = SyncConfig.from_env(
        args.env_file,
        dry_run=args.dry_run or None,
        insert_only=args.insert_only or None,
        sync_variants=False if args.no_variants else None,
        sync_inventory=False if args.no_inventory else None,
        sync_translations=False if args.no_translations else None,
        sync_images=False if args.no_images else None,
        batch_size=args.batch_size,
    )
    config.log_summary()
    driver = build_driver(config)
    filter_ = build_filter(args)

    if args.command == "init":
        total = driver.total(filter_)
        print(json.dumps({"ok": True, "total": total}))
        return 0

    if args.command == "run":
        result = driver.next(filter_, args.cursor or 0, config.batch_size)
        print(result.model_dump_json())
        return 0 if result.ok else 1

    cursor = args.cursor if args.cursor is not None else read_cursor(args.state_file)
    return run_loop(driver, filter_, cursor, config.batch_size, args.state_file, args.sleep_ms, args.budget_s)


if __name__ == "__main__":
    sys.exit(main())
# ============================================================================
# End of main.py — Version: 2.0.0
# ============================================================================
