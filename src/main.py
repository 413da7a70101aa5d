# src/main.py — v2
"""CLI entry point — daemon, batch, prune-cache, retry-failed, status commands.

Usage:
    vinenrich daemon
    vinenrich batch [--limit N]
    vinenrich prune-cache [--max-age-days D]
    vinenrich retry-failed
    vinenrich status
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys

from vinenrich.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        from vinenrich.config.settings import load_settings

        settings = load_settings()
    except Exception as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    _setup_logging(settings, args.verbose)

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="vinenrich",
        description=f"vinenrich v{__version__} — AI wine enrichment daemon",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- daemon ---
    p_daemon = subparsers.add_parser(
        "daemon", help="Poll and enrich pending items until interrupted",
    )
    p_daemon.set_defaults(func=_cmd_daemon)

    # --- batch ---
    p_batch = subparsers.add_parser(
        "batch", help="Enrich one batch of pending items and exit",
    )
    p_batch.add_argument(
        "--limit", type=int, default=None,
        help="Maximum items to process (default: BATCH_LIMIT)",
    )
    p_batch.set_defaults(func=_cmd_batch)

    # --- prune-cache ---
    p_prune = subparsers.add_parser(
        "prune-cache", help="Delete persistent cache entries older than an age",
    )
    p_prune.add_argument(
        "--max-age-days", type=float, default=None,
        help="Maximum entry age in days (default: CACHE_PRUNE_MAX_AGE_S)",
    )
    p_prune.set_defaults(func=_cmd_prune_cache)

    # --- retry-failed ---
    p_retry = subparsers.add_parser(
        "retry-failed", help="Reset failed items to pending",
    )
    p_retry.set_defaults(func=_cmd_retry_failed)

    # --- status ---
    p_status = subparsers.add_parser(
        "status", help="Show item counts per status",
    )
    p_status.set_defaults(func=_cmd_status)

    return parser


async def _cmd_daemon(args: argparse.Namespace, settings) -> int:
    """Run the enrichment daemon until SIGINT/SIGTERM."""
    from vinenrich.app import build_services

    services = build_services(settings)
    daemon = services.daemon
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, daemon.stop)
        except NotImplementedError:  # pragma: no cover - Windows
            pass

    daemon.start()
    try:
        await daemon.wait_stopped()
    finally:
        services.close()

    stats = daemon.stats
    print("\nDaemon stopped:")
    print(f"  Processed:    {stats.processed}")
    print(f"  Succeeded:    {stats.succeeded}")
    print(f"  Rejected:     {stats.rejected}")
    print(f"  Failed:       {stats.failed}")
    return 0


async def _cmd_batch(args: argparse.Namespace, settings) -> int:
    """Process one batch of pending items."""
    from vinenrich.app import build_services
    from vinenrich.pipeline.processor import run_batch

    limit = args.limit if args.limit is not None else settings.batch_limit
    if limit < 1:
        logger.error("--limit must be >= 1")
        return 1

    services = build_services(settings)
    try:
        report = await run_batch(
            services.repository,
            services.processor,
            limit=limit,
            max_concurrent=settings.daemon_max_concurrent,
        )
    finally:
        services.close()

    print("\nBatch complete:")
    print(f"  Processed:    {report.processed}")
    print(f"  Succeeded:    {report.succeeded}")
    print(f"  Theoretical:  {report.theoretical}")
    print(f"  Rejected:     {report.rejected}")
    print(f"  Retried:      {report.retried}")
    print(f"  Failed:       {report.failed}")
    return 0


async def _cmd_prune_cache(args: argparse.Namespace, settings) -> int:
    """Prune the persistent cache tier."""
    from vinenrich.cache.cache_factory import create_cache

    cache = create_cache(settings)
    if cache is None:
        logger.error("Cache is disabled (CACHE_ENABLED=false)")
        return 1

    max_age_s = (
        args.max_age_days * 86400
        if args.max_age_days is not None
        else settings.cache_prune_max_age_s
    )
    try:
        deleted = await cache.prune(max_age_s)
    finally:
        cache.close()
    print(f"Pruned {deleted} cache entries")
    return 0


async def _cmd_retry_failed(args: argparse.Namespace, settings) -> int:
    """Move failed items back to pending."""
    from vinenrich.storage.sqlite_repository import SqliteItemRepository

    repository = SqliteItemRepository(settings.item_db_path)
    try:
        count = await repository.reset_failed()
    finally:
        repository.close()
    print(f"Reset {count} failed item(s) to pending")
    return 0


async def _cmd_status(args: argparse.Namespace, settings) -> int:
    """Display item counts per status."""
    from vinenrich.storage.sqlite_repository import SqliteItemRepository

    repository = SqliteItemRepository(settings.item_db_path)
    try:
        counts = await repository.count_by_status()
    finally:
        repository.close()

    print(f"\nItems in {settings.item_db_path}:")
    for status, count in counts.items():
        print(f"  {status:<22} {count}")
    return 0


def _setup_logging(settings, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from vinenrich.logging.logger import setup_logging

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


if __name__ == "__main__":
    sys.exit(main())
