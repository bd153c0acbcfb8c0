"""Main orchestrator for the apartment bot."""

import argparse
import asyncio
import logging
import signal
import sys
from typing import Dict, List, Optional

from dotenv import load_dotenv

from .adapters import ADAPTER_REGISTRY, get_adapter
from .adapters.base import BaseAdapter
from .config import Settings, get_env, load_settings
from .exceptions import ConfigError
from .scheduler import build_scheduler
from .services.application import Applicant, ApplicationService
from .services.notifier import TelegramNotifier
from .services.pipeline import ListingPipeline, PipelineResult
from .services.seen_store import SeenStore, create_seen_store
from .utils.logging import setup_logging

logger = logging.getLogger(__name__)


class ApartmentBot:
    """
    Main orchestrator for the apartment bot.

    Wires the seen store, Telegram notifier and application service into one
    ListingPipeline and drives every enabled source through it, either once
    or on each source's cron schedule.
    """

    def __init__(
        self,
        settings: Settings,
        store: Optional[SeenStore] = None,
        notifier: Optional[TelegramNotifier] = None,
        applications: Optional[ApplicationService] = None,
        only_source: Optional[str] = None,
    ):
        self.settings = settings
        self.store = store or create_seen_store(settings.database_url)
        self.notifier = notifier or TelegramNotifier.from_settings(settings)
        self.applications = applications or ApplicationService(
            Applicant.from_settings(settings), timeout=settings.request_timeout
        )
        self.pipeline = ListingPipeline(
            self.store,
            self.notifier,
            self.applications,
            on_application_failure=settings.config["application"]["on_application_failure"],
        )
        self.adapters = self._build_adapters(only_source)

    def _build_adapters(self, only_source: Optional[str] = None) -> Dict[str, BaseAdapter]:
        adapters = {}
        for source_name in ADAPTER_REGISTRY:
            if only_source and source_name != only_source:
                continue

            adapter = get_adapter(source_name, self.settings.source_config(source_name))
            if not adapter.is_available():
                logger.warning(f"Adapter {source_name} disabled in config")
                continue
            adapters[source_name] = adapter
        return adapters

    async def run_source(self, source_name: str) -> PipelineResult:
        logger.info(f"Running scheduled {source_name} check")
        return await self.pipeline.run(self.adapters[source_name])

    async def run_once(self) -> List[PipelineResult]:
        """Run every enabled source once, concurrently."""
        return list(await asyncio.gather(*(self.run_source(name) for name in self.adapters)))

    async def serve(self) -> None:
        """Poll on the configured schedules until SIGINT/SIGTERM."""
        scheduler = build_scheduler(
            self.settings.config["schedules"],
            self.adapters,
            self.run_source,
            timezone=self.settings.timezone,
        )
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop.set)

        scheduler.start()
        logger.info("Bot setup completed successfully")
        try:
            await stop.wait()
        finally:
            logger.info("Shutting down scheduler...")
            scheduler.shutdown(wait=False)


async def _run(settings: Settings, once: bool, only_source: Optional[str]) -> List[PipelineResult]:
    bot = ApartmentBot(settings, only_source=only_source)
    results: List[PipelineResult] = []
    async with bot.store, bot.notifier:
        if once:
            results = await bot.run_once()
        else:
            await bot.serve()
    return results


async def _stats(database_url: str) -> dict:
    async with create_seen_store(database_url) as store:
        return await store.get_stats()


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Apartment Bot - watch Berlin rental listings and notify via Telegram"
    )
    parser.add_argument(
        "-c",
        "--config",
        default=None,
        help="Path to configuration file (default: ./config/config.yaml if present)",
    )
    parser.add_argument(
        "--source",
        help=f"Only use this source ({', '.join(ADAPTER_REGISTRY)})",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run every enabled source once and exit instead of scheduling",
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Show seen-listing statistics and exit",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    setup_logging("DEBUG" if args.verbose else None)

    if args.source and args.source not in ADAPTER_REGISTRY:
        logger.error(f"Unknown source: {args.source}. Available: {list(ADAPTER_REGISTRY)}")
        sys.exit(1)

    # Handle --stats
    if args.stats:
        load_dotenv()
        try:
            stats = asyncio.run(_stats(get_env("DATABASE_URL", required=True)))
        except ConfigError as e:
            logger.error(str(e))
            sys.exit(1)
        print("\n=== Apartment Bot Statistics ===")
        print(f"Total tracked: {stats['total_tracked']}")
        print("\nBy source:")
        for source, count in stats.get("by_source", {}).items():
            print(f"  {source}: {count}")
        return

    try:
        settings = load_settings(args.config)
    except (ConfigError, FileNotFoundError) as e:
        logger.error(str(e))
        sys.exit(1)

    logger.info("Starting apartment bot...")
    try:
        results = asyncio.run(_run(settings, args.once, args.source))
    except KeyboardInterrupt:
        return
    except ConfigError as e:
        logger.error(str(e))
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        sys.exit(1)

    if args.once:
        print("\n=== Apartment Bot Results ===")
        for result in results:
            print(f"  {result.summary()}")


if __name__ == "__main__":
    main()
