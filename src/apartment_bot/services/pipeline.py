"""Fetch -> filter -> dispatch -> persist cycle shared by every source."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..adapters.base import BaseAdapter
from ..exceptions import ApplicationError
from ..models.listing import ListingRecord
from .application import ApplicationService
from .notifier import TelegramNotifier
from .seen_store import SeenStore

logger = logging.getLogger(__name__)

MARK_SEEN = "mark_seen"
RETRY = "retry"


@dataclass
class PipelineResult:
    """Outcome of one pipeline run for one source."""

    source: str
    fetched: int = 0
    new: List[str] = field(default_factory=list)
    skipped: int = 0
    failed: List[str] = field(default_factory=list)

    def summary(self) -> str:
        return (
            f"{self.source}: {self.fetched} fetched, {len(self.new)} new, "
            f"{self.skipped} already seen, {len(self.failed)} failed"
        )


class ListingPipeline:
    """
    Run one polling cycle for a source adapter.

    Listings are handled strictly in fetch order. A listing whose id is not in
    the seen-set goes through the adapter's side-effect chain (application
    for sources that submit them, then the notification) and is marked seen
    only after the chain completes. A crash in between means the listing is
    processed again next cycle: at-least-once, never silently lost.

    A failure in one listing's chain is logged, leaves that listing unseen,
    and the batch continues.

    on_application_failure decides what a failed application does:
    "mark_seen" notifies and marks the listing anyway (no repeat
    applications), "retry" leaves it unseen so the next cycle applies again.
    """

    def __init__(
        self,
        store: SeenStore,
        notifier: TelegramNotifier,
        applications: Optional[ApplicationService] = None,
        on_application_failure: str = MARK_SEEN,
    ):
        if on_application_failure not in (MARK_SEEN, RETRY):
            raise ValueError(f"Unknown application failure policy: {on_application_failure}")
        self.store = store
        self.notifier = notifier
        self.applications = applications
        self.on_application_failure = on_application_failure

    async def run(self, adapter: BaseAdapter) -> PipelineResult:
        """Process one source. Never raises."""
        result = PipelineResult(source=adapter.source_name)
        logger.info(f"Starting to process {adapter.source_name} listings")

        try:
            listings = await adapter.fetch_all()
        except Exception as e:
            logger.error(f"Error in {adapter.source_name} fetch: {e}")
            return result

        result.fetched = len(listings)
        for listing in listings:
            try:
                if await self.store.has(listing.source, listing.id):
                    logger.debug(f"Already seen {listing.source.value}:{listing.id}")
                    result.skipped += 1
                    continue

                logger.info(f"New {listing.source.value} listing found: {listing.title} ({listing.id})")
                await self._dispatch(adapter, listing)
                await self.store.mark_seen(listing.source, listing.id)
                result.new.append(listing.id)
            except Exception as e:
                logger.error(f"Error processing {listing.source.value} listing {listing.id}: {e}")
                result.failed.append(listing.id)

        logger.info(f"Finished processing {result.summary()}")
        return result

    async def _dispatch(self, adapter: BaseAdapter, listing: ListingRecord) -> None:
        """Side-effect chain for one unseen listing."""
        applied = None
        if adapter.submits_applications:
            applied = await self._apply(listing)

        await self.notifier.notify(listing, applied=applied)

    async def _apply(self, listing: ListingRecord) -> bool:
        if self.applications is None:
            raise ApplicationError("No application service configured")

        try:
            await self.applications.submit(listing)
        except ApplicationError as e:
            logger.error(f"Error sending application for {listing.title}: {e}")
            if self.on_application_failure == RETRY:
                raise
            return False
        return True
