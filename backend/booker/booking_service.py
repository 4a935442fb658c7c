"""Booking service: one discovery-plus-booking attempt."""
import logging
from typing import Callable, List, Optional, Sequence

from booker.booking_handler import BookingHandler
from booker.browser_session import BrowserSession
from booker.matcher import match_preferences
from booker.models import BookingOutcome, SearchResult, Slot, UserInfo
from booker.search_handler import SearchHandler

logger = logging.getLogger(__name__)


class BookingService:
    """Runs discovery, matching and booking against one browser session.

    The session is acquired before discovery. If discovery raises, the
    session is stopped before the error propagates. Otherwise it stays
    open for the booking step and is stopped once that step is done.
    """

    def __init__(
            self,
            session_factory: Optional[Callable[[], BrowserSession]] = None,
            search_handler: Optional[SearchHandler] = None,
            booking_handler: Optional[BookingHandler] = None,
            horizon: int = 4,
            dry_run: bool = False):
        self.session_factory = session_factory
        self.search_handler = search_handler or SearchHandler()
        self.booking_handler = booking_handler or BookingHandler()
        self.horizon = horizon
        self.dry_run = dry_run

    async def attempt_booking(
            self,
            booking_url: str,
            preferences: Sequence[str],
            user: UserInfo,
            mock_slots: Optional[List[Slot]] = None) -> BookingOutcome:
        """Find the best slot for the preferences and book it.

        Args:
            booking_url: Booking page URL
            preferences: Ranked preferences, most preferred first
            user: Identity fields for the booking form
            mock_slots: Pre-discovered slots; skips the browser entirely

        Returns:
            BookingOutcome describing what happened
        """
        if mock_slots is not None:
            logger.info(f"Using {len(mock_slots)} mocked slots")
            return self._outcome_without_page(mock_slots, preferences)

        if not self.session_factory:
            raise ValueError("No slots provided and no browser session configured")

        session = self.session_factory()
        try:
            page = await session.new_page()
            logger.info(f"Scraping slots from: {booking_url}")
            result = await self.search_handler.search(page, booking_url, preferences, self.horizon)
        except Exception:
            logger.error("Discovery failed - releasing browser session")
            await session.stop()
            raise

        try:
            return await self._finish_run(page, result, preferences, user)
        finally:
            await session.stop()

    def _outcome_without_page(self, slots: List[Slot], preferences: Sequence[str]) -> BookingOutcome:
        if not slots:
            return BookingOutcome.no_slots()
        matched = match_preferences(slots, preferences)
        if not matched:
            return BookingOutcome.no_match([s.display_text for s in slots])
        logger.info(f"DRY RUN - would book: {matched.display_text}")
        return BookingOutcome.booked(matched, dry_run=True)

    async def _finish_run(
            self,
            page,
            result: SearchResult,
            preferences: Sequence[str],
            user: UserInfo) -> BookingOutcome:
        if not result.seen_texts:
            logger.info(f"No slots found ({result.state.value})")
            return BookingOutcome.no_slots()

        logger.info(f"Found {len(result.seen_texts)} available slots")
        logger.info(f"Matching against preferences: {', '.join(preferences)}")
        matched = result.matched or match_preferences(result.slots, preferences)
        if not matched:
            return BookingOutcome.no_match(result.seen_texts)

        logger.info(f"Matched slot: {matched.display_text}")
        if self.dry_run:
            logger.info(f"DRY RUN - would book: {matched.display_text}")
            return BookingOutcome.booked(matched, dry_run=True)

        if await self.booking_handler.book(page, matched, user):
            return BookingOutcome.booked(matched)
        return BookingOutcome.booking_failed(matched)
