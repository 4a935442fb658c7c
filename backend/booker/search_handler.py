"""Search handler: walks the booking calendar looking for open slots."""
import logging
from typing import List, Optional, Sequence

from booker.calendar_navigator import CalendarNavigator
from booker.diagnostics import SearchObserver
from booker.matcher import match_preferences, target_days
from booker.models import (
    NavigationState,
    SearchResult,
    SearchState,
    SearchStrategy,
    Slot,
)
from booker.page import BookingPage
from booker.slot_extractor import SlotExtractor

logger = logging.getLogger(__name__)


class SearchHandler:
    """Drives discovery across an unbounded horizon of weeks or months.

    Two strategies exist. When at least one preference names a day of
    the week, the month view is read and only dates on those days are
    opened (calendar-targeted). Otherwise the current view is read
    directly and the search steps forward until any slot shows up
    (unscoped); matching then happens downstream.

    Page errors are not caught here. A failed click or evaluation aborts
    the run and reaches the caller unchanged.
    """

    def __init__(
            self,
            slot_extractor: Optional[SlotExtractor] = None,
            navigator: Optional[CalendarNavigator] = None,
            observer: Optional[SearchObserver] = None):
        self.slot_extractor = slot_extractor or SlotExtractor()
        self.navigator = navigator or CalendarNavigator()
        self.observer = observer or SearchObserver()

    @staticmethod
    def choose_strategy(preferences: Sequence[str]) -> SearchStrategy:
        if target_days(preferences):
            return SearchStrategy.CALENDAR_TARGETED
        return SearchStrategy.UNSCOPED

    async def search(
            self,
            page: BookingPage,
            url: str,
            preferences: Sequence[str],
            horizon: int) -> SearchResult:
        """Load the booking page and search it for slots.

        Args:
            page: Page capability, already open
            url: Booking page URL
            preferences: Ranked preference strings, most preferred first
            horizon: Maximum number of week/month advances

        Returns:
            SearchResult with the final state, the slots of the view that
            ended the search, and (calendar-targeted only) the match
        """
        strategy = self.choose_strategy(preferences)
        nav = NavigationState(horizon=horizon)
        logger.info(f"Searching {url} with {strategy.value} strategy (horizon {horizon})")

        await page.navigate(url)
        await self.observer.on_snapshot(page, "initial")
        await self.navigator.wait_for_calendar_load(page)
        await self.observer.on_snapshot(page, "loaded")

        if strategy == SearchStrategy.CALENDAR_TARGETED:
            result = await self._search_targeted(page, preferences, nav)
        else:
            result = await self._search_unscoped(page, nav)

        await self.observer.on_snapshot(page, "final")
        logger.info(
            f"Search finished: {result.state.value} after {result.steps} step(s), "
            f"{len(result.slots)} slot(s) returned"
        )
        return result

    def _finish(
            self,
            nav: NavigationState,
            strategy: SearchStrategy,
            state: SearchState,
            slots: Optional[List[Slot]] = None,
            matched: Optional[Slot] = None) -> SearchResult:
        nav.state = state
        self.observer.on_event("search_finished", {"state": state.value, "steps": nav.steps})
        return SearchResult(
            state=state,
            strategy=strategy,
            slots=list(slots or []),
            matched=matched,
            steps=nav.steps,
            seen_texts=[s.display_text for s in nav.seen],
        )

    async def _search_targeted(
            self,
            page: BookingPage,
            preferences: Sequence[str],
            nav: NavigationState) -> SearchResult:
        strategy = SearchStrategy.CALENDAR_TARGETED
        days = set(target_days(preferences))
        logger.info(f"Target days: {', '.join(sorted(days))}")

        while True:
            if await self.navigator.has_terminal_signal(page):
                logger.info("Page reports no availability anywhere - stopping")
                return self._finish(nav, strategy, SearchState.TERMINAL_NONE_ANYWHERE)

            dates = await self.navigator.read_month_dates(page)
            candidates = [d for d in dates if d.day_name in days]
            logger.info(
                f"Month {nav.steps + 1}: {len(candidates)} of {len(dates)} available date(s) "
                f"fall on a target day"
            )

            for calendar_date in candidates:
                logger.info(f"Opening {calendar_date.day_name} {calendar_date.iso_date}")
                await self.navigator.open_date(page, calendar_date)
                slots = await self.slot_extractor.extract(page)
                nav.record(slots)

                matched = match_preferences(slots, preferences)
                if matched:
                    logger.info(f"Matched '{matched.display_text}' on {calendar_date.iso_date}")
                    return self._finish(nav, strategy, SearchState.FOUND, slots, matched)

            if nav.horizon_reached:
                logger.info(f"Reached search horizon ({nav.horizon} months)")
                return self._finish(nav, strategy, SearchState.EXHAUSTED)

            if not await self.navigator.navigate_to_next_month(page):
                return self._finish(nav, strategy, SearchState.EXHAUSTED)
            nav.steps += 1
            await self.observer.on_snapshot(page, f"month-{nav.steps}")

    async def _search_unscoped(self, page: BookingPage, nav: NavigationState) -> SearchResult:
        strategy = SearchStrategy.UNSCOPED

        while True:
            logger.info(f"Checking view {nav.steps + 1} (horizon {nav.horizon})")
            slots = await self.slot_extractor.extract(page)
            nav.record(slots)
            if slots:
                return self._finish(nav, strategy, SearchState.FOUND, slots)

            if await self.navigator.has_terminal_signal(page):
                logger.info("Page reports no availability anywhere - stopping")
                return self._finish(nav, strategy, SearchState.TERMINAL_NONE_ANYWHERE)

            if nav.horizon_reached:
                logger.info(f"Reached search horizon ({nav.horizon} steps)")
                return self._finish(nav, strategy, SearchState.EXHAUSTED)

            if await self.navigator.has_unavailable_signal(page):
                logger.info("No availability message detected")
                self.observer.on_event("view_unavailable", {"step": nav.steps})

            # One advance per iteration, fast-forward first
            advanced = await self.navigator.jump_to_next_available(page)
            if not advanced:
                advanced = await self.navigator.navigate_to_next_week(page)
            if not advanced:
                logger.info("Cannot advance further - no more slots")
                return self._finish(nav, strategy, SearchState.EXHAUSTED)

            nav.steps += 1
            await self.observer.on_snapshot(page, f"week-{nav.steps}")
