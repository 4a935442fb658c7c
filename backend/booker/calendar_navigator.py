"""Calendar navigation utilities for week and month views."""
import logging
from datetime import date, datetime
from typing import List, Optional

from booker.models import CalendarDate
from booker.page import BookingPage, PageElement
from booker.slot_extractor import SLOT_BUTTON_SELECTOR
from booker.time_normalizer import day_name_for

logger = logging.getLogger(__name__)

# Checked before UNAVAILABLE_PHRASES; several of these contain "no availability".
TERMINAL_PHRASES = (
    'no upcoming availability',
    'no availability in the foreseeable future',
    'no availability in the next',
    'not accepting appointments',
    'no bookable times',
)

UNAVAILABLE_PHRASES = (
    'no availability',
    'no times available',
    'no available times',
    'fully booked',
)

JUMP_PHRASES = ('jump to', 'next bookable')
NEXT_PHRASES = ('next', '→', '>')
NEXT_MONTH_PHRASES = ('next month',)
UNAVAILABLE_DATE_PHRASE = 'no available times'

LINK_SELECTOR = 'a, button, [role="link"], [role="button"]'
BUTTON_SELECTOR = 'button, [role="button"]'
DATE_CELL_SELECTOR = 'td[data-date]'
LOAD_SELECTOR = f'{SLOT_BUTTON_SELECTOR}, {DATE_CELL_SELECTOR}, [role="button"]'


def parse_calendar_date(value: Optional[str]) -> Optional[date]:
    """Parse a YYYY-MM-DD or YYYYMMDD date attribute."""
    if not value:
        return None
    value = value.strip()[:10]
    for fmt in ('%Y-%m-%d', '%Y%m%d'):
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


async def _label_of(element: PageElement) -> str:
    """Lower-cased text plus aria-label of an element."""
    text = await element.text()
    aria = await element.get_attribute('aria-label') or ''
    return f"{text} {aria}".lower()


class CalendarNavigator:
    """Reads page signals and drives the calendar's navigation controls."""

    def __init__(self, settle_ms: int = 2000, load_timeout: int = 15000):
        self.settle_ms = settle_ms
        self.load_timeout = load_timeout

    async def wait_for_calendar_load(self, page: BookingPage) -> bool:
        """Wait for slot buttons or the month grid; a timeout is not fatal."""
        loaded = await page.wait_for(LOAD_SELECTOR, self.load_timeout)
        if not loaded:
            logger.warning("Calendar load timeout - page may still be loading")
        return loaded

    async def has_terminal_signal(self, page: BookingPage) -> bool:
        """True when the page says nothing is available in any future view."""
        text = (await page.current_text()).lower()
        return any(phrase in text for phrase in TERMINAL_PHRASES)

    async def has_unavailable_signal(self, page: BookingPage) -> bool:
        """True when the page says the current view has no availability."""
        text = (await page.current_text()).lower()
        return any(phrase in text for phrase in UNAVAILABLE_PHRASES)

    async def _settle(self, page: BookingPage):
        await page.wait_for_idle(10000)
        await page.pause(self.settle_ms)

    async def _find_jump_control(self, page: BookingPage) -> Optional[PageElement]:
        for element in await page.query_all(LINK_SELECTOR):
            label = await _label_of(element)
            if any(phrase in label for phrase in JUMP_PHRASES):
                return element
        return None

    async def _find_next_control(self, page: BookingPage, month: bool = False) -> Optional[PageElement]:
        """Find an enabled forward control; month=True only accepts "next month"."""
        phrases = NEXT_MONTH_PHRASES if month else NEXT_PHRASES
        for element in await page.query_all(BUTTON_SELECTOR):
            label = await _label_of(element)
            if any(phrase in label for phrase in JUMP_PHRASES):
                continue
            if not month and any(phrase in label for phrase in NEXT_MONTH_PHRASES):
                continue
            if await element.get_attribute('disabled') is not None:
                continue
            if any(phrase in label for phrase in phrases):
                return element
        return None

    async def jump_to_next_available(self, page: BookingPage) -> bool:
        """Click the "Jump to next bookable date" control if there is one."""
        control = await self._find_jump_control(page)
        if not control:
            logger.debug("Jump link not found")
            return False
        await page.click(control)
        logger.info("Clicked 'Jump to next bookable date'")
        await self._settle(page)
        return True

    async def navigate_to_next_week(self, page: BookingPage) -> bool:
        """Step the week view forward by one page."""
        control = await self._find_next_control(page)
        if not control:
            logger.info("Next week control not found - no more weeks available")
            return False
        await page.click(control)
        logger.info("Navigated to next week")
        await self._settle(page)
        return True

    async def navigate_to_next_month(self, page: BookingPage) -> bool:
        """Advance the month view, preferring an explicit "next month" control."""
        control = await self._find_next_control(page, month=True)
        if not control:
            control = await self._find_next_control(page)
        if not control:
            logger.info("Next month control not found - no more months available")
            return False
        await page.click(control)
        logger.info("Navigated to next month")
        await self._settle(page)
        return True

    async def read_month_dates(self, page: BookingPage) -> List[CalendarDate]:
        """List dates in the month view that advertise availability, ascending."""
        available = {}
        for cell in await page.query_all(DATE_CELL_SELECTOR):
            parsed = parse_calendar_date(await cell.get_attribute('data-date'))
            if not parsed or parsed.isoformat() in available:
                continue

            # Availability is carried by the button inside each cell
            buttons = await cell.query_all('button')
            if not buttons:
                continue
            button = buttons[0]
            label = (await button.get_attribute('aria-label') or '').lower()
            if UNAVAILABLE_DATE_PHRASE in label:
                continue
            if await button.get_attribute('disabled') is not None:
                continue

            available[parsed.isoformat()] = CalendarDate(
                iso_date=parsed.isoformat(),
                day_name=day_name_for(parsed),
                element=button,
            )

        result = [available[key] for key in sorted(available)]
        logger.info(f"Month view lists {len(result)} date(s) with availability")
        return result

    async def open_date(self, page: BookingPage, calendar_date: CalendarDate) -> bool:
        """Open a date's detail view and wait for its slot buttons."""
        await page.click(calendar_date.element)
        loaded = await page.wait_for(SLOT_BUTTON_SELECTOR, self.load_timeout)
        await page.pause(self.settle_ms)
        if not loaded:
            logger.warning(f"No slot buttons appeared for {calendar_date.iso_date} - continuing anyway")
        return loaded
