"""Slot extraction utilities for calendar views."""
import logging
import re
from datetime import datetime, tzinfo
from typing import List, Optional

from booker.models import Slot
from booker.page import BookingPage
from booker.time_normalizer import day_name_for

logger = logging.getLogger(__name__)

SLOT_BUTTON_SELECTOR = 'button[data-date-time]'
CLICKABLE_SELECTOR = 'button, [role="button"], [role="option"]'
DAY_HEADER_SELECTOR = '[role="columnheader"], .day-header'

# Fallback candidates must be a bare time such as "3:30 pm" or "10am"
TIME_ONLY_PATTERN = re.compile(r'^(\d{1,2}):?(\d{2})?\s*(am|pm)$', re.IGNORECASE)

MAX_HEADER_LEVELS = 5


class SlotExtractor:
    """Extracts available slots from the current calendar view."""

    def __init__(self, tz: Optional[tzinfo] = None):
        """
        Initialize SlotExtractor.

        Args:
            tz: Timezone used to turn slot timestamps into calendar days.
                None uses the host's local time.
        """
        self.tz = tz

    async def extract(self, page: BookingPage) -> List[Slot]:
        """Extract normalized slots, preferring timestamped slot buttons."""
        slots = await self.extract_timestamped(page)
        if slots is None:
            logger.info("No timestamped slot buttons - falling back to text extraction")
            slots = await self.extract_flat(page)

        logger.info(f"Found {len(slots)} slots in current view")
        return slots

    async def extract_timestamped(self, page: BookingPage) -> Optional[List[Slot]]:
        """Read slots from buttons carrying an epoch-ms timestamp.

        Returns:
            List of slots, or None when no element carries a timestamp
            (the caller should then use the fallback strategy).
        """
        buttons = await page.query_all(SLOT_BUTTON_SELECTOR)
        if not buttons:
            return None

        slots = []
        for index, button in enumerate(buttons):
            raw_timestamp = await button.get_attribute('data-date-time')
            try:
                timestamp = int(raw_timestamp)
            except (TypeError, ValueError):
                logger.debug(f"Ignoring slot button with timestamp {raw_timestamp!r}")
                continue
            if not timestamp:
                continue

            moment = datetime.fromtimestamp(timestamp / 1000, tz=self.tz)
            label = await button.text() or await button.get_attribute('aria-label')
            if not label:
                continue

            slot = Slot.from_text(
                f"{day_name_for(moment.date())} {label.strip()}",
                timestamp=timestamp,
                position_index=index,
                calendar_date=moment.date().isoformat(),
            )
            if slot:
                slots.append(slot)
            else:
                logger.debug(f"Slot button '{label}' did not normalize - skipping")

        logger.info(f"Found {len(slots)} slots with data-date-time")
        return slots

    async def extract_flat(self, page: BookingPage) -> List[Slot]:
        """Scan clickable time labels and look nearby for their day header."""
        slots = []
        for index, element in enumerate(await page.query_all(CLICKABLE_SELECTOR)):
            text = await element.text()
            if not text or not TIME_ONLY_PATTERN.match(text):
                continue

            day_label = await element.find_in_ancestors(DAY_HEADER_SELECTOR, MAX_HEADER_LEVELS)
            raw = f"{day_label} {text}" if day_label else text

            # A missing day label makes normalization fail, which drops the slot
            slot = Slot.from_text(raw, position_index=index)
            if slot:
                slots.append(slot)
            else:
                logger.debug(f"Time label '{raw}' has no usable day context - skipping")

        return slots
