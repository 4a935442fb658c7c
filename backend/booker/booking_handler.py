"""Booking handler for the reservation form flow."""
import logging
from typing import Dict, List, Optional

from booker.diagnostics import SearchObserver
from booker.models import Slot, UserInfo
from booker.page import BookingPage, PageElement
from booker.slot_extractor import SLOT_BUTTON_SELECTOR, TIME_ONLY_PATTERN
from booker.time_normalizer import normalize_time

logger = logging.getLogger(__name__)

EXPECTED_FIELD_COUNT = 4
MIN_FIELDS_FILLED = 3
LABEL_LEVELS = 4

# Field order for the positional strategy
FIELD_ORDER = ('first_name', 'last_name', 'email', 'phone')

FIELD_KEYWORDS = {
    'first_name': ('first name', 'first', 'given'),
    'last_name': ('last name', 'last', 'surname', 'family'),
    'email': ('email', 'e-mail'),
    'phone': ('phone', 'tel', 'mobile'),
}

SUBMIT_KEYWORDS = ('book', 'confirm', 'submit', 'schedule')
SUCCESS_KEYWORDS = ('confirmed', 'booked', 'scheduled', 'thank you', 'success')

CLICKABLE_SELECTOR = 'button, [role="button"]'
SUBMIT_SELECTOR = 'button, [role="button"], input[type="submit"]'


def _field_from_label(text: str) -> Optional[str]:
    """Classify label text as one of the form fields, or None."""
    text = text.lower()
    # Email wins over everything: its block often mentions other fields
    if any(k in text for k in FIELD_KEYWORDS['email']):
        return 'email'
    has_first = any(k in text for k in FIELD_KEYWORDS['first_name'])
    has_last = any(k in text for k in FIELD_KEYWORDS['last_name'])
    if has_first and not has_last:
        return 'first_name'
    if has_last and not has_first:
        return 'last_name'
    if any(k in text for k in FIELD_KEYWORDS['phone']):
        return 'phone'
    return None


class BookingHandler:
    """Selects a slot, fills the booking form and confirms the result."""

    def __init__(
            self,
            form_timeout: int = 10000,
            form_settle_ms: int = 1500,
            confirmation_settle_ms: int = 3000,
            observer: Optional[SearchObserver] = None):
        self.form_timeout = form_timeout
        self.form_settle_ms = form_settle_ms
        self.confirmation_settle_ms = confirmation_settle_ms
        self.observer = observer or SearchObserver()

    async def book(self, page: BookingPage, slot: Slot, user: UserInfo) -> bool:
        """Book a slot on the open page.

        Every failure, including page errors, is logged and reported as
        False so a half-filled form never escapes as an exception.
        """
        try:
            logger.info(f"Attempting to book slot: {slot.display_text}")

            if not await self.select_slot(page, slot):
                logger.warning("Failed to click slot button")
                return False

            logger.info("Clicked slot, waiting for form...")
            await page.wait_for('input', self.form_timeout)
            await page.pause(self.form_settle_ms)
            await self.observer.on_snapshot(page, "form")

            filled = await self.fill_form(page, user)
            if filled < MIN_FIELDS_FILLED:
                logger.warning(f"Filled only {filled} of {EXPECTED_FIELD_COUNT} fields - giving up")
                await self.observer.on_snapshot(page, "form-failed")
                return False
            await self.observer.on_snapshot(page, "form-filled")

            if not await self.submit(page):
                logger.warning("Failed to find a submit control")
                await self.observer.on_snapshot(page, "submit-failed")
                return False

            await page.pause(self.confirmation_settle_ms)
            await self.observer.on_snapshot(page, "confirmation")

            success = await self.verify_success(page)
            if success:
                logger.info("Booking confirmed!")
            else:
                logger.warning("Booking may have failed - no confirmation text found")
            return success
        except Exception as e:
            logger.error(f"Booking error: {e}")
            await self._safe_snapshot(page, "booking-error")
            return False

    async def _safe_snapshot(self, page: BookingPage, label: str):
        try:
            await self.observer.on_snapshot(page, label)
        except Exception as e:
            logger.debug(f"Snapshot '{label}' failed: {e}")

    async def select_slot(self, page: BookingPage, slot: Slot) -> bool:
        """Click the slot: timestamp handle, then position, then time text."""
        # Method 1: timestamp attribute
        if slot.timestamp:
            buttons = await page.query_all(f'button[data-date-time="{slot.timestamp}"]')
            if buttons:
                await page.click(buttons[0])
                logger.info("Selected slot by timestamp")
                return True

        # Method 2: position among timestamped buttons
        if slot.position_index is not None:
            buttons = await page.query_all(SLOT_BUTTON_SELECTOR)
            if 0 <= slot.position_index < len(buttons):
                await page.click(buttons[slot.position_index])
                logger.info(f"Selected slot by position {slot.position_index}")
                return True

        # Method 3: a bare "H[:MM] am|pm" label carrying the same time
        wanted = normalize_time(slot.display_text)
        if wanted:
            for button in await page.query_all(CLICKABLE_SELECTOR):
                text = await button.text()
                if not TIME_ONLY_PATTERN.match(text):
                    continue
                if normalize_time(text) == wanted:
                    await page.click(button)
                    logger.info(f"Selected slot by text '{wanted}'")
                    return True

        return False

    async def _visible_inputs(self, page: BookingPage) -> List[PageElement]:
        inputs = []
        for element in await page.query_all('input'):
            if (await element.get_attribute('type') or '').lower() == 'hidden':
                continue
            if await element.is_visible():
                inputs.append(element)
        return inputs

    async def _classify_input(self, element: PageElement) -> Optional[str]:
        """Guess the field of an input from its attributes, then nearby text."""
        for attribute in ('aria-label', 'placeholder', 'name', 'autocomplete'):
            value = await element.get_attribute(attribute)
            field = _field_from_label(value) if value else None
            if field:
                return field
        for text in await element.ancestor_texts(LABEL_LEVELS):
            field = _field_from_label(text)
            if field:
                return field
        return None

    async def fill_form(self, page: BookingPage, user: UserInfo) -> int:
        """Fill the identity fields and return how many were set."""
        values = {
            'first_name': user.first_name,
            'last_name': user.last_name,
            'email': user.email,
            'phone': user.phone,
        }
        inputs = await self._visible_inputs(page)
        logger.info(f"Found {len(inputs)} visible inputs")

        if len(inputs) == EXPECTED_FIELD_COUNT:
            targets: Dict[str, PageElement] = dict(zip(FIELD_ORDER, inputs))
            strategy = "position"
        else:
            targets = {}
            for element in inputs:
                field = await self._classify_input(element)
                if field and field not in targets:
                    targets[field] = element
            strategy = "label"

        filled = 0
        for field in FIELD_ORDER:
            element = targets.get(field)
            value = values[field]
            if element is None:
                logger.info(f"{field}: input not found")
                continue
            if not value:
                logger.info(f"{field}: no value to enter")
                continue
            await page.set_input_value(element, value)
            logger.info(f"{field}: set (by {strategy})")
            filled += 1

        return filled

    async def submit(self, page: BookingPage) -> bool:
        """Click the first control that looks like a submit button."""
        for element in await page.query_all(SUBMIT_SELECTOR):
            text = (await element.text()).lower()
            value = (await element.get_attribute('value') or '').lower()
            if any(k in text or k in value for k in SUBMIT_KEYWORDS):
                await page.click(element)
                logger.info(f"Clicked submit control '{text or value}'")
                return True
        return False

    async def verify_success(self, page: BookingPage) -> bool:
        text = (await page.current_text()).lower()
        return any(keyword in text for keyword in SUCCESS_KEYWORDS)
