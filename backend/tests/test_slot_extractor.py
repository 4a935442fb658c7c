"""Tests for SlotExtractor."""
from datetime import timezone
from zoneinfo import ZoneInfo

import pytest

from booker.slot_extractor import SlotExtractor
from tests.fakes import FakeElement, FakePage, FakeView, epoch_ms, slot_button


@pytest.fixture
def extractor():
    return SlotExtractor(tz=timezone.utc)


@pytest.mark.asyncio
async def test_timestamped_buttons_carry_day_date_and_handles(extractor):
    ts_mon = epoch_ms(2026, 1, 12, 9)
    ts_tue = epoch_ms(2026, 1, 13, 15)
    page = FakePage({"week": FakeView(elements=[
        slot_button(ts_mon, "9:00am"),
        slot_button(ts_tue, "3:00pm"),
    ])}, start="week")

    slots = await extractor.extract(page)

    assert [s.normalized_key for s in slots] == ["mon 9am", "tue 3pm"]
    assert slots[0].display_text == "Monday 9:00am"
    assert slots[0].timestamp == ts_mon
    assert slots[0].calendar_date == "2026-01-12"
    assert [s.position_index for s in slots] == [0, 1]


@pytest.mark.asyncio
async def test_aria_label_used_when_button_has_no_text(extractor):
    ts = epoch_ms(2026, 1, 15, 20, 30)
    button = FakeElement('button', '', {'data-date-time': str(ts), 'aria-label': '8:30pm'})
    page = FakePage({"v": FakeView(elements=[button])}, start="v")

    slots = await extractor.extract(page)

    assert slots[0].normalized_key == "thu 8:30pm"


@pytest.mark.asyncio
async def test_invalid_timestamps_are_skipped(extractor):
    page = FakePage({"v": FakeView(elements=[
        FakeElement('button', '9:00am', {'data-date-time': 'soon'}),
        FakeElement('button', '9:00am', {'data-date-time': '0'}),
        slot_button(epoch_ms(2026, 1, 16, 10), "10:00am"),
    ])}, start="v")

    slots = await extractor.extract(page)

    assert [s.normalized_key for s in slots] == ["fri 10am"]
    assert slots[0].position_index == 2


@pytest.mark.asyncio
async def test_timezone_decides_the_calendar_day():
    # 2026-01-16 02:00 UTC is still Thursday evening in New York
    ts = epoch_ms(2026, 1, 16, 2)
    page = FakePage({"v": FakeView(elements=[slot_button(ts, "9:00pm")])}, start="v")

    slots = await SlotExtractor(tz=ZoneInfo("America/New_York")).extract(page)

    assert slots[0].normalized_key == "thu 9pm"
    assert slots[0].calendar_date == "2026-01-15"


@pytest.mark.asyncio
async def test_fallback_recovers_day_from_nearby_header(extractor):
    page = FakePage({"v": FakeView(elements=[
        FakeElement('button', 'Next week'),
        FakeElement('button', '3:30 pm', header='Tuesday'),
        FakeElement('div', '4pm', {'role': 'option'}, header='Wed 14'),
    ])}, start="v")

    slots = await extractor.extract(page)

    assert [s.normalized_key for s in slots] == ["tue 3:30pm", "wed 4pm"]
    assert slots[0].timestamp is None
    assert slots[0].position_index == 1


@pytest.mark.asyncio
async def test_fallback_drops_times_without_day(extractor):
    page = FakePage({"v": FakeView(elements=[
        FakeElement('button', '3:30 pm'),
        FakeElement('button', 'Tuesday at 4pm', header='Tuesday'),
    ])}, start="v")

    assert await extractor.extract(page) == []


@pytest.mark.asyncio
async def test_fallback_not_used_when_timestamped_buttons_exist(extractor):
    page = FakePage({"v": FakeView(elements=[
        FakeElement('button', 'later', {'data-date-time': 'x'}),
        FakeElement('button', '3:30 pm', header='Tuesday'),
    ])}, start="v")

    assert await extractor.extract(page) == []
