"""Tests for the discovery state machine."""
from datetime import timezone

import pytest

from booker.calendar_navigator import CalendarNavigator
from booker.diagnostics import SearchObserver
from booker.models import SearchState, SearchStrategy
from booker.search_handler import SearchHandler
from booker.slot_extractor import SlotExtractor
from tests.fakes import (
    FakeElement,
    FakePage,
    FakeView,
    date_cell,
    epoch_ms,
    next_month_button,
    slot_button,
)

URL = "https://calendar.example.com/appointments/schedules/abc"


class RecordingObserver(SearchObserver):
    def __init__(self):
        self.labels = []
        self.events = []

    async def on_snapshot(self, page, label):
        self.labels.append(label)

    def on_event(self, message, data=None):
        self.events.append(message)


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def handler(observer):
    return SearchHandler(
        slot_extractor=SlotExtractor(tz=timezone.utc),
        navigator=CalendarNavigator(settle_ms=0, load_timeout=10),
        observer=observer,
    )


def test_strategy_follows_preference_days():
    assert SearchHandler.choose_strategy(["Thu 8:30pm", "3pm"]) == SearchStrategy.CALENDAR_TARGETED
    assert SearchHandler.choose_strategy(["3pm", "8:30pm"]) == SearchStrategy.UNSCOPED


class TestCalendarTargeted:

    def daytime_slots(self):
        return [slot_button(epoch_ms(2026, 1, 15, hour), f"{hour % 12 or 12}:00{'am' if hour < 12 else 'pm'}")
                for hour in range(9, 17)]

    @pytest.mark.asyncio
    async def test_visits_target_dates_in_order_until_a_match(self, handler):
        month = FakeView("January 2026", [
            date_cell("2026-01-22", goto="jan22"),
            date_cell("2026-01-13", goto="jan13"),
            date_cell("2026-01-15", goto="jan15"),
            date_cell("2026-01-29", available=False, goto="jan29"),
            next_month_button(goto="feb"),
        ])
        page = FakePage({
            "month": month,
            "jan13": FakeView("Tuesday", [slot_button(epoch_ms(2026, 1, 13, 20, 30), "8:30pm")]),
            "jan15": FakeView("Thursday, January 15", self.daytime_slots()),
            "jan22": FakeView("Thursday, January 22", [slot_button(epoch_ms(2026, 1, 22, 20, 30), "8:30pm")]),
            "jan29": FakeView("Thursday, January 29"),
            "feb": FakeView("February 2026"),
        }, start="month")

        result = await handler.search(page, URL, ["Thu 8:30pm"], horizon=3)

        assert result.state == SearchState.FOUND
        assert result.strategy == SearchStrategy.CALENDAR_TARGETED
        assert result.matched.normalized_key == "thu 8:30pm"
        assert result.matched.calendar_date == "2026-01-22"
        assert [s.normalized_key for s in result.slots] == ["thu 8:30pm"]
        assert page.view_history == ["month", "jan15", "jan22"]
        assert result.steps == 0
        assert len(result.seen_texts) == 9
        assert page.visited_urls == [URL]

    @pytest.mark.asyncio
    async def test_no_target_day_in_any_month_exhausts_horizon(self, handler):
        def month(name, iso_date, goto):
            return FakeView(name, [date_cell(iso_date, goto=f"{name}-day"), next_month_button(goto=goto)])

        page = FakePage({
            "m1": month("m1", "2026-01-13", "m2"),
            "m2": month("m2", "2026-02-10", "m3"),
            "m3": month("m3", "2026-03-10", "m4"),
            "m4": month("m4", "2026-04-14", "m5"),
        }, start="m1")

        result = await handler.search(page, URL, ["Thu 8:30pm"], horizon=2)

        assert result.state == SearchState.EXHAUSTED
        assert result.steps == 2
        assert result.slots == []
        assert result.seen_texts == []
        assert page.view_history == ["m1", "m2", "m3"]

    @pytest.mark.asyncio
    async def test_matching_dates_without_matching_slots_exhaust_horizon(self, handler):
        page = FakePage({
            "m1": FakeView("January", [date_cell("2026-01-15", goto="d1"), next_month_button(goto="m2")]),
            "d1": FakeView("Thursday", [slot_button(epoch_ms(2026, 1, 15, 9), "9:00am"),
                                        next_month_button(goto="m2")]),
            "m2": FakeView("February", [date_cell("2026-02-12", goto="d2"), next_month_button(goto="m3")]),
            "d2": FakeView("Thursday", [slot_button(epoch_ms(2026, 2, 12, 10), "10:00am"),
                                        next_month_button(goto="m3")]),
            "m3": FakeView("March"),
        }, start="m1")

        result = await handler.search(page, URL, ["Thu 8:30pm"], horizon=1)

        assert result.state == SearchState.EXHAUSTED
        assert result.matched is None
        assert result.steps == 1
        assert result.seen_texts == ["Thursday 9:00am", "Thursday 10:00am"]

    @pytest.mark.asyncio
    async def test_terminal_signal_on_first_view(self, handler):
        page = FakePage({
            "m1": FakeView("No upcoming availability", [
                date_cell("2026-01-15", goto="d1"),
                next_month_button(goto="m2"),
            ]),
        }, start="m1")

        result = await handler.search(page, URL, ["Thu 8:30pm"], horizon=4)

        assert result.state == SearchState.TERMINAL_NONE_ANYWHERE
        assert result.steps == 0
        assert result.slots == []
        assert page.clicks == []

    @pytest.mark.asyncio
    async def test_terminal_signal_after_advancing(self, handler):
        page = FakePage({
            "m1": FakeView("January", [date_cell("2026-01-13"), next_month_button(goto="m2")]),
            "m2": FakeView("Not accepting appointments", [next_month_button(goto="m3")]),
        }, start="m1")

        result = await handler.search(page, URL, ["Thu 8:30pm"], horizon=4)

        assert result.state == SearchState.TERMINAL_NONE_ANYWHERE
        assert result.steps == 1

    @pytest.mark.asyncio
    async def test_missing_month_control_ends_search(self, handler):
        page = FakePage({"m1": FakeView("January", [date_cell("2026-01-13")])}, start="m1")

        result = await handler.search(page, URL, ["Thu 8:30pm"], horizon=5)

        assert result.state == SearchState.EXHAUSTED
        assert result.steps == 0

    @pytest.mark.asyncio
    async def test_first_found_date_wins_over_higher_preference_later(self, handler):
        page = FakePage({
            "m1": FakeView("January", [
                date_cell("2026-01-13", goto="tue"),
                date_cell("2026-01-15", goto="thu"),
            ]),
            "tue": FakeView("Tuesday", [slot_button(epoch_ms(2026, 1, 13, 15), "3:00pm")]),
            "thu": FakeView("Thursday", [slot_button(epoch_ms(2026, 1, 15, 20, 30), "8:30pm")]),
        }, start="m1")

        result = await handler.search(page, URL, ["Thu 8:30pm", "Tue 3pm"], horizon=1)

        assert result.matched.normalized_key == "tue 3pm"
        assert page.view_history == ["m1", "tue"]

    @pytest.mark.asyncio
    async def test_page_errors_propagate(self, handler):
        page = FakePage({"m1": FakeView("January")}, start="m1", fail_on="current_text")

        with pytest.raises(RuntimeError):
            await handler.search(page, URL, ["Thu 8:30pm"], horizon=2)


class TestUnscoped:

    @pytest.mark.asyncio
    async def test_returns_all_slots_of_first_populated_view(self, handler):
        page = FakePage({"w1": FakeView("This week", [
            slot_button(epoch_ms(2026, 1, 12, 9), "9:00am"),
            slot_button(epoch_ms(2026, 1, 13, 15), "3:00pm"),
        ])}, start="w1")

        result = await handler.search(page, URL, ["3pm"], horizon=4)

        assert result.state == SearchState.FOUND
        assert result.strategy == SearchStrategy.UNSCOPED
        assert result.matched is None
        assert [s.normalized_key for s in result.slots] == ["mon 9am", "tue 3pm"]
        assert result.steps == 0

    @pytest.mark.asyncio
    async def test_jump_link_is_tried_before_next_week(self, handler, observer):
        jump = FakeElement('a', 'Jump to next bookable date', goto="w3")
        next_week = FakeElement('button', 'Next week', goto="w2")
        page = FakePage({
            "w1": FakeView("No availability this week", [jump, next_week]),
            "w2": FakeView("Empty"),
            "w3": FakeView("Later", [slot_button(epoch_ms(2026, 2, 3, 15), "3:00pm")]),
        }, start="w1")

        result = await handler.search(page, URL, ["3pm"], horizon=4)

        assert result.state == SearchState.FOUND
        assert result.steps == 1
        assert page.clicks == [jump]
        assert page.view_history == ["w1", "w3"]
        assert observer.labels == ["initial", "loaded", "week-1", "final"]
        assert "view_unavailable" in observer.events

    @pytest.mark.asyncio
    async def test_single_step_used_when_no_jump_link(self, handler):
        next_week = FakeElement('button', '', {'aria-label': 'Next week'}, goto="w2")
        page = FakePage({
            "w1": FakeView("No times available", [next_week]),
            "w2": FakeView("Week 2", [slot_button(epoch_ms(2026, 1, 20, 15), "3:00pm")]),
        }, start="w1")

        result = await handler.search(page, URL, ["3pm"], horizon=4)

        assert result.state == SearchState.FOUND
        assert result.steps == 1
        assert page.clicks == [next_week]

    @pytest.mark.asyncio
    async def test_stops_at_horizon(self, handler):
        page = FakePage({
            f"w{i}": FakeView("No availability", [FakeElement('button', 'Next', goto=f"w{i + 1}")])
            for i in range(1, 6)
        }, start="w1")

        result = await handler.search(page, URL, ["3pm"], horizon=2)

        assert result.state == SearchState.EXHAUSTED
        assert result.steps == 2
        assert page.view_history == ["w1", "w2", "w3"]

    @pytest.mark.asyncio
    async def test_stops_when_nothing_can_advance(self, handler):
        disabled = FakeElement('button', 'Next', {'disabled': ''}, goto="w2")
        page = FakePage({"w1": FakeView("Fully booked", [disabled])}, start="w1")

        result = await handler.search(page, URL, ["3pm"], horizon=4)

        assert result.state == SearchState.EXHAUSTED
        assert result.steps == 0
        assert page.clicks == []

    @pytest.mark.asyncio
    async def test_terminal_signal_short_circuits(self, handler):
        page = FakePage({"w1": FakeView("No bookable times", [
            FakeElement('a', 'Jump to next bookable date', goto="w2"),
        ])}, start="w1")

        result = await handler.search(page, URL, ["3pm"], horizon=4)

        assert result.state == SearchState.TERMINAL_NONE_ANYWHERE
        assert result.steps == 0
        assert page.clicks == []
