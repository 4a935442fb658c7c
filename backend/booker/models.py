"""Records passed between discovery, matching and booking."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

from booker.time_normalizer import normalize


@dataclass(frozen=True)
class Slot:
    """One bookable appointment time, in raw and canonical form."""

    display_text: str
    normalized_key: str
    timestamp: Optional[int] = None  # epoch milliseconds
    position_index: Optional[int] = None
    calendar_date: Optional[str] = None  # YYYY-MM-DD

    @classmethod
    def from_text(
            cls,
            display_text: str,
            timestamp: Optional[int] = None,
            position_index: Optional[int] = None,
            calendar_date: Optional[str] = None) -> Optional["Slot"]:
        """Build a slot, or return None when the text does not normalize."""
        key = normalize(display_text)
        if not key:
            return None
        return cls(
            display_text=display_text,
            normalized_key=key,
            timestamp=timestamp,
            position_index=position_index,
            calendar_date=calendar_date,
        )


@dataclass
class UserInfo:
    """Identity fields entered into the booking form."""

    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None


@dataclass
class CalendarDate:
    """A date cell in the month view that advertises availability."""

    iso_date: str
    day_name: str
    element: Any = field(default=None, compare=False, repr=False)


class SearchState(Enum):
    """Discovery state machine states."""
    SEARCHING = "searching"
    FOUND = "found"
    EXHAUSTED = "exhausted"
    TERMINAL_NONE_ANYWHERE = "terminal_none_anywhere"


class SearchStrategy(Enum):
    """How a discovery run walks the calendar."""
    CALENDAR_TARGETED = "calendar_targeted"
    UNSCOPED = "unscoped"


@dataclass
class NavigationState:
    """Mutable state owned by a single discovery run."""

    horizon: int
    steps: int = 0
    state: SearchState = SearchState.SEARCHING
    seen: List[Slot] = field(default_factory=list)

    def record(self, slots: List[Slot]):
        """Remember slots for reporting, skipping ones already seen."""
        known = {(s.normalized_key, s.timestamp) for s in self.seen}
        for slot in slots:
            if (slot.normalized_key, slot.timestamp) not in known:
                known.add((slot.normalized_key, slot.timestamp))
                self.seen.append(slot)

    @property
    def horizon_reached(self) -> bool:
        return self.steps >= self.horizon


@dataclass
class SearchResult:
    """What a discovery run hands back to its caller."""

    state: SearchState
    strategy: SearchStrategy
    slots: List[Slot] = field(default_factory=list)
    matched: Optional[Slot] = None
    steps: int = 0
    seen_texts: List[str] = field(default_factory=list)


class OutcomeKind(Enum):
    """Result of one discovery-plus-booking attempt."""
    MATCHED_AND_BOOKED = "matched_and_booked"
    MATCHED_BUT_BOOKING_FAILED = "matched_but_booking_failed"
    NO_MATCH = "no_match"
    NO_SLOTS_IN_HORIZON = "no_slots_in_horizon"


_REASONS = {
    OutcomeKind.MATCHED_AND_BOOKED: None,
    OutcomeKind.MATCHED_BUT_BOOKING_FAILED: "booking_failed",
    OutcomeKind.NO_MATCH: "no_match",
    OutcomeKind.NO_SLOTS_IN_HORIZON: "no_slots",
}


@dataclass
class BookingOutcome:
    """Tagged result of a run, produced once and owned by the caller."""

    kind: OutcomeKind
    slot: Optional[Slot] = None
    available_slots: List[str] = field(default_factory=list)
    dry_run: bool = False

    @classmethod
    def booked(cls, slot: Slot, dry_run: bool = False) -> "BookingOutcome":
        return cls(OutcomeKind.MATCHED_AND_BOOKED, slot=slot, dry_run=dry_run)

    @classmethod
    def booking_failed(cls, slot: Slot) -> "BookingOutcome":
        return cls(OutcomeKind.MATCHED_BUT_BOOKING_FAILED, slot=slot)

    @classmethod
    def no_match(cls, available_slots: List[str]) -> "BookingOutcome":
        return cls(OutcomeKind.NO_MATCH, available_slots=list(available_slots))

    @classmethod
    def no_slots(cls, available_slots: Optional[List[str]] = None) -> "BookingOutcome":
        return cls(OutcomeKind.NO_SLOTS_IN_HORIZON, available_slots=list(available_slots or []))

    @property
    def success(self) -> bool:
        return self.kind == OutcomeKind.MATCHED_AND_BOOKED

    @property
    def reason(self) -> Optional[str]:
        return _REASONS[self.kind]

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "success": self.success,
            "reason": self.reason,
            "slot": self.slot.display_text if self.slot else None,
            "normalized": self.slot.normalized_key if self.slot else None,
            "available_slots": self.available_slots,
            "dry_run": self.dry_run,
        }
