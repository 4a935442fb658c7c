"""Preference matching against discovered slots."""
import logging
from typing import List, Optional, Sequence

from booker.models import Slot
from booker.time_normalizer import extract_day_of_week, normalize

logger = logging.getLogger(__name__)


def preference_key(preference: str) -> str:
    """Canonical key for a preference; raw lower-cased text if it won't normalize."""
    return normalize(preference) or preference.strip().lower()


def match_preferences(slots: Sequence[Slot], preferences: Sequence[str]) -> Optional[Slot]:
    """Return the slot for the earliest preference that has one.

    Preference order dominates slot order, and keys must be equal: an
    ``8pm`` preference never matches an ``8:30pm`` slot.
    """
    if not slots or not preferences:
        return None

    for preference in preferences:
        key = preference_key(preference)
        for slot in slots:
            if slot.normalized_key == key:
                logger.debug(f"Preference '{preference}' matched slot '{slot.display_text}'")
                return slot

    return None


def target_days(preferences: Sequence[str]) -> List[str]:
    """Full day names resolvable from the preferences, in preference order."""
    days = []
    for preference in preferences:
        day = extract_day_of_week(preference)
        if day and day not in days:
            days.append(day)
    return days
