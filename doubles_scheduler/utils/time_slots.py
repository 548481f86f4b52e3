"""
Time slot arithmetic for court/time previews and drag-to-court moves.

All functions are pure: they read the matches they are given and never
mutate them. The generator's own allocation uses CourtAssignmentTracker;
this module serves display previews and manual moves.
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from doubles_scheduler.models.match import Match

# Slots tried on each side of the preferred time before giving up
SLOT_SEARCH_RADIUS = 4


def minutes(value: int) -> timedelta:
    return timedelta(minutes=value)


def to_naive_utc(value: datetime) -> datetime:
    """Stored times are naive; aware inputs are converted to UTC first"""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Check if [a_start, a_end) overlaps [b_start, b_end)."""
    return a_start < b_end and b_start < a_end


def generate_time_slots(
    start_time: datetime, match_duration: int, court_count: int, total_matches: int
) -> List[datetime]:
    """
    Return one start instant per court-round needed to play total_matches.

    Each slot runs all courts in parallel, so ceil(total_matches / court_count)
    slots are produced, match_duration minutes apart.
    """
    if court_count < 1 or total_matches <= 0:
        return []
    slots_per_court = math.ceil(total_matches / court_count)
    return [start_time + minutes(i * match_duration) for i in range(slots_per_court)]


def is_time_slot_available(time: datetime, court_matches: Iterable[Match], match_duration: int) -> bool:
    """True if no match in court_matches overlaps [time, time + match_duration)."""
    slot_end = time + minutes(match_duration)
    for match in court_matches:
        match_end = match.scheduled_time + minutes(match_duration)
        if intervals_overlap(time, slot_end, match.scheduled_time, match_end):
            return False
    return True


def find_available_time_slot(
    court_number: int,
    preferred_time: datetime,
    matches: List[Match],
    match_duration: int,
) -> Optional[datetime]:
    """
    Find a free start time on a court near preferred_time.

    Tries the preferred time first, then alternates earlier/later by whole
    match durations up to SLOT_SEARCH_RADIUS slots away. Returns None when
    every candidate overlaps an existing match on that court.
    """
    court_matches = [m for m in matches if m.court_number == court_number]

    if is_time_slot_available(preferred_time, court_matches, match_duration):
        return preferred_time

    for step in range(1, SLOT_SEARCH_RADIUS + 1):
        offset = minutes(step * match_duration)

        earlier = preferred_time - offset
        if is_time_slot_available(earlier, court_matches, match_duration):
            return earlier

        later = preferred_time + offset
        if is_time_slot_available(later, court_matches, match_duration):
            return later

    return None
