"""
Court assignment tracker for a single schedule generation run.

Greedy first-fit allocation:
- Courts are scanned in ascending order at the candidate time.
- The first court with no reservation overlapping
  [candidate, candidate + match_duration) wins.
- If every court is busy, the candidate advances by one match duration and
  the scan repeats. Time always frees up, so there is no failure case.

A tracker holds mutable state; build a fresh one for every run.
"""

from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Tuple

from doubles_scheduler.utils.time_slots import intervals_overlap, minutes


class CourtAssignmentTracker:
    """Tracks court reservations during schedule generation"""

    def __init__(self, court_count: int, match_duration: int):
        if court_count < 1:
            raise ValueError(f"court_count must be >= 1, got {court_count}")
        if match_duration < 1:
            raise ValueError(f"match_duration must be >= 1, got {match_duration}")
        self.court_count = court_count
        self.match_duration = match_duration
        self.reservations: Dict[int, List[datetime]] = defaultdict(list)

    def is_court_free(self, court_number: int, start_time: datetime) -> bool:
        """Check that no reservation on the court overlaps the match window"""
        end_time = start_time + minutes(self.match_duration)
        for reserved_start in self.reservations.get(court_number, []):
            reserved_end = reserved_start + minutes(self.match_duration)
            if intervals_overlap(start_time, end_time, reserved_start, reserved_end):
                return False
        return True

    def find_available_court(self, preferred_time: datetime) -> Tuple[int, datetime]:
        """
        Find the first free (court_number, start_time) at or after preferred_time.

        Deterministic: lowest court number wins at the earliest candidate time.
        """
        candidate = preferred_time
        while True:
            for court_number in range(1, self.court_count + 1):
                if self.is_court_free(court_number, candidate):
                    return court_number, candidate
            candidate = candidate + minutes(self.match_duration)

    def reserve_court(self, court_number: int, start_time: datetime) -> None:
        """Record a match on a court"""
        if not 1 <= court_number <= self.court_count:
            raise ValueError(f"Court {court_number} does not exist")
        self.reservations[court_number].append(start_time)
        self.reservations[court_number].sort()

    def reserved_count(self) -> int:
        return sum(len(starts) for starts in self.reservations.values())

    def get_court_utilization(self, total_duration_minutes: float) -> float:
        """
        Percentage of available court-time consumed by reservations.

        utilization = reserved match minutes / (court_count * total_duration) * 100
        """
        if total_duration_minutes <= 0:
            return 0.0
        used = self.reserved_count() * self.match_duration
        return used / (self.court_count * total_duration_minutes) * 100
