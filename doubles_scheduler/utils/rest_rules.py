"""
Rest Rules - minimum rest enforcement between a participant's matches

Rule:
- A participant may start a new match no earlier than
  last_match_end + rest_period_minutes.
- A participant with no recorded match can play immediately.
- A doubles match starts only once all four participants clear their rest.

State is scoped to a single generation run; build a fresh tracker per run.
"""

from datetime import datetime
from typing import Dict, Iterable, Optional

from doubles_scheduler.utils.time_slots import minutes


class RestPeriodTracker:
    """Tracks last match end per participant during schedule generation"""

    def __init__(self, rest_period_minutes: int):
        if rest_period_minutes < 0:
            raise ValueError(f"rest_period_minutes must be >= 0, got {rest_period_minutes}")
        self.rest_period_minutes = rest_period_minutes
        self.last_match_end: Dict[str, datetime] = {}

    def get_last_match_end(self, participant_id: str) -> Optional[datetime]:
        return self.last_match_end.get(participant_id)

    def get_earliest_play_time(self, participant_id: str, current_time: datetime) -> datetime:
        """Earliest start for one participant: max(current_time, last_end + rest)"""
        last_end = self.last_match_end.get(participant_id)
        if last_end is None:
            return current_time
        return max(current_time, last_end + minutes(self.rest_period_minutes))

    def get_earliest_match_time(self, participant_ids: Iterable[str], current_time: datetime) -> datetime:
        """Earliest start at which every participant has cleared their rest window"""
        earliest = current_time
        for participant_id in participant_ids:
            earliest = max(earliest, self.get_earliest_play_time(participant_id, current_time))
        return earliest

    def record_match_end(self, participant_id: str, end_time: datetime) -> None:
        """Record a match end; the latest recorded value replaces the previous one"""
        self.last_match_end[participant_id] = end_time
