"""
Conflict Detector - stateless analysis of an existing match/round set

Three independent passes, concatenated:
1. Court double-booking (error): matches bucketed by (court, 15-minute slot).
2. Player overlap (error): matches bucketed by (team id, 15-minute slot) for
   both sides. Keyed on team identity, not participant identity: the same
   participant on two different team records is not reported.
3. Timing (warning): within each round, matches sorted by time; two
   consecutive matches on the same court less than 5 minutes apart.

Detection never raises and never mutates its inputs. Output order is
deterministic regardless of input order.
"""

import hashlib
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, List, Sequence, Tuple

from doubles_scheduler.models.match import Match
from doubles_scheduler.models.round import Round
from doubles_scheduler.utils.conflict_report import SEVERITY_ERROR, SEVERITY_WARNING, ScheduleConflict
from doubles_scheduler.utils.model_copy import clone

CONFLICT_BUCKET_MINUTES = 15
MIN_GAP_MINUTES = 5

COURT_CONFLICT_SUGGESTIONS = [
    "Reschedule one of the matches to a different time",
    "Assign one of the matches to a different court",
    "Adjust match duration to prevent overlap",
]

PLAYER_CONFLICT_SUGGESTIONS = [
    "Reschedule one of the matches to a different time",
    "Ensure adequate rest time between consecutive matches",
]

TIMING_SUGGESTIONS = [
    "Increase time gap between consecutive matches",
    "Assign matches to different courts",
]


def get_time_slot(value: datetime) -> datetime:
    """Round down to the nearest 15-minute boundary"""
    bucket_minute = (value.minute // CONFLICT_BUCKET_MINUTES) * CONFLICT_BUCKET_MINUTES
    return value.replace(minute=bucket_minute, second=0, microsecond=0)


def conflict_id(conflict_type: str, affected_matches: List[str]) -> str:
    """Stable id: the same conflict on the same matches always gets the same id"""
    digest = hashlib.sha1("|".join([conflict_type, *affected_matches]).encode()).hexdigest()
    return f"conflict-{digest[:12]}"


def _match_sort_key(match: Match) -> Tuple:
    return (match.scheduled_time, match.court_number, match.round_number, match.match_number, match.id)


def detect_conflicts(matches: Sequence[Match], rounds: Sequence[Round]) -> List[ScheduleConflict]:
    """Run all conflict passes over a match set"""
    conflicts: List[ScheduleConflict] = []
    conflicts.extend(detect_court_conflicts(matches))
    conflicts.extend(detect_player_conflicts(matches))
    conflicts.extend(detect_round_conflicts(matches, rounds))
    return conflicts


def detect_court_conflicts(matches: Sequence[Match]) -> List[ScheduleConflict]:
    court_schedule: Dict[Tuple[int, datetime], List[Match]] = defaultdict(list)
    for match in matches:
        court_schedule[(match.court_number, get_time_slot(match.scheduled_time))].append(match)

    conflicts: List[ScheduleConflict] = []
    for (court_number, _slot), matches_in_slot in sorted(court_schedule.items()):
        if len(matches_in_slot) > 1:
            affected = [m.id for m in sorted(matches_in_slot, key=_match_sort_key)]
            conflicts.append(
                ScheduleConflict(
                    id=conflict_id("court-double-booking", affected),
                    type="court-double-booking",
                    severity=SEVERITY_ERROR,
                    message=f"Court {court_number} has multiple matches scheduled at the same time",
                    affected_matches=affected,
                    suggestions=list(COURT_CONFLICT_SUGGESTIONS),
                )
            )
    return conflicts


def detect_player_conflicts(matches: Sequence[Match]) -> List[ScheduleConflict]:
    team_schedule: Dict[Tuple[str, datetime], List[Match]] = defaultdict(list)
    for match in matches:
        slot = get_time_slot(match.scheduled_time)
        for team_id in (match.team1_id, match.team2_id):
            team_schedule[(team_id, slot)].append(match)

    conflicts: List[ScheduleConflict] = []
    for (team_id, _slot), matches_in_slot in sorted(team_schedule.items()):
        if len(matches_in_slot) > 1:
            affected = [m.id for m in sorted(matches_in_slot, key=_match_sort_key)]
            conflicts.append(
                ScheduleConflict(
                    id=conflict_id("player-overlap", affected),
                    type="player-overlap",
                    severity=SEVERITY_ERROR,
                    message=f"Team {team_id} is scheduled for multiple matches at the same time",
                    affected_matches=affected,
                    suggestions=list(PLAYER_CONFLICT_SUGGESTIONS),
                )
            )
    return conflicts


def detect_round_conflicts(matches: Sequence[Match], rounds: Sequence[Round]) -> List[ScheduleConflict]:
    conflicts: List[ScheduleConflict] = []
    min_gap = timedelta(minutes=MIN_GAP_MINUTES)

    for round_number in sorted({r.round_number for r in rounds}):
        round_matches = sorted((m for m in matches if m.round_number == round_number), key=_match_sort_key)

        for prev_match, current_match in zip(round_matches, round_matches[1:]):
            gap = current_match.scheduled_time - prev_match.scheduled_time
            if gap < min_gap and prev_match.court_number == current_match.court_number:
                affected = [prev_match.id, current_match.id]
                conflicts.append(
                    ScheduleConflict(
                        id=conflict_id("time-conflict", affected),
                        type="time-conflict",
                        severity=SEVERITY_WARNING,
                        message=f"Matches in Round {round_number} have insufficient time gap",
                        affected_matches=affected,
                        suggestions=list(TIMING_SUGGESTIONS),
                    )
                )
    return conflicts


def validate_match_reschedule(
    match: Match, new_time: datetime, new_court: int, all_matches: Sequence[Match]
) -> List[ScheduleConflict]:
    """
    Preview the conflicts a reschedule would produce.

    The moved match replaces the original among all_matches and full
    detection reruns (without round timing, which needs round context).
    """
    candidate = clone(match, scheduled_time=new_time, court_number=new_court)
    others = [m for m in all_matches if m.id != match.id]
    return detect_conflicts(others + [candidate], [])
