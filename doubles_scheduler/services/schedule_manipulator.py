"""
Schedule Manipulator - mutations on an existing match/round set

Every operation:
- works on the instances it is given without modifying them; updated
  matches/rounds are new instances (see utils/model_copy.clone)
- records exactly one entry in the caller's ScheduleChangeHistory on success
- rejects completed matches/rounds (they have already been played)

Round swaps come in two flavours:
- swap_rounds: fixed-anchor retiming (09:00 + (round - 1) * duration) with a
  2-minute stagger between matches in the round. Not collision-aware; it is
  only consistent with schedules generated from the same anchor/duration.
- swap_rounds_with_court_rebalancing: same anchor, but spreads each round's
  matches over up to court_count parallel courts. Preferred for new callers.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Dict, List, Optional, Sequence

from doubles_scheduler.models.match import MATCH_COMPLETED, Match
from doubles_scheduler.models.round import ROUND_COMPLETED, Round
from doubles_scheduler.services.change_history import (
    CHANGE_COURT_REASSIGN,
    CHANGE_MATCH_RESCHEDULE,
    CHANGE_ROUND_SWAP,
    ScheduleChange,
    ScheduleChangeHistory,
)
from doubles_scheduler.services.conflict_detector import validate_match_reschedule
from doubles_scheduler.utils.conflict_report import RoundSwapValidation, ScheduleConflict, has_blocking_conflicts
from doubles_scheduler.utils.model_copy import clone
from doubles_scheduler.utils.time_slots import find_available_time_slot, minutes

logger = logging.getLogger(__name__)

SWAP_ANCHOR = time(9, 0)
SWAP_STAGGER_MINUTES = 2
MAX_SWAP_DISTANCE = 2


class ScheduleManipulationError(Exception):
    """Base exception for schedule mutations"""

    pass


class RoundSwapError(ScheduleManipulationError):
    """Two rounds cannot trade places"""

    pass


class MatchLockedError(ScheduleManipulationError):
    """Match is completed and can no longer be moved"""

    pass


class UndoError(ScheduleManipulationError):
    """Change record cannot be reverted"""

    pass


@dataclass
class SwapResult:
    updated_rounds: List[Round]
    updated_matches: List[Match]


@dataclass
class UndoResult:
    updated_matches: List[Match]
    updated_rounds: List[Round]


@dataclass
class MoveResult:
    match: Optional[Match]  # None when no slot was found or the move would conflict
    conflicts: List[ScheduleConflict] = field(default_factory=list)
    slot_found: bool = True


@dataclass
class BulkMoveResult:
    updated_matches: List[Match]
    moved_ids: List[str] = field(default_factory=list)
    failed_ids: List[str] = field(default_factory=list)


def _format_time(value: datetime) -> str:
    return value.strftime("%H:%M")


def _ensure_movable(match: Match) -> None:
    if match.status == MATCH_COMPLETED:
        raise MatchLockedError(f"Match {match.match_number} is completed and cannot be moved")


def reschedule_match(
    match: Match, new_time: datetime, new_court: int, history: ScheduleChangeHistory
) -> Match:
    """Move a match to a new time and court; returns the updated copy"""
    _ensure_movable(match)

    history.add_change(
        CHANGE_MATCH_RESCHEDULE,
        f"Rescheduled Match {match.match_number} from Court {match.court_number} at "
        f"{_format_time(match.scheduled_time)} to Court {new_court} at {_format_time(new_time)}",
        old_value={"scheduled_time": match.scheduled_time, "court_number": match.court_number},
        new_value={"scheduled_time": new_time, "court_number": new_court},
        match_id=match.id,
    )
    return clone(match, scheduled_time=new_time, court_number=new_court)


def reassign_court(match: Match, new_court: int, history: ScheduleChangeHistory) -> Match:
    """Move a match to another court at the same time"""
    _ensure_movable(match)

    history.add_change(
        CHANGE_COURT_REASSIGN,
        f"Reassigned Match {match.match_number} from Court {match.court_number} to Court {new_court}",
        old_value={"court_number": match.court_number},
        new_value={"court_number": new_court},
        match_id=match.id,
    )
    return clone(match, court_number=new_court)


def validate_round_swap(round1: Round, round2: Round, matches: Sequence[Match]) -> RoundSwapValidation:
    errors: List[str] = []
    warnings: List[str] = []

    if round1.id == round2.id:
        errors.append("Cannot swap a round with itself")

    for round_ in (round1, round2):
        if round_.status == ROUND_COMPLETED:
            errors.append(f"Round {round_.round_number} is already completed and cannot be swapped")

    round1_matches = [m for m in matches if m.round_number == round1.round_number]
    round2_matches = [m for m in matches if m.round_number == round2.round_number]

    for round_, round_matches in ((round1, round1_matches), (round2, round2_matches)):
        completed = [m for m in round_matches if m.status == MATCH_COMPLETED]
        if completed:
            errors.append(
                f"Round {round_.round_number} has {len(completed)} completed matches and cannot be swapped"
            )

    round1_teams = {m.team1_id for m in round1_matches} | {m.team2_id for m in round1_matches}
    round2_teams = {m.team1_id for m in round2_matches} | {m.team2_id for m in round2_matches}
    if len(round1_teams) != len(round2_teams):
        warnings.append(
            f"Rounds have different numbers of participating teams ({len(round1_teams)} vs {len(round2_teams)})"
        )

    if round1.has_bye() and not round2.has_bye():
        warnings.append(f"Round {round1.round_number} has a bye but Round {round2.round_number} does not")
    if not round1.has_bye() and round2.has_bye():
        warnings.append(f"Round {round2.round_number} has a bye but Round {round1.round_number} does not")

    distance = abs(round1.round_number - round2.round_number)
    if distance > MAX_SWAP_DISTANCE:
        warnings.append(f"Swapping non-adjacent rounds ({distance} rounds apart) may affect tournament flow")

    return RoundSwapValidation(is_valid=not errors, errors=errors, warnings=warnings)


def _anchor(matches: Sequence[Match]) -> datetime:
    """09:00 on the day of the earliest match (today if there are none)"""
    day = min((m.scheduled_time for m in matches), default=None)
    return datetime.combine(day.date() if day else date.today(), SWAP_ANCHOR)


def _round_start(anchor: datetime, round_number: int, match_duration: int) -> datetime:
    return anchor + minutes((round_number - 1) * match_duration)


def _record_swap(round1: Round, round2: Round, history: ScheduleChangeHistory, description: str) -> None:
    history.add_change(
        CHANGE_ROUND_SWAP,
        description,
        old_value={
            "round1_number": round1.round_number,
            "round2_number": round2.round_number,
            "round1_id": round1.id,
            "round2_id": round2.id,
        },
        new_value={
            "round1_number": round2.round_number,
            "round2_number": round1.round_number,
            "round1_id": round1.id,
            "round2_id": round2.id,
        },
        round_id=round1.id,
    )


def _check_swap(round1: Round, round2: Round, matches: Sequence[Match]) -> None:
    validation = validate_round_swap(round1, round2, matches)
    if not validation.is_valid:
        logger.warning(
            "Rejected swap of rounds %d and %d: %s", round1.round_number, round2.round_number, validation.errors
        )
        raise RoundSwapError(f"Cannot swap rounds: {', '.join(validation.errors)}")


def _staggered(round_matches: List[Match], round_number: int, start: datetime) -> List[Match]:
    stagger = minutes(SWAP_STAGGER_MINUTES)
    return [
        clone(match, round_number=round_number, scheduled_time=start + i * stagger)
        for i, match in enumerate(round_matches)
    ]


def _rebalanced(
    round_matches: List[Match], round_number: int, start: datetime, match_duration: int, court_count: int
) -> List[Match]:
    if not round_matches:
        return []
    ordered = sorted(round_matches, key=lambda m: m.match_number)
    per_slot = min(court_count, len(ordered))
    return [
        clone(
            match,
            round_number=round_number,
            court_number=i % per_slot + 1,
            scheduled_time=start + minutes((i // per_slot) * match_duration),
        )
        for i, match in enumerate(ordered)
    ]


def _merge_swapped(matches: Sequence[Match], replaced: List[Match]) -> List[Match]:
    by_id: Dict[str, Match] = {m.id: m for m in replaced}
    return [by_id.get(m.id, m) for m in matches]


def swap_rounds(
    round1: Round,
    round2: Round,
    matches: Sequence[Match],
    history: ScheduleChangeHistory,
    match_duration: int = 20,
) -> SwapResult:
    """
    Exchange two rounds' positions and retime their matches from the fixed
    09:00 anchor with a 2-minute stagger. Courts are left untouched.

    Raises:
        RoundSwapError: validation failed (message lists every error)
    """
    _check_swap(round1, round2, matches)
    _record_swap(round1, round2, history, f"Swapped Round {round1.round_number} with Round {round2.round_number}")

    anchor = _anchor(matches)
    round1_matches = [m for m in matches if m.round_number == round1.round_number]
    round2_matches = [m for m in matches if m.round_number == round2.round_number]

    # round1 takes round2's slot and vice versa
    replaced = _staggered(
        round1_matches, round2.round_number, _round_start(anchor, round2.round_number, match_duration)
    ) + _staggered(round2_matches, round1.round_number, _round_start(anchor, round1.round_number, match_duration))

    return SwapResult(
        updated_rounds=[
            clone(round1, round_number=round2.round_number),
            clone(round2, round_number=round1.round_number),
        ],
        updated_matches=_merge_swapped(matches, replaced),
    )


def swap_rounds_with_court_rebalancing(
    round1: Round,
    round2: Round,
    matches: Sequence[Match],
    history: ScheduleChangeHistory,
    match_duration: int = 20,
    court_count: int = 4,
) -> SwapResult:
    """
    Exchange two rounds' positions and spread each round's matches over up to
    court_count parallel courts, ordered by match number.

    Raises:
        RoundSwapError: validation failed (message lists every error)
    """
    if court_count < 1:
        raise ScheduleManipulationError(f"court_count must be >= 1, got {court_count}")
    _check_swap(round1, round2, matches)
    _record_swap(
        round1,
        round2,
        history,
        f"Swapped Round {round1.round_number} with Round {round2.round_number} with court rebalancing",
    )

    anchor = _anchor(matches)
    round1_matches = [m for m in matches if m.round_number == round1.round_number]
    round2_matches = [m for m in matches if m.round_number == round2.round_number]

    replaced = _rebalanced(
        round1_matches,
        round2.round_number,
        _round_start(anchor, round2.round_number, match_duration),
        match_duration,
        court_count,
    ) + _rebalanced(
        round2_matches,
        round1.round_number,
        _round_start(anchor, round1.round_number, match_duration),
        match_duration,
        court_count,
    )

    return SwapResult(
        updated_rounds=[
            clone(round1, round_number=round2.round_number),
            clone(round2, round_number=round1.round_number),
        ],
        updated_matches=_merge_swapped(matches, replaced),
    )


def undo_last_change(change: ScheduleChange, matches: Sequence[Match], rounds: Sequence[Round]) -> UndoResult:
    """
    Revert one recorded change.

    Match changes restore the recorded old field values on the match.
    Round swaps restore round numbers only; swapped match times stay as they are.

    Completed matches and rounds are never moved back.

    Raises:
        UndoError: missing ids, round not found, or unsupported change type
        MatchLockedError: the change touches a completed match or round
    """
    if change.type in (CHANGE_MATCH_RESCHEDULE, CHANGE_COURT_REASSIGN):
        if not change.match_id:
            raise UndoError("Match ID required for undo operation")
        for match in matches:
            if match.id == change.match_id:
                _ensure_movable(match)
        updated_matches = [
            clone(match, **change.old_value) if match.id == change.match_id else match for match in matches
        ]
        return UndoResult(updated_matches=updated_matches, updated_rounds=list(rounds))

    if change.type == CHANGE_ROUND_SWAP:
        if not change.round_id:
            raise UndoError("Round ID required for undo operation")
        if not any(r.id == change.round_id for r in rounds):
            raise UndoError("Round not found for undo operation")

        restore = {
            change.new_value["round1_number"]: change.old_value["round1_number"],
            change.new_value["round2_number"]: change.old_value["round2_number"],
        }
        for r in rounds:
            if r.round_number in restore and r.status == ROUND_COMPLETED:
                raise MatchLockedError(f"Round {r.round_number} is completed and cannot be renumbered")
        for m in matches:
            if m.round_number in restore:
                _ensure_movable(m)
        updated_rounds = [
            clone(r, round_number=restore[r.round_number]) if r.round_number in restore else r for r in rounds
        ]
        updated_matches = [
            clone(m, round_number=restore[m.round_number]) if m.round_number in restore else m for m in matches
        ]
        return UndoResult(updated_matches=updated_matches, updated_rounds=updated_rounds)

    raise UndoError(f"Unsupported change type for undo: {change.type}")


def move_match_to_court(
    match: Match,
    court_number: int,
    matches: Sequence[Match],
    history: ScheduleChangeHistory,
    match_duration: int,
) -> MoveResult:
    """
    Drop a match onto a court: look for a free slot near its current time,
    preview conflicts and reschedule only when nothing blocks the move.
    """
    _ensure_movable(match)

    others = [m for m in matches if m.id != match.id]
    slot = find_available_time_slot(court_number, match.scheduled_time, others, match_duration)
    if slot is None:
        logger.debug("No free slot on court %d near %s for match %s", court_number, match.scheduled_time, match.id)
        return MoveResult(match=None, slot_found=False)

    conflicts = validate_match_reschedule(match, slot, court_number, matches)
    if has_blocking_conflicts(conflicts):
        return MoveResult(match=None, conflicts=conflicts)

    return MoveResult(match=reschedule_match(match, slot, court_number, history), conflicts=conflicts)


def bulk_move_to_court(
    match_ids: Sequence[str],
    court_number: int,
    matches: Sequence[Match],
    history: ScheduleChangeHistory,
    match_duration: int,
) -> BulkMoveResult:
    """Move several matches to one court in order; later moves see earlier ones"""
    working = list(matches)
    result = BulkMoveResult(updated_matches=working)

    for match_id in match_ids:
        index = next((i for i, m in enumerate(working) if m.id == match_id), None)
        if index is None or working[index].status == MATCH_COMPLETED:
            result.failed_ids.append(match_id)
            continue

        moved = move_match_to_court(working[index], court_number, working, history, match_duration)
        if moved.match is None:
            result.failed_ids.append(match_id)
            continue

        working[index] = moved.match
        result.moved_ids.append(match_id)

    return result
