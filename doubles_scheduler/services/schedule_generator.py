"""
Schedule Generator - pairings to a fully timed, court-assigned schedule

Pipeline:
1. RoundRobinPairingGenerator builds the round/partnership skeleton.
2. For each round, for each matchup (in order):
   - RestPeriodTracker gives the earliest time all four participants have
     cleared their rest window (never before the running cursor).
   - CourtAssignmentTracker finds the first free court at or after it.
   - The court is reserved and every participant's match end is recorded.
3. Match/Round/Team instances are assembled and metrics computed.

Trackers are built fresh for every run. Nothing is persisted here; the
caller hands the GeneratedSchedule to the store.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from doubles_scheduler.models.match import Match
from doubles_scheduler.models.participant import Participant
from doubles_scheduler.models.round import Round
from doubles_scheduler.models.team import Team
from doubles_scheduler.models.tournament import Tournament
from doubles_scheduler.utils.court_tracker import CourtAssignmentTracker
from doubles_scheduler.utils.pairing import PairingError, RoundRobinPairingGenerator
from doubles_scheduler.utils.rest_rules import RestPeriodTracker
from doubles_scheduler.utils.time_slots import minutes

logger = logging.getLogger(__name__)

MIN_REST_PERIOD_MINUTES = 15
REST_PERIOD_FACTOR = 0.5
SESSION_BREAK_MINUTES = 60
DEFAULT_DAY_START_HOUR = 9
DEFAULT_LEAD_MINUTES = 30


class ScheduleGenerationError(Exception):
    """Base exception for schedule generation errors"""

    pass


class ScheduleValidationError(ScheduleGenerationError):
    """Inputs cannot produce a schedule"""

    pass


@dataclass
class ScheduleSettings:
    start_time: datetime
    court_count: int
    match_duration: int  # minutes
    rest_period: int  # minutes between a participant's matches
    session_break_duration: int = SESSION_BREAK_MINUTES


@dataclass
class ScheduleOptimization:
    total_duration: float  # minutes, first start to last end
    sessions_count: int
    average_rest_period: float
    court_utilization: float  # percent


@dataclass
class GeneratedSchedule:
    rounds: List[Round]
    scheduled_matches: List[Match]
    optimization: ScheduleOptimization
    teams: List[Team]
    team_lookup: Dict[str, Team] = field(default_factory=dict)

    def matches_for_round(self, round_number: int) -> List[Match]:
        return [m for m in self.scheduled_matches if m.round_number == round_number]

    def participant_ids_for_match(self, match: Match) -> List[str]:
        team1 = self.team_lookup[match.team1_id]
        team2 = self.team_lookup[match.team2_id]
        return [team1.player1_id, team1.player2_id, team2.player1_id, team2.player2_id]


def default_rest_period(match_duration: int) -> int:
    """max(15, match_duration * 0.5) minutes, halves rounded up"""
    return max(MIN_REST_PERIOD_MINUTES, int(math.floor(match_duration * REST_PERIOD_FACTOR + 0.5)))


def create_default_schedule_settings(tournament: Tournament, now: Optional[datetime] = None) -> ScheduleSettings:
    """
    Derive settings from the tournament configuration.

    Start time: tournament.scheduled_start, else now + 30 minutes.
    A start at exactly midnight (date only) moves to 09:00.
    """
    if tournament.scheduled_start is not None:
        start_time = tournament.scheduled_start
    else:
        start_time = (now or datetime.now()) + timedelta(minutes=DEFAULT_LEAD_MINUTES)

    if start_time.hour == 0 and start_time.minute == 0:
        start_time = start_time.replace(hour=DEFAULT_DAY_START_HOUR, minute=0, second=0, microsecond=0)

    return ScheduleSettings(
        start_time=start_time,
        court_count=tournament.court_count,
        match_duration=tournament.match_duration,
        rest_period=default_rest_period(tournament.match_duration),
        session_break_duration=SESSION_BREAK_MINUTES,
    )


class ScheduleGenerator:
    def __init__(self, tournament: Tournament, participants: Sequence[Participant], settings: ScheduleSettings):
        self.tournament = tournament
        self.participants = list(participants)
        self.settings = settings

    def _validate_settings(self) -> None:
        if self.settings.court_count < 1:
            raise ScheduleValidationError(f"court_count must be >= 1, got {self.settings.court_count}")
        if self.settings.match_duration < 1:
            raise ScheduleValidationError(f"match_duration must be >= 1, got {self.settings.match_duration}")
        if self.settings.rest_period < 0:
            raise ScheduleValidationError(f"rest_period must be >= 0, got {self.settings.rest_period}")

    def generate_schedule(self) -> GeneratedSchedule:
        """
        Generate a complete schedule.

        Raises:
            ScheduleValidationError: fewer than 4 participants, invalid
                settings, or a pairing plan that fails its self-check.
        """
        self._validate_settings()

        try:
            pairing = RoundRobinPairingGenerator(self.participants, self.tournament.id, self.tournament.mode)
            plan = pairing.generate()
        except PairingError as exc:
            raise ScheduleValidationError(f"Failed to generate rounds: {exc}") from exc

        errors = pairing.validate_plan(plan)
        if errors:
            raise ScheduleValidationError(f"Failed to generate rounds: {', '.join(errors)}")

        court_tracker = CourtAssignmentTracker(self.settings.court_count, self.settings.match_duration)
        rest_tracker = RestPeriodTracker(self.settings.rest_period)
        duration = minutes(self.settings.match_duration)

        rounds: List[Round] = []
        matches: List[Match] = []
        cursor = self.settings.start_time

        for round_pairing in plan.rounds:
            round_ = Round(
                tournament_id=self.tournament.id,
                round_number=round_pairing.round_number,
                bye_team_id=round_pairing.bye_team_id,
                bye_participant_id=round_pairing.bye_participant_id,
            )
            rounds.append(round_)

            for match_number, (team1, team2) in enumerate(round_pairing.matchups, start=1):
                players = [team1.player1_id, team1.player2_id, team2.player1_id, team2.player2_id]

                rested_at = rest_tracker.get_earliest_match_time(players, cursor)
                court_number, start = court_tracker.find_available_court(rested_at)
                court_tracker.reserve_court(court_number, start)
                for player_id in players:
                    rest_tracker.record_match_end(player_id, start + duration)

                logger.debug(
                    "Round %d match %d -> court %d at %s (rested at %s)",
                    round_pairing.round_number,
                    match_number,
                    court_number,
                    start.isoformat(),
                    rested_at.isoformat(),
                )

                matches.append(
                    Match(
                        tournament_id=self.tournament.id,
                        round_id=round_.id,
                        round_number=round_pairing.round_number,
                        match_number=match_number,
                        team1_id=team1.id,
                        team2_id=team2.id,
                        court_number=court_number,
                        scheduled_time=start,
                    )
                )
                # Keep play chronological: later matchups never start before earlier ones
                cursor = max(cursor, start)

        optimization = self._calculate_optimization(matches, court_tracker)

        logger.info(
            "Generated schedule for tournament %s: %d rounds, %d matches, %.0f minutes, %.1f%% court utilization",
            self.tournament.id,
            len(rounds),
            len(matches),
            optimization.total_duration,
            optimization.court_utilization,
        )

        return GeneratedSchedule(
            rounds=rounds,
            scheduled_matches=matches,
            optimization=optimization,
            teams=plan.teams,
            team_lookup={team.id: team for team in plan.teams},
        )

    def _calculate_optimization(
        self, matches: List[Match], court_tracker: CourtAssignmentTracker
    ) -> ScheduleOptimization:
        if not matches:
            return ScheduleOptimization(
                total_duration=0,
                sessions_count=1,
                average_rest_period=self.settings.rest_period,
                court_utilization=0.0,
            )

        duration = minutes(self.settings.match_duration)
        first_start = min(m.scheduled_time for m in matches)
        last_end = max(m.scheduled_time for m in matches) + duration
        total_duration = (last_end - first_start).total_seconds() / 60

        return ScheduleOptimization(
            total_duration=total_duration,
            sessions_count=count_sessions(matches, self.settings.match_duration, self.settings.session_break_duration),
            average_rest_period=self.settings.rest_period,
            court_utilization=court_tracker.get_court_utilization(total_duration),
        )


def count_sessions(matches: Sequence[Match], match_duration: int, session_break_duration: int) -> int:
    """Number of busy periods separated by idle gaps of at least session_break_duration"""
    if not matches:
        return 1
    duration = minutes(match_duration)
    session_break = minutes(session_break_duration)

    ordered = sorted(matches, key=lambda m: m.scheduled_time)
    sessions = 1
    busy_until = ordered[0].scheduled_time + duration
    for match in ordered[1:]:
        if match.scheduled_time - busy_until >= session_break:
            sessions += 1
        busy_until = max(busy_until, match.scheduled_time + duration)
    return sessions


def generate_optimized_schedule(
    tournament: Tournament,
    participants: Sequence[Participant],
    settings_override: Optional[Dict] = None,
) -> GeneratedSchedule:
    """
    Generate a schedule using tournament defaults plus optional overrides.

    settings_override keys replace the matching ScheduleSettings fields
    (start_time, court_count, match_duration, rest_period,
    session_break_duration); None values are ignored.
    """
    settings = create_default_schedule_settings(tournament)
    overrides = {k: v for k, v in (settings_override or {}).items() if v is not None}
    unknown = set(overrides) - set(ScheduleSettings.__dataclass_fields__)
    if unknown:
        raise ScheduleValidationError(f"Unknown schedule settings: {', '.join(sorted(unknown))}")
    settings = replace(settings, **overrides)

    return ScheduleGenerator(tournament, participants, settings).generate_schedule()
