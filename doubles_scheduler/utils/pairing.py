"""
Round Robin Pairing for doubles play

Individual signup (rotating partners):
- Participants sit on a circle: position 0 is fixed, the rest rotate one
  step per round (circle method).
- Each round pairs position i with position n-1-i as teammates, so every
  unordered pair of participants partners exactly once across the schedule.
- Odd counts add a BYE position; whoever is paired with BYE sits out that
  round. BYE meets every position once, so byes rotate through everyone.
- Partnerships formed in a round meet in a ring: team k plays team k+1.
  Every team plays twice per round, giving floor(n/2) matches per round.

Pair signup (permanent teams):
- Participants in listed order form teams (1+2, 3+4, ...).
- Teams play a classic circle-method round robin with a BYE team for odd
  team counts.
"""

from collections import Counter
from dataclasses import dataclass, field
from itertools import combinations
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

from doubles_scheduler.models.participant import Participant
from doubles_scheduler.models.team import Team
from doubles_scheduler.models.tournament import INDIVIDUAL_SIGNUP, PAIR_SIGNUP, SIGNUP_MODES

MIN_PARTICIPANTS = 4


class PairingError(Exception):
    """Base exception for pairing errors"""

    pass


class PairingValidationError(PairingError):
    """Input cannot produce a valid round robin"""

    pass


def circle_rounds(n: int) -> List[Tuple[List[Tuple[int, int]], Optional[int]]]:
    """
    Circle-method rounds for n positions.

    Returns one (pairs, bye_index) entry per round. pairs are 0-based
    position pairs; bye_index is the position paired with BYE (odd n) or None.
    Even n: n-1 rounds. Odd n: n rounds.
    """
    if n < 2:
        return []

    n2 = n + 1 if n % 2 == 1 else n
    bye_idx = n if n % 2 == 1 else -1
    half = n2 // 2

    positions = list(range(n2))
    result: List[Tuple[List[Tuple[int, int]], Optional[int]]] = []

    for _ in range(n2 - 1):
        pairs: List[Tuple[int, int]] = []
        bye: Optional[int] = None
        for i in range(half):
            a, b = positions[i], positions[n2 - 1 - i]
            if a == bye_idx:
                bye = b
            elif b == bye_idx:
                bye = a
            else:
                pairs.append((min(a, b), max(a, b)))
        result.append((pairs, bye))
        # Rotate: keep 0, move last to second, shift others
        positions = [positions[0]] + [positions[-1]] + positions[1:-1]

    return result


class PartnershipMatrix:
    """Tracks which participants have already been teammates"""

    def __init__(self, participant_ids: Sequence[str]):
        self.participant_ids = list(participant_ids)
        self._known = set(self.participant_ids)
        self._partnered: Dict[FrozenSet[str], int] = Counter()

    def _key(self, player1_id: str, player2_id: str) -> FrozenSet[str]:
        if player1_id not in self._known or player2_id not in self._known:
            raise PairingError("Player not found in partnership matrix")
        return frozenset((player1_id, player2_id))

    def has_partnered(self, player1_id: str, player2_id: str) -> bool:
        if player1_id == player2_id:
            return True
        return self._partnered[self._key(player1_id, player2_id)] > 0

    def mark_partnered(self, player1_id: str, player2_id: str) -> None:
        self._partnered[self._key(player1_id, player2_id)] += 1

    def partnership_count(self, player1_id: str, player2_id: str) -> int:
        return self._partnered[self._key(player1_id, player2_id)]

    def available_partners(self, player_id: str) -> List[str]:
        if player_id not in self._known:
            raise PairingError("Player not found in partnership matrix")
        return [p for p in self.participant_ids if not self.has_partnered(player_id, p)]

    def total_partnerships(self) -> int:
        n = len(self.participant_ids)
        return n * (n - 1) // 2

    def used_partnerships(self) -> int:
        return sum(1 for count in self._partnered.values() if count > 0)

    def is_complete(self) -> bool:
        return all(self.has_partnered(a, b) for a, b in combinations(self.participant_ids, 2))


@dataclass
class RoundPairing:
    round_number: int
    teams: List[Team]
    matchups: List[Tuple[Team, Team]]
    bye_participant_id: Optional[str] = None
    bye_team_id: Optional[str] = None


@dataclass
class PairingPlan:
    mode: str
    rounds: List[RoundPairing] = field(default_factory=list)
    teams: List[Team] = field(default_factory=list)


class RoundRobinPairingGenerator:
    """
    Produces partner/opponent pairings for every round of a tournament.

    Raises PairingValidationError for fewer than MIN_PARTICIPANTS
    participants, an unknown mode, or an odd count in pair-signup mode.
    """

    def __init__(self, participants: Sequence[Participant], tournament_id: str, mode: str = INDIVIDUAL_SIGNUP):
        if mode not in SIGNUP_MODES:
            raise PairingValidationError(f"Unknown signup mode: {mode}")
        if len(participants) < MIN_PARTICIPANTS:
            raise PairingValidationError(
                f"Insufficient participants: at least {MIN_PARTICIPANTS} participants are required, "
                f"got {len(participants)}"
            )
        if mode == PAIR_SIGNUP and len(participants) % 2 == 1:
            raise PairingValidationError(
                f"Pair signup requires an even number of participants, got {len(participants)}"
            )
        ids = [p.id for p in participants]
        if len(set(ids)) != len(ids):
            raise PairingValidationError("Participant ids must be unique")

        self.participants = list(participants)
        self.tournament_id = tournament_id
        self.mode = mode
        self.partnership_matrix = PartnershipMatrix(ids)

    def _unit_count(self) -> int:
        """Entities rotated on the circle: participants or permanent teams"""
        n = len(self.participants)
        return n if self.mode == INDIVIDUAL_SIGNUP else n // 2

    def required_rounds(self) -> int:
        units = self._unit_count()
        return units - 1 if units % 2 == 0 else units

    def matches_per_round(self) -> int:
        # Individual: floor(n/2) partnerships in a ring. Pairs: floor(t/2) head-to-heads.
        return self._unit_count() // 2

    def has_bye_rounds(self) -> bool:
        return self._unit_count() % 2 == 1

    def _new_team(self, player1: Participant, player2: Participant, permanent: bool) -> Team:
        return Team(
            tournament_id=self.tournament_id,
            player1_id=player1.id,
            player2_id=player2.id,
            is_permanent=permanent,
        )

    def generate(self) -> PairingPlan:
        if self.mode == INDIVIDUAL_SIGNUP:
            return self._generate_individual()
        return self._generate_pairs()

    def _generate_individual(self) -> PairingPlan:
        plan = PairingPlan(mode=INDIVIDUAL_SIGNUP)

        for round_number, (pairs, bye) in enumerate(circle_rounds(len(self.participants)), start=1):
            teams: List[Team] = []
            for a, b in pairs:
                player1, player2 = self.participants[a], self.participants[b]
                teams.append(self._new_team(player1, player2, permanent=False))
                self.partnership_matrix.mark_partnered(player1.id, player2.id)

            # Ring: team k hosts team k+1 (two teams => a two-game series)
            matchups = [(teams[k], teams[(k + 1) % len(teams)]) for k in range(len(teams))]

            plan.rounds.append(
                RoundPairing(
                    round_number=round_number,
                    teams=teams,
                    matchups=matchups,
                    bye_participant_id=self.participants[bye].id if bye is not None else None,
                )
            )
            plan.teams.extend(teams)

        return plan

    def _generate_pairs(self) -> PairingPlan:
        plan = PairingPlan(mode=PAIR_SIGNUP)

        teams: List[Team] = []
        for i in range(0, len(self.participants), 2):
            player1, player2 = self.participants[i], self.participants[i + 1]
            teams.append(self._new_team(player1, player2, permanent=True))
            self.partnership_matrix.mark_partnered(player1.id, player2.id)
        plan.teams = teams

        for round_number, (pairs, bye) in enumerate(circle_rounds(len(teams)), start=1):
            plan.rounds.append(
                RoundPairing(
                    round_number=round_number,
                    teams=[t for i, t in enumerate(teams) if i != bye],
                    matchups=[(teams[a], teams[b]) for a, b in pairs],
                    bye_team_id=teams[bye].id if bye is not None else None,
                )
            )

        return plan

    def validate_plan(self, plan: PairingPlan) -> List[str]:
        """Self-check a generated plan; returns a list of error messages"""
        errors: List[str] = []

        expected = self.required_rounds()
        if len(plan.rounds) != expected:
            errors.append(f"Expected {expected} rounds, but got {len(plan.rounds)}")

        if plan.mode == INDIVIDUAL_SIGNUP and not self.partnership_matrix.is_complete():
            errors.append("Not all partnerships have been used")

        for round_pairing in plan.rounds:
            for team1, team2 in round_pairing.matchups:
                if team1.id == team2.id or set(team1.player_ids()) == set(team2.player_ids()):
                    errors.append(f"Round {round_pairing.round_number} has a team playing itself")
                elif set(team1.player_ids()) & set(team2.player_ids()):
                    errors.append(f"Round {round_pairing.round_number} has a participant on both sides")

        bye_counts = Counter(
            r.bye_participant_id or r.bye_team_id for r in plan.rounds if r.bye_participant_id or r.bye_team_id
        )
        for entity_id, count in sorted(bye_counts.items()):
            if count > 1:
                errors.append(f"{entity_id} has more than one bye")

        if self.has_bye_rounds() and not all(r.bye_participant_id or r.bye_team_id for r in plan.rounds):
            errors.append("Every round must have exactly one bye")

        return errors
