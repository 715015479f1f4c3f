"""
Power Pairing Engine

Swiss-style draw generation:
- Round 1: shuffled, paired consecutively
- Round > 1: win brackets, pull-ups, rematch avoidance, side balancing

Everything here is pure. Randomness (the round-1 shuffle and the side
tie-break) comes from an injected random.Random so tests can fix the seed;
bracket formation, pull-ups and matching never consult it.
"""
import logging
import random
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from tabroom.core.types import (
    DrawResult, Pairing, TeamHistory, TeamId, TeamRecord
)
from tabroom.exceptions import InsufficientTeamsError

logger = logging.getLogger(__name__)


Brackets = Dict[int, List[TeamHistory]]


# =============================================================================
# Bracket Formation
# =============================================================================

def create_brackets(teams: Iterable[TeamHistory]) -> Brackets:
    """Group teams by win count, keeping the input order inside each bracket."""
    brackets: Brackets = {}
    for team in teams:
        brackets.setdefault(team.wins, []).append(team)
    return brackets


def apply_pull_ups(brackets: Brackets) -> Brackets:
    """
    Even out bracket sizes by pulling teams up from the bracket below.

    Walks win counts from highest to lowest. When a bracket has odd size,
    the last team of the next-lower bracket moves up into it. The lowest
    bracket has nothing below it and may stay odd.

    The pulled team is simply the last one in the lower bracket's list
    (roster order); no speaker-score or random ranking is applied.

    Mutates and returns `brackets`.
    """
    sorted_wins = sorted(brackets.keys(), reverse=True)

    for i in range(len(sorted_wins) - 1):
        current_wins = sorted_wins[i]
        bracket = brackets[current_wins]

        if len(bracket) % 2 == 1:
            next_wins = sorted_wins[i + 1]
            next_bracket = brackets[next_wins]

            if next_bracket:
                pulled = next_bracket.pop()
                bracket.append(pulled)
                logger.debug(
                    f"[DRAW] Pulled up team {pulled.id} from {next_wins} to {current_wins} wins"
                )

    return brackets


# =============================================================================
# Matching
# =============================================================================

def has_rematch(team1: TeamHistory, team2: TeamHistory) -> bool:
    """True when team1 has already faced team2."""
    return team2.id in team1.opponent_ids


def assign_sides(
    team1: TeamHistory,
    team2: TeamHistory,
    rng: random.Random,
) -> Tuple[TeamHistory, TeamHistory]:
    """
    Decide sides for a matched pair.

    The team with the lower prop-minus-opp balance (more opposition-heavy
    history) takes proposition. Equal balance is a coin flip.

    Returns:
        (proposition team, opposition team)
    """
    if team1.side_balance < team2.side_balance:
        return team1, team2
    if team2.side_balance < team1.side_balance:
        return team2, team1
    if rng.random() < 0.5:
        return team1, team2
    return team2, team1


def pair_within_bracket(
    bracket: Sequence[TeamHistory],
    rng: random.Random,
) -> Tuple[List[Pairing], List[TeamId]]:
    """
    Pair the teams of one bracket.

    Algorithm:
    1. Stable sort by |prop_count - opp_count| DESC (most side-imbalanced first)
    2. For each unpaired team, take the first later unpaired team it has not
       met before
    3. If every later unpaired team is a rematch, take the first of them
    4. Sides via assign_sides()

    Returns:
        (pairings, ids of teams left without an opponent)
    """
    ordered = sorted(bracket, key=lambda t: abs(t.side_balance), reverse=True)
    paired = set()
    pairings: List[Pairing] = []
    leftover: List[TeamId] = []

    for i, team1 in enumerate(ordered):
        if team1.id in paired:
            continue

        candidates = [t for t in ordered[i + 1:] if t.id not in paired]
        team2: Optional[TeamHistory] = next(
            (c for c in candidates if not has_rematch(team1, c)),
            None
        )
        if team2 is None and candidates:
            team2 = candidates[0]
            logger.info(f"[DRAW] Rematch accepted: team {team1.id} vs team {team2.id}")

        if team2 is None:
            leftover.append(team1.id)
            continue

        prop, opp = assign_sides(team1, team2, rng)
        pairings.append(Pairing(prop_team_id=prop.id, opp_team_id=opp.id))
        paired.add(team1.id)
        paired.add(team2.id)

    return pairings, leftover


# =============================================================================
# Draw Entry Points
# =============================================================================

def generate_first_round(
    teams: Sequence[TeamRecord],
    rng: random.Random,
) -> DrawResult:
    """
    Random draw for round 1.

    With an odd number of teams the last shuffled team is left unpaired and
    reported in DrawResult.unpaired_team_ids. No bye is awarded.
    """
    shuffled = list(teams)
    rng.shuffle(shuffled)

    pairings = [
        Pairing(prop_team_id=shuffled[i].id, opp_team_id=shuffled[i + 1].id)
        for i in range(0, len(shuffled) - 1, 2)
    ]

    unpaired: Tuple[TeamId, ...] = ()
    if len(shuffled) % 2 == 1:
        unpaired = (shuffled[-1].id,)
        logger.warning(
            f"[DRAW] Odd number of teams ({len(shuffled)}); team {shuffled[-1].id} is unpaired"
        )

    return DrawResult(round_number=1, pairings=pairings, unpaired_team_ids=unpaired)


def generate_power_paired_round(
    round_number: int,
    history: Sequence[TeamHistory],
    rng: random.Random,
) -> DrawResult:
    """Power-paired draw for rounds after the first."""
    brackets = apply_pull_ups(create_brackets(history))

    pairings: List[Pairing] = []
    unpaired: List[TeamId] = []
    for wins in sorted(brackets.keys(), reverse=True):
        bracket_pairings, leftover = pair_within_bracket(brackets[wins], rng)
        pairings.extend(bracket_pairings)
        unpaired.extend(leftover)

    if unpaired:
        logger.warning(f"[DRAW] Round {round_number}: unpaired teams {unpaired}")

    return DrawResult(
        round_number=round_number,
        pairings=pairings,
        unpaired_team_ids=tuple(unpaired),
    )


def generate_draw(
    round_number: int,
    teams: Sequence[TeamRecord],
    history: Mapping[TeamId, TeamHistory],
    rng: Optional[random.Random] = None,
) -> DrawResult:
    """
    Generate the pairings for one round.

    Args:
        round_number: 1-indexed round number
        teams: Tournament roster, in roster order
        history: Output of aggregate_team_history() for the same teams
        rng: Randomness source (a fresh unseeded Random when omitted)

    Raises:
        InsufficientTeamsError: fewer than two teams
    """
    if len(teams) < 2:
        raise InsufficientTeamsError()

    if rng is None:
        rng = random.Random()

    if round_number == 1:
        return generate_first_round(teams, rng)

    team_history = [
        history.get(t.id) or TeamHistory(id=t.id, name=t.name)
        for t in teams
    ]
    return generate_power_paired_round(round_number, team_history, rng)
