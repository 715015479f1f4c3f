"""
Team History Aggregation

Pure functions turning confirmed (published-round) results into per-team
competitive history and standings. No database access: the repository
fetches the flat ConfirmedResult rows once and passes them in, so the same
input always gives the same output.
"""
from typing import Dict, Iterable, List

from tabroom.core.types import (
    ConfirmedResult, DebateSide, StandingRow, TeamHistory, TeamId, TeamRecord
)


def aggregate_team_history(
    teams: Iterable[TeamRecord],
    results: Iterable[ConfirmedResult],
) -> Dict[TeamId, TeamHistory]:
    """
    Build wins, side counts and opponents faced for each team.

    Wins are side-aware: a proposition debate counts as a win only when the
    winning side is PROP, an opposition debate only when it is OPP. Debates
    without a decision still count towards side counts and opponents.
    Results involving teams outside `teams` are ignored for those teams.

    Returns:
        Mapping team id -> TeamHistory, in the order `teams` was given
    """
    team_list = list(teams)
    wins: Dict[TeamId, int] = {t.id: 0 for t in team_list}
    prop_counts: Dict[TeamId, int] = {t.id: 0 for t in team_list}
    opp_counts: Dict[TeamId, int] = {t.id: 0 for t in team_list}
    opponents: Dict[TeamId, List[TeamId]] = {t.id: [] for t in team_list}

    for result in results:
        prop_id, opp_id = result.prop_team_id, result.opp_team_id

        if prop_id in wins:
            prop_counts[prop_id] += 1
            opponents[prop_id].append(opp_id)
            if result.winning_side == DebateSide.PROP:
                wins[prop_id] += 1

        if opp_id in wins:
            opp_counts[opp_id] += 1
            opponents[opp_id].append(prop_id)
            if result.winning_side == DebateSide.OPP:
                wins[opp_id] += 1

    return {
        t.id: TeamHistory(
            id=t.id,
            name=t.name,
            wins=wins[t.id],
            prop_count=prop_counts[t.id],
            opp_count=opp_counts[t.id],
            opponent_ids=tuple(opponents[t.id]),
        )
        for t in team_list
    }


def compute_standings(
    teams: Iterable[TeamRecord],
    results: Iterable[ConfirmedResult],
) -> List[StandingRow]:
    """
    Compute the tournament tab.

    Only decided debates count here. Opponent strength is the mean win count
    of the opponents a team has faced (Buchholz-style tie-breaker).

    Sort order:
    1. wins DESC
    2. opponent_strength DESC
    3. team_id ASC (final tiebreaker)
    """
    team_list = list(teams)
    decided = [r for r in results if r.winning_side is not None]
    history = aggregate_team_history(team_list, decided)

    standings: List[StandingRow] = []
    for team in team_list:
        h = history[team.id]
        debated = h.prop_count + h.opp_count
        opponent_wins = [history[o].wins if o in history else 0 for o in h.opponent_ids]
        strength = sum(opponent_wins) / len(opponent_wins) if opponent_wins else 0.0

        standings.append(StandingRow(
            team_id=team.id,
            team_name=team.name,
            wins=h.wins,
            losses=debated - h.wins,
            prop_count=h.prop_count,
            opp_count=h.opp_count,
            opponent_strength=strength,
        ))

    standings.sort(key=lambda s: (-s.wins, -s.opponent_strength, s.team_id))
    return standings
