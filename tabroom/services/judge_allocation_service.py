"""
Judge Allocation Service

Loads one round's debates and the tournament judge pool, runs the greedy
allocation and replaces the round's judge assignments as a single batch.
Re-running on an unpublished round is safe: previous assignments in the
round neither count as conflicts nor survive the run.
"""
import logging
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tabroom.core.types import (
    AllocationWeights, DebateId, JudgeProfile, RoundId, TournamentId, UserId
)
from tabroom.exceptions import InsufficientTeamsError, NotFoundError, RoundPublishedError
from tabroom.repositories.tournament_repository import TournamentRepository
from tabroom.services.history_service import aggregate_team_history
from tabroom.services.judge_allocation import (
    debate_importance, greedy_allocate, judge_strength
)

logger = logging.getLogger(__name__)


async def load_judge_profiles(
    repo: TournamentRepository,
    tournament_id: TournamentId,
    exclude_round_id: Optional[RoundId] = None,
) -> List[JudgeProfile]:
    """Candidate judges in pool order with strength and conflicts filled in."""
    judge_ids = await repo.list_candidate_judges(tournament_id)
    counts = await repo.feedback_counts(judge_ids)
    conflicts = await repo.judge_conflicts(judge_ids, exclude_round_id=exclude_round_id)

    return [
        JudgeProfile(
            id=judge_id,
            strength=judge_strength(counts.get(judge_id, 0)),
            conflicts=conflicts.get(judge_id, frozenset()),
        )
        for judge_id in judge_ids
    ]


async def auto_allocate_judges(
    round_id: RoundId,
    db: AsyncSession,
    weights: Optional[AllocationWeights] = None,
) -> Dict[DebateId, List[UserId]]:
    """
    Allocate one judge to every debate of a round.

    Raises:
        NotFoundError: unknown round
        RoundPublishedError: round already published
        InsufficientTeamsError: round has no debates
    """
    if weights is None:
        weights = AllocationWeights()

    repo = TournamentRepository(db)

    round_obj = await repo.get_round(round_id)
    if round_obj is None:
        raise NotFoundError("Round", round_id)
    if round_obj.is_published:
        raise RoundPublishedError("Cannot reallocate judges for a published round")

    debates = await repo.list_debates(round_id)
    if not debates:
        raise InsufficientTeamsError("Round has no debates to allocate")

    tournament_id = TournamentId(round_obj.tournament_id)

    # Wins entering this round
    teams = await repo.list_teams(tournament_id)
    results = await repo.list_confirmed_results(
        tournament_id, before_round_number=round_obj.round_number
    )
    history = aggregate_team_history(teams, results)

    def _wins(team_id) -> int:
        team = history.get(team_id)
        return team.wins if team else 0

    importance = {
        d.id: debate_importance(round_obj.round_number, _wins(d.prop_team_id), _wins(d.opp_team_id))
        for d in debates
    }
    slots = repo.debate_slots(debates, importance)

    judges = await load_judge_profiles(repo, tournament_id, exclude_round_id=round_id)
    if not judges:
        logger.warning(f"[ALLOCATE] Round {round_id}: judge pool is empty")

    allocation = greedy_allocate(judges, slots, weights)

    try:
        await repo.replace_judge_assignments(round_id, allocation)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    unassigned = [debate_id for debate_id, judge_ids in allocation.items() if not judge_ids]
    if unassigned:
        logger.warning(f"[ALLOCATE] Round {round_id}: no judge left for debates {unassigned}")

    logger.info(
        f"[ALLOCATE] Round {round_id}: {len(slots)} debates, {len(judges)} judges in pool"
    )
    return allocation
