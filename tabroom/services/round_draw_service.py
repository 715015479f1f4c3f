"""
Round Draw Service

Orchestrates draw generation and publication for one tournament:
- loads the roster and confirmed results through TournamentRepository
- runs the pure pairing engine
- stores the round and its debates (with importance) in one transaction

An unpublished round may be drawn again; its debates, judge assignments and
participant claims are replaced. A published round is frozen.
"""
import logging
import random
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from tabroom.core.types import (
    DrawResult, Pairing, RoundId, StandingRow, TournamentId
)
from tabroom.exceptions import NotFoundError, RoundPublishedError, ValidationError
from tabroom.repositories.tournament_repository import TournamentRepository
from tabroom.services.history_service import aggregate_team_history, compute_standings
from tabroom.services.judge_allocation import debate_importance
from tabroom.services.pairing_engine import generate_draw

logger = logging.getLogger(__name__)


# =============================================================================
# Draw Generation
# =============================================================================

async def generate_round_draw(
    tournament_id: TournamentId,
    round_number: int,
    db: AsyncSession,
    rng: Optional[random.Random] = None,
) -> Tuple[RoundId, DrawResult]:
    """
    Generate and store the draw for a round.

    Args:
        tournament_id: Tournament to draw
        round_number: 1-indexed round number
        db: Database session
        rng: Randomness source for the shuffle and side coin flips

    Returns:
        (round id, DrawResult with importance filled in on every pairing)

    Raises:
        ValidationError: round_number < 1
        NotFoundError: unknown tournament
        RoundPublishedError: the round already exists and is published
        InsufficientTeamsError: fewer than two teams
    """
    if round_number < 1:
        raise ValidationError("Round number must be at least 1")

    repo = TournamentRepository(db)

    tournament = await repo.get_tournament(tournament_id)
    if tournament is None:
        raise NotFoundError("Tournament", tournament_id)

    existing = await repo.get_round_by_number(tournament_id, round_number)
    if existing is not None and existing.is_published:
        raise RoundPublishedError(f"Round {round_number} is already published")

    teams = await repo.list_teams(tournament_id)
    results = await repo.list_confirmed_results(tournament_id, before_round_number=round_number)
    history = aggregate_team_history(teams, results)

    draw = generate_draw(round_number, teams, history, rng)

    draw.pairings = [
        Pairing(
            prop_team_id=p.prop_team_id,
            opp_team_id=p.opp_team_id,
            importance=debate_importance(
                round_number,
                history[p.prop_team_id].wins,
                history[p.opp_team_id].wins,
            ),
        )
        for p in draw.pairings
    ]

    try:
        if existing is not None:
            logger.info(f"[DRAW] Regenerating unpublished round {existing.id}")
            await repo.delete_round_debates(existing.id)
            round_obj = existing
        else:
            round_obj = await repo.create_round(tournament_id, round_number)

        await repo.insert_debates(round_obj, draw.pairings)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        f"[DRAW] Tournament {tournament_id} round {round_number}: "
        f"{len(draw.pairings)} debates, unpaired={list(draw.unpaired_team_ids)}"
    )

    return RoundId(round_obj.id), draw


# =============================================================================
# Publication
# =============================================================================

async def publish_round(round_id: RoundId, db: AsyncSession) -> bool:
    """
    Mark a round published. Its results then count as confirmed history.

    Returns:
        True if the round changed state, False if it was already published
    """
    repo = TournamentRepository(db)

    round_obj = await repo.get_round(round_id)
    if round_obj is None:
        raise NotFoundError("Round", round_id)

    if round_obj.is_published:
        return False

    round_obj.is_published = True
    round_obj.published_at = datetime.utcnow()
    await db.commit()

    logger.info(f"[DRAW] Round {round_id} published")
    return True


# =============================================================================
# Standings
# =============================================================================

async def get_tournament_standings(
    tournament_id: TournamentId,
    db: AsyncSession,
) -> List[StandingRow]:
    """Standings from published rounds only."""
    repo = TournamentRepository(db)

    tournament = await repo.get_tournament(tournament_id)
    if tournament is None:
        raise NotFoundError("Tournament", tournament_id)

    teams = await repo.list_teams(tournament_id)
    results = await repo.list_confirmed_results(tournament_id)
    return compute_standings(teams, results)
