"""
Round draw, publication, judge allocation and standings API Routes

Domain errors (NotFoundError, RoundPublishedError, InsufficientTeamsError...)
propagate to the handlers registered in tabroom.errors.
"""
from typing import Optional

from fastapi import APIRouter, Body, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from tabroom.core.types import AllocationWeights, RoundId, TournamentId
from tabroom.database import get_db
from tabroom.schemas.rounds import (
    AllocationRequest, AllocationResponse, DrawResponse, PairingResponse,
    PublishResponse, StandingResponse, StandingsResponse
)
from tabroom.services.judge_allocation_service import auto_allocate_judges
from tabroom.services.round_draw_service import (
    generate_round_draw, get_tournament_standings, publish_round
)

router = APIRouter(tags=["Rounds"])


def resolve_weights(request: Request, body: Optional[AllocationRequest]) -> AllocationWeights:
    """Per-request weights fall back to the configured defaults."""
    settings = request.app.state.settings
    mismatch = settings.ALLOCATION_STRENGTH_MISMATCH_WEIGHT
    penalty = settings.ALLOCATION_CONFLICT_PENALTY

    if body is not None:
        if body.strength_mismatch_weight is not None:
            mismatch = body.strength_mismatch_weight
        if body.conflict_penalty is not None:
            penalty = body.conflict_penalty

    return AllocationWeights(strength_mismatch_weight=mismatch, conflict_penalty=penalty)


# =============================================================================
# Draw & Publication
# =============================================================================

@router.post(
    "/tournaments/{tournament_id}/rounds/{round_number}/draw",
    response_model=DrawResponse,
    status_code=status.HTTP_201_CREATED,
)
async def draw_round(
    tournament_id: int,
    round_number: int,
    db: AsyncSession = Depends(get_db),
):
    """
    Generate (or regenerate, while unpublished) the draw for a round.

    Round 1 is random; later rounds are power paired on confirmed results.
    """
    round_id, draw = await generate_round_draw(TournamentId(tournament_id), round_number, db)

    return DrawResponse(
        round_id=round_id,
        round_number=draw.round_number,
        pairings=[
            PairingResponse(
                prop_team_id=p.prop_team_id,
                opp_team_id=p.opp_team_id,
                importance=p.importance,
            )
            for p in draw.pairings
        ],
        unpaired_team_ids=list(draw.unpaired_team_ids),
    )


@router.post("/rounds/{round_id}/publish", response_model=PublishResponse)
async def publish(round_id: int, db: AsyncSession = Depends(get_db)):
    changed = await publish_round(RoundId(round_id), db)
    return PublishResponse(round_id=round_id, changed=changed)


# =============================================================================
# Judge Allocation
# =============================================================================

@router.post("/rounds/{round_id}/allocate-judges", response_model=AllocationResponse)
async def allocate_judges(
    round_id: int,
    request: Request,
    body: Optional[AllocationRequest] = Body(default=None),
    db: AsyncSession = Depends(get_db),
):
    """Replace the round's judge assignments with a fresh greedy allocation."""
    weights = resolve_weights(request, body)
    allocation = await auto_allocate_judges(RoundId(round_id), db, weights=weights)

    return AllocationResponse(
        round_id=round_id,
        allocation={debate_id: list(judges) for debate_id, judges in allocation.items()},
        unassigned_debate_ids=[d for d, judges in allocation.items() if not judges],
    )


# =============================================================================
# Standings
# =============================================================================

@router.get("/tournaments/{tournament_id}/standings", response_model=StandingsResponse)
async def standings(tournament_id: int, db: AsyncSession = Depends(get_db)):
    rows = await get_tournament_standings(TournamentId(tournament_id), db)
    return StandingsResponse(
        tournament_id=tournament_id,
        standings=[
            StandingResponse(
                rank=i + 1,
                team_id=row.team_id,
                team_name=row.team_name,
                wins=row.wins,
                losses=row.losses,
                prop_count=row.prop_count,
                opp_count=row.opp_count,
                opponent_strength=row.opponent_strength,
            )
            for i, row in enumerate(rows)
        ],
    )
