"""
Round draw, publication and judge allocation API Schemas (Pydantic)
"""
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class PairingResponse(BaseModel):
    """One debate of a generated draw."""
    prop_team_id: int
    opp_team_id: int
    importance: Optional[float] = None


class DrawResponse(BaseModel):
    """Response schema for a generated draw."""
    round_id: int
    round_number: int
    pairings: List[PairingResponse]
    unpaired_team_ids: List[int] = []


class PublishResponse(BaseModel):
    round_id: int
    is_published: bool = True
    changed: bool


class AllocationRequest(BaseModel):
    """Optional per-run override of the allocation weights."""
    strength_mismatch_weight: Optional[float] = Field(default=None, ge=0)
    conflict_penalty: Optional[float] = Field(default=None, ge=0)


class AllocationResponse(BaseModel):
    round_id: int
    # debate id -> judge ids
    allocation: Dict[int, List[int]]
    unassigned_debate_ids: List[int] = []


class StandingResponse(BaseModel):
    rank: int
    team_id: int
    team_name: str
    wins: int
    losses: int
    prop_count: int
    opp_count: int
    opponent_strength: float


class StandingsResponse(BaseModel):
    tournament_id: int
    standings: List[StandingResponse]
