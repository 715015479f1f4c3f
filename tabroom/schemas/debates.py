"""
Debate role reservation API Schemas (Pydantic)
"""
from typing import List, Optional

from pydantic import BaseModel, Field


class ReserveRolesRequest(BaseModel):
    """
    Request schema for joining a debate room.

    Roles are checked by the reservation service, not here, so an unknown
    role gets the same 400 contract as any other invalid role set.
    """
    roles: List[str] = Field(default_factory=list)


class ReserveRolesResponse(BaseModel):
    debate_id: int
    user_id: int
    team_id: Optional[int] = None
    roles: List[str]
    session_id: str
    is_new: bool


class ParticipantEntry(BaseModel):
    user_id: int
    role: str
    status: str


class TeamParticipants(BaseModel):
    id: int
    participants: List[ParticipantEntry]


class ParticipantsResponse(BaseModel):
    debate_id: int
    session_id: Optional[str] = None
    prop_team: TeamParticipants
    opp_team: TeamParticipants
    judges: List[ParticipantEntry]


class LeaveResponse(BaseModel):
    debate_id: int
    user_id: int
    released: int
