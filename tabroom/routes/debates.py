"""
Debate room API Routes

The requester's identity arrives in the X-User-Id header, set by the
authentication collaborator in front of this service.
"""
from fastapi import APIRouter, Depends, Header, Request

from tabroom.core.types import DebateId, UserId
from tabroom.schemas.debates import (
    LeaveResponse, ParticipantsResponse, ReserveRolesRequest, ReserveRolesResponse
)
from tabroom.services.role_reservation_service import RoleReservationService

router = APIRouter(prefix="/debates", tags=["Debates"])


def get_reservation_service(request: Request) -> RoleReservationService:
    return RoleReservationService(request.app.state.participant_repository)


@router.post("/{debate_id}/reserve-roles", response_model=ReserveRolesResponse)
async def reserve_roles(
    debate_id: int,
    body: ReserveRolesRequest,
    user_id: int = Header(..., alias="X-User-Id"),
    service: RoleReservationService = Depends(get_reservation_service),
):
    """
    Reserve speaking roles (or the judge seat) before joining the call.

    Conflicts with "retryable": true in the error body may be retried.
    """
    result = await service.reserve_roles(DebateId(debate_id), UserId(user_id), body.roles)
    return ReserveRolesResponse(**result.to_dict())


@router.post("/{debate_id}/leave", response_model=LeaveResponse)
async def leave_debate(
    debate_id: int,
    user_id: int = Header(..., alias="X-User-Id"),
    service: RoleReservationService = Depends(get_reservation_service),
):
    """Release the requester's seats in the debate room."""
    released = await service.leave(DebateId(debate_id), UserId(user_id))
    return LeaveResponse(debate_id=debate_id, user_id=user_id, released=released)


@router.get("/{debate_id}/participants", response_model=ParticipantsResponse)
async def list_participants(
    debate_id: int,
    service: RoleReservationService = Depends(get_reservation_service),
):
    return await service.list_participants(DebateId(debate_id))
