"""
Role Reservation Service

Concurrency-safe claiming of speaking/judging roles inside a paired debate.

Flow per join request (debate_id, user_id, roles):
1. Validate the role set (no writes on failure)
2. Open one serializable transaction
3. Classify the requester: assigned judge, debater on either team, or neither
4. Judges reconnecting get their existing reservation back unchanged
5. Debaters lose their previous claim in this debate, then capacity (3 per
   team) and seat uniqueness are checked
6. The debate's shared session id is created on first join
7. One RESERVED row per role is inserted
8. Storage races surface as retryable conflicts

leave() deletes the requester's claims in a debate, freeing seat and capacity.

This protocol only ever creates and deletes RESERVED rows; RESERVED -> ACTIVE
is driven by the call-session collaborator.
"""
import logging
import uuid
from typing import Any, Dict, Iterable, List, Sequence

from tabroom.core.types import (
    MAIN_SPEAKING_ROLES, DebateId, ParticipantClaim, ParticipantRole,
    ParticipantStatus, ReservationResult, UserId
)
from tabroom.exceptions import (
    CapacityError, ForbiddenError, NotFoundError, ReservationConflictError,
    RoleTakenError, StorageFailureError, TabroomError, ValidationError
)
from tabroom.repositories.participant_repository import (
    ParticipantRepository, SerializationFailure, UniqueConstraintViolation
)

logger = logging.getLogger(__name__)

# Maximum distinct debaters per team in one debate room
MAX_DEBATERS_PER_TEAM = 3


def parse_roles(raw_roles: Iterable[Any]) -> List[ParticipantRole]:
    """Turn request values into ParticipantRole, rejecting unknown ones."""
    roles: List[ParticipantRole] = []
    for value in raw_roles:
        try:
            roles.append(ParticipantRole(value))
        except ValueError:
            raise ValidationError(f"Invalid role: {value!r}")
    return roles


def validate_role_request(roles: Sequence[ParticipantRole]) -> None:
    """
    Reject malformed role sets before touching storage.

    Rules:
    - at least one role, no duplicates
    - REPLY_SPEAKER never together with THIRD_SPEAKER
    - REPLY_SPEAKER only alongside FIRST_SPEAKER or SECOND_SPEAKER
    """
    if not roles:
        raise ValidationError("At least one role must be requested")

    if len(set(roles)) != len(roles):
        raise ValidationError("Each role may only be requested once")

    requested = set(roles)
    if ParticipantRole.REPLY_SPEAKER in requested:
        if ParticipantRole.THIRD_SPEAKER in requested:
            raise ValidationError("Third speaker cannot also give the reply speech")
        if not requested & {ParticipantRole.FIRST_SPEAKER, ParticipantRole.SECOND_SPEAKER}:
            raise ValidationError("Reply speaker must be combined with first or second speaker")


def new_session_id(debate_id: DebateId) -> str:
    return f"debate_{debate_id}_{uuid.uuid4().hex[:12]}"


class RoleReservationService:
    """Runs the reservation protocol against an injected ParticipantRepository."""

    def __init__(self, repository: ParticipantRepository):
        self.repository = repository

    async def reserve_roles(
        self,
        debate_id: DebateId,
        user_id: UserId,
        roles: Sequence[Any],
    ) -> ReservationResult:
        """
        Claim `roles` for `user_id` in `debate_id`.

        Raises:
            ValidationError: malformed role set, or wrong role kind for requester
            NotFoundError: debate does not exist
            ForbiddenError: requester is neither judge nor debater here
            CapacityError: team already has three debaters
            RoleTakenError: seat held by a teammate, or lost a race for it (retryable)
            ReservationConflictError: transaction lost to a concurrent one (retryable)
            StorageFailureError: any other storage failure
        """
        requested = parse_roles(roles)
        validate_role_request(requested)

        logger.info(
            f"[RESERVE START] debate={debate_id} user={user_id} roles={[r.value for r in requested]}"
        )

        try:
            async with self.repository.transaction() as store:
                result = await self._reserve(store, debate_id, user_id, requested)
        except UniqueConstraintViolation:
            logger.warning(f"[RACE] debate={debate_id} user={user_id} lost a seat race")
            raise RoleTakenError()
        except SerializationFailure:
            logger.warning(f"[RACE] debate={debate_id} user={user_id} transaction conflict")
            raise ReservationConflictError()
        except TabroomError:
            raise
        except Exception as e:
            logger.error(
                f"[DB ERROR] reserve_roles debate={debate_id} user={user_id}: "
                f"{type(e).__name__}: {e}"
            )
            raise StorageFailureError() from e

        logger.info(
            f"[RESERVE SUCCESS] debate={debate_id} user={user_id} "
            f"roles={[r.value for r in result.roles]} new={result.is_new}"
        )
        return result

    async def _reserve(
        self,
        store,
        debate_id: DebateId,
        user_id: UserId,
        requested: List[ParticipantRole],
    ) -> ReservationResult:
        roster = await store.get_roster(debate_id)
        if roster is None:
            raise NotFoundError("Debate", debate_id)

        is_judge = user_id in roster.judge_ids
        team_id = roster.team_of(user_id)

        if not is_judge and team_id is None:
            raise ForbiddenError()

        # Idempotent reconnect: a judge keeps the reservation it already has
        if is_judge:
            existing = await store.get_user_claims(debate_id, user_id)
            if existing:
                return ReservationResult(
                    debate_id=debate_id,
                    user_id=user_id,
                    team_id=None,
                    roles=tuple(c.role for c in existing),
                    session_id=existing[0].session_id or roster.session_id,
                    is_new=False,
                )
            if requested != [ParticipantRole.JUDGE]:
                raise ValidationError("Judges can only join with the JUDGE role")
            team_id = None
        elif ParticipantRole.JUDGE in requested:
            raise ValidationError("Debaters cannot join as JUDGE")

        if team_id is not None:
            # A debater's previous claim never counts against the new one
            await store.delete_user_claims(debate_id, user_id)

            team_claims = await store.list_team_claims(debate_id, team_id)
            other_users = {c.user_id for c in team_claims if c.user_id != user_id}
            if len(other_users) + 1 > MAX_DEBATERS_PER_TEAM:
                raise CapacityError(MAX_DEBATERS_PER_TEAM)

            taken = {c.role for c in team_claims if c.user_id != user_id}
            for role in requested:
                if role in MAIN_SPEAKING_ROLES and role in taken:
                    raise RoleTakenError(role)

        session_id = await store.ensure_session_id(debate_id, new_session_id(debate_id))

        await store.insert_claims([
            ParticipantClaim(
                debate_id=debate_id,
                user_id=user_id,
                team_id=team_id,
                role=role,
                status=ParticipantStatus.RESERVED,
                session_id=session_id,
            )
            for role in requested
        ])

        return ReservationResult(
            debate_id=debate_id,
            user_id=user_id,
            team_id=team_id,
            roles=tuple(requested),
            session_id=session_id,
            is_new=True,
        )

    async def leave(self, debate_id: DebateId, user_id: UserId) -> int:
        """
        Release every live claim `user_id` holds in `debate_id`.

        Frees the seats and the team capacity they occupied. Leaving a debate
        the user holds nothing in is a no-op returning 0.
        """
        try:
            async with self.repository.transaction() as store:
                roster = await store.get_roster(debate_id)
                if roster is None:
                    raise NotFoundError("Debate", debate_id)
                released = await store.delete_user_claims(debate_id, user_id)
        except SerializationFailure:
            logger.warning(f"[RACE] debate={debate_id} user={user_id} leave conflicted")
            raise ReservationConflictError()
        except TabroomError:
            raise
        except Exception as e:
            logger.error(
                f"[DB ERROR] leave debate={debate_id} user={user_id}: {type(e).__name__}: {e}"
            )
            raise StorageFailureError() from e

        logger.info(f"[LEAVE] debate={debate_id} user={user_id} released={released}")
        return released

    async def list_participants(self, debate_id: DebateId) -> Dict[str, Any]:
        """Live roster of a debate, grouped by proposition, opposition and judges."""
        async with self.repository.transaction() as store:
            roster = await store.get_roster(debate_id)
            if roster is None:
                raise NotFoundError("Debate", debate_id)
            claims = await store.list_live_claims(debate_id)

        def _entries(team_id):
            return [
                {
                    "user_id": c.user_id,
                    "role": c.role.value,
                    "status": c.status.value,
                }
                for c in claims if c.team_id == team_id
            ]

        return {
            "debate_id": debate_id,
            "session_id": roster.session_id,
            "prop_team": {"id": roster.prop_team_id, "participants": _entries(roster.prop_team_id)},
            "opp_team": {"id": roster.opp_team_id, "participants": _entries(roster.opp_team_id)},
            "judges": _entries(None),
        }
