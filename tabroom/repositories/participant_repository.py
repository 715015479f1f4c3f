"""
Debate participant data access

ParticipantRepository is the storage contract the role reservation protocol
runs against. `async with repository.transaction() as store:` yields a
ParticipantStore; every call made on that store is one atomic
read-check-write unit. Implementations must raise UniqueConstraintViolation
when a write collides with an existing live claim and SerializationFailure
when the storage layer aborts the transaction because a concurrent one
committed first.
"""
import abc
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Sequence

from sqlalchemy import and_, delete, select, text, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from tabroom.core.types import (
    LIVE_STATUSES, DebateId, DebateRoster, ParticipantClaim, ParticipantRole,
    TeamId, UserId
)
from tabroom.orm.judging import JudgeAssignment
from tabroom.orm.participant import DebateParticipant
from tabroom.orm.tournament import Debate, TeamMember

logger = logging.getLogger(__name__)

SERIALIZATION_FAILURE_SQLSTATES = {"40001", "40P01"}


class UniqueConstraintViolation(Exception):
    """A write collided with a unique constraint at the storage layer."""


class SerializationFailure(Exception):
    """The storage layer aborted the transaction because of a concurrent write."""


# =============================================================================
# Contract
# =============================================================================

class ParticipantStore(abc.ABC):
    """Reads and writes available inside one reservation transaction."""

    @abc.abstractmethod
    async def get_roster(self, debate_id: DebateId) -> Optional[DebateRoster]:
        ...

    @abc.abstractmethod
    async def get_user_claims(
        self,
        debate_id: DebateId,
        user_id: UserId,
    ) -> List[ParticipantClaim]:
        ...

    @abc.abstractmethod
    async def delete_user_claims(self, debate_id: DebateId, user_id: UserId) -> int:
        ...

    @abc.abstractmethod
    async def list_team_claims(
        self,
        debate_id: DebateId,
        team_id: TeamId,
    ) -> List[ParticipantClaim]:
        """Live (RESERVED/ACTIVE) non-judge claims on one team."""

    @abc.abstractmethod
    async def ensure_session_id(self, debate_id: DebateId, candidate: str) -> str:
        """Store `candidate` as the debate's session id unless one exists; return the stored one."""

    @abc.abstractmethod
    async def insert_claims(self, claims: Sequence[ParticipantClaim]) -> None:
        ...

    @abc.abstractmethod
    async def list_live_claims(self, debate_id: DebateId) -> List[ParticipantClaim]:
        ...


class ParticipantRepository(abc.ABC):
    """Opens serializable transactions over role claims."""

    @abc.abstractmethod
    def transaction(self):
        """Async context manager yielding a ParticipantStore; commits on clean exit."""


# =============================================================================
# SQLAlchemy Implementation
# =============================================================================

def _to_claim(row: DebateParticipant) -> ParticipantClaim:
    return ParticipantClaim(
        debate_id=DebateId(row.debate_id),
        user_id=UserId(row.user_id),
        team_id=TeamId(row.team_id) if row.team_id is not None else None,
        role=row.role,
        status=row.status,
        session_id=row.session_id,
    )


def _is_serialization_failure(error: DBAPIError) -> bool:
    orig = getattr(error, "orig", None)
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in SERIALIZATION_FAILURE_SQLSTATES:
        return True
    message = str(error).lower()
    return "could not serialize" in message or "database is locked" in message


class SqlAlchemyParticipantStore(ParticipantStore):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_roster(self, debate_id: DebateId) -> Optional[DebateRoster]:
        result = await self.session.execute(
            select(Debate).where(Debate.id == debate_id)
        )
        debate = result.scalar_one_or_none()
        if debate is None:
            return None

        result = await self.session.execute(
            select(TeamMember.team_id, TeamMember.user_id)
            .where(TeamMember.team_id.in_([debate.prop_team_id, debate.opp_team_id]))
        )
        prop_members, opp_members = set(), set()
        for team_id, user_id in result.all():
            if team_id == debate.prop_team_id:
                prop_members.add(UserId(user_id))
            else:
                opp_members.add(UserId(user_id))

        result = await self.session.execute(
            select(JudgeAssignment.judge_id).where(JudgeAssignment.debate_id == debate_id)
        )
        judge_ids = frozenset(UserId(row[0]) for row in result.all())

        return DebateRoster(
            debate_id=DebateId(debate.id),
            prop_team_id=TeamId(debate.prop_team_id),
            opp_team_id=TeamId(debate.opp_team_id),
            prop_member_ids=frozenset(prop_members),
            opp_member_ids=frozenset(opp_members),
            judge_ids=judge_ids,
            session_id=debate.session_id,
        )

    async def get_user_claims(
        self,
        debate_id: DebateId,
        user_id: UserId,
    ) -> List[ParticipantClaim]:
        result = await self.session.execute(
            select(DebateParticipant)
            .where(
                and_(
                    DebateParticipant.debate_id == debate_id,
                    DebateParticipant.user_id == user_id,
                )
            )
            .order_by(DebateParticipant.id.asc())
        )
        return [_to_claim(row) for row in result.scalars().all()]

    async def delete_user_claims(self, debate_id: DebateId, user_id: UserId) -> int:
        result = await self.session.execute(
            delete(DebateParticipant).where(
                and_(
                    DebateParticipant.debate_id == debate_id,
                    DebateParticipant.user_id == user_id,
                )
            )
        )
        return result.rowcount or 0

    async def list_team_claims(
        self,
        debate_id: DebateId,
        team_id: TeamId,
    ) -> List[ParticipantClaim]:
        result = await self.session.execute(
            select(DebateParticipant)
            .where(
                and_(
                    DebateParticipant.debate_id == debate_id,
                    DebateParticipant.team_id == team_id,
                    DebateParticipant.role != ParticipantRole.JUDGE,
                    DebateParticipant.status.in_(list(LIVE_STATUSES)),
                )
            )
            .order_by(DebateParticipant.id.asc())
        )
        return [_to_claim(row) for row in result.scalars().all()]

    async def ensure_session_id(self, debate_id: DebateId, candidate: str) -> str:
        # Conditional write: the first joiner wins, everyone else reads it back
        await self.session.execute(
            update(Debate)
            .where(and_(Debate.id == debate_id, Debate.session_id.is_(None)))
            .values(session_id=candidate)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(
            select(Debate.session_id)
            .where(Debate.id == debate_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def insert_claims(self, claims: Sequence[ParticipantClaim]) -> None:
        for claim in claims:
            self.session.add(DebateParticipant(
                debate_id=claim.debate_id,
                user_id=claim.user_id,
                team_id=claim.team_id,
                role=claim.role,
                status=claim.status,
                session_id=claim.session_id,
            ))
        await self.session.flush()

    async def list_live_claims(self, debate_id: DebateId) -> List[ParticipantClaim]:
        result = await self.session.execute(
            select(DebateParticipant)
            .where(
                and_(
                    DebateParticipant.debate_id == debate_id,
                    DebateParticipant.status.in_(list(LIVE_STATUSES)),
                )
            )
            .order_by(DebateParticipant.id.asc())
        )
        return [_to_claim(row) for row in result.scalars().all()]


class SqlAlchemyParticipantRepository(ParticipantRepository):
    """
    ParticipantRepository over SQLAlchemy.

    Each transaction() opens its own session from the factory, so concurrent
    join requests never share a session. On PostgreSQL the transaction runs
    at SERIALIZABLE isolation; on SQLite the database write lock serialises
    writers and the partial unique index still decides seat races.

    An in-memory SQLite engine (StaticPool) hands every session the same
    DBAPI connection, so one session's rollback would discard another's
    uncommitted writes. Transactions on such an engine run one at a time.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory
        bind = session_factory.kw.get("bind")
        self.shared_connection = bind is not None and isinstance(bind.sync_engine.pool, StaticPool)
        self._lock: Optional[asyncio.Lock] = None

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[SqlAlchemyParticipantStore]:
        if not self.shared_connection:
            async with self._transaction() as store:
                yield store
            return

        # Created lazily so the lock belongs to the running event loop
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            async with self._transaction() as store:
                yield store

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[SqlAlchemyParticipantStore]:
        async with self.session_factory() as session:
            try:
                async with session.begin():
                    if session.bind.dialect.name == "postgresql":
                        await session.execute(
                            text("SET TRANSACTION ISOLATION LEVEL SERIALIZABLE")
                        )
                    yield SqlAlchemyParticipantStore(session)
            except IntegrityError as e:
                logger.warning(f"[RACE] Unique constraint violation: {e.orig}")
                raise UniqueConstraintViolation(str(e.orig)) from e
            except DBAPIError as e:
                if _is_serialization_failure(e):
                    logger.warning(f"[RACE] Serialization failure: {e.orig}")
                    raise SerializationFailure(str(e.orig)) from e
                raise
