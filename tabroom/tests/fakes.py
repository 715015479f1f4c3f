"""
In-memory ParticipantRepository for exercising the reservation protocol
without a database.

Every store call yields to the event loop so concurrently gathered joins
interleave the way separate connections would. Commit behaves like a
serializable database with a partial unique index:
- a transaction that read a debate which another transaction has since
  written fails with SerializationFailure (when `serializable` is on)
- a live duplicate (debate, team, role) for a main speaking role fails with
  UniqueConstraintViolation
"""
import asyncio
import dataclasses
from contextlib import asynccontextmanager
from typing import Dict, List, Optional, Sequence, Set

from tabroom.core.types import (
    LIVE_STATUSES, DebateId, DebateRoster, ParticipantClaim, ParticipantRole,
    TeamId, UserId
)
from tabroom.repositories.participant_repository import (
    ParticipantRepository, ParticipantStore, SerializationFailure,
    UniqueConstraintViolation
)


def _violates_seat_uniqueness(claims: Sequence[ParticipantClaim]) -> bool:
    seen = set()
    for claim in claims:
        if claim.role == ParticipantRole.REPLY_SPEAKER or claim.status not in LIVE_STATUSES:
            continue
        if claim.team_id is None:
            continue
        key = (claim.debate_id, claim.team_id, claim.role)
        if key in seen:
            return True
        seen.add(key)
    return False


class FakeParticipantStore(ParticipantStore):

    def __init__(self, repo: "FakeParticipantRepository"):
        self.repo = repo
        self.read_versions: Dict[DebateId, int] = {}
        self.written: Set[DebateId] = set()
        self.deleted_users: Set[tuple] = set()
        self.inserted: List[ParticipantClaim] = []
        self.session_ids: Dict[DebateId, str] = {}

    def _touch(self, debate_id: DebateId) -> None:
        self.read_versions.setdefault(debate_id, self.repo.versions.get(debate_id, 0))

    def _visible_claims(self, debate_id: DebateId) -> List[ParticipantClaim]:
        committed = [
            c for c in self.repo.claims
            if c.debate_id == debate_id and (c.debate_id, c.user_id) not in self.deleted_users
        ]
        return committed + [c for c in self.inserted if c.debate_id == debate_id]

    async def get_roster(self, debate_id: DebateId) -> Optional[DebateRoster]:
        await asyncio.sleep(0)
        self._touch(debate_id)
        roster = self.repo.rosters.get(debate_id)
        if roster is None:
            return None
        session_id = self.session_ids.get(debate_id) or self.repo.session_ids.get(debate_id)
        return dataclasses.replace(roster, session_id=session_id)

    async def get_user_claims(self, debate_id: DebateId, user_id: UserId) -> List[ParticipantClaim]:
        await asyncio.sleep(0)
        self._touch(debate_id)
        return [c for c in self._visible_claims(debate_id) if c.user_id == user_id]

    async def delete_user_claims(self, debate_id: DebateId, user_id: UserId) -> int:
        await asyncio.sleep(0)
        self._touch(debate_id)
        before = len(self._visible_claims(debate_id))
        self.deleted_users.add((debate_id, user_id))
        self.inserted = [
            c for c in self.inserted
            if not (c.debate_id == debate_id and c.user_id == user_id)
        ]
        removed = before - len(self._visible_claims(debate_id))
        if removed:
            self.written.add(debate_id)
        return removed

    async def list_team_claims(self, debate_id: DebateId, team_id: TeamId) -> List[ParticipantClaim]:
        await asyncio.sleep(0)
        self._touch(debate_id)
        return [
            c for c in self._visible_claims(debate_id)
            if c.team_id == team_id
            and c.role != ParticipantRole.JUDGE
            and c.status in LIVE_STATUSES
        ]

    async def ensure_session_id(self, debate_id: DebateId, candidate: str) -> str:
        await asyncio.sleep(0)
        self._touch(debate_id)
        existing = self.session_ids.get(debate_id) or self.repo.session_ids.get(debate_id)
        if existing:
            return existing
        self.session_ids[debate_id] = candidate
        self.written.add(debate_id)
        return candidate

    async def insert_claims(self, claims: Sequence[ParticipantClaim]) -> None:
        await asyncio.sleep(0)
        for claim in claims:
            self._touch(claim.debate_id)
            self.inserted.append(claim)
            self.written.add(claim.debate_id)

    async def list_live_claims(self, debate_id: DebateId) -> List[ParticipantClaim]:
        await asyncio.sleep(0)
        self._touch(debate_id)
        return [c for c in self._visible_claims(debate_id) if c.status in LIVE_STATUSES]


class FakeParticipantRepository(ParticipantRepository):
    """
    Args:
        serializable: detect read/write conflicts at commit
        fail_on_commit: exception raised instead of committing
    """

    def __init__(self, serializable: bool = True, fail_on_commit: Optional[Exception] = None):
        self.serializable = serializable
        self.fail_on_commit = fail_on_commit
        self.rosters: Dict[DebateId, DebateRoster] = {}
        self.session_ids: Dict[DebateId, str] = {}
        self.claims: List[ParticipantClaim] = []
        self.versions: Dict[DebateId, int] = {}
        self.commits = 0

    def add_debate(
        self,
        debate_id: int,
        prop_team_id: int,
        opp_team_id: int,
        prop_members: Sequence[int] = (),
        opp_members: Sequence[int] = (),
        judges: Sequence[int] = (),
    ) -> DebateRoster:
        roster = DebateRoster(
            debate_id=DebateId(debate_id),
            prop_team_id=TeamId(prop_team_id),
            opp_team_id=TeamId(opp_team_id),
            prop_member_ids=frozenset(UserId(u) for u in prop_members),
            opp_member_ids=frozenset(UserId(u) for u in opp_members),
            judge_ids=frozenset(UserId(u) for u in judges),
        )
        self.rosters[roster.debate_id] = roster
        return roster

    def live_claims(self, debate_id: int) -> List[ParticipantClaim]:
        return [c for c in self.claims if c.debate_id == debate_id and c.status in LIVE_STATUSES]

    @asynccontextmanager
    async def transaction(self):
        store = FakeParticipantStore(self)
        yield store
        await self._commit(store)

    async def _commit(self, store: FakeParticipantStore) -> None:
        await asyncio.sleep(0)

        if self.fail_on_commit is not None:
            raise self.fail_on_commit

        if not store.written:
            return

        if self.serializable:
            for debate_id, version in store.read_versions.items():
                if self.versions.get(debate_id, 0) != version:
                    raise SerializationFailure(f"debate {debate_id} changed concurrently")

        merged = [
            c for c in self.claims
            if (c.debate_id, c.user_id) not in store.deleted_users
        ] + store.inserted
        if _violates_seat_uniqueness(merged):
            raise UniqueConstraintViolation("uq_participant_team_main_role")

        self.claims = merged
        for debate_id, session_id in store.session_ids.items():
            self.session_ids.setdefault(debate_id, session_id)
        for debate_id in store.written:
            self.versions[debate_id] = self.versions.get(debate_id, 0) + 1
        self.commits += 1
