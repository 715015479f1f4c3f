"""
Tournament data access

Roster, results and judge-pool reads return flat records from
tabroom.core.types. Writes (rounds, debates, judge assignments) stay in the
caller's transaction; the services decide when to commit.
"""
import logging
from datetime import datetime
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence

from sqlalchemy import and_, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tabroom.core.types import (
    ConfirmedResult, DebateId, DebateSlot, Pairing, ParticipantRole, RoundId,
    TeamId, TeamRecord, TournamentId, UserId
)
from tabroom.orm.judging import JudgeAssignment, JudgeFeedback
from tabroom.orm.participant import DebateParticipant
from tabroom.orm.tournament import (
    Debate, TeamMember, Tournament, TournamentAdjudicator, TournamentRound,
    TournamentTeam
)

logger = logging.getLogger(__name__)


class TournamentRepository:
    """Data access for the draw and allocation services."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # =========================================================================
    # Roster & Results
    # =========================================================================

    async def get_tournament(self, tournament_id: TournamentId) -> Optional[Tournament]:
        result = await self.db.execute(
            select(Tournament).where(Tournament.id == tournament_id)
        )
        return result.scalar_one_or_none()

    async def list_teams(self, tournament_id: TournamentId) -> List[TeamRecord]:
        """Teams of the tournament in roster order (team_id ASC)."""
        result = await self.db.execute(
            select(TournamentTeam.id, TournamentTeam.name)
            .where(TournamentTeam.tournament_id == tournament_id)
            .order_by(TournamentTeam.id.asc())
        )
        return [TeamRecord(id=TeamId(row[0]), name=row[1]) for row in result.all()]

    async def list_confirmed_results(
        self,
        tournament_id: TournamentId,
        before_round_number: Optional[int] = None,
    ) -> List[ConfirmedResult]:
        """
        Debates from published rounds only.

        Args:
            before_round_number: Only rounds numbered below this one
        """
        query = (
            select(Debate.prop_team_id, Debate.opp_team_id, Debate.winning_side)
            .join(TournamentRound, Debate.round_id == TournamentRound.id)
            .where(
                and_(
                    TournamentRound.tournament_id == tournament_id,
                    TournamentRound.is_published == True,  # noqa: E712
                )
            )
        )
        if before_round_number is not None:
            query = query.where(TournamentRound.round_number < before_round_number)

        query = query.order_by(TournamentRound.round_number.asc(), Debate.id.asc())

        result = await self.db.execute(query)
        return [
            ConfirmedResult(
                prop_team_id=TeamId(row[0]),
                opp_team_id=TeamId(row[1]),
                winning_side=row[2],
            )
            for row in result.all()
        ]

    # =========================================================================
    # Judge Pool
    # =========================================================================

    async def list_candidate_judges(self, tournament_id: TournamentId) -> List[UserId]:
        """
        Registered adjudicators of the tournament, minus anyone who is a
        member of one of its teams. Sorted by user_id ASC (pool order).
        """
        team_members = (
            select(TeamMember.user_id)
            .join(TournamentTeam, TeamMember.team_id == TournamentTeam.id)
            .where(TournamentTeam.tournament_id == tournament_id)
        )
        result = await self.db.execute(
            select(TournamentAdjudicator.user_id)
            .where(
                and_(
                    TournamentAdjudicator.tournament_id == tournament_id,
                    TournamentAdjudicator.user_id.not_in(team_members),
                )
            )
            .order_by(TournamentAdjudicator.user_id.asc())
        )
        return [UserId(row[0]) for row in result.all()]

    async def feedback_counts(self, judge_ids: Sequence[UserId]) -> Dict[UserId, int]:
        if not judge_ids:
            return {}
        result = await self.db.execute(
            select(JudgeFeedback.judge_id, func.count(JudgeFeedback.id))
            .where(JudgeFeedback.judge_id.in_(judge_ids))
            .group_by(JudgeFeedback.judge_id)
        )
        counts = {UserId(row[0]): row[1] for row in result.all()}
        return {judge_id: counts.get(judge_id, 0) for judge_id in judge_ids}

    async def judge_conflicts(
        self,
        judge_ids: Sequence[UserId],
        exclude_round_id: Optional[RoundId] = None,
    ) -> Dict[UserId, FrozenSet[TeamId]]:
        """
        Every team each judge has judged before, from either side, in any
        tournament. Assignments in `exclude_round_id` are ignored.
        """
        if not judge_ids:
            return {}

        query = (
            select(JudgeAssignment.judge_id, Debate.prop_team_id, Debate.opp_team_id)
            .join(Debate, JudgeAssignment.debate_id == Debate.id)
            .where(JudgeAssignment.judge_id.in_(judge_ids))
        )
        if exclude_round_id is not None:
            query = query.where(Debate.round_id != exclude_round_id)

        result = await self.db.execute(query)

        conflicts: Dict[UserId, set] = {judge_id: set() for judge_id in judge_ids}
        for judge_id, prop_team_id, opp_team_id in result.all():
            conflicts[UserId(judge_id)].update((TeamId(prop_team_id), TeamId(opp_team_id)))

        return {judge_id: frozenset(teams) for judge_id, teams in conflicts.items()}

    # =========================================================================
    # Rounds & Debates
    # =========================================================================

    async def get_round(self, round_id: RoundId) -> Optional[TournamentRound]:
        result = await self.db.execute(
            select(TournamentRound).where(TournamentRound.id == round_id)
        )
        return result.scalar_one_or_none()

    async def get_round_by_number(
        self,
        tournament_id: TournamentId,
        round_number: int,
    ) -> Optional[TournamentRound]:
        result = await self.db.execute(
            select(TournamentRound).where(
                and_(
                    TournamentRound.tournament_id == tournament_id,
                    TournamentRound.round_number == round_number,
                )
            )
        )
        return result.scalar_one_or_none()

    async def create_round(
        self,
        tournament_id: TournamentId,
        round_number: int,
    ) -> TournamentRound:
        round_obj = TournamentRound(
            tournament_id=tournament_id,
            round_number=round_number,
            is_published=False,
            created_at=datetime.utcnow(),
        )
        self.db.add(round_obj)
        await self.db.flush()
        return round_obj

    async def list_debates(self, round_id: RoundId) -> List[Debate]:
        result = await self.db.execute(
            select(Debate)
            .where(Debate.round_id == round_id)
            .order_by(Debate.id.asc())
        )
        return list(result.scalars().all())

    async def delete_round_debates(self, round_id: RoundId) -> None:
        """Remove debates of a round together with their assignments and claims."""
        debate_ids = select(Debate.id).where(Debate.round_id == round_id)
        await self.db.execute(
            delete(DebateParticipant).where(DebateParticipant.debate_id.in_(debate_ids))
        )
        await self.db.execute(
            delete(JudgeAssignment).where(JudgeAssignment.debate_id.in_(debate_ids))
        )
        await self.db.execute(delete(Debate).where(Debate.round_id == round_id))

    async def insert_debates(
        self,
        round_obj: TournamentRound,
        pairings: Iterable[Pairing],
    ) -> List[Debate]:
        debates = []
        for pairing in pairings:
            debate = Debate(
                round_id=round_obj.id,
                tournament_id=round_obj.tournament_id,
                prop_team_id=pairing.prop_team_id,
                opp_team_id=pairing.opp_team_id,
                importance=pairing.importance,
                created_at=datetime.utcnow(),
            )
            self.db.add(debate)
            debates.append(debate)
        await self.db.flush()
        return debates

    @staticmethod
    def debate_slots(
        debates: Sequence[Debate],
        importance_by_debate: Mapping[DebateId, float],
    ) -> List[DebateSlot]:
        return [
            DebateSlot(
                id=DebateId(d.id),
                prop_team_id=TeamId(d.prop_team_id),
                opp_team_id=TeamId(d.opp_team_id),
                importance=importance_by_debate[d.id],
            )
            for d in debates
        ]

    # =========================================================================
    # Judge Assignments
    # =========================================================================

    async def replace_judge_assignments(
        self,
        round_id: RoundId,
        allocation: Mapping[DebateId, Sequence[UserId]],
    ) -> None:
        """
        Clear every judge assignment in the round, then insert `allocation`.

        JUDGE claims in debate_participants are dropped for judges no longer
        assigned to that debate; a judge who keeps the debate keeps the claim.
        """
        debate_ids = select(Debate.id).where(Debate.round_id == round_id)
        await self.db.execute(
            delete(JudgeAssignment).where(JudgeAssignment.debate_id.in_(debate_ids))
        )

        result = await self.db.execute(debate_ids)
        for (debate_id,) in result.all():
            stale = and_(
                DebateParticipant.debate_id == debate_id,
                DebateParticipant.role == ParticipantRole.JUDGE,
            )
            kept = list(allocation.get(DebateId(debate_id), ()))
            if kept:
                stale = and_(stale, DebateParticipant.user_id.notin_(kept))
            removed = await self.db.execute(delete(DebateParticipant).where(stale))
            if removed.rowcount:
                logger.info(
                    f"[ALLOCATE] debate={debate_id} released {removed.rowcount} stale judge claim(s)"
                )

        now = datetime.utcnow()
        for debate_id, judge_ids in allocation.items():
            for judge_id in judge_ids:
                self.db.add(JudgeAssignment(
                    debate_id=debate_id,
                    judge_id=judge_id,
                    created_at=now,
                ))
        await self.db.flush()

    async def list_judge_assignments(self, round_id: RoundId) -> Dict[DebateId, List[UserId]]:
        result = await self.db.execute(
            select(JudgeAssignment.debate_id, JudgeAssignment.judge_id)
            .join(Debate, JudgeAssignment.debate_id == Debate.id)
            .where(Debate.round_id == round_id)
            .order_by(JudgeAssignment.debate_id.asc(), JudgeAssignment.id.asc())
        )
        assignments: Dict[DebateId, List[UserId]] = {}
        for debate_id, judge_id in result.all():
            assignments.setdefault(DebateId(debate_id), []).append(UserId(judge_id))
        return assignments
