"""
Integration Tests - Judge Allocation Service

Tests for:
- One judge per debate from the tournament pool
- Team members excluded from the pool
- Historical conflicts avoided, excluding the round being reallocated
- Feedback-derived strength on important debates
- Re-running replaces assignments atomically
- Re-running releases JUDGE claims of judges taken off a debate
- Error cases
"""
import pytest
from sqlalchemy import delete, func, select

from tabroom.core.types import AllocationWeights, DebateSide
from tabroom.exceptions import InsufficientTeamsError, NotFoundError, RoundPublishedError
from tabroom.orm import DebateParticipant, JudgeAssignment, TournamentAdjudicator
from tabroom.repositories.tournament_repository import TournamentRepository
from tabroom.services.judge_allocation_service import auto_allocate_judges
from tabroom.services.role_reservation_service import RoleReservationService
from tabroom.tests.factories import (
    add_feedback, assign_judge, create_round, seed_tournament
)


class TestAutoAllocateJudges:
    """Test allocation against the database."""

    async def test_each_debate_gets_one_judge(self, db, tournament):
        t1, t2, t3, t4 = tournament.team_ids
        round_id, debate_ids = await create_round(
            db, tournament.tournament_id, 1, [(t1, t2, None), (t3, t4, None)], published=False
        )

        allocation = await auto_allocate_judges(round_id, db)

        assert set(allocation) == set(debate_ids)
        assigned = [judges[0] for judges in allocation.values()]
        assert sorted(assigned) == sorted(tournament.judge_ids)

        stored = await TournamentRepository(db).list_judge_assignments(round_id)
        assert stored == allocation

    async def test_team_members_are_not_candidates(self, db, tournament):
        t1, t2, t3, t4 = tournament.team_ids
        debater = tournament.members[t1][0]
        db.add(TournamentAdjudicator(tournament_id=tournament.tournament_id, user_id=debater))
        await db.commit()

        candidates = await TournamentRepository(db).list_candidate_judges(tournament.tournament_id)

        assert debater not in candidates
        assert candidates == sorted(tournament.judge_ids)

    async def test_previous_conflict_avoided(self, db):
        seeded = await seed_tournament(db, team_count=4, judge_count=2)
        t1, t2, t3, t4 = seeded.team_ids
        conflicted, clean = seeded.judge_ids

        _, past_debates = await create_round(db, seeded.tournament_id, 1, [(t1, t3, DebateSide.PROP)])
        await assign_judge(db, past_debates[0], conflicted)

        round_id, debate_ids = await create_round(
            db, seeded.tournament_id, 2, [(t1, t2, None)], published=False
        )

        allocation = await auto_allocate_judges(round_id, db)

        assert allocation[debate_ids[0]] == [clean]

    async def test_rerun_ignores_assignments_it_replaces(self, db, tournament):
        t1, t2, t3, t4 = tournament.team_ids
        round_id, debate_ids = await create_round(
            db, tournament.tournament_id, 1, [(t1, t2, None)], published=False
        )

        first = await auto_allocate_judges(round_id, db)
        second = await auto_allocate_judges(round_id, db)

        assert first == second
        count = await db.scalar(select(func.count(JudgeAssignment.id)))
        assert count == 1

    async def test_experienced_judge_on_top_debate(self, db, tournament):
        t1, t2, t3, t4 = tournament.team_ids
        novice, veteran = tournament.judge_ids
        await add_feedback(db, veteran, 25)

        await create_round(db, tournament.tournament_id, 1, [
            (t1, t3, DebateSide.PROP),
            (t2, t4, DebateSide.PROP),
        ])
        round_id, debate_ids = await create_round(
            db, tournament.tournament_id, 2, [(t1, t2, None), (t3, t4, None)], published=False
        )

        allocation = await auto_allocate_judges(round_id, db)

        # (t1, t2) is the 1-1 debate: importance 7 vs 4
        assert allocation[debate_ids[0]] == [veteran]
        assert allocation[debate_ids[1]] == [novice]

    async def test_custom_weights_override_conflict(self, db):
        seeded = await seed_tournament(db, team_count=2, judge_count=2)
        t1, t2 = seeded.team_ids
        conflicted, weak = seeded.judge_ids
        await add_feedback(db, conflicted, 25)

        _, past = await create_round(db, seeded.tournament_id, 1, [(t1, t2, DebateSide.PROP)])
        await assign_judge(db, past[0], conflicted)

        round_id, debate_ids = await create_round(
            db, seeded.tournament_id, 2, [(t2, t1, None)], published=False
        )

        # importance = 4 + 1.5 = 5.5; weak judge strength 5 -> mismatch 0.5 * 100 = 50
        allocation = await auto_allocate_judges(
            round_id, db, weights=AllocationWeights(strength_mismatch_weight=100, conflict_penalty=1)
        )

        assert allocation[debate_ids[0]] == [conflicted]

    async def test_empty_pool_leaves_debates_unassigned(self, db):
        seeded = await seed_tournament(db, team_count=2, judge_count=0)
        t1, t2 = seeded.team_ids
        round_id, debate_ids = await create_round(
            db, seeded.tournament_id, 1, [(t1, t2, None)], published=False
        )

        allocation = await auto_allocate_judges(round_id, db)

        assert allocation == {debate_ids[0]: []}

    async def test_unknown_round(self, db):
        with pytest.raises(NotFoundError):
            await auto_allocate_judges(777, db)

    async def test_round_without_debates(self, db, tournament):
        round_id, _ = await create_round(db, tournament.tournament_id, 1, [], published=False)

        with pytest.raises(InsufficientTeamsError):
            await auto_allocate_judges(round_id, db)

    async def test_published_round_refused(self, db, tournament):
        t1, t2, t3, t4 = tournament.team_ids
        round_id, _ = await create_round(db, tournament.tournament_id, 1, [(t1, t2, DebateSide.PROP)])

        with pytest.raises(RoundPublishedError):
            await auto_allocate_judges(round_id, db)


class TestReallocationClaims:
    """Test that re-allocation keeps debate_participants in step with assignments."""

    async def test_removed_judge_loses_claim(self, db, tournament, participant_repository):
        t1, t2, t3, t4 = tournament.team_ids
        round_id, debate_ids = await create_round(
            db, tournament.tournament_id, 1, [(t1, t2, None)], published=False
        )
        first = await auto_allocate_judges(round_id, db)
        dropped = first[debate_ids[0]][0]

        service = RoleReservationService(participant_repository)
        await service.reserve_roles(debate_ids[0], dropped, ["JUDGE"])

        await db.execute(
            delete(TournamentAdjudicator).where(TournamentAdjudicator.user_id == dropped)
        )
        await db.commit()

        second = await auto_allocate_judges(round_id, db)
        replacement = second[debate_ids[0]][0]
        assert replacement != dropped

        participants = await service.list_participants(debate_ids[0])
        assert participants["judges"] == []

        remaining = await db.scalar(
            select(func.count(DebateParticipant.id))
            .where(DebateParticipant.user_id == dropped)
        )
        assert remaining == 0

    async def test_kept_judge_keeps_claim(self, db, tournament, participant_repository):
        t1, t2, t3, t4 = tournament.team_ids
        round_id, debate_ids = await create_round(
            db, tournament.tournament_id, 1, [(t1, t2, None)], published=False
        )
        first = await auto_allocate_judges(round_id, db)
        judge = first[debate_ids[0]][0]

        service = RoleReservationService(participant_repository)
        await service.reserve_roles(debate_ids[0], judge, ["JUDGE"])

        second = await auto_allocate_judges(round_id, db)

        assert second == first
        participants = await service.list_participants(debate_ids[0])
        assert participants["judges"] == [
            {"user_id": judge, "role": "JUDGE", "status": "RESERVED"}
        ]
