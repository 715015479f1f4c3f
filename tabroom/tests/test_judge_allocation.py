"""
Unit Tests - Judge Allocation Engine

Tests for:
- Strength and importance formulas
- Cost function (mismatch, conflict, load)
- Greedy allocation order, capacity and conflict avoidance
"""
import random

from tabroom.core.types import (
    AllocationWeights, DebateId, DebateSlot, JudgeProfile, TeamId, UserId
)
from tabroom.services.judge_allocation import (
    JUDGE_CAPACITY_PER_ROUND, allocation_cost, debate_importance,
    greedy_allocate, has_conflict, judge_strength
)


def judge(judge_id, strength=5, conflicts=(), allocated=0):
    return JudgeProfile(
        id=UserId(judge_id),
        strength=strength,
        conflicts=frozenset(TeamId(t) for t in conflicts),
        allocated_count=allocated,
    )


def debate(debate_id, prop, opp, importance):
    return DebateSlot(
        id=DebateId(debate_id),
        prop_team_id=TeamId(prop),
        opp_team_id=TeamId(opp),
        importance=importance,
    )


class TestFormulas:
    """Test strength, importance and cost."""

    def test_judge_strength(self):
        assert judge_strength(0) == 5
        assert judge_strength(4) == 5
        assert judge_strength(5) == 6
        assert judge_strength(24) == 9
        assert judge_strength(25) == 10
        assert judge_strength(500) == 10

    def test_debate_importance(self):
        assert debate_importance(1, 0, 0) == 2
        assert debate_importance(3, 2, 1) == 6 + 4.5
        assert debate_importance(4, 3, 3) == 17

    def test_has_conflict_either_side(self):
        j = judge(1, conflicts=(2,))

        assert has_conflict(j, debate(1, 2, 3, 0))
        assert has_conflict(j, debate(2, 4, 2, 0))
        assert not has_conflict(j, debate(3, 4, 5, 0))

    def test_cost_example(self):
        # strength 6, one debate already, conflicts {team1}
        j = judge(1, strength=6, conflicts=(1,), allocated=1)
        weights = AllocationWeights()

        debate_a = debate(1, 1, 2, importance=8)
        debate_b = debate(2, 3, 4, importance=5)

        assert allocation_cost(j, debate_a, weights) == 1022
        assert allocation_cost(j, debate_b, weights) == 2
        assert allocation_cost(j, debate_b, weights) < allocation_cost(j, debate_a, weights)

    def test_cost_uses_custom_weights(self):
        j = judge(1, strength=5, conflicts=(1,))
        weights = AllocationWeights(strength_mismatch_weight=1, conflict_penalty=50)

        assert allocation_cost(j, debate(1, 1, 2, importance=9), weights) == 4 + 50


class TestGreedyAllocate:
    """Test greedy allocation."""

    def test_most_important_debate_gets_strongest_judge(self):
        judges = [judge(1, strength=5), judge(2, strength=10)]
        debates = [debate(1, 1, 2, importance=4), debate(2, 3, 4, importance=12)]

        allocation = greedy_allocate(judges, debates)

        assert allocation[DebateId(2)] == [2]
        assert allocation[DebateId(1)] == [1]

    def test_conflicted_judge_avoided(self):
        judges = [judge(1, strength=10, conflicts=(1,)), judge(2, strength=5)]
        debates = [debate(1, 1, 2, importance=10)]

        allocation = greedy_allocate(judges, debates)

        assert allocation[DebateId(1)] == [2]

    def test_equal_cost_goes_to_pool_order(self):
        judges = [judge(7), judge(3)]
        allocation = greedy_allocate(judges, [debate(1, 1, 2, importance=0)])

        assert allocation[DebateId(1)] == [7]

    def test_load_balancing_spreads_judges(self):
        judges = [judge(1), judge(2)]
        debates = [debate(1, 1, 2, 0), debate(2, 3, 4, 0)]

        allocation = greedy_allocate(judges, debates)

        assert sorted(j for judges_ in allocation.values() for j in judges_) == [1, 2]

    def test_capacity_respected_and_excess_debates_empty(self):
        judges = [judge(1)]
        debates = [debate(i, 2 * i, 2 * i + 1, importance=10 - i) for i in range(1, 6)]

        allocation = greedy_allocate(judges, debates)

        assigned = [d for d, js in allocation.items() if js]
        assert len(assigned) == JUDGE_CAPACITY_PER_ROUND
        assert judges[0].allocated_count == JUDGE_CAPACITY_PER_ROUND
        # The three most important debates are served first
        assert sorted(assigned) == [1, 2, 3]
        assert allocation[DebateId(4)] == []
        assert allocation[DebateId(5)] == []

    def test_no_judges_gives_empty_lists(self):
        allocation = greedy_allocate([], [debate(1, 1, 2, 5)])

        assert allocation == {DebateId(1): []}

    def test_panel_of_two(self):
        judges = [judge(1), judge(2), judge(3)]
        allocation = greedy_allocate(judges, [debate(1, 1, 2, 5)], judges_per_debate=2)

        assert len(allocation[DebateId(1)]) == 2
        assert len(set(allocation[DebateId(1)])) == 2

    def test_properties_over_random_pools(self):
        rng = random.Random(11)
        for _ in range(100):
            teams = list(range(1, 21))
            judges = [
                judge(j, strength=rng.randint(5, 10), conflicts=rng.sample(teams, rng.randint(0, 3)))
                for j in range(1, rng.randint(1, 8))
            ]
            debates = [
                debate(d, *rng.sample(teams, 2), importance=rng.randint(2, 20))
                for d in range(1, rng.randint(2, 12))
            ]

            allocation = greedy_allocate(judges, debates)

            load = {}
            for judge_ids in allocation.values():
                for j in judge_ids:
                    load[j] = load.get(j, 0) + 1
            assert all(count <= JUDGE_CAPACITY_PER_ROUND for count in load.values())

    def test_conflict_free_judge_preferred_whenever_available(self):
        rng = random.Random(5)
        for _ in range(100):
            teams = list(range(1, 11))
            judges = [
                judge(j, strength=rng.randint(5, 10), conflicts=rng.sample(teams, rng.randint(0, 4)))
                for j in range(1, 6)
            ]
            by_id = {j.id: j for j in judges}
            debates = [
                debate(d, *rng.sample(teams, 2), importance=rng.randint(2, 20))
                for d in range(1, 6)
            ]

            # Replay the allocation order to know who was available at each step
            shadow = {j.id: 0 for j in judges}
            allocation = greedy_allocate(judges, debates)
            for slot in sorted(debates, key=lambda d: d.importance, reverse=True):
                chosen = allocation[slot.id]
                free_available = [
                    j for j in judges
                    if shadow[j.id] < JUDGE_CAPACITY_PER_ROUND and not has_conflict(j, slot)
                ]
                if chosen and free_available:
                    assert not has_conflict(by_id[chosen[0]], slot)
                for j in chosen:
                    shadow[j] += 1
