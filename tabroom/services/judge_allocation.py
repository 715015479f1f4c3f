"""
Judge Allocation Engine

Greedy cost-minimising allocation of judges to debates:
- strength mismatch on important debates is penalised
- judging a team seen before is a heavy conflict penalty
- judges already carrying debates cost a little more (load balancing)

Pure functions only; the service layer gathers JudgeProfile/DebateSlot
records and persists the result.
"""
from typing import Dict, List, Sequence

from tabroom.core.types import (
    AllocationWeights, DebateId, DebateSlot, JudgeProfile, UserId
)


MIN_JUDGE_STRENGTH = 5
MAX_JUDGE_STRENGTH = 10
FEEDBACKS_PER_STRENGTH_POINT = 5

# Maximum debates one judge may take in a single round
JUDGE_CAPACITY_PER_ROUND = 3

# Cost per debate a judge already holds this round. Fixed, not configurable.
LOAD_WEIGHT = 2


def judge_strength(feedback_count: int) -> int:
    """Base strength 5, +1 per 5 feedback entries, capped at 10."""
    return min(
        MIN_JUDGE_STRENGTH + feedback_count // FEEDBACKS_PER_STRENGTH_POINT,
        MAX_JUDGE_STRENGTH
    )


def debate_importance(round_number: int, prop_wins: int, opp_wins: int) -> float:
    """Later rounds and higher brackets matter more."""
    round_weight = round_number * 2
    bracket_weight = (prop_wins + opp_wins) / 2 * 3
    return round_weight + bracket_weight


def has_conflict(judge: JudgeProfile, debate: DebateSlot) -> bool:
    return debate.prop_team_id in judge.conflicts or debate.opp_team_id in judge.conflicts


def allocation_cost(
    judge: JudgeProfile,
    debate: DebateSlot,
    weights: AllocationWeights,
) -> float:
    """
    Cost of putting `judge` on `debate`.

    cost = max(0, importance - strength) * strength_mismatch_weight
         + conflict_penalty (if the judge has judged either team before)
         + allocated_count * LOAD_WEIGHT
    """
    cost = max(0, debate.importance - judge.strength) * weights.strength_mismatch_weight

    if has_conflict(judge, debate):
        cost += weights.conflict_penalty

    cost += judge.allocated_count * LOAD_WEIGHT
    return cost


def greedy_allocate(
    judges: Sequence[JudgeProfile],
    debates: Sequence[DebateSlot],
    weights: AllocationWeights = AllocationWeights(),
    judges_per_debate: int = 1,
) -> Dict[DebateId, List[UserId]]:
    """
    Allocate judges debate by debate, most important first.

    For each debate every judge under capacity is costed and the cheapest
    is taken; equal costs go to the judge earlier in `judges`. Each pick
    increments that judge's allocated_count (the profiles are mutated).
    A debate with no judge left under capacity gets an empty list.

    Returns:
        Mapping debate id -> allocated judge ids, in allocation order
    """
    allocation: Dict[DebateId, List[UserId]] = {}
    ordered = sorted(debates, key=lambda d: d.importance, reverse=True)

    for debate in ordered:
        chosen: List[UserId] = []

        for _ in range(judges_per_debate):
            best = None
            best_cost = None

            for judge in judges:
                if judge.allocated_count >= JUDGE_CAPACITY_PER_ROUND:
                    continue
                if judge.id in chosen:
                    continue

                cost = allocation_cost(judge, debate, weights)
                if best_cost is None or cost < best_cost:
                    best, best_cost = judge, cost

            if best is None:
                break

            best.allocated_count += 1
            chosen.append(best.id)

        allocation[debate.id] = chosen

    return allocation
