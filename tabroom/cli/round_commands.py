"""
Round & Tournament CLI Commands

Round operations: draw, allocate, publish
Tournament operations: standings
"""
import random

from tabroom.cli.base import BaseCommand
from tabroom.core.types import AllocationWeights, RoundId, TournamentId
from tabroom.exceptions import TabroomError
from tabroom.services.judge_allocation_service import auto_allocate_judges
from tabroom.services.round_draw_service import (
    generate_round_draw, get_tournament_standings, publish_round
)


class RoundCommand(BaseCommand):
    """Round CLI command handler."""

    def execute(self, args) -> int:
        """Execute round command."""
        if args.round_action == "draw":
            return self._draw(args)
        elif args.round_action == "allocate":
            return self._allocate(args)
        elif args.round_action == "publish":
            return self._publish(args)
        else:
            print("Error: Unknown round action")
            return 1

    def _draw(self, args) -> int:
        """Generate the draw for a round."""
        print(f"=== Draw: tournament {args.tournament}, round {args.round} ===")

        rng = random.Random(args.seed) if args.seed is not None else None

        try:
            round_id, draw = self.run(
                lambda db: generate_round_draw(TournamentId(args.tournament), args.round, db, rng=rng)
            )
        except TabroomError as e:
            print(f"Error [{e.code}]: {e.message}")
            return 1

        print(f"Round ID: {round_id}")
        for i, pairing in enumerate(draw.pairings, start=1):
            print(
                f"  {i:>3}. PROP {pairing.prop_team_id:<6} vs OPP {pairing.opp_team_id:<6} "
                f"importance={pairing.importance}"
            )
        if draw.unpaired_team_ids:
            print(f"⚠ Unpaired teams: {list(draw.unpaired_team_ids)}")
        return 0

    def _allocate(self, args) -> int:
        """Allocate judges to every debate of a round."""
        print(f"=== Judge Allocation: round {args.id} ===")

        settings = self.settings
        weights = AllocationWeights(
            strength_mismatch_weight=(
                args.mismatch_weight if args.mismatch_weight is not None
                else settings.ALLOCATION_STRENGTH_MISMATCH_WEIGHT
            ),
            conflict_penalty=(
                args.conflict_penalty if args.conflict_penalty is not None
                else settings.ALLOCATION_CONFLICT_PENALTY
            ),
        )

        try:
            allocation = self.run(
                lambda db: auto_allocate_judges(RoundId(args.id), db, weights=weights)
            )
        except TabroomError as e:
            print(f"Error [{e.code}]: {e.message}")
            return 1

        for debate_id, judge_ids in allocation.items():
            judges = ", ".join(str(j) for j in judge_ids) or "-- none available --"
            print(f"  Debate {debate_id}: {judges}")
        return 0

    def _publish(self, args) -> int:
        """Publish a round."""
        try:
            changed = self.run(lambda db: publish_round(RoundId(args.id), db))
        except TabroomError as e:
            print(f"Error [{e.code}]: {e.message}")
            return 1

        if changed:
            print(f"✓ Round {args.id} published")
        else:
            print(f"Round {args.id} was already published")
        return 0


class TournamentCommand(BaseCommand):
    """Tournament CLI command handler."""

    def execute(self, args) -> int:
        """Execute tournament command."""
        if args.tournament_action == "standings":
            return self._standings(args)
        else:
            print("Error: Unknown tournament action")
            return 1

    def _standings(self, args) -> int:
        """Show standings from published rounds."""
        print(f"=== Standings: tournament {args.id} ===")

        try:
            rows = self.run(lambda db: get_tournament_standings(TournamentId(args.id), db))
        except TabroomError as e:
            print(f"Error [{e.code}]: {e.message}")
            return 1

        print(f"{'Rank':<6}{'Team':<30}{'W':>4}{'L':>4}{'Prop':>6}{'Opp':>6}{'OppStr':>9}")
        for rank, row in enumerate(rows, start=1):
            print(
                f"{rank:<6}{row.team_name[:28]:<30}{row.wins:>4}{row.losses:>4}"
                f"{row.prop_count:>6}{row.opp_count:>6}{row.opponent_strength:>9.2f}"
            )
        return 0
