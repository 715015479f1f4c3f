"""
CLI Test Suite

Tests for:
- Argument parsing of every command
- db init, round draw/allocate/publish and tournament standings end to end
  against a file-backed SQLite database
- Domain errors reported with their code and a non-zero exit status
"""
import asyncio
import re

import pytest

from tabroom.cli import create_parser, main
from tabroom.config.settings import Settings
from tabroom.core.types import DebateSide
from tabroom.database import close_db, create_engine_from_settings, create_session_factory
from tabroom.tests.factories import create_round, seed_tournament


# =============================================================================
# CLI Parser Tests
# =============================================================================

class TestCLIParser:
    """Test CLI argument parsing."""

    def test_round_draw_parsing(self):
        args = create_parser().parse_args(["round", "draw", "-t", "3", "-r", "2", "--seed", "9"])

        assert args.command == "round"
        assert args.round_action == "draw"
        assert (args.tournament, args.round, args.seed) == (3, 2, 9)

    def test_round_allocate_parsing(self):
        args = create_parser().parse_args([
            "round", "allocate", "--id", "7", "--mismatch-weight", "5", "--conflict-penalty", "50"
        ])

        assert args.round_action == "allocate"
        assert args.id == 7
        assert args.mismatch_weight == 5.0
        assert args.conflict_penalty == 50.0

    def test_tournament_standings_parsing(self):
        args = create_parser().parse_args(["tournament", "standings", "--id", "1"])

        assert args.command == "tournament"
        assert args.tournament_action == "standings"
        assert args.id == 1

    def test_database_url_override(self):
        args = create_parser().parse_args(["--database-url", "sqlite+aiosqlite:///x.db", "db", "init"])

        assert args.database_url == "sqlite+aiosqlite:///x.db"
        assert args.db_action == "init"


# =============================================================================
# End To End
# =============================================================================

@pytest.fixture
def database_url(tmp_path):
    url = f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"
    assert main(["--database-url", url, "db", "init"]) == 0
    return url


def seed(database_url):
    """Seed four teams, two judges and one published round; returns the tournament id."""
    async def _seed():
        engine = create_engine_from_settings(Settings(database_url=database_url))
        try:
            async with create_session_factory(engine)() as db:
                seeded = await seed_tournament(db, team_count=4, members_per_team=3, judge_count=2)
                t1, t2, t3, t4 = seeded.team_ids
                await create_round(db, seeded.tournament_id, 1, [
                    (t1, t2, DebateSide.PROP),
                    (t3, t4, DebateSide.OPP),
                ])
                return seeded.tournament_id
        finally:
            await close_db(engine)

    return asyncio.run(_seed())


class TestCommandsEndToEnd:
    """Test the console commands against a real database."""

    def test_draw_allocate_publish_standings(self, database_url, capsys):
        tournament_id = seed(database_url)
        base = ["--database-url", database_url, "--log-level", "WARNING"]

        assert main(base + ["round", "draw", "-t", str(tournament_id), "-r", "2", "--seed", "1"]) == 0
        out = capsys.readouterr().out
        round_id = int(re.search(r"Round ID: (\d+)", out).group(1))
        assert out.count("PROP") == 2

        assert main(base + ["round", "allocate", "--id", str(round_id)]) == 0
        out = capsys.readouterr().out
        assert out.count("Debate ") == 2
        assert "none available" not in out

        assert main(base + ["round", "publish", "--id", str(round_id)]) == 0
        assert f"Round {round_id} published" in capsys.readouterr().out

        assert main(base + ["round", "publish", "--id", str(round_id)]) == 0
        assert "already published" in capsys.readouterr().out

        assert main(base + ["tournament", "standings", "--id", str(tournament_id)]) == 0
        lines = capsys.readouterr().out.strip().splitlines()
        assert lines[1].startswith("Rank")
        assert len(lines) == 2 + 4

    def test_allocating_published_round_fails(self, database_url, capsys):
        tournament_id = seed(database_url)
        base = ["--database-url", database_url, "--log-level", "WARNING"]
        main(base + ["round", "draw", "-t", str(tournament_id), "-r", "2"])
        round_id = int(re.search(r"Round ID: (\d+)", capsys.readouterr().out).group(1))
        main(base + ["round", "publish", "--id", str(round_id)])
        capsys.readouterr()

        assert main(base + ["round", "allocate", "--id", str(round_id)]) == 1
        assert "Error [ROUND_PUBLISHED]" in capsys.readouterr().out

    def test_unknown_tournament_standings(self, database_url, capsys):
        result = main(["--database-url", database_url, "tournament", "standings", "--id", "999"])

        assert result == 1
        assert "Error [NOT_FOUND]" in capsys.readouterr().out

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage: tabroom" in capsys.readouterr().out
