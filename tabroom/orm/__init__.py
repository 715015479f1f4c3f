"""
ORM models. Importing this package registers every table on Base.metadata.
"""
from tabroom.orm.base import Base
from tabroom.orm.tournament import (
    User, Tournament, TournamentTeam, TeamMember, TournamentAdjudicator,
    TournamentRound, Debate
)
from tabroom.orm.judging import JudgeAssignment, JudgeFeedback
from tabroom.orm.participant import DebateParticipant

__all__ = [
    "Base",
    "User",
    "Tournament",
    "TournamentTeam",
    "TeamMember",
    "TournamentAdjudicator",
    "TournamentRound",
    "Debate",
    "JudgeAssignment",
    "JudgeFeedback",
    "DebateParticipant",
]
