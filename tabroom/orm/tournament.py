"""
Tournament, roster, round and debate ORM models

Rosters (teams, members, adjudicators) are owned by outside collaborators and
only read here. Rounds and debates are written by the draw service and
replaced wholesale when an unpublished round is regenerated.
"""
from datetime import datetime
from typing import Any, Dict

from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, Enum, Float, ForeignKey,
    Index, Integer, String, UniqueConstraint
)
from sqlalchemy.orm import relationship

from tabroom.core.types import DebateSide
from tabroom.orm.base import Base


# =============================================================================
# Users & Rosters
# =============================================================================

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), nullable=False, unique=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class Tournament(Base):
    __tablename__ = "tournaments"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    teams = relationship("TournamentTeam", back_populates="tournament")
    rounds = relationship("TournamentRound", back_populates="tournament")


class TournamentTeam(Base):
    __tablename__ = "tournament_teams"

    id = Column(Integer, primary_key=True, index=True)
    tournament_id = Column(
        Integer,
        ForeignKey("tournaments.id", ondelete="RESTRICT"),
        nullable=False
    )
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    tournament = relationship("Tournament", back_populates="teams")
    members = relationship("TeamMember", back_populates="team", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_teams_tournament', 'tournament_id'),
    )


class TeamMember(Base):
    __tablename__ = "team_members"

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(
        Integer,
        ForeignKey("tournament_teams.id", ondelete="CASCADE"),
        nullable=False
    )
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False
    )

    team = relationship("TournamentTeam", back_populates="members")

    __table_args__ = (
        UniqueConstraint('team_id', 'user_id', name='uq_team_member'),
        Index('idx_team_members_user', 'user_id'),
    )


class TournamentAdjudicator(Base):
    """A user registered to judge in a tournament (the candidate judge pool)."""
    __tablename__ = "tournament_adjudicators"

    id = Column(Integer, primary_key=True, index=True)
    tournament_id = Column(
        Integer,
        ForeignKey("tournaments.id", ondelete="RESTRICT"),
        nullable=False
    )
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False
    )

    __table_args__ = (
        UniqueConstraint('tournament_id', 'user_id', name='uq_tournament_adjudicator'),
    )


# =============================================================================
# Rounds & Debates
# =============================================================================

class TournamentRound(Base):
    __tablename__ = "tournament_rounds"

    id = Column(Integer, primary_key=True, index=True)
    tournament_id = Column(
        Integer,
        ForeignKey("tournaments.id", ondelete="RESTRICT"),
        nullable=False
    )
    round_number = Column(Integer, nullable=False)
    is_published = Column(Boolean, nullable=False, default=False)
    published_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    tournament = relationship("Tournament", back_populates="rounds")
    debates = relationship("Debate", back_populates="round", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint('tournament_id', 'round_number', name='uq_round_tournament_number'),
        Index('idx_rounds_tournament', 'tournament_id', 'is_published'),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "id": self.id,
            "tournament_id": self.tournament_id,
            "round_number": self.round_number,
            "is_published": self.is_published,
            "published_at": self.published_at.isoformat() if self.published_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class Debate(Base):
    """A persisted pairing: one proposition team against one opposition team."""
    __tablename__ = "debates"

    id = Column(Integer, primary_key=True, index=True)
    round_id = Column(
        Integer,
        ForeignKey("tournament_rounds.id", ondelete="CASCADE"),
        nullable=False
    )
    tournament_id = Column(
        Integer,
        ForeignKey("tournaments.id", ondelete="RESTRICT"),
        nullable=False
    )
    prop_team_id = Column(
        Integer,
        ForeignKey("tournament_teams.id", ondelete="RESTRICT"),
        nullable=False
    )
    opp_team_id = Column(
        Integer,
        ForeignKey("tournament_teams.id", ondelete="RESTRICT"),
        nullable=False
    )
    importance = Column(Float, nullable=True)
    winning_side = Column(Enum(DebateSide, create_constraint=True), nullable=True)
    # Shared call identifier, created lazily by the first participant to join
    session_id = Column(String(128), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    round = relationship("TournamentRound", back_populates="debates")
    prop_team = relationship("TournamentTeam", foreign_keys=[prop_team_id])
    opp_team = relationship("TournamentTeam", foreign_keys=[opp_team_id])
    judge_assignments = relationship(
        "JudgeAssignment", back_populates="debate", cascade="all, delete-orphan"
    )
    participants = relationship(
        "DebateParticipant", back_populates="debate", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint('prop_team_id != opp_team_id', name='ck_debate_distinct_teams'),
        # One side per team per round only; a team on proposition in one debate
        # and opposition in another is ruled out by the draw engine
        UniqueConstraint('round_id', 'prop_team_id', name='uq_debate_round_prop'),
        UniqueConstraint('round_id', 'opp_team_id', name='uq_debate_round_opp'),
        Index('idx_debates_round', 'round_id'),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "id": self.id,
            "round_id": self.round_id,
            "prop_team_id": self.prop_team_id,
            "opp_team_id": self.opp_team_id,
            "importance": self.importance,
            "winning_side": self.winning_side.value if self.winning_side else None,
            "session_id": self.session_id,
        }
