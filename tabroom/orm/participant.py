"""
Debate participant (role claim) ORM model

One row per (user, role) claimed inside a debate. The partial unique index
uq_participant_team_main_role is what decides concurrent claims for the same
seat: at most one live (RESERVED/ACTIVE) row per (debate, team, role) for
every role except REPLY_SPEAKER. Judge rows carry a NULL team_id and are
therefore never constrained by it.
"""
from datetime import datetime
from typing import Any, Dict

from sqlalchemy import (
    Column, DateTime, Enum, ForeignKey, Index, Integer, String,
    UniqueConstraint, text
)
from sqlalchemy.orm import relationship

from tabroom.core.types import ParticipantRole, ParticipantStatus
from tabroom.orm.base import Base


LIVE_MAIN_ROLE_PREDICATE = (
    "role != 'REPLY_SPEAKER' AND status IN ('RESERVED', 'ACTIVE')"
)


class DebateParticipant(Base):
    __tablename__ = "debate_participants"

    id = Column(Integer, primary_key=True, index=True)
    debate_id = Column(
        Integer,
        ForeignKey("debates.id", ondelete="CASCADE"),
        nullable=False
    )
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False
    )
    team_id = Column(
        Integer,
        ForeignKey("tournament_teams.id", ondelete="RESTRICT"),
        nullable=True
    )
    role = Column(Enum(ParticipantRole, create_constraint=True), nullable=False)
    status = Column(
        Enum(ParticipantStatus, create_constraint=True),
        nullable=False,
        default=ParticipantStatus.RESERVED
    )
    session_id = Column(String(128), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    debate = relationship("Debate", back_populates="participants")

    __table_args__ = (
        UniqueConstraint('debate_id', 'user_id', 'role', name='uq_participant_user_role'),
        Index(
            'uq_participant_team_main_role',
            'debate_id', 'team_id', 'role',
            unique=True,
            sqlite_where=text(LIVE_MAIN_ROLE_PREDICATE),
            postgresql_where=text(LIVE_MAIN_ROLE_PREDICATE),
        ),
        Index('idx_participants_debate_user', 'debate_id', 'user_id'),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "id": self.id,
            "debate_id": self.debate_id,
            "user_id": self.user_id,
            "team_id": self.team_id,
            "role": self.role.value if self.role else None,
            "status": self.status.value if self.status else None,
            "session_id": self.session_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
