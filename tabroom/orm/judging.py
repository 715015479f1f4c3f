"""
Judge assignment and judge feedback ORM models

judge_assignments is written by the allocation service (cleared and
re-inserted per round as one batch). judge_feedback belongs to the ballot
collaborator; only its row count per judge is read, as a strength signal.
"""
from datetime import datetime
from typing import Any, Dict

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, UniqueConstraint
from sqlalchemy.orm import relationship

from tabroom.orm.base import Base


class JudgeAssignment(Base):
    __tablename__ = "judge_assignments"

    id = Column(Integer, primary_key=True, index=True)
    debate_id = Column(
        Integer,
        ForeignKey("debates.id", ondelete="CASCADE"),
        nullable=False
    )
    judge_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False
    )
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    debate = relationship("Debate", back_populates="judge_assignments")

    __table_args__ = (
        UniqueConstraint('debate_id', 'judge_id', name='uq_judge_assignment'),
        Index('idx_judge_assignments_judge', 'judge_id'),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "id": self.id,
            "debate_id": self.debate_id,
            "judge_id": self.judge_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class JudgeFeedback(Base):
    __tablename__ = "judge_feedback"

    id = Column(Integer, primary_key=True, index=True)
    judge_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False
    )
    debate_id = Column(
        Integer,
        ForeignKey("debates.id", ondelete="SET NULL"),
        nullable=True
    )
    score = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index('idx_judge_feedback_judge', 'judge_id'),
    )
