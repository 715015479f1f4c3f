"""
tabroom/core/types.py
Typed identifiers and flat records shared by the pairing, allocation and
reservation engines.

The engines only ever see these records. Repositories fetch them from the
database once and pass them in, so the algorithms stay pure and testable
without a session.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, List, NewType, Optional, Tuple


TournamentId = NewType("TournamentId", int)
RoundId = NewType("RoundId", int)
TeamId = NewType("TeamId", int)
DebateId = NewType("DebateId", int)
UserId = NewType("UserId", int)


# =============================================================================
# Enums
# =============================================================================

class DebateSide(str, Enum):
    PROP = "PROP"
    OPP = "OPP"


class ParticipantRole(str, Enum):
    FIRST_SPEAKER = "FIRST_SPEAKER"
    SECOND_SPEAKER = "SECOND_SPEAKER"
    THIRD_SPEAKER = "THIRD_SPEAKER"
    REPLY_SPEAKER = "REPLY_SPEAKER"
    JUDGE = "JUDGE"


class ParticipantStatus(str, Enum):
    RESERVED = "RESERVED"
    ACTIVE = "ACTIVE"


# Roles that occupy a seat on the team; REPLY_SPEAKER is taken on top of one
MAIN_SPEAKING_ROLES = frozenset({
    ParticipantRole.FIRST_SPEAKER,
    ParticipantRole.SECOND_SPEAKER,
    ParticipantRole.THIRD_SPEAKER,
})

LIVE_STATUSES = frozenset({ParticipantStatus.RESERVED, ParticipantStatus.ACTIVE})


# =============================================================================
# History / Pairing Records
# =============================================================================

@dataclass(frozen=True)
class TeamRecord:
    id: TeamId
    name: str


@dataclass(frozen=True)
class ConfirmedResult:
    """One debate from a published round."""
    prop_team_id: TeamId
    opp_team_id: TeamId
    winning_side: Optional[DebateSide] = None


@dataclass(frozen=True)
class TeamHistory:
    id: TeamId
    name: str
    wins: int = 0
    prop_count: int = 0
    opp_count: int = 0
    opponent_ids: Tuple[TeamId, ...] = ()

    @property
    def side_balance(self) -> int:
        return self.prop_count - self.opp_count


@dataclass(frozen=True)
class Pairing:
    prop_team_id: TeamId
    opp_team_id: TeamId
    importance: Optional[float] = None

    def __post_init__(self):
        if self.prop_team_id == self.opp_team_id:
            raise ValueError(f"Team {self.prop_team_id} cannot be paired against itself")

    @property
    def team_ids(self) -> Tuple[TeamId, TeamId]:
        return (self.prop_team_id, self.opp_team_id)


@dataclass
class DrawResult:
    round_number: int
    pairings: List[Pairing] = field(default_factory=list)
    unpaired_team_ids: Tuple[TeamId, ...] = ()


@dataclass(frozen=True)
class StandingRow:
    team_id: TeamId
    team_name: str
    wins: int
    losses: int
    prop_count: int
    opp_count: int
    opponent_strength: float


# =============================================================================
# Allocation Records
# =============================================================================

@dataclass
class JudgeProfile:
    id: UserId
    strength: int
    conflicts: FrozenSet[TeamId] = frozenset()
    allocated_count: int = 0


@dataclass(frozen=True)
class DebateSlot:
    id: DebateId
    prop_team_id: TeamId
    opp_team_id: TeamId
    importance: float


@dataclass(frozen=True)
class AllocationWeights:
    strength_mismatch_weight: float = 10
    conflict_penalty: float = 1000


# =============================================================================
# Reservation Records
# =============================================================================

@dataclass(frozen=True)
class DebateRoster:
    """Who may join a debate: the two paired teams and its assigned judges."""
    debate_id: DebateId
    prop_team_id: TeamId
    opp_team_id: TeamId
    prop_member_ids: FrozenSet[UserId]
    opp_member_ids: FrozenSet[UserId]
    judge_ids: FrozenSet[UserId]
    session_id: Optional[str] = None

    def team_of(self, user_id: UserId) -> Optional[TeamId]:
        if user_id in self.prop_member_ids:
            return self.prop_team_id
        if user_id in self.opp_member_ids:
            return self.opp_team_id
        return None


@dataclass(frozen=True)
class ParticipantClaim:
    debate_id: DebateId
    user_id: UserId
    team_id: Optional[TeamId]
    role: ParticipantRole
    status: ParticipantStatus
    session_id: Optional[str] = None


@dataclass(frozen=True)
class ReservationResult:
    debate_id: DebateId
    user_id: UserId
    team_id: Optional[TeamId]
    roles: Tuple[ParticipantRole, ...]
    session_id: str
    is_new: bool = True

    def to_dict(self):
        return {
            "debate_id": self.debate_id,
            "user_id": self.user_id,
            "team_id": self.team_id,
            "roles": [role.value for role in self.roles],
            "session_id": self.session_id,
            "is_new": self.is_new,
        }
