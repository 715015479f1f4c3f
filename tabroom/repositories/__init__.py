from tabroom.repositories.participant_repository import (
    ParticipantRepository,
    ParticipantStore,
    SerializationFailure,
    SqlAlchemyParticipantRepository,
    UniqueConstraintViolation,
)
from tabroom.repositories.tournament_repository import TournamentRepository

__all__ = [
    "ParticipantRepository",
    "ParticipantStore",
    "SerializationFailure",
    "SqlAlchemyParticipantRepository",
    "TournamentRepository",
    "UniqueConstraintViolation",
]
