from classtrack.db.repositories.base import BaseRepository, store_guard
from classtrack.db.repositories.occurrences import OccurrenceRepository
from classtrack.db.repositories.rules import RuleRepository
from classtrack.db.repositories.subjects import SubjectRepository

__all__ = [
    "BaseRepository",
    "store_guard",
    "OccurrenceRepository",
    "RuleRepository",
    "SubjectRepository",
]
