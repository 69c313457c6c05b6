from classtrack.db.models.subjects import Subject
from classtrack.db.models.recurrence_rules import RecurrenceRule
from classtrack.db.models.occurrences import Occurrence, STATUS_VALUES

__all__ = ["Subject", "RecurrenceRule", "Occurrence", "STATUS_VALUES"]
