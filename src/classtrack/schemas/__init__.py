from .base import APIModel
from .occurrence import MarkIn, MarkOut, OccurrenceOut
from .recurrence_rule import (
    MaterializeOut,
    ReconcileOut,
    RuleDeleteOut,
    RuleOut,
    RuleUpsert,
    RuleUpsertOut,
    SlotIn,
    SlotsOut,
    SlotsReplace,
    TimetableEntryOut,
)
from .subject import SubjectCreate, SubjectOut
from .summary import SubjectSummaryOut
