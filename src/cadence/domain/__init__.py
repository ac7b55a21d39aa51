# Domain Package
from .errors import CadenceError, Conflict, InvalidGrade, NotFound, NothingToUndo, StorageFailure
from .models import Card, CardSnapshot, CardType, GradeResult, ReviewRecord, SchedulingState, Stage
from .ports import CardStore

__all__ = [
    "Card",
    "CardSnapshot",
    "CardType",
    "GradeResult",
    "ReviewRecord",
    "SchedulingState",
    "Stage",
    "CardStore",
    "CadenceError",
    "Conflict",
    "InvalidGrade",
    "NotFound",
    "NothingToUndo",
    "StorageFailure",
]
