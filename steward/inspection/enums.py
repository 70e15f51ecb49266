"""Enums for the inspection domain."""

from enum import Enum


class Condition(str, Enum):
    """Condition rating recorded against a checklist task.

    Numeric replies 1..5 map onto the members in declaration order.
    """

    GOOD = "GOOD"
    FAIR = "FAIR"
    UNSATISFACTORY = "UNSATISFACTORY"
    UN_OBSERVABLE = "UN_OBSERVABLE"
    NOT_APPLICABLE = "NOT_APPLICABLE"

    @property
    def code(self) -> int:
        return _CODES_BY_CONDITION[self]

    @property
    def label(self) -> str:
        """Display name shown to inspectors."""
        return _LABELS[self]

    @property
    def requires_cause(self) -> bool:
        """FAIR and UNSATISFACTORY need a cause and a resolution."""
        return self in ISSUE_CONDITIONS

    @property
    def requires_media(self) -> bool:
        """Every rating except NOT_APPLICABLE needs photographic evidence."""
        return self is not Condition.NOT_APPLICABLE

    @classmethod
    def from_code(cls, code: int) -> "Condition | None":
        return CONDITIONS_BY_CODE.get(code)


CONDITIONS_BY_CODE: dict[int, Condition] = {
    index: condition for index, condition in enumerate(Condition, start=1)
}
_CODES_BY_CONDITION: dict[Condition, int] = {
    condition: index for index, condition in CONDITIONS_BY_CODE.items()
}
_LABELS: dict[Condition, str] = {
    Condition.GOOD: "Good",
    Condition.FAIR: "Fair",
    Condition.UNSATISFACTORY: "Un-Satisfactory",
    Condition.UN_OBSERVABLE: "Un-Observable",
    Condition.NOT_APPLICABLE: "Not Applicable",
}
ISSUE_CONDITIONS: frozenset[Condition] = frozenset(
    {Condition.FAIR, Condition.UNSATISFACTORY}
)


class ItemStatus(str, Enum):
    """Completion status shared by locations, sub-locations and tasks."""

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


class WorkOrderStatus(str, Enum):
    """Lifecycle of a scheduled inspection job."""

    SCHEDULED = "SCHEDULED"
    STARTED = "STARTED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class MediaType(str, Enum):
    """Kind of media attached to an inspection record."""

    PHOTO = "PHOTO"
    VIDEO = "VIDEO"

    @classmethod
    def from_content_type(cls, content_type: str | None) -> "MediaType":
        if content_type and content_type.lower().startswith("video/"):
            return cls.VIDEO
        return cls.PHOTO
