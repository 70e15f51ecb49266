"""Display strings for the numbered-menu conversation."""

from collections.abc import Iterable
from datetime import datetime

from steward.inspection.enums import Condition

CONDITION_MENU = (
    "[1] Good, [2] Fair, [3] Un-Satisfactory, [4] Un-Observable, [5] Not Applicable"
)


def numbered(labels: Iterable[str]) -> list[str]:
    return [f"[{number}] {label}" for number, label in enumerate(labels, start=1)]


def done(name: str, completed: bool) -> str:
    return f"{name} (Done)" if completed else name


def clock_time(value: datetime) -> str:
    """12-hour time such as "9:30 AM"."""
    return value.strftime("%I:%M %p").lstrip("0")


def condition_lines(rows: Iterable[tuple[int, str, Condition]]) -> list[str]:
    return [f"- [{number}] {name}: {condition.label}" for number, name, condition in rows]
