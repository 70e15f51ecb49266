"""Free-text parsing for inspector replies.

Turns one message into structured values: per-task condition assignments
("1 Good, 2: Fair" or "Good Good Fair") and cause/resolution pairs
("Cause: ... Resolution: ..." or "1: ..., 2: ..."). Everything here is pure.
"""

import re

from pydantic import BaseModel, Field

from steward.inspection.enums import Condition

ALLOWED_CONDITION_NAMES: list[str] = [condition.label for condition in Condition]

CONDITION_PARSE_ERROR = (
    'No valid conditions detected. Reply like "1 Good, 2 Good, 3 Fair" or '
    '"Good Good Fair". Allowed values: ' + ", ".join(ALLOWED_CONDITION_NAMES) + "."
)

CAUSE_RESOLUTION_PARSE_ERROR = (
    'Please send both in one message. Try "1: <cause>, 2: <resolution>" or '
    '"Cause: ... Resolution: ..."'
)

# Keys are normalized: case-folded with everything but letters and digits removed.
_SYNONYMS: dict[str, Condition] = {
    "good": Condition.GOOD,
    "g": Condition.GOOD,
    "ok": Condition.GOOD,
    "okay": Condition.GOOD,
    "fine": Condition.GOOD,
    "fair": Condition.FAIR,
    "f": Condition.FAIR,
    "unsatisfactory": Condition.UNSATISFACTORY,
    "unsat": Condition.UNSATISFACTORY,
    "poor": Condition.UNSATISFACTORY,
    "bad": Condition.UNSATISFACTORY,
    "unobservable": Condition.UN_OBSERVABLE,
    "unobserved": Condition.UN_OBSERVABLE,
    "notobservable": Condition.UN_OBSERVABLE,
    "cannotobserve": Condition.UN_OBSERVABLE,
    "cantobserve": Condition.UN_OBSERVABLE,
    "cannotbeobserved": Condition.UN_OBSERVABLE,
    "blocked": Condition.UN_OBSERVABLE,
    "notapplicable": Condition.NOT_APPLICABLE,
    "na": Condition.NOT_APPLICABLE,
}

# Longest synonym is three words ("can not observe").
_MAX_PHRASE_WORDS = 3

_ENUMERATED_PAIR = re.compile(
    r"(?<!\d)(\d{1,2})(?!\d)\s*[:.)\-]?\s*([a-z/\- _]+|[1-5](?!\d))",
    re.IGNORECASE,
)
_TOKEN_SPLIT = re.compile(r"[\s,;]+")
_WORD_SPLIT = re.compile(r"[\s_]+")

_LABELLED_CAUSE = re.compile(
    r"cause\s*[:\-]\s*(.+?)(?=resolution\s*[:\-]|$)", re.IGNORECASE | re.DOTALL
)
_LABELLED_RESOLUTION = re.compile(r"resolution\s*[:\-]\s*(.+)$", re.IGNORECASE | re.DOTALL)
_NUMBERED_CAUSE = re.compile(
    r"(?:^|[\s,;])1\s*[:\-]\s*(.+?)(?=[\s,;]2\s*[:\-]|$)", re.DOTALL
)
_NUMBERED_RESOLUTION = re.compile(r"(?:^|[\s,;])2\s*[:\-]\s*(.+)$", re.DOTALL)
_PART_SPLIT = re.compile(r"[\n;]+|,")
_REMARKS_FINDING = re.compile(r"Cause:\s*(.*)\nResolution:\s*(.*)", re.IGNORECASE)


class ConditionParseResult(BaseModel):
    """Outcome of `parse_conditions`.

    `assignments` is ordered by position with one entry per position.
    """

    assignments: list[tuple[int, Condition]] = Field(default_factory=list)
    error: str | None = None
    allowed: list[str] = Field(default_factory=lambda: list(ALLOWED_CONDITION_NAMES))

    @property
    def ok(self) -> bool:
        return self.error is None


def normalize_token(text: str) -> str:
    return re.sub(r"[^a-z0-9]", "", text.casefold())


def condition_from_word(word: str) -> Condition | None:
    """Map one word or phrase onto a condition, or None."""
    token = normalize_token(word)
    if not token:
        return None
    if token.isdigit():
        return Condition.from_code(int(token))
    if token in _SYNONYMS:
        return _SYNONYMS[token]
    # Prefix match only for a single word so "unsat good" is not swallowed whole.
    if token.startswith("unsat") and len(word.split()) == 1:
        return Condition.UNSATISFACTORY
    return None


def _leading_condition(phrase: str) -> Condition | None:
    """Longest leading run of words in `phrase` that names a condition."""
    words = [w for w in _WORD_SPLIT.split(phrase.strip()) if w]
    for size in range(min(len(words), _MAX_PHRASE_WORDS), 0, -1):
        condition = condition_from_word(" ".join(words[:size]))
        if condition is not None:
            return condition
    return None


def _enumerated_pairs(text: str, task_count: int) -> list[tuple[int, Condition]]:
    pairs: list[tuple[int, Condition]] = []
    for match in _ENUMERATED_PAIR.finditer(text):
        position = int(match.group(1))
        if not 1 <= position <= task_count:
            continue
        condition = _leading_condition(match.group(2))
        if condition is not None:
            pairs.append((position, condition))
    return pairs


def _bare_sequence(text: str, task_count: int) -> list[tuple[int, Condition]]:
    tokens = [t for t in _TOKEN_SPLIT.split(text) if t]
    pairs: list[tuple[int, Condition]] = []
    index = 0
    while index < len(tokens) and len(pairs) < task_count:
        for size in range(min(_MAX_PHRASE_WORDS, len(tokens) - index), 0, -1):
            condition = condition_from_word(" ".join(tokens[index : index + size]))
            if condition is not None:
                pairs.append((len(pairs) + 1, condition))
                index += size
                break
        else:
            index += 1
    return pairs


def parse_conditions(text: str, task_count: int) -> ConditionParseResult:
    """Parse one message into per-task condition assignments.

    Numbered pairs ("1 Good, 2: Fair") are tried first; only when none are
    found is the message read as a bare sequence ("Good Good Fair") assigned
    to positions 1..N in order. A position given twice keeps its last value.

    Args:
        text: The inspector's message
        task_count: Number of tasks in the active sub-location

    Returns:
        Parse result; `ok` is False when nothing usable was found
    """
    if task_count < 1:
        return ConditionParseResult(error=CONDITION_PARSE_ERROR)

    pairs = _enumerated_pairs(text, task_count)
    if not pairs:
        pairs = _bare_sequence(text, task_count)
    if not pairs:
        return ConditionParseResult(error=CONDITION_PARSE_ERROR)

    by_position: dict[int, Condition] = {}
    for position, condition in pairs:
        by_position[position] = condition
    return ConditionParseResult(assignments=sorted(by_position.items()))


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip().strip(",;").strip()
    return cleaned or None


def parse_cause_resolution(text: str) -> tuple[str | None, str | None]:
    """Extract a cause and a resolution from one message.

    Tried in order until both are found: labelled ("Cause: x Resolution: y"),
    numbered ("1: x, 2: y"), then a split on newline, semicolon or comma.
    Either side may come back None.
    """
    cause_match = _LABELLED_CAUSE.search(text)
    resolution_match = _LABELLED_RESOLUTION.search(text)
    cause = _clean(cause_match.group(1)) if cause_match else None
    resolution = _clean(resolution_match.group(1)) if resolution_match else None

    if not cause or not resolution:
        numbered_cause = _NUMBERED_CAUSE.search(text)
        numbered_resolution = _NUMBERED_RESOLUTION.search(text)
        if numbered_cause and not cause:
            cause = _clean(numbered_cause.group(1))
        if numbered_resolution and not resolution:
            resolution = _clean(numbered_resolution.group(1))

    if not cause or not resolution:
        parts = [p.strip() for p in _PART_SPLIT.split(text) if p.strip()]
        if len(parts) >= 2:
            cause = cause or parts[0]
            resolution = resolution or parts[1]

    return cause, resolution


def cause_resolution_from_remarks(remarks: str | None) -> tuple[str | None, str | None]:
    """Recover a finding written into free-form remarks as two labelled lines."""
    if not remarks:
        return None, None
    match = _REMARKS_FINDING.search(remarks)
    if match is None:
        return None, None
    return _clean(match.group(1)), _clean(match.group(2))


def parse_menu_number(text: str) -> int | None:
    """Read a bare 1-2 digit reply such as "3", "[3]" or "option 3"."""
    match = re.fullmatch(
        r"\s*(?:option\s*)?\[?\s*(\d{1,2})\s*\]?\s*[.)]?\s*", text, re.IGNORECASE
    )
    return int(match.group(1)) if match else None
