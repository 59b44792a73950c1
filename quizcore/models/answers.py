"""
Answer values: a submitted or correct answer is either a single string or a
set of strings. Raw document values are normalized here, once, so the
correctness comparator never inspects runtime types.
"""
from dataclasses import dataclass
from typing import FrozenSet, List, Union

from quizcore.core.errors import ValidationFailureError


def fold(value: str) -> str:
    return value.strip().casefold()


@dataclass(frozen=True)
class SingleAnswer:
    value: str

    def canonical(self) -> Union[str, FrozenSet[str]]:
        return fold(self.value)

    def to_raw(self) -> str:
        return self.value


@dataclass(frozen=True)
class MultipleAnswer:
    values: FrozenSet[str]
    ordered: tuple = ()

    def canonical(self) -> Union[str, FrozenSet[str]]:
        return frozenset(fold(v) for v in self.values)

    def to_raw(self) -> List[str]:
        return list(self.ordered or sorted(self.values))


Answer = Union[SingleAnswer, MultipleAnswer]


def _require_strings(items: list, question_id: str) -> List[str]:
    for item in items:
        if not isinstance(item, str):
            raise ValidationFailureError(
                f"Answer for question {question_id} must contain only strings"
            )
    return items


def to_answer(raw, question_type: str, question_id: str = "?") -> Answer:
    """
    Normalize a raw answer value for a question type

    A lone string for a multiple-select question becomes a one-element set and
    a one-element list for a single-answer question becomes its only string.
    Anything else that does not fit the question type is rejected.

    Raises:
        ValidationFailureError: If the value cannot represent an answer
    """
    if question_type == "multiple-select":
        if isinstance(raw, str):
            return MultipleAnswer(values=frozenset([raw]), ordered=(raw,))
        if isinstance(raw, (list, tuple, set, frozenset)):
            items = _require_strings(list(raw), question_id)
            ordered = tuple(dict.fromkeys(items))
            return MultipleAnswer(values=frozenset(ordered), ordered=ordered)
        raise ValidationFailureError(
            f"Answer for question {question_id} must be a string or a list of strings"
        )

    if isinstance(raw, str):
        return SingleAnswer(raw)
    if isinstance(raw, (list, tuple)) and len(raw) == 1:
        return SingleAnswer(_require_strings(list(raw), question_id)[0])
    raise ValidationFailureError(
        f"Question {question_id} accepts a single answer, got {type(raw).__name__}"
    )
