import pytest

from quizcore.core.errors import ValidationFailureError
from quizcore.models.answers import MultipleAnswer, SingleAnswer, to_answer


def test_string_for_single_answer_question():
    answer = to_answer("Paris", "mcq", "q1")
    assert isinstance(answer, SingleAnswer)
    assert answer.canonical() == "paris"


def test_one_element_list_collapses_to_single_answer():
    answer = to_answer(["True"], "true-false", "q1")
    assert isinstance(answer, SingleAnswer)
    assert answer.to_raw() == "True"


def test_lone_string_for_multiple_select_becomes_a_set():
    answer = to_answer("X", "multiple-select", "q1")
    assert isinstance(answer, MultipleAnswer)
    assert answer.canonical() == frozenset({"x"})
    assert answer.to_raw() == ["X"]


def test_multiple_select_drops_duplicates_and_keeps_order():
    answer = to_answer(["B", "A", "B"], "multiple-select", "q1")
    assert answer.to_raw() == ["B", "A"]


@pytest.mark.parametrize("raw, question_type", [
    (["A", "B"], "mcq"),
    ([], "short-answer"),
    (42, "mcq"),
    ({"a": 1}, "multiple-select"),
    (["A", 3], "multiple-select"),
])
def test_impossible_shapes_are_rejected(raw, question_type):
    with pytest.raises(ValidationFailureError):
        to_answer(raw, question_type, "q1")
