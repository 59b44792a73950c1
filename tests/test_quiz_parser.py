import pytest

from quizcore.utils.quiz_parser import InvalidJSONError, ValidationError, parse_quiz_json


def test_plain_json_array():
    raw = '[{"question": "2+2?", "options": ["3", "4"], "correctAnswer": "4", "explanation": "Sum."}]'

    [question] = parse_quiz_json(raw)

    assert question["id"] == "q1"
    assert question["type"] == "mcq"
    assert question["correctAnswer"] == "4"
    assert question["difficulty"] == "medium"
    assert question["points"] == 1


def test_markdown_fence_and_trailing_commas():
    raw = """Here is your quiz:
```json
[
  {"question": "Capital of France?", "type": "short-answer", "correctAnswer": "Paris",},
  {"question": "Sky is blue", "type": "true-false", "options": ["True", "False"], "correctAnswer": "True"},
]
```"""
    questions = parse_quiz_json(raw)

    assert [q["id"] for q in questions] == ["q1", "q2"]
    assert questions[0]["options"] is None
    assert questions[1]["type"] == "true-false"


def test_questions_wrapper_object():
    raw = '{"questions": [{"question": "Pick primes", "type": "multiple-select", ' \
          '"options": ["2", "3", "4"], "correctAnswer": ["2", "3"], "difficulty": "HARD"}]}'

    [question] = parse_quiz_json(raw)

    assert question["correctAnswer"] == ["2", "3"]
    assert question["difficulty"] == "hard"


def test_answer_letter_resolves_to_option_text():
    raw = '[{"question": "Largest planet?", "options": ["Mars", "Jupiter", "Venus"], "answer": "B"}]'
    [question] = parse_quiz_json(raw)
    assert question["correctAnswer"] == "Jupiter"


def test_mixed_request_defaults_untyped_items_to_mcq():
    raw = '[{"question": "Q", "options": ["A", "B"], "correctAnswer": "A"}]'
    [question] = parse_quiz_json(raw, default_type="mixed")
    assert question["type"] == "mcq"


def test_string_answer_for_multiple_select_becomes_list():
    raw = '[{"question": "Q", "type": "multiple-select", "options": ["A", "B"], "correctAnswer": "A"}]'
    [question] = parse_quiz_json(raw)
    assert question["correctAnswer"] == ["A"]


@pytest.mark.parametrize("raw", ["", "   ", "no json here", "[{broken"])
def test_unparseable_responses(raw):
    with pytest.raises(InvalidJSONError):
        parse_quiz_json(raw)


@pytest.mark.parametrize("raw", [
    "[]",
    '{"title": "x"}',
    '[{"options": ["A"]}]',
    '[{"question": "Q", "type": "essay", "correctAnswer": "A"}]',
    '[{"question": "Q", "correctAnswer": 7}]',
    '["just a string"]',
])
def test_unusable_question_lists(raw):
    with pytest.raises(ValidationError):
        parse_quiz_json(raw)
