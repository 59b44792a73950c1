"""
Quiz Validator
Structural checks run before a quiz is persisted, independent of storage
FILE: quizcore/services/quiz_validator.py
"""
import logging
from typing import Set

from quizcore.core.errors import ValidationFailureError
from quizcore.models.answers import MultipleAnswer, fold, to_answer
from quizcore.models.quiz import Question, Quiz

logger = logging.getLogger(__name__)

CHOICE_TYPES = {"mcq", "multiple-select"}
OPTION_ANSWER_TYPES = CHOICE_TYPES | {"true-false"}
MIN_CHOICE_OPTIONS = 2
TRUE_FALSE_OPTIONS = 2
MINUTES_PER_QUESTION = 1


def validate_question(question: Question, index: int) -> None:
    """
    Check option count and answer cardinality against the question type

    Answers to choice and true-false questions must name options, compared
    trimmed and case-folded.

    Raises:
        ValidationFailureError: On the first broken rule
    """
    label = f"Question {index + 1} ({question.id})"

    if "." in question.id or question.id.startswith("$"):
        raise ValidationFailureError(f"{label}: id must not contain '.' or start with '$'")

    options = question.options or []

    if question.type in CHOICE_TYPES and len(options) < MIN_CHOICE_OPTIONS:
        raise ValidationFailureError(
            f"{label}: {question.type} needs at least {MIN_CHOICE_OPTIONS} options, got {len(options)}"
        )
    if question.type == "true-false" and len(options) != TRUE_FALSE_OPTIONS:
        raise ValidationFailureError(
            f"{label}: true-false needs exactly {TRUE_FALSE_OPTIONS} options, got {len(options)}"
        )
    if question.type == "short-answer" and options:
        raise ValidationFailureError(f"{label}: short-answer questions take no options")

    for i, option in enumerate(options):
        if not option.strip():
            raise ValidationFailureError(f"{label}: option {i + 1} is empty")

    if question.type != "multiple-select" and isinstance(question.correctAnswer, list) \
            and len(question.correctAnswer) != 1:
        raise ValidationFailureError(f"{label}: {question.type} takes a single correct answer")

    answer = to_answer(question.correctAnswer, question.type, question.id)
    values = answer.values if isinstance(answer, MultipleAnswer) else [answer.value]
    if not values or any(not v.strip() for v in values):
        raise ValidationFailureError(f"{label}: correct answer must not be empty")

    if question.type in OPTION_ANSWER_TYPES:
        folded_options = {fold(option) for option in options}
        missing = [v for v in values if fold(v) not in folded_options]
        if missing:
            raise ValidationFailureError(
                f"{label}: correct answer must be one of the options (not found: {', '.join(missing)})"
            )


def validate_quiz(quiz: Quiz) -> None:
    """
    Validate a quiz before it is saved

    Raises:
        ValidationFailureError: If the question list is empty, ids repeat,
            a question is malformed, or totalPoints disagrees with the questions
    """
    if not quiz.questions:
        raise ValidationFailureError("Quiz must contain at least one question")

    seen: Set[str] = set()
    for index, question in enumerate(quiz.questions):
        if question.id in seen:
            raise ValidationFailureError(f"Duplicate question id: {question.id}")
        seen.add(question.id)
        validate_question(question, index)

    expected = sum(q.points for q in quiz.questions)
    if quiz.totalPoints is not None and quiz.totalPoints != expected:
        raise ValidationFailureError(
            f"totalPoints {quiz.totalPoints} does not match question points {expected}"
        )


def finalize_quiz(quiz: Quiz) -> Quiz:
    """
    Validate and derive totalPoints and estimatedTime

    Returns:
        The same quiz, with derived fields filled in
    """
    quiz.totalPoints = None
    validate_quiz(quiz)

    quiz.totalPoints = sum(q.points for q in quiz.questions)
    if quiz.estimatedTime is None:
        quiz.estimatedTime = len(quiz.questions) * MINUTES_PER_QUESTION

    logger.debug(
        f"Finalized quiz {quiz.quizId}: {len(quiz.questions)} questions, "
        f"{quiz.totalPoints} points, ~{quiz.estimatedTime} min"
    )
    return quiz
