from datetime import timedelta

import pytest

from quizcore.models.attempt import QuizAttempt
from quizcore.models.quiz import Question
from quizcore.services.scoring import (
    annotate_grade,
    build_quiz_result,
    compute_correctness,
    grade_for_percentage,
    score_attempt,
)

from conftest import NOW, make_quiz


def _attempt(answers, started_minutes_ago=10):
    started = NOW - timedelta(minutes=started_minutes_ago)
    return QuizAttempt(
        attemptId="attempt_t",
        quizId="quiz_1",
        userId="user_1",
        answers=answers,
        startedAt=started,
        createdAt=started,
        updatedAt=started,
    )


@pytest.mark.parametrize("percentage, grade, gpa", [
    (100, "A+", 5.00),
    (80, "A+", 5.00),
    (79, "A", 4.00),
    (75, "A", 4.00),
    (70, "A-", 3.50),
    (65, "B+", 3.25),
    (60, "B", 3.00),
    (55, "B-", 2.75),
    (50, "C+", 2.50),
    (45, "C", 2.25),
    (40, "D", 2.00),
    (39, "F", 0.00),
    (0, "F", 0.00),
])
def test_grade_boundaries(percentage, grade, gpa):
    assert grade_for_percentage(percentage) == (grade, gpa)


def test_single_answer_is_trimmed_and_case_folded():
    question = make_quiz().questions[0]
    assert compute_correctness(question, "  b ")
    assert compute_correctness(question, ["B"])
    assert not compute_correctness(question, "C")


def test_multiple_select_needs_exact_set():
    question = make_quiz().questions[1]
    assert compute_correctness(question, ["y", " X "])
    assert not compute_correctness(question, ["X"])
    assert not compute_correctness(question, ["X", "Y", "Z"])


def test_missing_answer_is_incorrect():
    question = make_quiz().questions[0]
    assert not compute_correctness(question, None)


def test_stored_answer_of_wrong_shape_scores_incorrect():
    question = make_quiz().questions[0]
    assert not compute_correctness(question, ["A", "B"])


def test_perfect_attempt_scores_all_points():
    quiz = make_quiz()
    attempt = _attempt({"q1": "b", "q2": ["Y", "X"]})

    summary = score_attempt(attempt, quiz, NOW)

    assert (summary.correctAnswers, summary.score, summary.totalScore) == (2, 3, 3)
    assert attempt.status == "completed"
    assert attempt.isCompleted
    assert attempt.completedAt == NOW
    assert attempt.timeSpent == 10.0

    result = build_quiz_result(attempt, quiz)
    assert result.performance.percentage == 100
    assert result.performance.grade == "A+"
    assert result.performance.gpa == 5.0
    assert result.performance.averageTimePerQuestion == 5.0
    assert all(r.isCorrect for r in result.detailedResults)


def test_wrong_and_unanswered_attempt_scores_zero_and_fails():
    quiz = make_quiz()
    attempt = _attempt({"q1": "A"})

    summary = score_attempt(attempt, quiz, NOW)
    result = build_quiz_result(attempt, quiz)

    assert summary.score == 0
    assert summary.correctAnswers == 0
    assert result.performance.grade == "F"
    assert result.performance.gpa == 0.0
    assert [r.points for r in result.detailedResults] == [0, 0]


def test_points_are_weighted_but_grade_counts_questions():
    quiz = make_quiz()
    attempt = _attempt({"q1": "B", "q2": ["X"]})

    score_attempt(attempt, quiz, NOW)
    result = build_quiz_result(attempt, quiz)

    assert attempt.score == 1
    assert attempt.totalScore == 3
    assert result.performance.percentage == 50
    assert result.performance.grade == "C+"


def test_four_of_five_is_an_a_plus():
    questions = [
        Question(id=f"q{i}", question=f"Q{i}", type="mcq", options=["A", "B"], correctAnswer="A")
        for i in range(1, 6)
    ]
    quiz = make_quiz(questions=questions)
    answers = {f"q{i}": "A" for i in range(1, 5)}
    answers["q5"] = "B"
    attempt = _attempt(answers)

    score_attempt(attempt, quiz, NOW)
    result = build_quiz_result(attempt, quiz)

    assert result.performance.percentage == 80
    assert result.performance.grade == "A+"


def test_scoring_twice_gives_the_same_outcome():
    quiz = make_quiz()
    attempt = _attempt({"q1": "B"})

    first = score_attempt(attempt, quiz, NOW)
    completed_at = attempt.completedAt
    second = score_attempt(attempt, quiz, NOW + timedelta(minutes=5))

    assert first == second
    assert attempt.completedAt == completed_at
    assert attempt.timeSpent == 10.0


def test_annotate_grade_handles_missing_totals():
    assert annotate_grade(None, None) == (0, "F", 0.0)
    assert annotate_grade(3, 4) == (75, "A", 4.0)
