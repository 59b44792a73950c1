"""
Scoring Engine
Answer matching, attempt scoring, grading scale and result assembly
FILE: quizcore/services/scoring.py
"""
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from quizcore.core.errors import ValidationFailureError
from quizcore.models.answers import to_answer
from quizcore.models.attempt import (
    DetailedResult,
    PerformanceSummary,
    QuizAttempt,
    QuizResult,
    ScoreSummary,
)
from quizcore.models.quiz import Question, Quiz, RawAnswer
from quizcore.services.recommendations import generate_recommendations
from quizcore.utils.clock import minutes_between, percent, round_half_up

logger = logging.getLogger(__name__)


# (minimum percentage, grade, GPA), highest first
GRADING_SCALE: List[Tuple[int, str, float]] = [
    (80, "A+", 5.00),
    (75, "A", 4.00),
    (70, "A-", 3.50),
    (65, "B+", 3.25),
    (60, "B", 3.00),
    (55, "B-", 2.75),
    (50, "C+", 2.50),
    (45, "C", 2.25),
    (40, "D", 2.00),
]
FAILING_GRADE = ("F", 0.00)


def grade_for_percentage(percentage: float) -> Tuple[str, float]:
    """
    Map a percentage onto the letter grade and GPA

    Args:
        percentage: 0-100

    Returns:
        Tuple of (grade, gpa)
    """
    for threshold, grade, gpa in GRADING_SCALE:
        if percentage >= threshold:
            return grade, gpa
    return FAILING_GRADE


def compute_correctness(question: Question, submitted: Optional[RawAnswer]) -> bool:
    """
    Decide whether a submitted answer matches the question's correct answer

    Both sides are trimmed and case-folded. Multiple-select answers match only
    when the two sets are equal. A missing answer is never correct.
    """
    if submitted is None:
        return False

    correct = to_answer(question.correctAnswer, question.type, question.id)
    try:
        given = to_answer(submitted, question.type, question.id)
    except ValidationFailureError as e:
        logger.warning(f"⚠️ Stored answer for {question.id} no longer fits its question: {e}")
        return False

    return given.canonical() == correct.canonical()


def total_points(quiz: Quiz) -> int:
    if quiz.totalPoints is not None:
        return quiz.totalPoints
    return sum(q.points for q in quiz.questions)


def score_attempt(attempt: QuizAttempt, quiz: Quiz, now: datetime) -> ScoreSummary:
    """
    Score an attempt against its quiz and mark it completed

    Recomputes from scratch, so scoring an already completed attempt again
    overwrites the same values. completedAt is kept when already set.

    Args:
        attempt: Attempt to score (mutated in place)
        quiz: Quiz with its full answer key
        now: Completion time

    Returns:
        ScoreSummary with the values written onto the attempt
    """
    correct_answers = 0
    score = 0

    for question in quiz.questions:
        if compute_correctness(question, attempt.answers.get(question.id)):
            correct_answers += 1
            score += question.points

    attempt.correctAnswers = correct_answers
    attempt.score = score
    attempt.totalScore = total_points(quiz)
    attempt.totalQuestions = len(quiz.questions)

    attempt.status = "completed"
    attempt.isCompleted = True
    if attempt.completedAt is None:
        attempt.completedAt = now
    attempt.timeSpent = round_half_up(
        max(minutes_between(attempt.startedAt, attempt.completedAt), 0), 2
    )
    attempt.updatedAt = now

    logger.info(
        f"✅ Scored attempt {attempt.attemptId} - "
        f"{correct_answers}/{len(quiz.questions)} correct, {score}/{attempt.totalScore} points"
    )

    return ScoreSummary(
        correctAnswers=correct_answers,
        score=score,
        totalScore=attempt.totalScore
    )


def build_detailed_results(attempt: QuizAttempt, quiz: Quiz) -> List[DetailedResult]:
    """One row per question, in quiz order"""
    results = []
    for question in quiz.questions:
        user_answer = attempt.answers.get(question.id)
        is_correct = compute_correctness(question, user_answer)
        results.append(
            DetailedResult(
                questionId=question.id,
                question=question.question,
                difficulty=question.difficulty,
                userAnswer=user_answer,
                correctAnswer=question.correctAnswer,
                isCorrect=is_correct,
                points=question.points if is_correct else 0,
                explanation=question.explanation
            )
        )
    return results


def build_performance(
    attempt: QuizAttempt,
    quiz: Quiz,
    detailed_results: List[DetailedResult]
) -> PerformanceSummary:
    """Grade uses the question-count percentage, not the point-weighted one"""
    total_questions = len(quiz.questions)
    correct_answers = sum(1 for r in detailed_results if r.isCorrect)
    percentage = percent(correct_answers, total_questions)
    grade, gpa = grade_for_percentage(percentage)

    average_time = attempt.timeSpent / total_questions if total_questions else 0

    return PerformanceSummary(
        score=sum(r.points for r in detailed_results),
        totalScore=total_points(quiz),
        correctAnswers=correct_answers,
        totalQuestions=total_questions,
        percentage=percentage,
        grade=grade,
        gpa=gpa,
        timeSpent=attempt.timeSpent,
        averageTimePerQuestion=round_half_up(average_time, 2)
    )


def build_quiz_result(attempt: QuizAttempt, quiz: Quiz) -> QuizResult:
    """Assemble the full result for a completed attempt (read-only)"""
    detailed_results = build_detailed_results(attempt, quiz)
    performance = build_performance(attempt, quiz, detailed_results)
    recommendations = generate_recommendations(detailed_results, quiz, performance.percentage)

    return QuizResult(
        attempt=attempt,
        quiz=quiz,
        detailedResults=detailed_results,
        performance=performance,
        recommendations=recommendations
    )


def annotate_grade(score: Optional[int], total_score: Optional[int]) -> Tuple[int, str, float]:
    """
    Read-time percentage, grade and GPA from stored score fields

    Used by reports; never re-scores against questions.
    """
    percentage = percent(score or 0, total_score or 0)
    grade, gpa = grade_for_percentage(percentage)
    return percentage, grade, gpa
