"""
Attempt Service
Attempt lifecycle: start, answer, flag, complete, abandon and results
FILE: quizcore/services/attempt_service.py

States: in-progress -> completed | abandoned. Both end states are terminal.
"""
import logging
from typing import Any, Dict, Optional

from quizcore.core.errors import (
    DeadlineExceededError,
    ForbiddenError,
    NotFoundError,
    StateConflictError,
    ValidationFailureError,
)
from quizcore.db.attempt_store import AttemptQuery, AttemptStore
from quizcore.db.quiz_store import QuizStore
from quizcore.models.answers import to_answer
from quizcore.models.attempt import AttemptProgress, QuizAttempt, QuizResult
from quizcore.models.quiz import Quiz, RawAnswer
from quizcore.services.scoring import build_quiz_result, score_attempt
from quizcore.utils.clock import Clock, minutes_between, percent, round_half_up, utc_now

logger = logging.getLogger(__name__)

# Fields written when an attempt is scored; answers and flags are left alone
SCORED_FIELDS = {
    "status", "isCompleted", "completedAt", "timeSpent", "score",
    "totalScore", "correctAnswers", "totalQuestions", "updatedAt",
}
COMPLETE_RETRIES = 3


class AttemptService:
    """Service for the attempt state machine"""

    def __init__(
        self,
        attempt_store: AttemptStore,
        quiz_store: QuizStore,
        clock: Clock = utc_now
    ):
        self.attempts = attempt_store
        self.quizzes = quiz_store
        self.clock = clock

    # ==================== LOOKUPS & GUARDS ====================

    async def _get_quiz(self, quiz_id: str) -> Quiz:
        quiz = await self.quizzes.get(quiz_id)
        if not quiz:
            raise NotFoundError("Quiz not found")
        return quiz

    async def _get_owned_attempt(self, attempt_id: str, user_id: str, action: str) -> QuizAttempt:
        attempt = await self.attempts.get(attempt_id)
        if not attempt:
            raise NotFoundError("Quiz attempt not found")
        if attempt.userId != user_id:
            raise ForbiddenError(f"You can only {action} your own attempts")
        return attempt

    def _deadline_passed(self, attempt: QuizAttempt) -> bool:
        if not attempt.timeLimit:
            return False
        return minutes_between(attempt.startedAt, self.clock()) > attempt.timeLimit

    async def _abandon(self, attempt: QuizAttempt, reason: str) -> Optional[QuizAttempt]:
        """Move an in-progress attempt to abandoned; None if it already left in-progress"""
        updated = await self.attempts.transition(
            attempt.attemptId,
            "in-progress",
            {"status": "abandoned", "updatedAt": self.clock()}
        )
        if updated is not None:
            logger.info(f"🛑 Attempt {attempt.attemptId} abandoned ({reason})")
        return updated

    async def _expire(self, attempt: QuizAttempt) -> None:
        if await self._abandon(attempt, "time limit exceeded") is None:
            raise StateConflictError("Quiz attempt is not in progress")
        raise DeadlineExceededError("Time limit exceeded")

    async def _get_mutable_attempt(self, attempt_id: str, user_id: str, action: str) -> QuizAttempt:
        """
        Load an attempt that may still change

        Raises:
            NotFoundError, ForbiddenError, StateConflictError
            DeadlineExceededError: After moving the attempt to abandoned
        """
        attempt = await self._get_owned_attempt(attempt_id, user_id, action)

        if attempt.status != "in-progress":
            raise StateConflictError("Quiz attempt is not in progress")

        if self._deadline_passed(attempt):
            await self._expire(attempt)

        return attempt

    def _normalize_answers(self, quiz: Quiz, answers: Dict[str, Any]) -> Dict[str, RawAnswer]:
        """
        Normalize answers against their question types

        Keys that are not questions of the quiz are dropped.

        Raises:
            ValidationFailureError: If a value cannot be an answer for its question
        """
        questions = {q.id: q for q in quiz.questions}
        normalized = {}
        for question_id, raw in answers.items():
            question = questions.get(question_id)
            if question is None:
                logger.warning(f"⚠️ Ignoring answer for unknown question {question_id} (quiz {quiz.quizId})")
                continue
            normalized[question_id] = to_answer(raw, question.type, question_id).to_raw()
        return normalized

    async def _merge(self, attempt: QuizAttempt, answers: Dict[str, RawAnswer]) -> QuizAttempt:
        if not answers:
            return attempt
        updated = await self.attempts.merge_answers(attempt.attemptId, answers, self.clock())
        if updated is None:
            raise StateConflictError("Quiz attempt is not in progress")
        return updated

    # ==================== LIFECYCLE ====================

    async def start_attempt(self, quiz_id: str, user_id: str) -> QuizAttempt:
        """
        Start an attempt, or return the user's open one for the same quiz

        An open attempt whose time limit has passed is abandoned first and a
        fresh attempt is created.

        Raises:
            NotFoundError: Quiz does not exist
            ForbiddenError: Quiz is private to another user
            StateConflictError: Quiz is not published
        """
        quiz = await self._get_quiz(quiz_id)

        if not quiz.isPublic and quiz.createdBy != user_id:
            raise ForbiddenError("Access denied to this quiz")
        if quiz.status != "published":
            raise StateConflictError("Quiz is not published")

        existing = await self.attempts.find_in_progress(user_id, quiz_id)
        if existing:
            if not self._deadline_passed(existing):
                logger.info(f"↩️ Resuming attempt {existing.attemptId} for user {user_id}")
                return existing
            await self._abandon(existing, "time limit exceeded before restart")

        now = self.clock()
        attempt = QuizAttempt(
            quizId=quiz_id,
            userId=user_id,
            timeLimit=quiz.timeLimit,
            totalQuestions=len(quiz.questions),
            startedAt=now,
            createdAt=now,
            updatedAt=now
        )
        await self.attempts.insert(attempt)

        logger.info(f"🎬 Started attempt {attempt.attemptId} - Quiz: {quiz_id}, User: {user_id}")
        return attempt

    async def get_attempt(self, attempt_id: str, user_id: str) -> QuizAttempt:
        return await self._get_owned_attempt(attempt_id, user_id, "view")

    async def submit_answer(
        self,
        attempt_id: str,
        user_id: str,
        question_id: str,
        answer: Any
    ) -> QuizAttempt:
        """
        Record the answer to one question

        Raises:
            NotFoundError, ForbiddenError, StateConflictError,
            DeadlineExceededError, ValidationFailureError
        """
        attempt = await self._get_mutable_attempt(attempt_id, user_id, "submit answers for")
        quiz = await self._get_quiz(attempt.quizId)

        answers = self._normalize_answers(quiz, {question_id: answer})
        updated = await self._merge(attempt, answers)

        logger.info(f"✍️ Answer recorded - Attempt: {attempt_id}, Question: {question_id}")
        return updated

    async def save_answers(self, attempt_id: str, user_id: str, answers: Dict[str, Any]) -> QuizAttempt:
        """Merge several answers into the attempt, key by key"""
        if not isinstance(answers, dict):
            raise ValidationFailureError("Answers must be a mapping of question id to answer")

        attempt = await self._get_mutable_attempt(attempt_id, user_id, "save answers for")
        quiz = await self._get_quiz(attempt.quizId)

        normalized = self._normalize_answers(quiz, answers)
        updated = await self._merge(attempt, normalized)

        logger.info(f"💾 Saved {len(normalized)} answers - Attempt: {attempt_id}")
        return updated

    async def flag_question(
        self,
        attempt_id: str,
        user_id: str,
        question_id: str,
        flagged: bool
    ) -> QuizAttempt:
        await self._get_mutable_attempt(attempt_id, user_id, "flag questions for")

        updated = await self.attempts.set_flag(attempt_id, question_id, flagged, self.clock())
        if updated is None:
            raise StateConflictError("Quiz attempt is not in progress")
        return updated

    async def complete_attempt(self, attempt_id: str, user_id: str) -> QuizResult:
        """
        Score the attempt and return its result

        Completing an already completed attempt re-scores it with the same
        outcome, so retried requests are safe. The score is written only if
        the attempt is unchanged since it was read; otherwise it is re-read
        and scored again so late answers are counted.

        Raises:
            NotFoundError, ForbiddenError
            StateConflictError: Attempt was abandoned, or kept changing underneath
            DeadlineExceededError: Time limit passed; attempt is abandoned unscored
        """
        for _ in range(COMPLETE_RETRIES):
            attempt = await self._get_owned_attempt(attempt_id, user_id, "complete")

            if attempt.status == "abandoned":
                raise StateConflictError("Quiz attempt is not in progress")
            if attempt.status == "in-progress" and self._deadline_passed(attempt):
                await self._expire(attempt)

            quiz = await self._get_quiz(attempt.quizId)

            read_status, read_updated_at = attempt.status, attempt.updatedAt
            score_attempt(attempt, quiz, self.clock())
            stored = await self.attempts.transition(
                attempt_id,
                read_status,
                attempt.model_dump(include=SCORED_FIELDS),
                expected_updated_at=read_updated_at
            )
            if stored is not None:
                break
            logger.warning(f"⚠️ Attempt {attempt_id} changed while completing, re-reading")
        else:
            raise StateConflictError("Quiz attempt changed while completing")

        await self.update_quiz_stats(quiz.quizId)

        logger.info(
            f"🏁 Completed attempt {attempt_id} - "
            f"Score: {attempt.score}/{attempt.totalScore}"
        )
        return build_quiz_result(attempt, quiz)

    async def abandon_attempt(self, attempt_id: str, user_id: str) -> QuizAttempt:
        attempt = await self._get_owned_attempt(attempt_id, user_id, "abandon")
        if attempt.status == "in-progress":
            abandoned = await self._abandon(attempt, "by user")
            if abandoned is not None:
                return abandoned
        raise StateConflictError("Only in-progress attempts can be abandoned")

    # ==================== READS ====================

    async def get_attempt_progress(self, attempt_id: str, user_id: str) -> AttemptProgress:
        attempt = await self._get_owned_attempt(attempt_id, user_id, "view progress of")

        time_remaining = None
        if attempt.timeLimit:
            elapsed = minutes_between(attempt.startedAt, self.clock())
            time_remaining = max(0.0, round_half_up(attempt.timeLimit - elapsed, 2))

        answered = len(attempt.answers)
        return AttemptProgress(
            attemptId=attempt.attemptId,
            status=attempt.status,
            answeredQuestions=answered,
            totalQuestions=attempt.totalQuestions,
            progressPercentage=percent(answered, attempt.totalQuestions),
            flaggedQuestions=attempt.flaggedQuestions,
            timeLimit=attempt.timeLimit,
            timeRemaining=time_remaining,
            startedAt=attempt.startedAt
        )

    async def get_result(self, attempt_id: str, user_id: str) -> QuizResult:
        """Recompute the result of a completed attempt without touching it"""
        attempt = await self._get_owned_attempt(attempt_id, user_id, "view results of")
        if attempt.status != "completed":
            raise StateConflictError("Quiz attempt is not completed")

        quiz = await self._get_quiz(attempt.quizId)
        return build_quiz_result(attempt, quiz)

    async def update_quiz_stats(self, quiz_id: str) -> None:
        """Refresh a quiz's completed-attempt count and rounded mean score"""
        count = 0
        total = 0
        async for attempt in self.attempts.iter_attempts(AttemptQuery(quiz_id=quiz_id, status="completed")):
            count += 1
            total += attempt.score or 0

        average = int(round_half_up(total / count)) if count else 0
        await self.quizzes.update_stats(quiz_id, count, average, self.clock())
