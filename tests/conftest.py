from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

from quizcore.db.attempt_store import AttemptQuery
from quizcore.db.quiz_store import QuizQuery
from quizcore.models.attempt import QuizAttempt
from quizcore.models.quiz import Question, Quiz
from quizcore.services.attempt_service import AttemptService
from quizcore.services.dashboard_service import DashboardService
from quizcore.services.quiz_validator import finalize_quiz

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Callable clock that only moves when told to"""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeAttemptStore:
    """In-memory stand-in for AttemptStore"""

    def __init__(self):
        self.docs: Dict[str, QuizAttempt] = {}

    async def get(self, attempt_id: str) -> Optional[QuizAttempt]:
        doc = self.docs.get(attempt_id)
        return doc.model_copy(deep=True) if doc else None

    async def find_in_progress(self, user_id: str, quiz_id: str) -> Optional[QuizAttempt]:
        for doc in self.docs.values():
            if doc.userId == user_id and doc.quizId == quiz_id and doc.status == "in-progress":
                return doc.model_copy(deep=True)
        return None

    async def insert(self, attempt: QuizAttempt) -> QuizAttempt:
        assert attempt.attemptId not in self.docs
        self.docs[attempt.attemptId] = attempt.model_copy(deep=True)
        return attempt

    async def transition(self, attempt_id, expected_status, fields, expected_updated_at=None):
        doc = self.docs.get(attempt_id)
        if doc is None or doc.status != expected_status:
            return None
        if expected_updated_at is not None and doc.updatedAt != expected_updated_at:
            return None
        for name, value in fields.items():
            setattr(doc, name, value)
        return doc.model_copy(deep=True)

    async def set_flag(self, attempt_id, question_id, flagged, updated_at) -> Optional[QuizAttempt]:
        doc = self.docs.get(attempt_id)
        if doc is None or doc.status != "in-progress":
            return None
        if flagged and question_id not in doc.flaggedQuestions:
            doc.flaggedQuestions.append(question_id)
        elif not flagged:
            doc.flaggedQuestions = [q for q in doc.flaggedQuestions if q != question_id]
        doc.updatedAt = updated_at
        return doc.model_copy(deep=True)

    async def merge_answers(self, attempt_id, answers, updated_at) -> Optional[QuizAttempt]:
        doc = self.docs.get(attempt_id)
        if doc is None or doc.status != "in-progress":
            return None
        doc.answers.update(answers)
        doc.updatedAt = updated_at
        return doc.model_copy(deep=True)

    async def iter_attempts(self, query: AttemptQuery):
        rows = [d for d in self.docs.values() if query.matches(d)]
        rows.sort(key=lambda d: getattr(d, query.sort_field) or NOW, reverse=query.sort_desc)
        if query.limit:
            rows = rows[:query.limit]
        for row in rows:
            yield row.model_copy(deep=True)

    async def count_by_status(self, user_id: str) -> Dict[str, int]:
        counts = {"in-progress": 0, "completed": 0, "abandoned": 0}
        for doc in self.docs.values():
            if doc.userId == user_id:
                counts[doc.status] += 1
        return counts

    def add(self, attempt: QuizAttempt) -> QuizAttempt:
        self.docs[attempt.attemptId] = attempt
        return attempt


class FakeQuizStore:
    """In-memory stand-in for QuizStore"""

    def __init__(self):
        self.docs: Dict[str, Quiz] = {}

    async def get(self, quiz_id: str) -> Optional[Quiz]:
        doc = self.docs.get(quiz_id)
        return doc.model_copy(deep=True) if doc else None

    async def save(self, quiz: Quiz) -> Quiz:
        self.docs[quiz.quizId] = quiz.model_copy(deep=True)
        return quiz

    async def list_quizzes(self, query: QuizQuery, skip=0, limit=20):
        rows = [q for q in self.docs.values() if query.matches(q)]
        rows.sort(key=lambda q: q.createdAt, reverse=True)
        return [q.model_copy(deep=True) for q in rows[skip:skip + limit]], len(rows)

    async def update_stats(self, quiz_id, attempts, average_score, updated_at) -> None:
        quiz = self.docs.get(quiz_id)
        if quiz:
            quiz.attempts = attempts
            quiz.averageScore = average_score
            quiz.updatedAt = updated_at

    def add(self, quiz: Quiz) -> Quiz:
        self.docs[quiz.quizId] = quiz
        return quiz


def make_quiz(
    quiz_id: str = "quiz_1",
    questions: Optional[List[Question]] = None,
    **overrides
) -> Quiz:
    """Two-question quiz: q1 mcq (1 point, "B"), q2 multiple-select (2 points, X+Y)"""
    if questions is None:
        questions = [
            Question(
                id="q1", question="Pick B", type="mcq",
                options=["A", "B", "C", "D"], correctAnswer="B",
                difficulty="easy", points=1, explanation="B is right."
            ),
            Question(
                id="q2", question="Pick X and Y", type="multiple-select",
                options=["X", "Y", "Z"], correctAnswer=["X", "Y"],
                difficulty="hard", points=2, explanation="X and Y."
            ),
        ]
    fields = dict(
        quizId=quiz_id,
        title="Sample quiz",
        subject="Biology",
        topic="Cells",
        academicLevel="ssc",
        difficulty="medium",
        questions=questions,
        createdBy="author",
        createdAt=NOW - timedelta(days=30),
        updatedAt=NOW - timedelta(days=30),
    )
    fields.update(overrides)
    return finalize_quiz(Quiz(**fields))


def make_attempt(
    attempt_id: str,
    user_id: str = "user_1",
    quiz_id: str = "quiz_1",
    status: str = "completed",
    score: Optional[int] = None,
    total_score: int = 3,
    completed_at: Optional[datetime] = None,
    time_spent: float = 5,
    **overrides
) -> QuizAttempt:
    """Stored attempt as reports see it"""
    completed_at = completed_at or NOW - timedelta(hours=1)
    started_at = completed_at - timedelta(minutes=time_spent)
    fields = dict(
        attemptId=attempt_id,
        quizId=quiz_id,
        userId=user_id,
        status=status,
        isCompleted=status == "completed",
        startedAt=started_at,
        createdAt=started_at,
        updatedAt=completed_at,
        timeSpent=time_spent if status == "completed" else 0,
        totalQuestions=2,
    )
    if status == "completed":
        fields.update(
            completedAt=completed_at,
            score=score if score is not None else total_score,
            totalScore=total_score,
            correctAnswers=2,
        )
    fields.update(overrides)
    return QuizAttempt(**fields)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def attempt_store() -> FakeAttemptStore:
    return FakeAttemptStore()


@pytest.fixture
def quiz_store() -> FakeQuizStore:
    store = FakeQuizStore()
    store.add(make_quiz())
    return store


@pytest.fixture
def attempt_service(attempt_store, quiz_store, clock) -> AttemptService:
    return AttemptService(attempt_store, quiz_store, clock)


@pytest.fixture
def dashboard_service(attempt_store, quiz_store, clock) -> DashboardService:
    return DashboardService(attempt_store, quiz_store, clock)
