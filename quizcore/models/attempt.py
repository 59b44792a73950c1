"""
Quiz Attempt Models
Attempt documents, attempt requests and scored result models
FILE: quizcore/models/attempt.py
"""
from datetime import datetime
from typing import Dict, List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from quizcore.models.quiz import Difficulty, Quiz, RawAnswer
from quizcore.utils.clock import utc_now

AttemptStatus = Literal["in-progress", "completed", "abandoned"]


class QuizAttempt(BaseModel):
    """
    One user's session against one quiz

    score, totalScore and correctAnswers stay None until the attempt is scored
    """
    attemptId: str = Field(
        default_factory=lambda: f"attempt_{uuid4().hex[:12]}",
        description="Unique attempt identifier"
    )
    quizId: str = Field(..., description="Quiz reference")
    userId: str = Field(..., description="User reference")
    answers: Dict[str, RawAnswer] = Field(
        default_factory=dict,
        description="Question id -> submitted answer"
    )
    status: AttemptStatus = Field(default="in-progress")
    isCompleted: bool = False
    startedAt: datetime = Field(default_factory=utc_now)
    completedAt: Optional[datetime] = None
    timeLimit: Optional[int] = Field(default=None, description="Minutes, copied from the quiz")
    timeSpent: float = Field(default=0, ge=0, description="Minutes")
    totalQuestions: int = Field(default=0, ge=0)
    score: Optional[int] = None
    totalScore: Optional[int] = None
    correctAnswers: Optional[int] = None
    flaggedQuestions: List[str] = Field(default_factory=list)
    createdAt: datetime = Field(default_factory=utc_now)
    updatedAt: datetime = Field(default_factory=utc_now)

    class Config:
        json_schema_extra = {
            "example": {
                "attemptId": "attempt_3f9a1c2b7d10",
                "quizId": "quiz_a81c0e55f2b4",
                "userId": "user_42",
                "answers": {"q1": "Carbon dioxide", "q2": ["Chlorophyll", "Light"]},
                "status": "in-progress",
                "isCompleted": False,
                "startedAt": "2024-01-15T10:00:00Z",
                "timeLimit": 15,
                "totalQuestions": 2,
                "flaggedQuestions": ["q2"]
            }
        }


# ==================== REQUESTS ====================

class StartAttemptRequest(BaseModel):
    """Request model for starting an attempt"""
    quizId: str = Field(..., min_length=1)


class SubmitAnswerRequest(BaseModel):
    """Request model for answering a single question"""
    questionId: str = Field(..., min_length=1)
    answer: RawAnswer


class SaveAnswersRequest(BaseModel):
    """Request model for saving several answers at once"""
    answers: Dict[str, RawAnswer]


class FlagQuestionRequest(BaseModel):
    """Request model for flagging a question for review"""
    questionId: str = Field(..., min_length=1)
    flagged: bool = True


# ==================== RESPONSES ====================

class AttemptProgress(BaseModel):
    """Progress of an in-progress attempt"""
    attemptId: str
    status: AttemptStatus
    answeredQuestions: int
    totalQuestions: int
    progressPercentage: int
    flaggedQuestions: List[str]
    timeLimit: Optional[int] = None
    timeRemaining: Optional[float] = Field(default=None, description="Minutes, never negative")
    startedAt: datetime


class ScoreSummary(BaseModel):
    """Raw scoring output written onto the attempt"""
    correctAnswers: int
    score: int
    totalScore: int


class DetailedResult(BaseModel):
    """Per-question breakdown shown after completion"""
    questionId: str
    question: str
    difficulty: Difficulty
    userAnswer: Optional[RawAnswer] = None
    correctAnswer: RawAnswer
    isCorrect: bool
    points: int = Field(..., description="Points awarded, 0 when incorrect")
    explanation: str = ""


class PerformanceSummary(BaseModel):
    """Score, grade and time metrics for one attempt"""
    score: int
    totalScore: int
    correctAnswers: int
    totalQuestions: int
    percentage: int = Field(..., description="Question-count percentage")
    grade: str
    gpa: float
    timeSpent: float
    averageTimePerQuestion: float


class QuizResult(BaseModel):
    """Scored result, recomputed on every request"""
    attempt: QuizAttempt
    quiz: Quiz
    detailedResults: List[DetailedResult]
    performance: PerformanceSummary
    recommendations: List[str]
