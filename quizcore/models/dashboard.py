"""
Dashboard Models
Response and filter models for user statistics, dashboards and leaderboards
FILE: quizcore/models/dashboard.py
"""
from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from quizcore.models.attempt import AttemptStatus
from quizcore.models.quiz import AcademicLevel, Difficulty

Timeframe = Literal["week", "month", "year", "all"]
Trend = Literal["improving", "declining", "stable"]


# ==================== FILTERS ====================

class StatsFilters(BaseModel):
    """Filters accepted by the user statistics report"""
    timeframe: Optional[Timeframe] = None
    subject: Optional[str] = None
    academicLevel: Optional[AcademicLevel] = None
    difficulty: Optional[Difficulty] = None
    fromDate: Optional[datetime] = None
    toDate: Optional[datetime] = None


class AttemptListFilters(BaseModel):
    """Filters and paging for the attempt history listing"""
    fromDate: Optional[datetime] = None
    toDate: Optional[datetime] = None
    subject: Optional[str] = None
    difficulty: Optional[Difficulty] = None
    status: Optional[AttemptStatus] = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)


class LeaderboardFilters(BaseModel):
    """Optional leaderboard scoping through the quiz join"""
    timeframe: Optional[Timeframe] = None
    subject: Optional[str] = None
    academicLevel: Optional[AcademicLevel] = None


# ==================== REPORT PARTS ====================

class BasicStats(BaseModel):
    totalAttempts: int = 0
    completedQuizzes: int = 0
    totalQuizzes: int = Field(default=0, description="Distinct quizzes attempted")
    averageScore: int = 0
    averagePercentage: int = 0
    bestScore: int = 0
    bestPercentage: int = 0
    totalTimeSpent: float = 0
    favoriteSubjects: List[str] = Field(default_factory=list)
    lastActivityAt: Optional[datetime] = None


class RecentActivity(BaseModel):
    attemptId: str
    quizId: str
    quizTitle: str
    subject: str
    topic: str
    difficulty: Difficulty
    score: int
    totalScore: int
    percentage: int
    grade: str
    gpa: float
    timeSpent: float
    completedAt: datetime
    status: AttemptStatus


class WeeklyProgress(BaseModel):
    week: str = Field(..., description="ISO year and week, e.g. 2024-07")
    weekStart: datetime
    weekEnd: datetime
    quizzesCompleted: int
    averageScore: int
    totalTimeSpent: float


class SubjectPerformance(BaseModel):
    subject: str
    totalAttempts: int
    completedQuizzes: int
    averageScore: int
    averagePercentage: int
    bestScore: int
    totalTimeSpent: float
    lastAttemptDate: Optional[datetime] = None
    improvementTrend: Trend = "stable"


class DifficultyStats(BaseModel):
    attempts: int = 0
    averageScore: int = 0
    averagePercentage: int = 0


class DifficultyBreakdown(BaseModel):
    easy: DifficultyStats = Field(default_factory=DifficultyStats)
    medium: DifficultyStats = Field(default_factory=DifficultyStats)
    hard: DifficultyStats = Field(default_factory=DifficultyStats)


class Achievement(BaseModel):
    id: str
    title: str
    description: str
    icon: str
    category: Literal["milestone", "performance", "consistency"]
    unlockedAt: datetime


# ==================== REPORTS ====================

class UserStats(BasicStats):
    """Per-user statistics with derived areas, streak and achievements"""
    userId: str
    streakDays: int = 0
    achievements: List[Achievement] = Field(default_factory=list)
    strongAreas: List[str] = Field(default_factory=list)
    weakAreas: List[str] = Field(default_factory=list)


class DashboardStats(BasicStats):
    """Full dashboard overview for one user"""
    recentActivity: List[RecentActivity] = Field(default_factory=list)
    weeklyProgress: List[WeeklyProgress] = Field(default_factory=list)
    subjectPerformance: List[SubjectPerformance] = Field(default_factory=list)
    difficultyBreakdown: DifficultyBreakdown = Field(default_factory=DifficultyBreakdown)
    achievements: List[Achievement] = Field(default_factory=list)
    streakDays: int = 0
    rank: int = 1


class LeaderboardEntry(BaseModel):
    rank: int
    userId: str
    bestScore: int
    totalAttempts: int
    averageScore: float
    totalTimeSpent: float


class AttemptSummary(BaseModel):
    """Attempt history row annotated with read-time grade"""
    attemptId: str
    userId: str
    quizId: str
    quizTitle: str
    subject: str
    topic: str
    difficulty: Difficulty
    questionCount: int
    score: int
    totalScore: int
    percentage: int
    grade: str
    gpa: float
    timeSpent: float
    status: AttemptStatus
    startedAt: datetime
    completedAt: Optional[datetime] = None
    createdAt: datetime


class Pagination(BaseModel):
    page: int
    limit: int
    totalPages: int
    hasNextPage: bool
    hasPrevPage: bool


class AllAttemptsResponse(BaseModel):
    attempts: List[AttemptSummary]
    totalCount: int
    completedCount: int
    inProgressCount: int
    abandonedCount: int
    filters: Dict[str, Optional[str]]
    pagination: Pagination


class QuizAttemptsResponse(BaseModel):
    """Completed attempts on one quiz, as its author sees them"""
    quizId: str
    attempts: List[AttemptSummary]
    totalCount: int
    pagination: Pagination
