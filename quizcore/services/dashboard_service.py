"""
Dashboard Service
User statistics, dashboards, attempt history and leaderboards
FILE: quizcore/services/dashboard_service.py
"""
import logging
import math
from typing import AsyncIterator, Dict, List, Optional, Tuple

from quizcore.core.config import settings
from quizcore.core.errors import ForbiddenError, NotFoundError
from quizcore.db.attempt_store import AttemptQuery, AttemptStore
from quizcore.db.quiz_store import QuizStore
from quizcore.models.attempt import QuizAttempt
from quizcore.models.dashboard import (
    AllAttemptsResponse,
    AttemptListFilters,
    AttemptSummary,
    DashboardStats,
    LeaderboardEntry,
    LeaderboardFilters,
    Pagination,
    QuizAttemptsResponse,
    RecentActivity,
    StatsFilters,
    SubjectPerformance,
    UserStats,
    WeeklyProgress,
)
from quizcore.models.quiz import Quiz
from quizcore.services.aggregation import (
    AchievementTracker,
    BasicStatsAccumulator,
    DifficultyBreakdownAccumulator,
    RecentActivityAccumulator,
    StreakAccumulator,
    SubjectPerformanceAccumulator,
    UserScoreAccumulator,
    WeeklyProgressAccumulator,
    strong_and_weak_areas,
)
from quizcore.services.scoring import annotate_grade
from quizcore.utils.clock import Clock, ensure_utc, timeframe_start, utc_now

logger = logging.getLogger(__name__)


def _pagination(page: int, limit: int, total: int) -> Pagination:
    total_pages = math.ceil(total / limit)
    return Pagination(
        page=page,
        limit=limit,
        totalPages=total_pages,
        hasNextPage=page < total_pages,
        hasPrevPage=page > 1
    )


class QuizLookup:
    """Memoized quiz fetch for joining attempts with quiz metadata"""

    def __init__(self, quiz_store: QuizStore):
        self.quiz_store = quiz_store
        self._cache: Dict[str, Optional[Quiz]] = {}

    async def get(self, quiz_id: str) -> Optional[Quiz]:
        if quiz_id not in self._cache:
            self._cache[quiz_id] = await self.quiz_store.get(quiz_id)
        return self._cache[quiz_id]


class DashboardService:
    """Read-only reports over attempts joined with their quizzes"""

    def __init__(
        self,
        attempt_store: AttemptStore,
        quiz_store: QuizStore,
        clock: Clock = utc_now
    ):
        self.attempts = attempt_store
        self.quizzes = quiz_store
        self.clock = clock

    async def _joined(
        self,
        query: AttemptQuery,
        subject: Optional[str] = None,
        difficulty: Optional[str] = None,
        academic_level: Optional[str] = None
    ) -> AsyncIterator[Tuple[QuizAttempt, Quiz]]:
        """
        Stream (attempt, quiz) pairs matching the query and quiz filters

        Attempts whose quiz cannot be found are skipped with a warning.
        """
        lookup = QuizLookup(self.quizzes)
        async for attempt in self.attempts.iter_attempts(query):
            quiz = await lookup.get(attempt.quizId)
            if quiz is None:
                logger.warning(
                    f"⚠️ Skipping attempt {attempt.attemptId}: quiz {attempt.quizId} not found"
                )
                continue
            if subject and quiz.subject != subject:
                continue
            if difficulty and quiz.difficulty != difficulty:
                continue
            if academic_level and quiz.academicLevel != academic_level:
                continue
            yield attempt, quiz

    # ==================== DASHBOARD ====================

    async def get_dashboard_stats(self, user_id: str) -> DashboardStats:
        """Combined overview built from a single pass over the user's attempts"""
        now = self.clock()

        basic = BasicStatsAccumulator()
        recent = RecentActivityAccumulator(settings.recent_activity_limit)
        weekly = WeeklyProgressAccumulator(settings.weekly_progress_weeks, now)
        subjects = SubjectPerformanceAccumulator()
        difficulty = DifficultyBreakdownAccumulator()
        streak = StreakAccumulator(now)
        achievements = AchievementTracker()
        accumulators = (basic, recent, weekly, subjects, difficulty, streak, achievements)

        async for attempt, quiz in self._joined(AttemptQuery(user_id=user_id)):
            for accumulator in accumulators:
                accumulator.add(attempt, quiz)

        stats = basic.result()
        streak_days = streak.result()
        rank = await self.get_user_rank(user_id)

        logger.info(
            f"📊 Dashboard for {user_id}: {stats.totalAttempts} attempts, "
            f"streak {streak_days}, rank {rank}"
        )

        return DashboardStats(
            **stats.model_dump(),
            recentActivity=recent.result(),
            weeklyProgress=weekly.result(),
            subjectPerformance=subjects.result(),
            difficultyBreakdown=difficulty.result(),
            achievements=achievements.result(stats, streak_days, now),
            streakDays=streak_days,
            rank=rank
        )

    async def get_recent_activity(self, user_id: str, limit: Optional[int] = None) -> List[RecentActivity]:
        recent = RecentActivityAccumulator(limit or settings.recent_activity_limit)
        query = AttemptQuery(user_id=user_id, status="completed", sort_field="updatedAt")
        async for attempt, quiz in self._joined(query):
            recent.add(attempt, quiz)
        return recent.result()

    async def get_weekly_progress(self, user_id: str, weeks: Optional[int] = None) -> List[WeeklyProgress]:
        now = self.clock()
        weekly = WeeklyProgressAccumulator(weeks or settings.weekly_progress_weeks, now)
        query = AttemptQuery(
            user_id=user_id,
            status="completed",
            completed_from=weekly.since,
            sort_field="completedAt",
            sort_desc=False
        )
        async for attempt in self.attempts.iter_attempts(query):
            weekly.add(attempt)
        return weekly.result()

    async def get_subject_performance(self, user_id: str) -> List[SubjectPerformance]:
        subjects = SubjectPerformanceAccumulator()
        async for attempt, quiz in self._joined(AttemptQuery(user_id=user_id)):
            subjects.add(attempt, quiz)
        return subjects.result()

    async def get_streak_days(self, user_id: str) -> int:
        streak = StreakAccumulator(self.clock())
        query = AttemptQuery(user_id=user_id, status="completed", sort_field="completedAt")
        async for attempt in self.attempts.iter_attempts(query):
            streak.add(attempt)
        return streak.result()

    async def get_user_rank(self, user_id: str) -> int:
        """Platform-wide rank by average completed score"""
        scores = UserScoreAccumulator()
        async for attempt in self.attempts.iter_attempts(AttemptQuery(status="completed")):
            scores.add(attempt)
        return scores.rank_of(user_id)

    # ==================== USER STATS ====================

    async def get_user_stats(self, user_id: str, filters: Optional[StatsFilters] = None) -> UserStats:
        """
        Statistics for one user, optionally narrowed by filters

        A user with no matching attempts gets a zero-valued report.
        """
        filters = filters or StatsFilters()
        now = self.clock()

        created_from = ensure_utc(filters.fromDate)
        since = timeframe_start(filters.timeframe, now)
        if since and (created_from is None or since > created_from):
            created_from = since

        query = AttemptQuery(user_id=user_id, created_from=created_from, created_to=ensure_utc(filters.toDate))

        basic = BasicStatsAccumulator()
        subjects = SubjectPerformanceAccumulator()
        streak = StreakAccumulator(now)
        achievements = AchievementTracker()
        accumulators = (basic, subjects, streak, achievements)

        joined = self._joined(
            query,
            subject=filters.subject,
            difficulty=filters.difficulty,
            academic_level=filters.academicLevel
        )
        async for attempt, quiz in joined:
            for accumulator in accumulators:
                accumulator.add(attempt, quiz)

        stats = basic.result()
        streak_days = streak.result()
        strong, weak = strong_and_weak_areas(subjects.result())

        return UserStats(
            **stats.model_dump(),
            userId=user_id,
            streakDays=streak_days,
            achievements=achievements.result(stats, streak_days, now),
            strongAreas=strong,
            weakAreas=weak
        )

    # ==================== ATTEMPT HISTORY ====================

    async def get_all_attempts(
        self,
        user_id: str,
        filters: Optional[AttemptListFilters] = None
    ) -> AllAttemptsResponse:
        """Newest-first attempt history, paginated after quiz filters apply"""
        filters = filters or AttemptListFilters()
        query = AttemptQuery(
            user_id=user_id,
            status=filters.status,
            created_from=ensure_utc(filters.fromDate),
            created_to=ensure_utc(filters.toDate),
            sort_field="createdAt"
        )

        skip = (filters.page - 1) * filters.limit
        total_count = 0
        rows: List[AttemptSummary] = []

        joined = self._joined(query, subject=filters.subject, difficulty=filters.difficulty)
        async for attempt, quiz in joined:
            total_count += 1
            if total_count <= skip or len(rows) >= filters.limit:
                continue
            rows.append(self._summarize(attempt, quiz))

        counts = await self.attempts.count_by_status(user_id)

        return AllAttemptsResponse(
            attempts=rows,
            totalCount=total_count,
            completedCount=counts.get("completed", 0),
            inProgressCount=counts.get("in-progress", 0),
            abandonedCount=counts.get("abandoned", 0),
            filters={
                "status": filters.status,
                "subject": filters.subject,
                "difficulty": filters.difficulty,
                "fromDate": filters.fromDate.isoformat() if filters.fromDate else None,
                "toDate": filters.toDate.isoformat() if filters.toDate else None,
            },
            pagination=_pagination(filters.page, filters.limit, total_count)
        )

    async def get_quiz_attempts(
        self,
        quiz_id: str,
        user_id: str,
        page: int = 1,
        limit: int = 20
    ) -> QuizAttemptsResponse:
        """
        Completed attempts on a quiz, newest first, for the quiz's author

        Raises:
            NotFoundError: Quiz does not exist
            ForbiddenError: Caller did not create the quiz
        """
        quiz = await self.quizzes.get(quiz_id)
        if not quiz:
            raise NotFoundError("Quiz not found")
        if quiz.createdBy != user_id:
            raise ForbiddenError("You can only view attempts on your own quizzes")

        skip = (page - 1) * limit
        total_count = 0
        rows: List[AttemptSummary] = []

        query = AttemptQuery(quiz_id=quiz_id, status="completed", sort_field="createdAt")
        async for attempt in self.attempts.iter_attempts(query):
            total_count += 1
            if total_count <= skip or len(rows) >= limit:
                continue
            rows.append(self._summarize(attempt, quiz))

        logger.info(f"📋 {total_count} completed attempts on quiz {quiz_id} for its author")
        return QuizAttemptsResponse(
            quizId=quiz_id,
            attempts=rows,
            totalCount=total_count,
            pagination=_pagination(page, limit, total_count)
        )

    @staticmethod
    def _summarize(attempt: QuizAttempt, quiz: Quiz) -> AttemptSummary:
        percentage, grade, gpa = annotate_grade(attempt.score, attempt.totalScore)
        return AttemptSummary(
            attemptId=attempt.attemptId,
            userId=attempt.userId,
            quizId=quiz.quizId,
            quizTitle=quiz.title,
            subject=quiz.subject,
            topic=quiz.topic,
            difficulty=quiz.difficulty,
            questionCount=attempt.totalQuestions,
            score=attempt.score or 0,
            totalScore=attempt.totalScore or 0,
            percentage=percentage,
            grade=grade,
            gpa=gpa,
            timeSpent=attempt.timeSpent,
            status=attempt.status,
            startedAt=attempt.startedAt,
            completedAt=attempt.completedAt,
            createdAt=attempt.createdAt
        )

    # ==================== LEADERBOARD ====================

    async def get_leaderboard(
        self,
        quiz_id: Optional[str] = None,
        limit: Optional[int] = None,
        filters: Optional[LeaderboardFilters] = None
    ) -> List[LeaderboardEntry]:
        """
        Users ranked by best score, then average score

        Args:
            quiz_id: Restrict to one quiz
            limit: Maximum entries (default and ceiling come from settings)
            filters: Optional timeframe / subject / academic level scoping
        """
        filters = filters or LeaderboardFilters()
        limit = min(limit or settings.default_leaderboard_limit, settings.max_leaderboard_limit)

        query = AttemptQuery(
            quiz_id=quiz_id,
            status="completed",
            completed_from=timeframe_start(filters.timeframe, self.clock()),
            sort_field="completedAt"
        )

        scores = UserScoreAccumulator()
        if filters.subject or filters.academicLevel:
            rows = self._joined(query, subject=filters.subject, academic_level=filters.academicLevel)
            async for attempt, quiz in rows:
                scores.add(attempt, quiz)
        else:
            async for attempt in self.attempts.iter_attempts(query):
                scores.add(attempt)

        return scores.leaderboard(limit)
