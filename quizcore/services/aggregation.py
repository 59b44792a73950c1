"""
Attempt Aggregation
Group-by-reduce accumulators behind dashboards, user stats and leaderboards
FILE: quizcore/services/aggregation.py

Each accumulator takes attempts one at a time through add() and keeps only
bounded state, so reports can be fed straight from a database cursor.
Accumulators never modify the attempts or quizzes they see.
"""
import heapq
import itertools
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Set, Tuple

from quizcore.models.attempt import QuizAttempt
from quizcore.models.dashboard import (
    Achievement,
    BasicStats,
    DifficultyBreakdown,
    DifficultyStats,
    LeaderboardEntry,
    RecentActivity,
    SubjectPerformance,
    WeeklyProgress,
)
from quizcore.models.quiz import Quiz
from quizcore.services.scoring import annotate_grade
from quizcore.utils.clock import ensure_utc, round_half_up, start_of_day

TREND_WINDOW = 3
TREND_THRESHOLD = 5
STRONG_AREA_PERCENTAGE = 80
WEAK_AREA_PERCENTAGE = 60

_sequence = itertools.count()


def _is_completed(attempt: QuizAttempt) -> bool:
    return attempt.status == "completed"


def _score_percentage(attempt: QuizAttempt) -> Optional[float]:
    """Point-weighted percentage of a completed attempt, None when undefined"""
    if not attempt.totalScore:
        return None
    return (attempt.score or 0) / attempt.totalScore * 100


def _mean(total: float, count: int) -> int:
    return int(round_half_up(total / count)) if count else 0


def _minutes(total: float) -> float:
    return round_half_up(total, 2)


@dataclass
class _Average:
    total: float = 0
    count: int = 0

    def add(self, value: float) -> None:
        self.total += value
        self.count += 1

    def rounded(self) -> int:
        return _mean(self.total, self.count)


# ==================== BASIC STATS ====================

class BasicStatsAccumulator:
    """Counts, averages and bests over one user's attempts"""

    def __init__(self):
        self.total_attempts = 0
        self.completed = 0
        self.quiz_ids: Set[str] = set()
        self.subjects: Dict[str, None] = {}
        self.score = _Average()
        self.percentage = _Average()
        self.best_score: Optional[int] = None
        self.best_percentage: Optional[float] = None
        self.total_time = 0.0
        self.last_activity: Optional[datetime] = None

    def add(self, attempt: QuizAttempt, quiz: Quiz) -> None:
        self.total_attempts += 1
        self.quiz_ids.add(attempt.quizId)
        self.subjects.setdefault(quiz.subject, None)
        self.total_time += attempt.timeSpent or 0

        updated = ensure_utc(attempt.updatedAt)
        if self.last_activity is None or updated > self.last_activity:
            self.last_activity = updated

        if not _is_completed(attempt):
            return

        self.completed += 1
        score = attempt.score or 0
        self.score.add(score)
        if self.best_score is None or score > self.best_score:
            self.best_score = score

        pct = _score_percentage(attempt)
        if pct is not None:
            self.percentage.add(pct)
            if self.best_percentage is None or pct > self.best_percentage:
                self.best_percentage = pct

    def result(self) -> BasicStats:
        return BasicStats(
            totalAttempts=self.total_attempts,
            completedQuizzes=self.completed,
            totalQuizzes=len(self.quiz_ids),
            averageScore=self.score.rounded(),
            averagePercentage=self.percentage.rounded(),
            bestScore=self.best_score or 0,
            bestPercentage=int(round_half_up(self.best_percentage or 0)),
            totalTimeSpent=_minutes(self.total_time),
            favoriteSubjects=list(self.subjects),
            lastActivityAt=self.last_activity
        )


# ==================== RECENT ACTIVITY ====================

class RecentActivityAccumulator:
    """Last N completed attempts by update time, newest first"""

    def __init__(self, limit: int):
        self.limit = limit
        self._heap: List[Tuple[datetime, int, QuizAttempt, Quiz]] = []

    def add(self, attempt: QuizAttempt, quiz: Quiz) -> None:
        if not _is_completed(attempt) or self.limit <= 0:
            return
        entry = (ensure_utc(attempt.updatedAt), -next(_sequence), attempt, quiz)
        if len(self._heap) < self.limit:
            heapq.heappush(self._heap, entry)
        elif entry[:2] > self._heap[0][:2]:
            heapq.heapreplace(self._heap, entry)

    def result(self) -> List[RecentActivity]:
        rows = sorted(self._heap, key=lambda e: e[:2], reverse=True)
        activity = []
        for updated, _, attempt, quiz in rows:
            percentage, grade, gpa = annotate_grade(attempt.score, attempt.totalScore)
            activity.append(
                RecentActivity(
                    attemptId=attempt.attemptId,
                    quizId=quiz.quizId,
                    quizTitle=quiz.title,
                    subject=quiz.subject,
                    topic=quiz.topic,
                    difficulty=quiz.difficulty,
                    score=attempt.score or 0,
                    totalScore=attempt.totalScore or 0,
                    percentage=percentage,
                    grade=grade,
                    gpa=gpa,
                    timeSpent=attempt.timeSpent,
                    completedAt=attempt.completedAt or updated,
                    status=attempt.status
                )
            )
        return activity


# ==================== WEEKLY PROGRESS ====================

@dataclass
class _WeekBucket:
    start: datetime
    end: datetime
    score: _Average = field(default_factory=_Average)
    time: float = 0


class WeeklyProgressAccumulator:
    """Completed attempts of the last W weeks, bucketed by ISO week of completedAt"""

    def __init__(self, weeks: int, now: datetime):
        self.since = ensure_utc(now) - timedelta(weeks=weeks)
        self._buckets: Dict[Tuple[int, int], _WeekBucket] = {}

    def add(self, attempt: QuizAttempt, quiz: Optional[Quiz] = None) -> None:
        if not _is_completed(attempt) or attempt.completedAt is None:
            return
        completed = ensure_utc(attempt.completedAt)
        if completed < self.since:
            return

        year, week, _ = completed.isocalendar()
        bucket = self._buckets.get((year, week))
        if bucket is None:
            bucket = self._buckets[(year, week)] = _WeekBucket(start=completed, end=completed)
        bucket.start = min(bucket.start, completed)
        bucket.end = max(bucket.end, completed)
        bucket.score.add(attempt.score or 0)
        bucket.time += attempt.timeSpent or 0

    def result(self) -> List[WeeklyProgress]:
        return [
            WeeklyProgress(
                week=f"{year}-{week:02d}",
                weekStart=bucket.start,
                weekEnd=bucket.end,
                quizzesCompleted=bucket.score.count,
                averageScore=bucket.score.rounded(),
                totalTimeSpent=_minutes(bucket.time)
            )
            for (year, week), bucket in sorted(self._buckets.items())
        ]


# ==================== SUBJECT PERFORMANCE ====================

class _EarliestLatest:
    """Keeps the N earliest and N latest scores by completion time"""

    def __init__(self, size: int):
        self.size = size
        self._earliest: List[Tuple[float, int, int]] = []
        self._latest: List[Tuple[float, int, int]] = []

    def add(self, completed_at: datetime, score: int) -> None:
        seq = next(_sequence)
        ts = ensure_utc(completed_at).timestamp()

        # max-heap on time for the earliest window
        item = (-ts, -seq, score)
        if len(self._earliest) < self.size:
            heapq.heappush(self._earliest, item)
        elif item > self._earliest[0]:
            heapq.heapreplace(self._earliest, item)

        item = (ts, seq, score)
        if len(self._latest) < self.size:
            heapq.heappush(self._latest, item)
        elif item > self._latest[0]:
            heapq.heapreplace(self._latest, item)

    def earliest(self) -> List[int]:
        return [score for _, _, score in self._earliest]

    def latest(self) -> List[int]:
        return [score for _, _, score in self._latest]


def improvement_trend(earliest: List[int], latest: List[int], scored: int) -> str:
    """
    Compare the mean of the latest scores against the earliest ones

    Fewer than three scored attempts is always stable.
    """
    if scored < TREND_WINDOW:
        return "stable"
    early = sum(earliest) / len(earliest)
    recent = sum(latest) / len(latest)
    if recent > early + TREND_THRESHOLD:
        return "improving"
    if recent < early - TREND_THRESHOLD:
        return "declining"
    return "stable"


class _SubjectBucket:
    def __init__(self):
        self.total_attempts = 0
        self.score = _Average()
        self.percentage = _Average()
        self.best_score: Optional[int] = None
        self.time = 0.0
        self.last_attempt: Optional[datetime] = None
        self.window = _EarliestLatest(TREND_WINDOW)


class SubjectPerformanceAccumulator:
    """Per-subject attempt statistics with an improvement trend"""

    def __init__(self):
        self._subjects: Dict[str, _SubjectBucket] = {}

    def add(self, attempt: QuizAttempt, quiz: Quiz) -> None:
        bucket = self._subjects.setdefault(quiz.subject, _SubjectBucket())
        bucket.total_attempts += 1
        bucket.time += attempt.timeSpent or 0

        updated = ensure_utc(attempt.updatedAt)
        if bucket.last_attempt is None or updated > bucket.last_attempt:
            bucket.last_attempt = updated

        if not _is_completed(attempt):
            return

        score = attempt.score or 0
        bucket.score.add(score)
        if bucket.best_score is None or score > bucket.best_score:
            bucket.best_score = score
        pct = _score_percentage(attempt)
        if pct is not None:
            bucket.percentage.add(pct)
        bucket.window.add(attempt.completedAt or attempt.updatedAt, score)

    def result(self) -> List[SubjectPerformance]:
        performance = [
            SubjectPerformance(
                subject=subject,
                totalAttempts=bucket.total_attempts,
                completedQuizzes=bucket.score.count,
                averageScore=bucket.score.rounded(),
                averagePercentage=bucket.percentage.rounded(),
                bestScore=bucket.best_score or 0,
                totalTimeSpent=_minutes(bucket.time),
                lastAttemptDate=bucket.last_attempt,
                improvementTrend=improvement_trend(
                    bucket.window.earliest(), bucket.window.latest(), bucket.score.count
                )
            )
            for subject, bucket in self._subjects.items()
        ]
        performance.sort(key=lambda s: (-s.totalAttempts, s.subject))
        return performance


def strong_and_weak_areas(performance: Iterable[SubjectPerformance]) -> Tuple[List[str], List[str]]:
    """Subjects whose completed average percentage is >= 80 (strong) or < 60 (weak)"""
    strong, weak = [], []
    for subject in performance:
        if not subject.completedQuizzes:
            continue
        if subject.averagePercentage >= STRONG_AREA_PERCENTAGE:
            strong.append(subject.subject)
        elif subject.averagePercentage < WEAK_AREA_PERCENTAGE:
            weak.append(subject.subject)
    return strong, weak


# ==================== DIFFICULTY BREAKDOWN ====================

class DifficultyBreakdownAccumulator:
    def __init__(self):
        self._scores = {d: _Average() for d in ("easy", "medium", "hard")}
        self._percentages = {d: _Average() for d in ("easy", "medium", "hard")}

    def add(self, attempt: QuizAttempt, quiz: Quiz) -> None:
        if not _is_completed(attempt) or quiz.difficulty not in self._scores:
            return
        self._scores[quiz.difficulty].add(attempt.score or 0)
        pct = _score_percentage(attempt)
        if pct is not None:
            self._percentages[quiz.difficulty].add(pct)

    def result(self) -> DifficultyBreakdown:
        return DifficultyBreakdown(**{
            difficulty: DifficultyStats(
                attempts=scores.count,
                averageScore=scores.rounded(),
                averagePercentage=self._percentages[difficulty].rounded()
            )
            for difficulty, scores in self._scores.items()
        })


# ==================== STREAK ====================

class StreakAccumulator:
    """Consecutive calendar days (UTC) with a completed attempt, ending today or yesterday"""

    def __init__(self, now: datetime):
        self.today = start_of_day(now).date()
        self._days: Set[date] = set()

    def add(self, attempt: QuizAttempt, quiz: Optional[Quiz] = None) -> None:
        if _is_completed(attempt) and attempt.completedAt is not None:
            self._days.add(start_of_day(attempt.completedAt).date())

    def result(self) -> int:
        streak = 0
        cursor = self.today
        for day in sorted(self._days, reverse=True):
            gap = (cursor - day).days
            if gap not in (0, 1):
                break
            streak += 1
            cursor = day
        return streak


# ==================== ACHIEVEMENTS ====================

QUIZ_MASTER_COUNT = 10
WEEK_STREAK_DAYS = 7
HIGH_ACHIEVER_PERCENTAGE = 80


class AchievementTracker:
    """Remembers the completion times that unlock milestone achievements"""

    def __init__(self):
        self._first_completions: List[float] = []
        self._first_perfect: Optional[datetime] = None

    def add(self, attempt: QuizAttempt, quiz: Optional[Quiz] = None) -> None:
        if not _is_completed(attempt):
            return
        completed = ensure_utc(attempt.completedAt or attempt.updatedAt)

        # max-heap of the earliest QUIZ_MASTER_COUNT completion timestamps
        ts = -completed.timestamp()
        if len(self._first_completions) < QUIZ_MASTER_COUNT:
            heapq.heappush(self._first_completions, ts)
        elif ts > self._first_completions[0]:
            heapq.heapreplace(self._first_completions, ts)

        pct = _score_percentage(attempt)
        if pct is not None and round_half_up(pct) >= 100:
            if self._first_perfect is None or completed < self._first_perfect:
                self._first_perfect = completed

    def _nth_completion(self, n: int) -> Optional[datetime]:
        times = sorted(-ts for ts in self._first_completions)
        if len(times) < n:
            return None
        return datetime.fromtimestamp(times[n - 1], tz=timezone.utc)

    def result(self, stats: BasicStats, streak_days: int, now: datetime) -> List[Achievement]:
        achievements = []

        if stats.completedQuizzes >= 1:
            achievements.append(Achievement(
                id="first_quiz",
                title="First Steps",
                description="Completed your first quiz",
                icon="🎯",
                category="milestone",
                unlockedAt=self._nth_completion(1) or now
            ))
        if stats.completedQuizzes >= QUIZ_MASTER_COUNT:
            achievements.append(Achievement(
                id="quiz_master",
                title="Quiz Master",
                description=f"Completed {QUIZ_MASTER_COUNT} quizzes",
                icon="🏆",
                category="milestone",
                unlockedAt=self._nth_completion(QUIZ_MASTER_COUNT) or now
            ))
        if stats.bestPercentage >= 100:
            achievements.append(Achievement(
                id="perfect_score",
                title="Perfect Score",
                description="Achieved 100% on a quiz",
                icon="⭐",
                category="performance",
                unlockedAt=self._first_perfect or now
            ))
        if stats.completedQuizzes and stats.averagePercentage >= HIGH_ACHIEVER_PERCENTAGE:
            achievements.append(Achievement(
                id="high_achiever",
                title="High Achiever",
                description=f"Maintain {HIGH_ACHIEVER_PERCENTAGE}%+ average score",
                icon="🌟",
                category="performance",
                unlockedAt=now
            ))
        if streak_days >= WEEK_STREAK_DAYS:
            achievements.append(Achievement(
                id="week_streak",
                title="Week Warrior",
                description=f"Completed quizzes {WEEK_STREAK_DAYS} days in a row",
                icon="🔥",
                category="consistency",
                unlockedAt=now
            ))

        return achievements


# ==================== RANK & LEADERBOARD ====================

@dataclass
class _UserScores:
    best: int = 0
    total: float = 0
    count: int = 0
    time: float = 0

    @property
    def average(self) -> float:
        return self.total / self.count if self.count else 0


class UserScoreAccumulator:
    """Per-user reduction of completed attempts, used for rank and leaderboard"""

    def __init__(self):
        self._users: Dict[str, _UserScores] = {}

    def add(self, attempt: QuizAttempt, quiz: Optional[Quiz] = None) -> None:
        if not _is_completed(attempt):
            return
        user = self._users.setdefault(attempt.userId, _UserScores())
        score = attempt.score or 0
        user.best = max(user.best, score) if user.count else score
        user.total += score
        user.count += 1
        user.time += attempt.timeSpent or 0

    def rank_of(self, user_id: str) -> int:
        """
        1-based position by (average score, completed count), both descending

        A user without completed attempts ranks after everyone else.
        """
        ordering = sorted(
            self._users.items(),
            key=lambda item: (-item[1].average, -item[1].count, item[0])
        )
        for position, (uid, _) in enumerate(ordering, start=1):
            if uid == user_id:
                return position
        return len(ordering) + 1

    def leaderboard(self, limit: int) -> List[LeaderboardEntry]:
        """Sorted by best score, then average score, both descending"""
        ordering = sorted(
            self._users.items(),
            key=lambda item: (-item[1].best, -item[1].average, item[0])
        )
        return [
            LeaderboardEntry(
                rank=position,
                userId=user_id,
                bestScore=scores.best,
                totalAttempts=scores.count,
                averageScore=round_half_up(scores.average, 1),
                totalTimeSpent=_minutes(scores.time)
            )
            for position, (user_id, scores) in enumerate(ordering[:max(limit, 0)], start=1)
        ]
