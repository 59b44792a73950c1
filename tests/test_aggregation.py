from datetime import timedelta

from quizcore.services.aggregation import (
    AchievementTracker,
    BasicStatsAccumulator,
    RecentActivityAccumulator,
    StreakAccumulator,
    SubjectPerformanceAccumulator,
    UserScoreAccumulator,
    WeeklyProgressAccumulator,
    improvement_trend,
    strong_and_weak_areas,
)

from conftest import NOW, make_attempt, make_quiz


def test_basic_stats_of_nothing_are_zero():
    stats = BasicStatsAccumulator().result()

    assert stats.totalAttempts == 0
    assert stats.averageScore == 0
    assert stats.bestScore == 0
    assert stats.totalTimeSpent == 0
    assert stats.favoriteSubjects == []
    assert stats.lastActivityAt is None


def test_basic_stats_ignore_unscored_attempts_in_averages():
    quiz = make_quiz()
    acc = BasicStatsAccumulator()
    acc.add(make_attempt("a1", score=3, time_spent=4), quiz)
    acc.add(make_attempt("a2", score=1, time_spent=6), quiz)
    acc.add(make_attempt("a3", status="in-progress"), quiz)

    stats = acc.result()

    assert stats.totalAttempts == 3
    assert stats.completedQuizzes == 2
    assert stats.totalQuizzes == 1
    assert stats.averageScore == 2
    assert stats.averagePercentage == 67
    assert stats.bestScore == 3
    assert stats.bestPercentage == 100
    assert stats.totalTimeSpent == 10
    assert stats.favoriteSubjects == ["Biology"]


def test_recent_activity_keeps_newest_completed():
    quiz = make_quiz()
    acc = RecentActivityAccumulator(limit=2)
    for hours in (5, 1, 3, 2):
        acc.add(make_attempt(f"a{hours}", completed_at=NOW - timedelta(hours=hours)), quiz)
    acc.add(make_attempt("open", status="in-progress"), quiz)

    rows = acc.result()

    assert [r.attemptId for r in rows] == ["a1", "a2"]
    assert rows[0].grade == "A+"


def test_weekly_progress_buckets_by_iso_week():
    # NOW is Friday 2024-03-15, ISO week 11
    acc = WeeklyProgressAccumulator(weeks=4, now=NOW)
    acc.add(make_attempt("a1", score=2, completed_at=NOW - timedelta(days=1)))
    acc.add(make_attempt("a2", score=3, completed_at=NOW - timedelta(days=2)))
    acc.add(make_attempt("a3", score=1, completed_at=NOW - timedelta(days=7)))
    acc.add(make_attempt("old", score=1, completed_at=NOW - timedelta(weeks=6)))

    weeks = acc.result()

    assert [w.week for w in weeks] == ["2024-10", "2024-11"]
    assert weeks[1].quizzesCompleted == 2
    assert weeks[1].averageScore == 3
    assert weeks[0].quizzesCompleted == 1


def test_trend_needs_three_scored_attempts():
    assert improvement_trend([10, 90], [10, 90], 2) == "stable"


def test_trend_compares_earliest_and_latest_windows():
    quiz = make_quiz()
    acc = SubjectPerformanceAccumulator()
    for day, score in enumerate([10, 20, 30, 60, 70, 80]):
        acc.add(
            make_attempt(f"a{day}", score=score, total_score=100, completed_at=NOW - timedelta(days=10 - day)),
            quiz,
        )

    [subject] = acc.result()
    assert subject.improvementTrend == "improving"
    assert subject.bestScore == 80
    assert subject.completedQuizzes == 6


def test_trend_declining_and_stable():
    assert improvement_trend([80, 80, 80], [60, 60, 60], 6) == "declining"
    assert improvement_trend([70, 70, 70], [74, 74, 74], 6) == "stable"


def test_strong_and_weak_areas():
    acc = SubjectPerformanceAccumulator()
    acc.add(make_attempt("a1", score=3), make_quiz(subject="Physics"))
    acc.add(make_attempt("a2", score=1), make_quiz(subject="History"))
    acc.add(make_attempt("a3", score=2), make_quiz(subject="Art"))

    strong, weak = strong_and_weak_areas(acc.result())

    assert strong == ["Physics"]
    assert weak == ["History"]


def test_streak_today_and_yesterday():
    acc = StreakAccumulator(NOW)
    acc.add(make_attempt("a1", completed_at=NOW - timedelta(hours=1)))
    acc.add(make_attempt("a2", completed_at=NOW - timedelta(days=1)))
    acc.add(make_attempt("a3", completed_at=NOW - timedelta(days=1, hours=2)))
    assert acc.result() == 2


def test_streak_may_end_yesterday():
    acc = StreakAccumulator(NOW)
    acc.add(make_attempt("a1", completed_at=NOW - timedelta(days=1)))
    acc.add(make_attempt("a2", completed_at=NOW - timedelta(days=2)))
    assert acc.result() == 2


def test_streak_broken_by_gap():
    acc = StreakAccumulator(NOW)
    acc.add(make_attempt("a1", completed_at=NOW - timedelta(days=2)))
    assert acc.result() == 0

    acc.add(make_attempt("a2", completed_at=NOW))
    assert acc.result() == 1


def test_achievements_use_completion_times():
    quiz = make_quiz()
    tracker = AchievementTracker()
    basic = BasicStatsAccumulator()
    first = NOW - timedelta(days=3)
    for i, score in enumerate([1, 3]):
        attempt = make_attempt(f"a{i}", score=score, completed_at=first + timedelta(days=i))
        tracker.add(attempt, quiz)
        basic.add(attempt, quiz)

    achievements = {a.id: a for a in tracker.result(basic.result(), 0, NOW)}

    assert set(achievements) == {"first_quiz", "perfect_score"}
    assert achievements["first_quiz"].unlockedAt == first
    assert achievements["perfect_score"].unlockedAt == first + timedelta(days=1)


def test_leaderboard_orders_by_best_then_average():
    acc = UserScoreAccumulator()
    acc.add(make_attempt("a1", user_id="u1", score=90, total_score=100))
    acc.add(make_attempt("a2", user_id="u1", score=95, total_score=100))
    acc.add(make_attempt("a3", user_id="u2", score=95, total_score=100))
    acc.add(make_attempt("a4", user_id="u3", score=90, total_score=100))
    acc.add(make_attempt("a5", user_id="u4", status="in-progress"))

    board = acc.leaderboard(10)

    assert [(e.rank, e.userId) for e in board] == [(1, "u2"), (2, "u1"), (3, "u3")]
    assert board[1].averageScore == 92.5
    assert board[1].totalAttempts == 2
    assert len(acc.leaderboard(1)) == 1


def test_rank_by_average_score():
    acc = UserScoreAccumulator()
    acc.add(make_attempt("a1", user_id="u1", score=1))
    acc.add(make_attempt("a2", user_id="u2", score=3))

    assert acc.rank_of("u2") == 1
    assert acc.rank_of("u1") == 2
    assert acc.rank_of("nobody") == 3
