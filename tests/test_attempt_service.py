import pytest

from quizcore.core.errors import (
    DeadlineExceededError,
    ForbiddenError,
    NotFoundError,
    StateConflictError,
    ValidationFailureError,
)

from conftest import make_quiz


# ==================== START ====================

@pytest.mark.asyncio
async def test_start_creates_in_progress_attempt(attempt_service, attempt_store, clock):
    attempt = await attempt_service.start_attempt("quiz_1", "user_1")

    assert attempt.status == "in-progress"
    assert attempt.totalQuestions == 2
    assert attempt.startedAt == clock.now
    assert attempt.attemptId in attempt_store.docs


@pytest.mark.asyncio
async def test_start_resumes_open_attempt(attempt_service, attempt_store):
    first = await attempt_service.start_attempt("quiz_1", "user_1")
    second = await attempt_service.start_attempt("quiz_1", "user_1")

    assert second.attemptId == first.attemptId
    assert len(attempt_store.docs) == 1


@pytest.mark.asyncio
async def test_start_replaces_expired_attempt(attempt_service, attempt_store, quiz_store, clock):
    quiz_store.add(make_quiz("quiz_timed", timeLimit=5))
    first = await attempt_service.start_attempt("quiz_timed", "user_1")

    clock.advance(minutes=6)
    second = await attempt_service.start_attempt("quiz_timed", "user_1")

    assert second.attemptId != first.attemptId
    assert attempt_store.docs[first.attemptId].status == "abandoned"
    assert attempt_store.docs[second.attemptId].status == "in-progress"


@pytest.mark.asyncio
async def test_start_unknown_quiz(attempt_service):
    with pytest.raises(NotFoundError):
        await attempt_service.start_attempt("missing", "user_1")


@pytest.mark.asyncio
async def test_start_private_quiz_of_someone_else(attempt_service, quiz_store):
    quiz_store.add(make_quiz("quiz_private", isPublic=False))
    with pytest.raises(ForbiddenError):
        await attempt_service.start_attempt("quiz_private", "user_1")


@pytest.mark.asyncio
async def test_start_unpublished_quiz(attempt_service, quiz_store):
    quiz_store.add(make_quiz("quiz_draft", status="draft"))
    with pytest.raises(StateConflictError):
        await attempt_service.start_attempt("quiz_draft", "user_1")


# ==================== ANSWERS & FLAGS ====================

@pytest.mark.asyncio
async def test_answers_merge_key_by_key(attempt_service):
    attempt = await attempt_service.start_attempt("quiz_1", "user_1")

    await attempt_service.submit_answer(attempt.attemptId, "user_1", "q1", "A")
    await attempt_service.save_answers(attempt.attemptId, "user_1", {"q2": "X"})
    updated = await attempt_service.submit_answer(attempt.attemptId, "user_1", "q1", "B")

    assert updated.answers == {"q1": "B", "q2": ["X"]}


@pytest.mark.asyncio
async def test_answers_for_unknown_questions_are_dropped(attempt_service):
    attempt = await attempt_service.start_attempt("quiz_1", "user_1")
    updated = await attempt_service.save_answers(attempt.attemptId, "user_1", {"q1": "B", "q99": "Z"})
    assert updated.answers == {"q1": "B"}


@pytest.mark.asyncio
async def test_impossible_answer_shape(attempt_service):
    attempt = await attempt_service.start_attempt("quiz_1", "user_1")
    with pytest.raises(ValidationFailureError):
        await attempt_service.submit_answer(attempt.attemptId, "user_1", "q1", ["A", "B"])


@pytest.mark.asyncio
async def test_save_answers_requires_mapping(attempt_service):
    attempt = await attempt_service.start_attempt("quiz_1", "user_1")
    with pytest.raises(ValidationFailureError):
        await attempt_service.save_answers(attempt.attemptId, "user_1", ["q1", "B"])


@pytest.mark.asyncio
async def test_other_user_cannot_answer(attempt_service):
    attempt = await attempt_service.start_attempt("quiz_1", "user_1")
    with pytest.raises(ForbiddenError):
        await attempt_service.submit_answer(attempt.attemptId, "user_2", "q1", "B")


@pytest.mark.asyncio
async def test_unknown_attempt(attempt_service):
    with pytest.raises(NotFoundError):
        await attempt_service.get_attempt("attempt_missing", "user_1")


@pytest.mark.asyncio
async def test_flag_and_unflag(attempt_service):
    attempt = await attempt_service.start_attempt("quiz_1", "user_1")

    await attempt_service.flag_question(attempt.attemptId, "user_1", "q2", True)
    flagged = await attempt_service.flag_question(attempt.attemptId, "user_1", "q2", True)
    assert flagged.flaggedQuestions == ["q2"]

    unflagged = await attempt_service.flag_question(attempt.attemptId, "user_1", "q2", False)
    assert unflagged.flaggedQuestions == []


@pytest.mark.asyncio
async def test_answer_after_deadline_abandons(attempt_service, attempt_store, quiz_store, clock):
    quiz_store.add(make_quiz("quiz_timed", timeLimit=5))
    attempt = await attempt_service.start_attempt("quiz_timed", "user_1")

    clock.advance(minutes=5, seconds=1)
    with pytest.raises(DeadlineExceededError):
        await attempt_service.submit_answer(attempt.attemptId, "user_1", "q1", "B")

    assert attempt_store.docs[attempt.attemptId].status == "abandoned"
    with pytest.raises(StateConflictError):
        await attempt_service.submit_answer(attempt.attemptId, "user_1", "q1", "B")


# ==================== COMPLETE / ABANDON ====================

@pytest.mark.asyncio
async def test_complete_scores_and_updates_quiz_stats(attempt_service, quiz_store, clock):
    attempt = await attempt_service.start_attempt("quiz_1", "user_1")
    await attempt_service.save_answers(attempt.attemptId, "user_1", {"q1": "B", "q2": ["Y", "X"]})
    clock.advance(minutes=4)

    result = await attempt_service.complete_attempt(attempt.attemptId, "user_1")

    assert result.attempt.status == "completed"
    assert result.attempt.score == 3
    assert result.attempt.timeSpent == 4.0
    assert result.performance.grade == "A+"
    assert result.recommendations[0] == "Outstanding! You have mastered this topic"
    assert quiz_store.docs["quiz_1"].attempts == 1
    assert quiz_store.docs["quiz_1"].averageScore == 3


@pytest.mark.asyncio
async def test_complete_twice_is_idempotent(attempt_service, quiz_store, clock):
    attempt = await attempt_service.start_attempt("quiz_1", "user_1")
    await attempt_service.submit_answer(attempt.attemptId, "user_1", "q1", "B")

    first = await attempt_service.complete_attempt(attempt.attemptId, "user_1")
    clock.advance(minutes=3)
    second = await attempt_service.complete_attempt(attempt.attemptId, "user_1")

    assert second.attempt.score == first.attempt.score == 1
    assert second.attempt.completedAt == first.attempt.completedAt
    assert quiz_store.docs["quiz_1"].attempts == 1


@pytest.mark.asyncio
async def test_complete_after_deadline_abandons(attempt_service, attempt_store, quiz_store, clock):
    quiz_store.add(make_quiz("quiz_timed", timeLimit=5))
    attempt = await attempt_service.start_attempt("quiz_timed", "user_1")

    clock.advance(minutes=10)
    with pytest.raises(DeadlineExceededError):
        await attempt_service.complete_attempt(attempt.attemptId, "user_1")

    stored = attempt_store.docs[attempt.attemptId]
    assert stored.status == "abandoned"
    assert stored.score is None


@pytest.mark.asyncio
async def test_abandoned_attempt_cannot_complete(attempt_service):
    attempt = await attempt_service.start_attempt("quiz_1", "user_1")
    await attempt_service.abandon_attempt(attempt.attemptId, "user_1")

    with pytest.raises(StateConflictError):
        await attempt_service.complete_attempt(attempt.attemptId, "user_1")
    with pytest.raises(StateConflictError):
        await attempt_service.abandon_attempt(attempt.attemptId, "user_1")


@pytest.mark.asyncio
async def test_abandon_then_start_creates_new_attempt(attempt_service):
    attempt = await attempt_service.start_attempt("quiz_1", "user_1")
    await attempt_service.abandon_attempt(attempt.attemptId, "user_1")

    fresh = await attempt_service.start_attempt("quiz_1", "user_1")
    assert fresh.attemptId != attempt.attemptId


# ==================== READS ====================

@pytest.mark.asyncio
async def test_progress_reports_answers_and_time(attempt_service, quiz_store, clock):
    quiz_store.add(make_quiz("quiz_timed", timeLimit=10))
    attempt = await attempt_service.start_attempt("quiz_timed", "user_1")
    await attempt_service.submit_answer(attempt.attemptId, "user_1", "q1", "B")
    clock.advance(minutes=4)

    progress = await attempt_service.get_attempt_progress(attempt.attemptId, "user_1")

    assert progress.answeredQuestions == 1
    assert progress.progressPercentage == 50
    assert progress.timeRemaining == 6.0


@pytest.mark.asyncio
async def test_progress_time_remaining_never_negative(attempt_service, quiz_store, clock):
    quiz_store.add(make_quiz("quiz_timed", timeLimit=1))
    attempt = await attempt_service.start_attempt("quiz_timed", "user_1")
    clock.advance(minutes=30)

    progress = await attempt_service.get_attempt_progress(attempt.attemptId, "user_1")
    assert progress.timeRemaining == 0


@pytest.mark.asyncio
async def test_result_requires_completion(attempt_service):
    attempt = await attempt_service.start_attempt("quiz_1", "user_1")
    with pytest.raises(StateConflictError):
        await attempt_service.get_result(attempt.attemptId, "user_1")

    await attempt_service.complete_attempt(attempt.attemptId, "user_1")
    result = await attempt_service.get_result(attempt.attemptId, "user_1")
    assert result.performance.score == 0
    assert len(result.detailedResults) == 2


@pytest.mark.asyncio
async def test_quiz_stats_average_over_completed_attempts(attempt_service, quiz_store):
    for user_id, answers in (("u1", {"q1": "B"}), ("u2", {"q2": ["X", "Y"]}), ("u3", {})):
        attempt = await attempt_service.start_attempt("quiz_1", user_id)
        await attempt_service.save_answers(attempt.attemptId, user_id, answers)
        await attempt_service.complete_attempt(attempt.attemptId, user_id)

    quiz = quiz_store.docs["quiz_1"]
    assert quiz.attempts == 3
    assert quiz.averageScore == 1


# ==================== STALE READS ====================

def _serve_stale_read_once(monkeypatch, store, snapshot):
    """Make the next store.get return an out-of-date copy of the attempt"""
    real_get = store.get
    served = []

    async def get(attempt_id):
        if not served:
            served.append(attempt_id)
            return snapshot.model_copy(deep=True)
        return await real_get(attempt_id)

    monkeypatch.setattr(store, "get", get)


@pytest.mark.asyncio
async def test_flag_on_stale_read_cannot_reopen_completed_attempt(attempt_service, attempt_store, monkeypatch):
    attempt = await attempt_service.start_attempt("quiz_1", "user_1")
    await attempt_service.submit_answer(attempt.attemptId, "user_1", "q1", "B")
    stale = await attempt_store.get(attempt.attemptId)
    await attempt_service.complete_attempt(attempt.attemptId, "user_1")

    _serve_stale_read_once(monkeypatch, attempt_store, stale)
    with pytest.raises(StateConflictError):
        await attempt_service.flag_question(attempt.attemptId, "user_1", "q2", True)

    stored = attempt_store.docs[attempt.attemptId]
    assert stored.status == "completed"
    assert stored.score == 1
    assert stored.flaggedQuestions == []


@pytest.mark.asyncio
async def test_abandon_on_stale_read_keeps_completed_attempt(attempt_service, attempt_store, monkeypatch):
    attempt = await attempt_service.start_attempt("quiz_1", "user_1")
    stale = await attempt_store.get(attempt.attemptId)
    await attempt_service.complete_attempt(attempt.attemptId, "user_1")

    _serve_stale_read_once(monkeypatch, attempt_store, stale)
    with pytest.raises(StateConflictError):
        await attempt_service.abandon_attempt(attempt.attemptId, "user_1")

    assert attempt_store.docs[attempt.attemptId].status == "completed"


@pytest.mark.asyncio
async def test_deadline_on_stale_read_keeps_completed_score(
    attempt_service, attempt_store, quiz_store, clock, monkeypatch
):
    quiz_store.add(make_quiz("quiz_timed", timeLimit=5))
    attempt = await attempt_service.start_attempt("quiz_timed", "user_1")
    await attempt_service.submit_answer(attempt.attemptId, "user_1", "q1", "B")
    stale = await attempt_store.get(attempt.attemptId)
    await attempt_service.complete_attempt(attempt.attemptId, "user_1")

    clock.advance(minutes=10)
    _serve_stale_read_once(monkeypatch, attempt_store, stale)
    with pytest.raises(StateConflictError):
        await attempt_service.submit_answer(attempt.attemptId, "user_1", "q2", ["X"])

    stored = attempt_store.docs[attempt.attemptId]
    assert stored.status == "completed"
    assert stored.score == 1


@pytest.mark.asyncio
async def test_complete_counts_answers_saved_after_its_read(attempt_service, attempt_store, clock, monkeypatch):
    attempt = await attempt_service.start_attempt("quiz_1", "user_1")
    stale = await attempt_store.get(attempt.attemptId)
    clock.advance(minutes=1)
    await attempt_service.submit_answer(attempt.attemptId, "user_1", "q1", "B")

    _serve_stale_read_once(monkeypatch, attempt_store, stale)
    result = await attempt_service.complete_attempt(attempt.attemptId, "user_1")

    assert result.attempt.score == 1
    stored = attempt_store.docs[attempt.attemptId]
    assert stored.answers == {"q1": "B"}
    assert stored.score == 1
