"""
Attempt API Routes
Start, answer, flag, complete and review quiz attempts
"""
import logging

from fastapi import APIRouter, Depends, Path, status

from quizcore.api.deps import get_attempt_service, get_current_user_id
from quizcore.models.attempt import (
    AttemptProgress,
    FlagQuestionRequest,
    QuizAttempt,
    QuizResult,
    SaveAnswersRequest,
    StartAttemptRequest,
    SubmitAnswerRequest,
)
from quizcore.services.attempt_service import AttemptService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/attempts")


@router.post(
    "/start",
    response_model=QuizAttempt,
    status_code=status.HTTP_201_CREATED,
    summary="Start or resume an attempt",
    description="""
    Start an attempt on a published quiz.

    If the caller already has an in-progress attempt on the quiz it is returned
    instead, unless its time limit has passed; then it is abandoned and a new
    attempt is started.
    """
)
async def start_attempt(
    request: StartAttemptRequest,
    user_id: str = Depends(get_current_user_id),
    service: AttemptService = Depends(get_attempt_service)
) -> QuizAttempt:
    return await service.start_attempt(request.quizId.strip(), user_id)


@router.get("/{attempt_id}", response_model=QuizAttempt, summary="Get an attempt")
async def get_attempt(
    attempt_id: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    service: AttemptService = Depends(get_attempt_service)
) -> QuizAttempt:
    return await service.get_attempt(attempt_id, user_id)


@router.post("/{attempt_id}/answer", response_model=QuizAttempt, summary="Answer one question")
async def submit_answer(
    request: SubmitAnswerRequest,
    attempt_id: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    service: AttemptService = Depends(get_attempt_service)
) -> QuizAttempt:
    return await service.submit_answer(attempt_id, user_id, request.questionId, request.answer)


@router.put("/{attempt_id}/answers", response_model=QuizAttempt, summary="Save several answers")
async def save_answers(
    request: SaveAnswersRequest,
    attempt_id: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    service: AttemptService = Depends(get_attempt_service)
) -> QuizAttempt:
    return await service.save_answers(attempt_id, user_id, request.answers)


@router.post("/{attempt_id}/flag", response_model=QuizAttempt, summary="Flag a question for review")
async def flag_question(
    request: FlagQuestionRequest,
    attempt_id: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    service: AttemptService = Depends(get_attempt_service)
) -> QuizAttempt:
    return await service.flag_question(attempt_id, user_id, request.questionId, request.flagged)


@router.post("/{attempt_id}/complete", response_model=QuizResult, summary="Complete and score an attempt")
async def complete_attempt(
    attempt_id: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    service: AttemptService = Depends(get_attempt_service)
) -> QuizResult:
    return await service.complete_attempt(attempt_id, user_id)


@router.post("/{attempt_id}/abandon", response_model=QuizAttempt, summary="Abandon an attempt")
async def abandon_attempt(
    attempt_id: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    service: AttemptService = Depends(get_attempt_service)
) -> QuizAttempt:
    return await service.abandon_attempt(attempt_id, user_id)


@router.get("/{attempt_id}/progress", response_model=AttemptProgress, summary="Attempt progress")
async def get_attempt_progress(
    attempt_id: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    service: AttemptService = Depends(get_attempt_service)
) -> AttemptProgress:
    return await service.get_attempt_progress(attempt_id, user_id)


@router.get("/{attempt_id}/result", response_model=QuizResult, summary="Result of a completed attempt")
async def get_result(
    attempt_id: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    service: AttemptService = Depends(get_attempt_service)
) -> QuizResult:
    return await service.get_result(attempt_id, user_id)
