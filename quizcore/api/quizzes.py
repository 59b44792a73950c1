"""
Quiz API Routes
FastAPI endpoints for quiz creation, generation and management
"""
import logging
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, Path, Query, status
from pydantic import BaseModel

from quizcore.api.deps import get_current_user_id, get_dashboard_service, get_quiz_service
from quizcore.models.dashboard import QuizAttemptsResponse
from quizcore.models.quiz import (
    AcademicLevel,
    Difficulty,
    GenerateQuizRequest,
    Quiz,
    QuizCreateRequest,
    QuizLanguage,
    QuizListFilters,
    QuizListItem,
    QuizPublicView,
    QuizStatus,
    QuizUpdateRequest,
)
from quizcore.services.dashboard_service import DashboardService
from quizcore.services.quiz_service import QuizService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/quizzes")


class QuizListResponse(BaseModel):
    """Paged list of the caller's quizzes"""
    quizzes: List[QuizListItem]
    total: int
    page: int
    limit: int


def _list_item(quiz: Quiz) -> QuizListItem:
    return QuizListItem(
        quizId=quiz.quizId,
        title=quiz.title,
        subject=quiz.subject,
        topic=quiz.topic,
        difficulty=quiz.difficulty,
        questionCount=len(quiz.questions),
        status=quiz.status,
        attempts=quiz.attempts,
        averageScore=quiz.averageScore,
        createdAt=quiz.createdAt
    )


@router.post(
    "",
    response_model=Quiz,
    status_code=status.HTTP_201_CREATED,
    summary="Create a quiz from a question list"
)
async def create_quiz(
    request: QuizCreateRequest,
    user_id: str = Depends(get_current_user_id),
    service: QuizService = Depends(get_quiz_service)
) -> Quiz:
    return await service.create_quiz(request, user_id)


@router.post(
    "/generate",
    response_model=Quiz,
    status_code=status.HTTP_201_CREATED,
    summary="Generate a quiz with an LLM",
    description="""
    Generate questions for the given academic level, subject and topic.

    **Workflow:**
    1. Builds a generation prompt from the request
    2. Calls the configured LLM provider (retry with backoff)
    3. Parses and validates the returned question list
    4. Saves the quiz and returns it (including answers, for its author)
    """
)
async def generate_quiz(
    request: GenerateQuizRequest,
    user_id: str = Depends(get_current_user_id),
    service: QuizService = Depends(get_quiz_service)
) -> Quiz:
    return await service.generate_quiz(request, user_id)


@router.get(
    "",
    response_model=QuizListResponse,
    summary="List my quizzes",
    description="Archived quizzes are left out unless status=archived. Repeat a filter to match any of its values."
)
async def list_quizzes(
    status_filter: Optional[QuizStatus] = Query(default=None, alias="status"),
    subject: Optional[List[str]] = Query(default=None),
    difficulty: Optional[List[Difficulty]] = Query(default=None),
    language: Optional[List[QuizLanguage]] = Query(default=None),
    academic_level: Optional[List[AcademicLevel]] = Query(default=None, alias="academicLevel"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    service: QuizService = Depends(get_quiz_service)
) -> QuizListResponse:
    filters = QuizListFilters(
        status=status_filter,
        subject=subject or [],
        difficulty=difficulty or [],
        language=language or [],
        academicLevel=academic_level or []
    )
    quizzes, total = await service.list_quizzes(user_id, filters, page, limit)
    return QuizListResponse(
        quizzes=[_list_item(q) for q in quizzes],
        total=total,
        page=page,
        limit=limit
    )


@router.get(
    "/{quiz_id}",
    response_model=Union[Quiz, QuizPublicView],
    summary="Get a quiz",
    description="Authors receive the full quiz. Everyone else gets it without answers or explanations."
)
async def get_quiz(
    quiz_id: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    service: QuizService = Depends(get_quiz_service)
) -> Union[Quiz, QuizPublicView]:
    quiz = await service.get_quiz(quiz_id, user_id)
    if quiz.createdBy == user_id:
        return quiz
    return QuizPublicView.from_quiz(quiz)


@router.patch(
    "/{quiz_id}",
    response_model=Quiz,
    summary="Update a quiz",
    description="Owner only. Questions can be replaced while the quiz is a draft; totals are re-derived."
)
async def update_quiz(
    request: QuizUpdateRequest,
    quiz_id: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    service: QuizService = Depends(get_quiz_service)
) -> Quiz:
    return await service.update_quiz(quiz_id, request, user_id)


@router.get(
    "/{quiz_id}/attempts",
    response_model=QuizAttemptsResponse,
    summary="Completed attempts on my quiz"
)
async def get_quiz_attempts(
    quiz_id: str = Path(..., min_length=1),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    service: DashboardService = Depends(get_dashboard_service)
) -> QuizAttemptsResponse:
    return await service.get_quiz_attempts(quiz_id, user_id, page, limit)


@router.delete("/{quiz_id}", summary="Archive a quiz")
async def archive_quiz(
    quiz_id: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    service: QuizService = Depends(get_quiz_service)
) -> dict:
    quiz = await service.archive_quiz(quiz_id, user_id)
    return {"quizId": quiz.quizId, "status": quiz.status}
