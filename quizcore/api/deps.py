"""
API Dependencies
Stores, clock, services and caller identity for the routers
"""
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from quizcore.core.config import settings
from quizcore.db.attempt_store import AttemptStore
from quizcore.db.mongodb import get_collection
from quizcore.db.quiz_store import QuizStore
from quizcore.services.attempt_service import AttemptService
from quizcore.services.dashboard_service import DashboardService
from quizcore.services.llm_client import generate_completion
from quizcore.services.quiz_service import CompletionFn, QuizService
from quizcore.utils.clock import Clock, utc_now


# ============================================================================
# STORES & COLLABORATORS
# ============================================================================

def get_attempt_store() -> AttemptStore:
    return AttemptStore(get_collection(settings.attempts_collection))


def get_quiz_store() -> QuizStore:
    return QuizStore(get_collection(settings.quizzes_collection))


def get_clock() -> Clock:
    return utc_now


def get_llm_completion() -> CompletionFn:
    return generate_completion


# ============================================================================
# SERVICES
# ============================================================================

def get_attempt_service(
    attempts: AttemptStore = Depends(get_attempt_store),
    quizzes: QuizStore = Depends(get_quiz_store),
    clock: Clock = Depends(get_clock)
) -> AttemptService:
    return AttemptService(attempts, quizzes, clock)


def get_dashboard_service(
    attempts: AttemptStore = Depends(get_attempt_store),
    quizzes: QuizStore = Depends(get_quiz_store),
    clock: Clock = Depends(get_clock)
) -> DashboardService:
    return DashboardService(attempts, quizzes, clock)


def get_quiz_service(
    quizzes: QuizStore = Depends(get_quiz_store),
    complete: CompletionFn = Depends(get_llm_completion),
    clock: Clock = Depends(get_clock)
) -> QuizService:
    return QuizService(quizzes, complete, clock)


# ============================================================================
# IDENTITY
# ============================================================================

def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """
    Acting user id from the X-User-Id header

    Authentication happens upstream; this only rejects a missing identity.
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header"
        )
    return x_user_id.strip()
