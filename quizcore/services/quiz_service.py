"""
Quiz Service
Business logic for quiz creation, LLM generation, editing, visibility and archiving
FILE: quizcore/services/quiz_service.py
"""
import logging
from typing import Awaitable, Callable, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from quizcore.core.errors import (
    ForbiddenError,
    NotFoundError,
    QuizGenerationError,
    StateConflictError,
    ValidationFailureError,
)
from quizcore.db.quiz_store import QuizQuery, QuizStore
from quizcore.models.quiz import (
    GenerateQuizRequest,
    Question,
    Quiz,
    QuizCreateRequest,
    QuizListFilters,
    QuizUpdateRequest,
)
from quizcore.services.llm_client import LLMClientError, generate_completion
from quizcore.services.quiz_validator import finalize_quiz
from quizcore.utils.clock import Clock, utc_now
from quizcore.utils.quiz_parser import QuizParseError, parse_quiz_json
from quizcore.utils.quiz_prompt import build_generation_messages

logger = logging.getLogger(__name__)

# (system, prompt, provider) -> raw model text
CompletionFn = Callable[[str, str, Optional[str]], Awaitable[str]]


class QuizService:
    """Service for creating, generating and managing quizzes"""

    def __init__(
        self,
        quiz_store: QuizStore,
        complete: CompletionFn = generate_completion,
        clock: Clock = utc_now
    ):
        self.quizzes = quiz_store
        self.complete = complete
        self.clock = clock

    # ==================== CREATION ====================

    async def create_quiz(
        self,
        request: QuizCreateRequest,
        user_id: str,
        question_type: Optional[str] = None
    ) -> Quiz:
        """
        Validate, derive totals and persist a quiz

        Raises:
            ValidationFailureError: If the question list breaks a structural rule
        """
        now = self.clock()
        quiz = Quiz(
            **request.model_dump(),
            createdBy=user_id,
            questionType=question_type,
            createdAt=now,
            updatedAt=now
        )
        finalize_quiz(quiz)
        await self.quizzes.save(quiz)

        logger.info(
            f"✅ Quiz created: {quiz.quizId} "
            f"({len(quiz.questions)} questions, {quiz.totalPoints} points) by {user_id}"
        )
        return quiz

    async def generate_quiz(self, request: GenerateQuizRequest, user_id: str) -> Quiz:
        """
        Generate questions with the LLM and save them as a new quiz

        Raises:
            QuizGenerationError: If the LLM call fails or its output is unusable
        """
        system, prompt = build_generation_messages(request)

        try:
            raw = await self.complete(system, prompt, request.llmProvider)
        except (LLMClientError, ValueError) as e:
            logger.error(f"❌ LLM generation failed: {e}")
            raise QuizGenerationError(f"Quiz generation failed: {e}")

        try:
            parsed = parse_quiz_json(raw, default_type=request.questionType)
            questions = [Question(**item) for item in parsed]
        except (QuizParseError, PydanticValidationError) as e:
            logger.error(f"❌ Could not parse generated questions: {e}")
            raise QuizGenerationError(f"Generated quiz could not be parsed: {e}")

        if len(questions) != request.questionCount:
            logger.warning(
                f"⚠️ Requested {request.questionCount} questions, model returned {len(questions)}"
            )

        create_request = QuizCreateRequest(
            title=request.title or f"{request.subject} - {request.topic}",
            subject=request.subject,
            topic=request.topic,
            academicLevel=request.academicLevel,
            difficulty=request.difficulty,
            language=request.language,
            questions=questions,
            timeLimit=request.timeLimit,
            instructions=request.instructions,
            isPublic=request.isPublic
        )

        try:
            quiz = await self.create_quiz(create_request, user_id, question_type=request.questionType)
        except ValidationFailureError as e:
            raise QuizGenerationError(f"Generated quiz is invalid: {e.message}")

        return quiz

    # ==================== ACCESS ====================

    async def get_quiz(self, quiz_id: str, user_id: str) -> Quiz:
        """
        Fetch a quiz the user may see

        Raises:
            NotFoundError: Missing or archived
            ForbiddenError: Private quiz of another user
        """
        quiz = await self.quizzes.get(quiz_id)
        if not quiz or quiz.status == "archived":
            raise NotFoundError("Quiz not found")
        if not quiz.isPublic and quiz.createdBy != user_id:
            raise ForbiddenError("Access denied to this quiz")
        return quiz

    async def list_quizzes(
        self,
        user_id: str,
        filters: Optional[QuizListFilters] = None,
        page: int = 1,
        limit: int = 20
    ) -> Tuple[List[Quiz], int]:
        """List the user's quizzes; archived ones only when asked for by status"""
        filters = filters or QuizListFilters()
        query = QuizQuery(
            created_by=user_id,
            status=filters.status,
            subjects=filters.subject,
            difficulties=filters.difficulty,
            languages=filters.language,
            academic_levels=filters.academicLevel
        )
        return await self.quizzes.list_quizzes(query, skip=(page - 1) * limit, limit=limit)

    async def update_quiz(self, quiz_id: str, request: QuizUpdateRequest, user_id: str) -> Quiz:
        """
        Apply an owner's partial update and re-derive totals

        Replacing questions clears a derived estimatedTime unless the request
        sets one.

        Raises:
            NotFoundError: Missing or archived
            ForbiddenError: Caller is not the owner
            StateConflictError: Question edits on a published quiz, or unpublishing it
            ValidationFailureError: Updated quiz breaks a structural rule
        """
        quiz = await self.quizzes.get(quiz_id)
        if not quiz or quiz.status == "archived":
            raise NotFoundError("Quiz not found")
        if quiz.createdBy != user_id:
            raise ForbiddenError("You can only update your own quizzes")

        changes = request.model_dump(exclude_unset=True, exclude_none=True)
        if quiz.status == "published":
            if "questions" in changes:
                raise StateConflictError("Questions of a published quiz cannot be changed")
            if changes.get("status") == "draft":
                raise StateConflictError("A published quiz cannot return to draft")
        if "questions" in changes and "estimatedTime" not in changes:
            changes["estimatedTime"] = None

        updated = Quiz(**{**quiz.model_dump(), **changes, "updatedAt": self.clock()})
        finalize_quiz(updated)
        await self.quizzes.save(updated)

        logger.info(f"✏️ Updated quiz {quiz_id}: {', '.join(sorted(changes)) or 'no fields'}")
        return updated

    async def archive_quiz(self, quiz_id: str, user_id: str) -> Quiz:
        """Soft-delete a quiz; only its owner may do this"""
        quiz = await self.quizzes.get(quiz_id)
        if not quiz or quiz.status == "archived":
            raise NotFoundError("Quiz not found")
        if quiz.createdBy != user_id:
            raise ForbiddenError("You can only delete your own quizzes")

        quiz.status = "archived"
        quiz.updatedAt = self.clock()
        await self.quizzes.save(quiz)

        logger.info(f"🗑️ Archived quiz {quiz_id}")
        return quiz
