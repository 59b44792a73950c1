"""
Quiz Store
MongoDB persistence for quizzes
FILE: quizcore/db/quiz_store.py
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ASCENDING, DESCENDING

from quizcore.models.quiz import Quiz

logger = logging.getLogger(__name__)


@dataclass
class QuizQuery:
    """
    Filter over one author's quizzes

    Archived quizzes are left out unless status asks for them. Each list
    field matches any of its values; an empty list does not filter.
    """
    created_by: str
    status: Optional[str] = None
    subjects: List[str] = field(default_factory=list)
    difficulties: List[str] = field(default_factory=list)
    languages: List[str] = field(default_factory=list)
    academic_levels: List[str] = field(default_factory=list)

    def _choices(self) -> Dict[str, List[str]]:
        return {
            "subject": self.subjects,
            "difficulty": self.difficulties,
            "language": self.languages,
            "academicLevel": self.academic_levels,
        }

    def to_mongo(self) -> Dict[str, Any]:
        query: Dict[str, Any] = {
            "createdBy": self.created_by,
            "status": self.status or {"$ne": "archived"},
        }
        for name, values in self._choices().items():
            if values:
                query[name] = {"$in": list(values)}
        return query

    def matches(self, quiz: Quiz) -> bool:
        """Evaluate the filter against a quiz in memory"""
        if quiz.createdBy != self.created_by:
            return False
        if self.status:
            if quiz.status != self.status:
                return False
        elif quiz.status == "archived":
            return False
        for name, values in self._choices().items():
            if values and getattr(quiz, name) not in values:
                return False
        return True


class QuizStore:
    """MongoDB-backed quiz repository keyed by quizId"""

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    async def ensure_indexes(self) -> None:
        await self.collection.create_index("quizId", unique=True)
        await self.collection.create_index([("createdBy", ASCENDING), ("createdAt", DESCENDING)])
        logger.info("✓ Quiz indexes ensured")

    async def get(self, quiz_id: str) -> Optional[Quiz]:
        doc = await self.collection.find_one({"quizId": quiz_id}, {"_id": 0})
        if not doc:
            return None
        return Quiz(**doc)

    async def save(self, quiz: Quiz) -> Quiz:
        await self.collection.replace_one(
            {"quizId": quiz.quizId},
            quiz.model_dump(),
            upsert=True
        )
        logger.debug(f"Saved quiz {quiz.quizId} ({quiz.status})")
        return quiz

    async def list_quizzes(
        self,
        query: QuizQuery,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[Quiz], int]:
        """
        List matching quizzes, newest first

        Returns:
            Tuple of (page of quizzes, total matching count)
        """
        filters = query.to_mongo()

        total = await self.collection.count_documents(filters)
        cursor = self.collection.find(filters, {"_id": 0}).sort("createdAt", DESCENDING).skip(skip).limit(limit)

        quizzes = []
        async for doc in cursor:
            quizzes.append(Quiz(**doc))
        return quizzes, total

    async def update_stats(
        self,
        quiz_id: str,
        attempts: int,
        average_score: int,
        updated_at: datetime
    ) -> None:
        result = await self.collection.update_one(
            {"quizId": quiz_id},
            {"$set": {"attempts": attempts, "averageScore": average_score, "updatedAt": updated_at}}
        )
        if result.matched_count == 0:
            logger.warning(f"⚠️ Quiz not found while updating stats: {quiz_id}")
