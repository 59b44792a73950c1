"""
Attempt Store
MongoDB persistence for quiz attempts
FILE: quizcore/db/attempt_store.py
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, AsyncIterator, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from quizcore.models.attempt import QuizAttempt
from quizcore.utils.clock import ensure_utc

logger = logging.getLogger(__name__)


@dataclass
class AttemptQuery:
    """
    Fetch-many filter over attempts

    Date bounds are inclusive. sort_field is any attempt datetime field.
    """
    user_id: Optional[str] = None
    quiz_id: Optional[str] = None
    status: Optional[str] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    completed_from: Optional[datetime] = None
    sort_field: str = "createdAt"
    sort_desc: bool = True
    limit: Optional[int] = None

    def to_mongo(self) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        if self.user_id:
            query["userId"] = self.user_id
        if self.quiz_id:
            query["quizId"] = self.quiz_id
        if self.status:
            query["status"] = self.status
        if self.created_from or self.created_to:
            query["createdAt"] = {}
            if self.created_from:
                query["createdAt"]["$gte"] = self.created_from
            if self.created_to:
                query["createdAt"]["$lte"] = self.created_to
        if self.completed_from:
            query["completedAt"] = {"$gte": self.completed_from}
        return query

    def matches(self, attempt: QuizAttempt) -> bool:
        """Evaluate the filter against an attempt in memory"""
        if self.user_id and attempt.userId != self.user_id:
            return False
        if self.quiz_id and attempt.quizId != self.quiz_id:
            return False
        if self.status and attempt.status != self.status:
            return False
        created = ensure_utc(attempt.createdAt)
        if self.created_from and created < ensure_utc(self.created_from):
            return False
        if self.created_to and created > ensure_utc(self.created_to):
            return False
        if self.completed_from:
            if attempt.completedAt is None:
                return False
            if ensure_utc(attempt.completedAt) < ensure_utc(self.completed_from):
                return False
        return True


class AttemptStore:
    """MongoDB-backed attempt repository keyed by attemptId"""

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    async def ensure_indexes(self) -> None:
        await self.collection.create_index("attemptId", unique=True)
        await self.collection.create_index([("userId", ASCENDING), ("quizId", ASCENDING), ("status", ASCENDING)])
        await self.collection.create_index([("userId", ASCENDING), ("createdAt", DESCENDING)])
        await self.collection.create_index([("status", ASCENDING), ("completedAt", DESCENDING)])
        logger.info("✓ Attempt indexes ensured")

    async def get(self, attempt_id: str) -> Optional[QuizAttempt]:
        doc = await self.collection.find_one({"attemptId": attempt_id}, {"_id": 0})
        if not doc:
            return None
        return QuizAttempt(**doc)

    async def find_in_progress(self, user_id: str, quiz_id: str) -> Optional[QuizAttempt]:
        doc = await self.collection.find_one(
            {"userId": user_id, "quizId": quiz_id, "status": "in-progress"},
            {"_id": 0},
            sort=[("startedAt", DESCENDING)]
        )
        if not doc:
            return None
        return QuizAttempt(**doc)

    async def insert(self, attempt: QuizAttempt) -> QuizAttempt:
        """Store a new attempt; existing attempts only change through guarded updates"""
        await self.collection.insert_one(attempt.model_dump())
        logger.debug(f"Inserted attempt {attempt.attemptId} ({attempt.status})")
        return attempt

    async def _update_if(self, query: Dict[str, Any], update: Dict[str, Any]) -> Optional[QuizAttempt]:
        doc = await self.collection.find_one_and_update(
            query,
            update,
            projection={"_id": 0},
            return_document=ReturnDocument.AFTER
        )
        if not doc:
            return None
        return QuizAttempt(**doc)

    async def transition(
        self,
        attempt_id: str,
        expected_status: str,
        fields: Dict[str, Any],
        expected_updated_at: Optional[datetime] = None
    ) -> Optional[QuizAttempt]:
        """
        Set fields only if the attempt is still in expected_status

        With expected_updated_at the write also fails if anything touched the
        attempt since it was read.

        Returns:
            The updated attempt, or None if the guard did not match
        """
        query: Dict[str, Any] = {"attemptId": attempt_id, "status": expected_status}
        if expected_updated_at is not None:
            query["updatedAt"] = expected_updated_at

        updated = await self._update_if(query, {"$set": fields})
        if updated is None:
            logger.debug(f"Attempt {attempt_id} is no longer {expected_status}; update skipped")
        return updated

    async def set_flag(
        self,
        attempt_id: str,
        question_id: str,
        flagged: bool,
        updated_at: datetime
    ) -> Optional[QuizAttempt]:
        """Add or remove a flagged question while the attempt is in progress"""
        operator = "$addToSet" if flagged else "$pull"
        return await self._update_if(
            {"attemptId": attempt_id, "status": "in-progress"},
            {operator: {"flaggedQuestions": question_id}, "$set": {"updatedAt": updated_at}}
        )

    async def merge_answers(
        self,
        attempt_id: str,
        answers: Dict[str, Any],
        updated_at: datetime
    ) -> Optional[QuizAttempt]:
        """
        Set answers key by key while the attempt is still in progress

        Concurrent writers to the same attempt resolve last-write-wins per key.

        Returns:
            The updated attempt, or None if it is no longer in progress
        """
        update = {f"answers.{question_id}": value for question_id, value in answers.items()}
        update["updatedAt"] = updated_at

        return await self._update_if(
            {"attemptId": attempt_id, "status": "in-progress"},
            {"$set": update}
        )

    async def iter_attempts(self, query: AttemptQuery) -> AsyncIterator[QuizAttempt]:
        """Stream matching attempts from a cursor"""
        cursor = self.collection.find(query.to_mongo(), {"_id": 0}).sort(
            query.sort_field, DESCENDING if query.sort_desc else ASCENDING
        )
        if query.limit:
            cursor = cursor.limit(query.limit)

        async for doc in cursor:
            yield QuizAttempt(**doc)

    async def count_by_status(self, user_id: str) -> Dict[str, int]:
        pipeline = [
            {"$match": {"userId": user_id}},
            {"$group": {"_id": "$status", "count": {"$sum": 1}}}
        ]
        counts = {"in-progress": 0, "completed": 0, "abandoned": 0}
        async for row in self.collection.aggregate(pipeline):
            counts[row["_id"]] = row["count"]
        return counts
