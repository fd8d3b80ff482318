from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError
from datetime import datetime
from typing import List, Optional, Dict, Any, Iterable
import uuid

# Documents are returned without Mongo's internal _id
NO_ID = {"_id": 0}
# Questions as shown to a learner before submitting
LEARNER_QUESTION_VIEW = {"_id": 0, "correct_option": 0, "explanation": 0}


def new_attempt_id() -> str:
    return f"ATT_{uuid.uuid4().hex[:12].upper()}"


def new_certificate_id() -> str:
    return f"CERT_{uuid.uuid4().hex[:12].upper()}"


class MongoRecordStore:
    """
    Record store access layer over the progress collections.

    Read failures (PyMongoError) are never caught here; callers decide
    whether to propagate or convert them.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    # ==================== QUIZ ATTEMPTS ====================

    async def recent_quiz_attempts(self, user_id: str, course_id: str, limit: int) -> List[dict]:
        """Most recent attempts for a user in a course, newest first"""
        # _id breaks attempted_at ties by insertion order
        cursor = self.db.quiz_attempts.find(
            {"user_id": user_id, "course_id": course_id},
            NO_ID
        ).sort([("attempted_at", -1), ("_id", -1)]).limit(limit)
        return await cursor.to_list(length=limit)

    async def latest_quiz_attempt(
        self,
        user_id: str,
        quiz_id: str,
        exclude_attempt_id: Optional[str] = None
    ) -> Optional[dict]:
        """Highest attempt_number for (user, quiz), optionally skipping one attempt"""
        query: Dict[str, Any] = {"user_id": user_id, "quiz_id": quiz_id}
        if exclude_attempt_id:
            query["attempt_id"] = {"$ne": exclude_attempt_id}
        return await self.db.quiz_attempts.find_one(
            query, NO_ID, sort=[("attempt_number", -1)]
        )

    async def last_attempted_at(self, user_id: str, quiz_id: str) -> Optional[datetime]:
        doc = await self.db.quiz_attempts.find_one(
            {"user_id": user_id, "quiz_id": quiz_id},
            {"_id": 0, "attempted_at": 1},
            sort=[("attempted_at", -1)]
        )
        return doc["attempted_at"] if doc else None

    async def count_quiz_attempts(self, user_id: str, quiz_id: str) -> int:
        return await self.db.quiz_attempts.count_documents({"user_id": user_id, "quiz_id": quiz_id})

    async def find_quiz_attempts(self, user_id: str, quiz_id: str) -> List[dict]:
        """Attempt history, newest first, without the question snapshot"""
        cursor = self.db.quiz_attempts.find(
            {"user_id": user_id, "quiz_id": quiz_id},
            {"_id": 0, "questions_snapshot": 0}
        ).sort("attempted_at", -1)
        return await cursor.to_list(length=None)

    async def best_quiz_attempt(self, user_id: str, quiz_id: str) -> Optional[dict]:
        return await self.db.quiz_attempts.find_one(
            {"user_id": user_id, "quiz_id": quiz_id},
            NO_ID,
            sort=[("score", -1), ("attempted_at", -1)]
        )

    async def insert_quiz_attempt(self, attempt: dict) -> str:
        await self.db.quiz_attempts.insert_one(dict(attempt))
        return attempt["attempt_id"]

    async def set_attempt_feedback(self, attempt_id: str, feedback: str) -> bool:
        result = await self.db.quiz_attempts.update_one(
            {"attempt_id": attempt_id},
            {"$set": {"ai_feedback": feedback}}
        )
        return result.modified_count > 0

    async def distinct_passed_quiz_ids(
        self,
        user_id: str,
        course_id: str,
        quiz_ids: Iterable[str]
    ) -> set:
        ids = await self.db.quiz_attempts.distinct("quiz_id", {
            "user_id": user_id,
            "course_id": course_id,
            "quiz_id": {"$in": list(quiz_ids)},
            "passed": True
        })
        return set(ids)

    # ==================== QUESTION BANK ====================

    async def find_questions(self, question_ids: Iterable[str]) -> List[dict]:
        cursor = self.db.questions.find(
            {"question_id": {"$in": list(question_ids)}},
            NO_ID
        )
        return await cursor.to_list(length=None)

    async def find_quiz_questions(self, quiz_id: str, include_answers: bool = True) -> List[dict]:
        projection = NO_ID if include_answers else LEARNER_QUESTION_VIEW
        cursor = self.db.questions.find({"quiz_id": quiz_id}, projection).sort("order", 1)
        return await cursor.to_list(length=None)

    # ==================== CATALOG ====================

    async def find_lessons(self, course_id: str) -> List[dict]:
        cursor = self.db.lessons.find({"course_id": course_id}, NO_ID).sort("order", 1)
        return await cursor.to_list(length=None)

    async def find_quizzes(self, course_id: str, published_only: bool = True) -> List[dict]:
        query: Dict[str, Any] = {"course_id": course_id}
        if published_only:
            query["is_published"] = True
        cursor = self.db.quizzes.find(query, NO_ID)
        return await cursor.to_list(length=None)

    async def get_quiz(self, quiz_id: str) -> Optional[dict]:
        return await self.db.quizzes.find_one({"quiz_id": quiz_id}, NO_ID)

    async def find_lesson_quiz(self, lesson_id: str) -> Optional[dict]:
        return await self.db.quizzes.find_one({"lesson_id": lesson_id, "is_published": True}, NO_ID)

    # ==================== LESSON PROGRESS ====================

    async def count_completed_lessons(
        self,
        user_id: str,
        course_id: str,
        lesson_ids: Iterable[str]
    ) -> int:
        # unique (user_id, lesson_id) index makes this a distinct count
        return await self.db.lesson_progress.count_documents({
            "user_id": user_id,
            "course_id": course_id,
            "lesson_id": {"$in": list(lesson_ids)},
            "completed": True
        })

    async def completed_lesson_dates(self, user_id: str) -> List[datetime]:
        cursor = self.db.lesson_progress.find(
            {"user_id": user_id, "completed": True},
            {"_id": 0, "last_accessed": 1}
        ).sort("last_accessed", -1)
        docs = await cursor.to_list(length=None)
        return [d["last_accessed"] for d in docs if d.get("last_accessed")]

    async def upsert_lesson_progress(
        self,
        user_id: str,
        course_id: str,
        lesson_id: str,
        watch_time: int = 0
    ) -> None:
        await self.db.lesson_progress.update_one(
            {"user_id": user_id, "lesson_id": lesson_id},
            {"$set": {
                "course_id": course_id,
                "completed": True,
                "watch_time": watch_time,
                "last_accessed": datetime.utcnow()
            }},
            upsert=True
        )

    # ==================== CERTIFICATES ====================

    async def upsert_certificate(self, user_id: str, course_id: str, fields: dict) -> dict:
        """
        Insert or refresh the single certificate for (user, course).

        Two concurrent upserts can both miss and race on insert; the loser
        gets DuplicateKeyError from the unique index and is retried once,
        which then matches the winner's document.
        """
        query = {"user_id": user_id, "course_id": course_id}
        update = {
            "$set": fields,
            "$setOnInsert": {"certificate_id": new_certificate_id()}
        }
        try:
            return await self._find_and_upsert(query, update)
        except DuplicateKeyError:
            return await self._find_and_upsert(query, update)

    async def _find_and_upsert(self, query: dict, update: dict) -> dict:
        return await self.db.certificates.find_one_and_update(
            query,
            update,
            projection=NO_ID,
            upsert=True,
            return_document=ReturnDocument.AFTER
        )

    async def find_certificate(self, user_id: str, course_id: str) -> Optional[dict]:
        return await self.db.certificates.find_one({"user_id": user_id, "course_id": course_id}, NO_ID)

    async def find_user_certificates(self, user_id: str) -> List[dict]:
        cursor = self.db.certificates.find({"user_id": user_id}, NO_ID).sort("issued_at", -1)
        return await cursor.to_list(length=None)

    async def get_certificate(self, certificate_id: str) -> Optional[dict]:
        return await self.db.certificates.find_one({"certificate_id": certificate_id}, NO_ID)
