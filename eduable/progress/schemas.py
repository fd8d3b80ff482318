"""
MongoDB Collection Indexes
File: eduable/progress/schemas.py

Unique indexes are the serialization point for concurrent writers:
- one certificate per (user, course)
- one progress mark per (user, lesson)
- one attempt per (user, quiz, attempt_number)
"""

import logging

logger = logging.getLogger(__name__)


INDEXES = {
    "certificates": [
        {"keys": [("user_id", 1), ("course_id", 1)], "unique": True},
        {"keys": [("certificate_id", 1)], "unique": True},
        {"keys": [("user_id", 1), ("issued_at", -1)]}
    ],

    "lesson_progress": [
        {"keys": [("user_id", 1), ("lesson_id", 1)], "unique": True},
        {"keys": [("user_id", 1), ("course_id", 1), ("completed", 1)]},
        {"keys": [("user_id", 1), ("completed", 1), ("last_accessed", -1)]}
    ],

    "quiz_attempts": [
        {"keys": [("attempt_id", 1)], "unique": True},
        {"keys": [("user_id", 1), ("quiz_id", 1), ("attempt_number", 1)], "unique": True},
        {"keys": [("user_id", 1), ("course_id", 1), ("attempted_at", -1)]},
        {"keys": [("user_id", 1), ("quiz_id", 1), ("attempted_at", -1)]}
    ],

    "questions": [
        {"keys": [("question_id", 1)], "unique": True},
        {"keys": [("quiz_id", 1), ("order", 1)]}
    ],

    "lessons": [
        {"keys": [("lesson_id", 1)], "unique": True},
        {"keys": [("course_id", 1), ("order", 1)]}
    ],

    "quizzes": [
        {"keys": [("quiz_id", 1)], "unique": True},
        {"keys": [("course_id", 1), ("is_published", 1)]},
        {"keys": [("lesson_id", 1), ("is_published", 1)]}
    ]
}


async def create_all_indexes(db) -> int:
    """Create all indexes; returns how many were created successfully"""
    created = 0
    for collection_name, indexes in INDEXES.items():
        collection = db[collection_name]
        for index in indexes:
            try:
                await collection.create_index(
                    index["keys"],
                    unique=index.get("unique", False)
                )
                created += 1
                logger.debug("Created index on %s: %s", collection_name, index["keys"])
            except Exception as e:
                logger.warning("Index creation failed for %s %s: %s", collection_name, index["keys"], e)
    return created
