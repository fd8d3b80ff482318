"""
Shared fixtures: an in-memory record store and a FastAPI client wired to it.
"""
from datetime import datetime, timedelta
from typing import Optional

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pymongo.errors import DuplicateKeyError

from eduable.progress.app import setup_progress_routes
from eduable.progress.dependencies import get_store, get_current_user_id


class FakeRecordStore:
    """In-memory stand-in for MongoRecordStore, same method surface."""

    def __init__(self):
        self.quiz_attempts = []
        self.questions = []
        self.lessons = []
        self.quizzes = []
        self.lesson_progress = []
        self.certificates = []
        self.certificate_write_error: Optional[Exception] = None
        self.read_error: Optional[Exception] = None
        self.calls = []

    # ----- seeding helpers -----

    def add_lesson(self, course_id, lesson_id, order=1):
        self.lessons.append({"lesson_id": lesson_id, "course_id": course_id, "title": lesson_id, "order": order})

    def add_quiz(self, course_id, quiz_id, is_published=True, passing_score=60, **extra):
        self.quizzes.append({
            "quiz_id": quiz_id, "course_id": course_id, "lesson_id": extra.pop("lesson_id", None),
            "title": quiz_id, "passing_score": passing_score, "is_published": is_published,
            "max_attempts": extra.pop("max_attempts", None),
            "cooldown_minutes": extra.pop("cooldown_minutes", None),
        })

    def add_question(self, quiz_id, question_id, topic_tag, correct_option="A", order=1):
        self.questions.append({
            "question_id": question_id, "quiz_id": quiz_id, "text": f"Question {question_id}",
            "topic_tag": topic_tag, "correct_option": correct_option,
            "options": [{"label": "A", "text": "a"}, {"label": "B", "text": "b"}],
            "explanation": f"Because {correct_option}", "order": order,
        })

    def add_attempt(self, user_id, course_id, quiz_id, score=100, passed=True, answers=None,
                    attempt_number=None, attempted_at=None, attempt_id=None):
        number = attempt_number or 1 + sum(
            1 for a in self.quiz_attempts if a["user_id"] == user_id and a["quiz_id"] == quiz_id
        )
        doc = {
            "attempt_id": attempt_id or f"ATT_{len(self.quiz_attempts) + 1}",
            "user_id": user_id, "course_id": course_id, "quiz_id": quiz_id,
            "attempt_number": number,
            "attempted_at": attempted_at or datetime(2024, 1, 1) + timedelta(minutes=len(self.quiz_attempts)),
            "score": score, "passed": passed, "total_questions": 1,
            "answers": answers or [], "questions_snapshot": [], "ai_feedback": None,
        }
        self.quiz_attempts.append(doc)
        return doc

    def complete_lesson(self, user_id, course_id, lesson_id, when=None):
        self.lesson_progress.append({
            "user_id": user_id, "course_id": course_id, "lesson_id": lesson_id,
            "completed": True, "watch_time": 0, "last_accessed": when or datetime.utcnow(),
        })

    def _check_read(self):
        if self.read_error is not None:
            raise self.read_error

    # ----- quiz attempts -----

    async def recent_quiz_attempts(self, user_id, course_id, limit):
        self._check_read()
        indexed = [
            (i, a) for i, a in enumerate(self.quiz_attempts)
            if a["user_id"] == user_id and a["course_id"] == course_id
        ]
        indexed.sort(key=lambda pair: (pair[1]["attempted_at"], pair[0]), reverse=True)
        return [dict(a) for _, a in indexed[:limit]]

    async def latest_quiz_attempt(self, user_id, quiz_id, exclude_attempt_id=None):
        self._check_read()
        matches = [
            a for a in self.quiz_attempts
            if a["user_id"] == user_id and a["quiz_id"] == quiz_id
            and a["attempt_id"] != exclude_attempt_id
        ]
        if not matches:
            return None
        return dict(max(matches, key=lambda a: a["attempt_number"]))

    async def last_attempted_at(self, user_id, quiz_id):
        times = [a["attempted_at"] for a in self.quiz_attempts if a["user_id"] == user_id and a["quiz_id"] == quiz_id]
        return max(times) if times else None

    async def count_quiz_attempts(self, user_id, quiz_id):
        return sum(1 for a in self.quiz_attempts if a["user_id"] == user_id and a["quiz_id"] == quiz_id)

    async def find_quiz_attempts(self, user_id, quiz_id):
        matches = [
            {k: v for k, v in a.items() if k != "questions_snapshot"}
            for a in self.quiz_attempts if a["user_id"] == user_id and a["quiz_id"] == quiz_id
        ]
        return sorted(matches, key=lambda a: a["attempted_at"], reverse=True)

    async def best_quiz_attempt(self, user_id, quiz_id):
        matches = [a for a in self.quiz_attempts if a["user_id"] == user_id and a["quiz_id"] == quiz_id]
        if not matches:
            return None
        return dict(max(matches, key=lambda a: (a["score"], a["attempted_at"])))

    async def insert_quiz_attempt(self, attempt):
        key = (attempt["user_id"], attempt["quiz_id"], attempt["attempt_number"])
        if any((a["user_id"], a["quiz_id"], a["attempt_number"]) == key for a in self.quiz_attempts):
            raise DuplicateKeyError("E11000 duplicate key error collection: quiz_attempts")
        self.quiz_attempts.append(dict(attempt))
        return attempt["attempt_id"]

    async def set_attempt_feedback(self, attempt_id, feedback):
        for a in self.quiz_attempts:
            if a["attempt_id"] == attempt_id:
                a["ai_feedback"] = feedback
                return True
        return False

    async def distinct_passed_quiz_ids(self, user_id, course_id, quiz_ids):
        self._check_read()
        wanted = set(quiz_ids)
        return {
            a["quiz_id"] for a in self.quiz_attempts
            if a["user_id"] == user_id and a["course_id"] == course_id
            and a["quiz_id"] in wanted and a["passed"]
        }

    # ----- questions & catalog -----

    async def find_questions(self, question_ids):
        self._check_read()
        wanted = set(question_ids)
        self.calls.append(("find_questions", wanted))
        return [dict(q) for q in self.questions if q["question_id"] in wanted]

    async def find_quiz_questions(self, quiz_id, include_answers=True):
        hidden = set() if include_answers else {"correct_option", "explanation"}
        matches = [
            {k: v for k, v in q.items() if k not in hidden}
            for q in self.questions if q["quiz_id"] == quiz_id
        ]
        return sorted(matches, key=lambda q: q["order"])

    async def find_lessons(self, course_id):
        self._check_read()
        return [dict(l) for l in self.lessons if l["course_id"] == course_id]

    async def find_quizzes(self, course_id, published_only=True):
        self._check_read()
        return [
            dict(q) for q in self.quizzes
            if q["course_id"] == course_id and (q["is_published"] or not published_only)
        ]

    async def get_quiz(self, quiz_id):
        return next((dict(q) for q in self.quizzes if q["quiz_id"] == quiz_id), None)

    async def find_lesson_quiz(self, lesson_id):
        return next(
            (dict(q) for q in self.quizzes if q["lesson_id"] == lesson_id and q["is_published"]),
            None
        )

    # ----- lesson progress -----

    async def count_completed_lessons(self, user_id, course_id, lesson_ids):
        self._check_read()
        wanted = set(lesson_ids)
        return sum(
            1 for p in self.lesson_progress
            if p["user_id"] == user_id and p["course_id"] == course_id
            and p["lesson_id"] in wanted and p["completed"]
        )

    async def completed_lesson_dates(self, user_id):
        return sorted(
            (p["last_accessed"] for p in self.lesson_progress if p["user_id"] == user_id and p["completed"]),
            reverse=True
        )

    async def upsert_lesson_progress(self, user_id, course_id, lesson_id, watch_time=0):
        for p in self.lesson_progress:
            if p["user_id"] == user_id and p["lesson_id"] == lesson_id:
                p.update({"course_id": course_id, "completed": True, "watch_time": watch_time,
                          "last_accessed": datetime.utcnow()})
                return
        self.complete_lesson(user_id, course_id, lesson_id)

    # ----- certificates -----

    async def upsert_certificate(self, user_id, course_id, fields):
        if self.certificate_write_error is not None:
            raise self.certificate_write_error
        for c in self.certificates:
            if c["user_id"] == user_id and c["course_id"] == course_id:
                c.update(fields)
                return dict(c)
        doc = {"certificate_id": f"CERT_{len(self.certificates) + 1}", "user_id": user_id,
               "course_id": course_id, **fields}
        self.certificates.append(doc)
        return dict(doc)

    async def find_certificate(self, user_id, course_id):
        return next(
            (dict(c) for c in self.certificates if c["user_id"] == user_id and c["course_id"] == course_id),
            None
        )

    async def find_user_certificates(self, user_id):
        return [dict(c) for c in self.certificates if c["user_id"] == user_id]

    async def get_certificate(self, certificate_id):
        return next((dict(c) for c in self.certificates if c["certificate_id"] == certificate_id), None)


USER = "user-1"
COURSE = "course-1"


@pytest.fixture
def store():
    return FakeRecordStore()


@pytest.fixture
def two_lesson_course(store):
    """Course with 2 lessons and 1 published quiz (plus an unpublished draft)."""
    store.add_lesson(COURSE, "lesson-1", order=1)
    store.add_lesson(COURSE, "lesson-2", order=2)
    store.add_quiz(COURSE, "quiz-1", is_published=True, lesson_id="lesson-1")
    store.add_quiz(COURSE, "quiz-draft", is_published=False, lesson_id="lesson-2")
    store.add_question("quiz-1", "q1", "Keyboard Nav", correct_option="A", order=1)
    store.add_question("quiz-1", "q2", "WCAG 2.2", correct_option="B", order=2)
    return store


@pytest.fixture
def api_client(store):
    """TestClient over the progress routers with the fake store and a fixed user."""
    app = FastAPI()
    setup_progress_routes(app)
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_current_user_id] = lambda: USER
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()

