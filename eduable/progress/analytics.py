"""
Quiz Analytics & Certificate Eligibility
File: eduable/progress/analytics.py

Read-mostly rollups over a learner's quiz and lesson history, plus the
single write path that issues a course certificate.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Dict

from eduable.progress.config import WEAK_TOPIC_WINDOW, CERTIFICATE_URL_TEMPLATE
from eduable.progress.models import WeakTopic, CertificateStatus, AnswerRecord, QuestionBankEntry

logger = logging.getLogger(__name__)

NO_WEAKNESS_FEEDBACK = (
    "Excellent work! You demonstrated a strong understanding of all concepts covered in this quiz."
)
SINGLE_WEAKNESS_FEEDBACK = (
    "You scored well overall, but missed some questions related to **{primary}**. "
    "We recommend reviewing that specific section before attempting the next module."
)
MULTIPLE_WEAKNESS_FEEDBACK = (
    "Keep pushing forward! However, we noticed you struggled slightly with **{primary}** "
    "and **{secondary}**. Taking 10 minutes to review those topics will greatly improve "
    "your foundational knowledge."
)


# ==================== WEAK TOPICS ====================

async def detect_weak_topics(store, user_id: str, course_id: str, window: int = WEAK_TOPIC_WINDOW) -> List[WeakTopic]:
    """
    Rank topics by how often the learner answered them wrong in their
    most recent attempts for the course.

    Topic tags come from the live question bank, not the attempt snapshot.
    Answers whose question was deleted are skipped.
    Ties on error count are ordered alphabetically by topic.
    """
    attempts = await store.recent_quiz_attempts(user_id, course_id, window)
    if not attempts:
        return []

    answer_sets = [
        [AnswerRecord(**ans) for ans in attempt.get("answers", [])]
        for attempt in attempts
    ]
    question_ids = {ans.question_id for answers in answer_sets for ans in answers}
    questions = await store.find_questions(question_ids)
    bank = {doc["question_id"]: QuestionBankEntry(**doc) for doc in questions}

    errors: Dict[str, int] = {}
    for answers in answer_sets:
        for ans in answers:
            question = bank.get(ans.question_id)
            if question is None:
                continue
            if ans.selected_option != question.correct_option:
                errors[question.topic_tag] = errors.get(question.topic_tag, 0) + 1

    ranked = sorted(errors.items(), key=lambda item: (-item[1], item[0]))
    return [WeakTopic(topic=topic, error_count=count) for topic, count in ranked]


def generate_ai_feedback(weak_topics: List[WeakTopic]) -> str:
    """Rule-based coaching message for an already ranked weak-topic list"""
    if not weak_topics:
        return NO_WEAKNESS_FEEDBACK

    primary = weak_topics[0].topic
    if len(weak_topics) == 1:
        return SINGLE_WEAKNESS_FEEDBACK.format(primary=primary)

    return MULTIPLE_WEAKNESS_FEEDBACK.format(primary=primary, secondary=weak_topics[1].topic)


# ==================== TREND ====================

async def get_improvement_trend(
    store,
    user_id: str,
    quiz_id: str,
    current_score: float,
    exclude_attempt_id: Optional[str] = None
) -> Optional[float]:
    """
    Percentage-point change from the previous attempt of the same quiz.

    Returns None on a first attempt. If the attempt being scored is already
    stored, its attempt_id must be passed as exclude_attempt_id.
    """
    previous = await store.latest_quiz_attempt(user_id, quiz_id, exclude_attempt_id=exclude_attempt_id)
    if previous is None:
        return None
    return current_score - previous["score"]


# ==================== COMPLETION GATE ====================

@dataclass
class CertificateCheck:
    status: CertificateStatus
    lessons_completed: int
    lessons_required: int
    quizzes_required: int
    quizzes_passed: Optional[int] = None  # None when the lesson gate failed first
    certificate: Optional[dict] = None

    @property
    def issued(self) -> bool:
        return self.status == CertificateStatus.ISSUED

    def __bool__(self) -> bool:
        return self.issued


def certificate_url(course_id: str, user_id: str) -> str:
    return CERTIFICATE_URL_TEMPLATE.format(course_id=course_id, user_id=user_id)


async def check_and_issue_certificate(store, user_id: str, course_id: str) -> CertificateCheck:
    """
    Issue the course certificate once every lesson is complete and every
    published quiz has a passing attempt.

    Always recomputes from the current catalog. Safe to call on every
    lesson-completion and quiz-attempt event: the upsert is keyed on
    (user_id, course_id) so repeated calls refresh one certificate.
    A failed write is logged and reported as PERSISTENCE_FAILED.
    """
    lessons = await store.find_lessons(course_id)
    quizzes = await store.find_quizzes(course_id, published_only=True)

    lesson_ids = [l["lesson_id"] for l in lessons]
    quiz_ids = [q["quiz_id"] for q in quizzes]

    completed = await store.count_completed_lessons(user_id, course_id, lesson_ids)
    check = CertificateCheck(
        status=CertificateStatus.NOT_ELIGIBLE,
        lessons_completed=completed,
        lessons_required=len(lesson_ids),
        quizzes_required=len(quiz_ids)
    )

    # A course with nothing to complete is unknown, not finished
    if not lesson_ids and not quiz_ids:
        return check

    if completed < len(lesson_ids):
        return check

    if quiz_ids:
        passed = await store.distinct_passed_quiz_ids(user_id, course_id, quiz_ids)
        check.quizzes_passed = len(passed)
        if len(passed) < len(quiz_ids):
            return check
    else:
        check.quizzes_passed = 0

    try:
        check.certificate = await store.upsert_certificate(user_id, course_id, {
            "issued_at": datetime.utcnow(),
            "certificate_url": certificate_url(course_id, user_id)
        })
    except Exception:
        logger.exception("Failed to issue certificate for user=%s course=%s", user_id, course_id)
        check.status = CertificateStatus.PERSISTENCE_FAILED
        return check

    check.status = CertificateStatus.ISSUED
    logger.info("Certificate issued for user=%s course=%s", user_id, course_id)
    return check
