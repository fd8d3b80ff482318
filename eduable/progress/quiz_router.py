"""
QUIZ ROUTER
File: eduable/progress/quiz_router.py

Submission flow:
1. attempt limits (max attempts, cooldown)
2. grading against the live question bank
3. trend vs previous attempt (computed before this attempt is stored)
4. store attempt, then weak topics over the recent window including it
5. certificate check when the quiz was passed
"""

from fastapi import APIRouter, HTTPException, Depends
from datetime import datetime
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError

from eduable.progress.analytics import (
    detect_weak_topics, generate_ai_feedback,
    get_improvement_trend, check_and_issue_certificate
)
from eduable.progress.config import WEAK_TOPICS_IN_RESPONSE
from eduable.progress.database import MongoRecordStore, new_attempt_id
from eduable.progress.dependencies import get_store, get_current_user_id
from eduable.progress.grading import (
    attempt_gate, grade_answers, AttemptLimitReached, CooldownActive
)
from eduable.progress.models import (
    Quiz, QuizAttempt, QuizSubmission, QuizSubmissionResult, CertificateStatus
)

router = APIRouter(tags=["Quizzes"])


@router.get("/lessons/{lesson_id}/quiz")
async def get_quiz_for_lesson(
    lesson_id: str,
    store: MongoRecordStore = Depends(get_store),
    user_id: str = Depends(get_current_user_id)
):
    """Published quiz for a lesson, questions in order without their answers"""
    quiz = await store.find_lesson_quiz(lesson_id)
    if not quiz:
        raise HTTPException(status_code=404, detail="No published quiz found for this lesson.")

    questions = await store.find_quiz_questions(quiz["quiz_id"], include_answers=False)
    return {"quiz": quiz, "questions": questions}


@router.post("/quizzes/{quiz_id}/submit", response_model=QuizSubmissionResult)
async def submit_quiz(
    quiz_id: str,
    submission: QuizSubmission,
    store: MongoRecordStore = Depends(get_store),
    user_id: str = Depends(get_current_user_id)
):
    doc = await store.get_quiz(quiz_id)
    if not doc or not doc.get("is_published"):
        raise HTTPException(status_code=404, detail="Quiz not found or not published.")
    quiz = Quiz(**doc)

    now = datetime.utcnow()
    previous_attempts = await store.count_quiz_attempts(user_id, quiz_id)
    last_attempted_at = await store.last_attempted_at(user_id, quiz_id) if previous_attempts else None
    try:
        attempt_gate(quiz, previous_attempts, last_attempted_at, now)
    except AttemptLimitReached as e:
        raise HTTPException(status_code=403, detail=str(e))
    except CooldownActive as e:
        raise HTTPException(status_code=429, detail=str(e))

    questions = await store.find_quiz_questions(quiz_id)
    try:
        graded = grade_answers(questions, submission.answers, quiz.passing_score)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    # Must run before the new attempt is stored
    improvement = await get_improvement_trend(store, user_id, quiz_id, graded["score"])

    attempt_id = new_attempt_id()
    attempt_number = previous_attempts + 1
    try:
        attempt = QuizAttempt(
            attempt_id=attempt_id,
            user_id=user_id,
            course_id=quiz.course_id,
            quiz_id=quiz_id,
            lesson_id=quiz.lesson_id,
            attempt_number=attempt_number,
            attempted_at=now,
            score=graded["score"],
            passed=graded["passed"],
            total_questions=graded["total_questions"],
            answers=graded["answers"],
            questions_snapshot=graded["questions_snapshot"],
            improvement_from_previous=improvement,
            used_accessibility_modes=submission.used_accessibility_modes
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=f"Attempt could not be recorded: {e.error_count()} invalid field(s).")

    try:
        await store.insert_quiz_attempt(attempt.model_dump())
    except DuplicateKeyError:
        # attempt_number taken by a concurrent submission
        raise HTTPException(status_code=409, detail="Another attempt for this quiz was submitted at the same time. Please retry.")

    weak_topics = await detect_weak_topics(store, user_id, quiz.course_id)
    feedback = generate_ai_feedback(weak_topics)
    await store.set_attempt_feedback(attempt_id, feedback)

    certificate_status = None
    if graded["passed"]:
        check = await check_and_issue_certificate(store, user_id, quiz.course_id)
        certificate_status = check.status

    return QuizSubmissionResult(
        attempt_id=attempt_id,
        score=graded["score"],
        passed=graded["passed"],
        correct_count=graded["correct_count"],
        total_questions=graded["total_questions"],
        attempt_number=attempt_number,
        improvement_from_previous=improvement,
        weak_topics=[w.topic for w in weak_topics[:WEAK_TOPICS_IN_RESPONSE]],
        ai_feedback=feedback,
        certificate_issued=certificate_status == CertificateStatus.ISSUED,
        certificate_status=certificate_status,
        detailed_results=graded["detailed_results"]
    )


@router.get("/quizzes/{quiz_id}/attempts")
async def get_my_attempts(
    quiz_id: str,
    store: MongoRecordStore = Depends(get_store),
    user_id: str = Depends(get_current_user_id)
):
    attempts = await store.find_quiz_attempts(user_id, quiz_id)
    return {"attempts": attempts, "count": len(attempts)}


@router.get("/quizzes/{quiz_id}/best")
async def get_best_attempt(
    quiz_id: str,
    store: MongoRecordStore = Depends(get_store),
    user_id: str = Depends(get_current_user_id)
):
    best = await store.best_quiz_attempt(user_id, quiz_id)
    return {"best_attempt": best}


@router.get("/courses/{course_id}/weak-topics")
async def get_weak_topics(
    course_id: str,
    store: MongoRecordStore = Depends(get_store),
    user_id: str = Depends(get_current_user_id)
):
    weak_topics = await detect_weak_topics(store, user_id, course_id)
    return {
        "course_id": course_id,
        "weak_topics": [w.model_dump() for w in weak_topics],
        "ai_feedback": generate_ai_feedback(weak_topics)
    }
