from fastapi import APIRouter, HTTPException, Depends
from typing import Optional

from eduable.progress.analytics import check_and_issue_certificate
from eduable.progress.database import MongoRecordStore
from eduable.progress.dependencies import get_store, get_current_user_id
from eduable.progress.models import LessonCompletion, ProgressSummary
from eduable.progress.streaks import calculate_streak

router = APIRouter(tags=["Lesson Progress"])


@router.post("/courses/{course_id}/lessons/{lesson_id}/complete")
async def complete_lesson(
    course_id: str,
    lesson_id: str,
    body: Optional[LessonCompletion] = None,
    store: MongoRecordStore = Depends(get_store),
    user_id: str = Depends(get_current_user_id)
):
    """Mark a lesson complete, then re-run the certificate gate"""
    lessons = await store.find_lessons(course_id)
    if lesson_id not in {l["lesson_id"] for l in lessons}:
        raise HTTPException(status_code=404, detail="Lesson not found in this course.")

    await store.upsert_lesson_progress(user_id, course_id, lesson_id, body.watch_time if body else 0)
    check = await check_and_issue_certificate(store, user_id, course_id)

    return {
        "message": "Lesson marked as complete.",
        "lessons_completed": check.lessons_completed,
        "lessons_total": check.lessons_required,
        "certificate_issued": check.issued,
        "certificate_status": check.status
    }


@router.get("/courses/{course_id}/progress", response_model=ProgressSummary)
async def get_course_progress(
    course_id: str,
    store: MongoRecordStore = Depends(get_store),
    user_id: str = Depends(get_current_user_id)
):
    lessons = await store.find_lessons(course_id)
    quizzes = await store.find_quizzes(course_id, published_only=True)
    lesson_ids = [l["lesson_id"] for l in lessons]
    quiz_ids = [q["quiz_id"] for q in quizzes]

    lessons_completed = await store.count_completed_lessons(user_id, course_id, lesson_ids)
    quizzes_passed = len(await store.distinct_passed_quiz_ids(user_id, course_id, quiz_ids)) if quiz_ids else 0

    total = len(lesson_ids) + len(quiz_ids)
    done = lessons_completed + quizzes_passed
    percentage = round(done / total * 100, 2) if total > 0 else 0.0

    return ProgressSummary(
        course_id=course_id,
        lessons_completed=lessons_completed,
        lessons_total=len(lesson_ids),
        quizzes_passed=quizzes_passed,
        quizzes_total=len(quiz_ids),
        progress_percentage=percentage,
        current_streak=calculate_streak(await store.completed_lesson_dates(user_id)),
        certificate=await store.find_certificate(user_id, course_id)
    )
