"""
Quiz grading and attempt limits
"""

import math
from datetime import datetime
from typing import List, Optional

from eduable.progress.models import AnswerRecord, AnswerSnapshot, QuestionBankEntry, Quiz


class AttemptLimitReached(Exception):
    pass


class CooldownActive(Exception):
    def __init__(self, wait_minutes: int):
        self.wait_minutes = wait_minutes
        super().__init__(f"Please wait {wait_minutes} minutes before trying again.")


def attempt_gate(quiz: Quiz, previous_attempts: int, last_attempted_at: Optional[datetime], now: datetime) -> None:
    """Raise if the learner may not start another attempt yet"""
    if quiz.max_attempts is not None and previous_attempts >= quiz.max_attempts:
        raise AttemptLimitReached("You have reached the maximum number of attempts for this quiz.")

    if quiz.cooldown_minutes and previous_attempts > 0 and last_attempted_at is not None:
        remaining = quiz.cooldown_minutes * 60 - (now - last_attempted_at).total_seconds()
        if remaining > 0:
            raise CooldownActive(math.ceil(remaining / 60))


def grade_answers(questions: List[dict], answers: List[AnswerRecord], passing_score: float) -> dict:
    """
    Score answers against the live question bank.

    Answers for questions outside the bank are ignored; the denominator is
    the whole bank, so skipped questions count as wrong. Only the first
    answer given for a question is graded.
    """
    if not questions:
        raise ValueError("Quiz has no questions.")

    bank = {doc["question_id"]: QuestionBankEntry(**doc) for doc in questions}

    correct_count = 0
    detailed_results = []
    questions_snapshot: List[AnswerSnapshot] = []
    graded_answers: List[AnswerRecord] = []
    seen = set()

    for ans in answers:
        question = bank.get(ans.question_id)
        if question is None or ans.question_id in seen:
            continue
        seen.add(ans.question_id)
        graded_answers.append(ans)

        is_correct = question.correct_option == ans.selected_option
        if is_correct:
            correct_count += 1

        detailed_results.append({
            "question_id": ans.question_id,
            "selected_option": ans.selected_option,
            "is_correct": is_correct,
            "correct_option": question.correct_option,
            "explanation": question.explanation
        })
        questions_snapshot.append(AnswerSnapshot(
            question_id=question.question_id,
            text=question.text,
            options=question.options
        ))

    total_questions = len(bank)
    score = round(correct_count / total_questions * 100)

    return {
        "score": score,
        "passed": score >= passing_score,
        "correct_count": correct_count,
        "total_questions": total_questions,
        "answers": graded_answers,
        "detailed_results": detailed_results,
        "questions_snapshot": questions_snapshot
    }
