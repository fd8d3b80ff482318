from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from enum import Enum

from eduable.progress.config import DEFAULT_PASSING_SCORE

# ==================== ENUMS ====================

class CertificateStatus(str, Enum):
    NOT_ELIGIBLE = "NOT_ELIGIBLE"
    ISSUED = "ISSUED"
    PERSISTENCE_FAILED = "PERSISTENCE_FAILED"

# ==================== QUESTION MODELS ====================

class QuestionOption(BaseModel):
    label: str  # "A", "B", "C", "D"
    text: str

class AnswerRecord(BaseModel):
    question_id: str
    selected_option: Optional[str] = None  # None if unanswered

class AnswerSnapshot(BaseModel):
    """Question content exactly as it was shown when the attempt was taken"""
    question_id: str
    text: str
    options: List[QuestionOption] = []

class QuestionBankEntry(BaseModel):
    """Live question; may be edited or removed after attempts reference it"""
    question_id: str
    quiz_id: str
    text: str
    topic_tag: str = "General"
    options: List[QuestionOption] = []
    correct_option: str
    explanation: str = ""
    order: int = 1

# ==================== CATALOG MODELS ====================

class Quiz(BaseModel):
    quiz_id: str
    course_id: str
    lesson_id: Optional[str] = None
    title: str
    passing_score: float = Field(DEFAULT_PASSING_SCORE, ge=0, le=100)
    is_published: bool = False
    max_attempts: Optional[int] = None  # None = unlimited
    cooldown_minutes: Optional[int] = None  # None = no wait

# ==================== PROGRESS MODELS ====================

class QuizAttempt(BaseModel):
    attempt_id: str
    user_id: str
    course_id: str
    quiz_id: str
    lesson_id: Optional[str] = None
    attempt_number: int = Field(..., ge=1)
    attempted_at: datetime
    score: float = Field(..., ge=0, le=100)
    passed: bool
    total_questions: int = Field(..., ge=1)
    answers: List[AnswerRecord] = []
    questions_snapshot: List[AnswerSnapshot] = []
    improvement_from_previous: Optional[float] = None
    ai_feedback: Optional[str] = None
    used_accessibility_modes: List[str] = []

class Certificate(BaseModel):
    certificate_id: str
    user_id: str
    course_id: str
    issued_at: datetime
    certificate_url: str

# ==================== ANALYTICS MODELS ====================

class WeakTopic(BaseModel):
    topic: str
    error_count: int

# ==================== API MODELS ====================

class QuizSubmission(BaseModel):
    answers: List[AnswerRecord]
    used_accessibility_modes: List[str] = []

class AnswerResult(BaseModel):
    question_id: str
    selected_option: Optional[str] = None
    is_correct: bool
    correct_option: str
    explanation: str = ""

class QuizSubmissionResult(BaseModel):
    attempt_id: str
    score: float
    passed: bool
    correct_count: int
    total_questions: int
    attempt_number: int
    improvement_from_previous: Optional[float] = None
    weak_topics: List[str] = []
    ai_feedback: str
    certificate_issued: bool
    certificate_status: Optional[CertificateStatus] = None
    detailed_results: List[AnswerResult] = []

class LessonCompletion(BaseModel):
    watch_time: int = Field(0, ge=0)

class CertificateCheckResponse(BaseModel):
    course_id: str
    status: CertificateStatus
    certificate_issued: bool
    lessons_completed: int
    lessons_required: int
    quizzes_passed: Optional[int] = None
    quizzes_required: int
    certificate: Optional[Certificate] = None

class ProgressSummary(BaseModel):
    course_id: str
    lessons_completed: int
    lessons_total: int
    quizzes_passed: int
    quizzes_total: int
    progress_percentage: float
    current_streak: int
    certificate: Optional[Certificate] = None
