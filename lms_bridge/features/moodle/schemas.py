from __future__ import annotations

from typing import List, Optional, Any, Dict

from lms_bridge.common.schemas import CamelModel


# -------------------
# Entities
# -------------------
class Course(CamelModel):
    id: int
    name: str
    short_name: str = ""
    category_id: Optional[int] = None
    visible: bool = True
    start_date: Optional[int] = None
    end_date: Optional[int] = None


class EnrolledUser(CamelModel):
    id: int
    first_name: str = ""
    last_name: str = ""
    name: str = ""
    email: Optional[str] = None
    username: str = ""
    roles: List[str] = []


class Quiz(CamelModel):
    id: int
    course_id: Optional[int] = None
    name: str = ""
    intro: str = ""
    max_grade: float = 100.0
    time_limit: int = 0


class Attempt(CamelModel):
    id: int
    attempt: int = 0
    user_id: Optional[int] = None
    quiz_id: Optional[int] = None
    state: str = "unknown"
    sum_grades: float = 0.0
    time_start: Optional[int] = None
    time_finish: Optional[int] = None


class AnswerOption(CamelModel):
    id: Any
    text: str
    is_correct: bool
    feedback: str = ""
    chosen: bool = False


class Question(CamelModel):
    id: Any
    number: Any = 0
    name: str
    question_text: str
    type: str
    max_mark: float
    answers: Optional[List[AnswerOption]] = None


# -------------------
# Course performance
# -------------------
class CourseInfo(CamelModel):
    id: int
    name: str
    short_name: str = ""
    student_count: int = 0


class StudentScore(CamelModel):
    id: int
    name: str
    email: Optional[str] = None
    username: str = ""
    average_score: float = 0.0
    quizzes_taken: int = 0
    total_quizzes: int = 0


class CourseSummary(CamelModel):
    total_students: int
    average_score: float
    total_quizzes: int


class QuizInfo(CamelModel):
    id: int
    name: str
    max_grade: float
    time_limit: int = 0


class CoursePerformance(CamelModel):
    course: CourseInfo
    students: List[StudentScore]
    summary: CourseSummary
    quizzes: List[QuizInfo]


# -------------------
# Student performance
# -------------------
class StudentInfo(CamelModel):
    id: int
    name: str
    email: Optional[str] = None
    username: str = ""


class PerformanceSummary(CamelModel):
    average_score: float
    quizzes_taken: int
    total_quizzes: int


class QuizAttemptSummary(CamelModel):
    quiz: QuizInfo
    best_attempt: Attempt
    all_attempts: List[Attempt]
    score: float


class StudentPerformance(CamelModel):
    student: StudentInfo
    course_id: int
    performance: PerformanceSummary
    quiz_attempts: List[QuizAttemptSummary]


class StudentQuizAttempts(CamelModel):
    user_id: int
    quiz_id: int
    total_attempts: int
    attempts: List[Attempt]
    best_attempt: Optional[Attempt] = None


# -------------------
# Quiz questions
# -------------------
class QuizDetail(CamelModel):
    id: int
    name: str
    intro: str = ""
    max_grade: float
    time_limit: int = 0
    total_questions: int = 0


class QuizQuestions(CamelModel):
    quiz: QuizDetail
    questions: List[Question]
    total_attempts: int


# -------------------
# Attempt review
# -------------------
class ReviewedQuestion(CamelModel):
    id: Any
    number: Any = 0
    name: str
    question_text: str
    question_type: str
    student_answer: str
    student_response: Optional[Any] = None
    mark: float
    max_mark: float
    is_correct: bool
    feedback: str = ""
    general_feedback: str = ""
    answer_options: List[AnswerOption] = []
    state: str = "unknown"
    flagged: bool = False


class AttemptInfo(CamelModel):
    id: int
    user_id: Optional[int] = None
    quiz_id: Optional[int] = None
    state: Optional[str] = None
    time_start: Optional[int] = None
    time_finish: Optional[int] = None
    time_taken: int = 0  # seconds


class ReviewSummary(CamelModel):
    total_questions: int
    correct_answers: int
    incorrect_answers: int
    unanswered: int
    total_marks: float
    max_marks: float
    percentage: float
    time_taken_minutes: int
    time_taken: str


class AttemptReview(CamelModel):
    attempt: AttemptInfo
    questions: List[ReviewedQuestion]
    summary: ReviewSummary


# -------------------
# Connection check
# -------------------
class ConnectionStatus(CamelModel):
    status: str
    site_name: str = ""
    moodle_version: str = ""
    user: str = ""
    message: str
    functions: Optional[List[str]] = None

    @classmethod
    def from_site_info(cls, info: Dict[str, Any]) -> "ConnectionStatus":
        return cls(
            status="success",
            site_name=info.get("sitename") or "",
            moodle_version=info.get("release") or "",
            user=f"{info.get('firstname') or ''} {info.get('lastname') or ''}".strip(),
            message="Connection successful!",
            functions=[f.get("name") for f in info.get("functions") or [] if isinstance(f, dict)] or None,
        )
