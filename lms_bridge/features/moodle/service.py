"""Moodle quiz analytics.

Course- and student-scoped performance is re-derived from Moodle on every
request: one ``mod_quiz_get_user_attempts`` call per (student, quiz) pair,
issued concurrently. A failing pair only drops that quiz from that student's
average; failures fetching the course, its users or its quizzes abort.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from lms_bridge.adapters.moodle_client import MoodleClient
from lms_bridge.common.errors import NotFoundError, UpstreamError
from lms_bridge.common.utils import gather_or_cancel
from lms_bridge.core.config import get_settings

from .normalize import (
    SINGLE_CHOICE_TYPES,
    attempt_from_moodle,
    best_attempt,
    clamp_percent,
    classify_question_type,
    format_score,
    full_name,
    is_student,
    percentage,
    question_max_mark,
    quiz_from_moodle,
    round2,
    strip_html,
    to_float,
    to_int,
    user_from_moodle,
)
from .schemas import (
    AnswerOption,
    Attempt,
    AttemptInfo,
    AttemptReview,
    ConnectionStatus,
    Course,
    CourseInfo,
    CoursePerformance,
    CourseSummary,
    EnrolledUser,
    PerformanceSummary,
    Question,
    Quiz,
    QuizAttemptSummary,
    QuizDetail,
    QuizInfo,
    QuizQuestions,
    ReviewedQuestion,
    ReviewSummary,
    StudentInfo,
    StudentPerformance,
    StudentQuizAttempts,
    StudentScore,
)

logger = logging.getLogger(__name__)

SITE_COURSE_ID = 1
NO_ANSWER = "No answer"


# ---------------------------------------------------------------------------
# Upstream fetch helpers
# ---------------------------------------------------------------------------

def _course_from_moodle(data: Dict[str, Any]) -> Course:
    return Course(
        id=data["id"],
        name=data.get("fullname") or data.get("displayname") or "",
        short_name=data.get("shortname") or "",
        category_id=to_int(data.get("categoryid")),
        visible=bool(data.get("visible", 1)),
        start_date=to_int(data.get("startdate")),
        end_date=to_int(data.get("enddate")),
    )


async def _fetch_course(client: MoodleClient, course_id: int) -> Course:
    courses = await client.call("core_course_get_courses", options={"ids": [course_id]})
    for c in courses or []:
        if c.get("id") == course_id:
            return _course_from_moodle(c)
    raise NotFoundError("Course not found")


async def _fetch_enrolled_users(client: MoodleClient, course_id: int) -> List[EnrolledUser]:
    users = await client.call("core_enrol_get_enrolled_users", courseid=course_id)
    return [user_from_moodle(u) for u in users or [] if isinstance(u, dict) and "id" in u]


async def _fetch_quizzes(client: MoodleClient, course_ids: Optional[List[int]] = None) -> List[Quiz]:
    params: Dict[str, Any] = {"courseids": course_ids} if course_ids else {}
    payload = await client.call("mod_quiz_get_quizzes_by_courses", **params)
    quizzes = (payload or {}).get("quizzes") or []
    return [quiz_from_moodle(q) for q in quizzes if isinstance(q, dict) and "id" in q]


async def _fetch_attempts(client: MoodleClient, quiz_id: int, user_id: Optional[int] = None) -> List[Attempt]:
    params: Dict[str, Any] = {"quizid": quiz_id}
    if user_id is not None:
        params["userid"] = user_id
    payload = await client.call("mod_quiz_get_user_attempts", **params)
    raw = (payload or {}).get("attempts") or []
    return [attempt_from_moodle(a) for a in raw if isinstance(a, dict) and "id" in a]


async def _fetch_pair_attempts(
    client: MoodleClient,
    semaphore: asyncio.Semaphore,
    user_id: int,
    quiz: Quiz,
) -> Optional[List[Attempt]]:
    """Attempts of one student on one quiz; None when the upstream call failed."""
    async with semaphore:
        try:
            return await _fetch_attempts(client, quiz.id, user_id)
        except UpstreamError as e:
            logger.warning("Could not get attempts for user %s in quiz %s: %s", user_id, quiz.id, e)
            return None


def _quiz_percentage(quiz: Quiz, attempts: List[Attempt]) -> Tuple[Optional[Attempt], Optional[float]]:
    best = best_attempt(attempts)
    if best is None:
        return None, None
    return best, clamp_percent(percentage(best.sum_grades, quiz.max_grade))


def _quiz_info(quiz: Quiz) -> QuizInfo:
    return QuizInfo(id=quiz.id, name=quiz.name, max_grade=quiz.max_grade, time_limit=quiz.time_limit)


# ---------------------------------------------------------------------------
# Public operations
# ---------------------------------------------------------------------------

async def check_connection(client: MoodleClient) -> ConnectionStatus:
    info = await client.call("core_webservice_get_site_info")
    return ConnectionStatus.from_site_info(info or {})


async def list_courses(client: MoodleClient) -> List[Course]:
    courses = await client.call("core_course_get_courses")
    return [_course_from_moodle(c) for c in courses or [] if c.get("id") != SITE_COURSE_ID]


async def compute_course_performance(client: MoodleClient, course_id: int) -> CoursePerformance:
    course, users, quizzes = await gather_or_cancel(
        _fetch_course(client, course_id),
        _fetch_enrolled_users(client, course_id),
        _fetch_quizzes(client, [course_id]),
    )
    students = [u for u in users if is_student(u)]
    logger.info(
        "Course %s: %d enrolled, %d students, %d quizzes", course_id, len(users), len(students), len(quizzes)
    )

    semaphore = asyncio.Semaphore(get_settings().moodle_max_concurrency)
    pairs = [(student, quiz) for student in students for quiz in quizzes]
    results = await gather_or_cancel(
        *(_fetch_pair_attempts(client, semaphore, student.id, quiz) for student, quiz in pairs)
    )

    totals: Dict[int, List[float]] = {s.id: [] for s in students}
    for (student, quiz), attempts in zip(pairs, results):
        if not attempts:
            continue
        _, pct = _quiz_percentage(quiz, attempts)
        if pct is not None:
            totals[student.id].append(pct)

    scores: List[StudentScore] = []
    for student in students:
        taken = totals[student.id]
        average = sum(taken) / len(taken) if taken else 0.0
        scores.append(
            StudentScore(
                id=student.id,
                name=student.name,
                email=student.email,
                username=student.username,
                average_score=round2(average),
                quizzes_taken=len(taken),
                total_quizzes=len(quizzes),
            )
        )

    # sorted() is stable, equal averages keep enrolment order
    scores = sorted(scores, key=lambda s: s.average_score, reverse=True)
    course_average = sum(s.average_score for s in scores) / len(scores) if scores else 0.0

    return CoursePerformance(
        course=CourseInfo(
            id=course.id,
            name=course.name,
            short_name=course.short_name,
            student_count=len(scores),
        ),
        students=scores,
        summary=CourseSummary(
            total_students=len(scores),
            average_score=round2(course_average),
            total_quizzes=len(quizzes),
        ),
        quizzes=[_quiz_info(q) for q in quizzes],
    )


async def compute_student_performance(client: MoodleClient, user_id: int, course_id: int) -> StudentPerformance:
    async def _fetch_user() -> Dict[str, Any]:
        found = await client.call("core_user_get_users_by_field", field="id", values=[user_id])
        if not found:
            raise NotFoundError("User not found")
        return found[0]

    user, quizzes = await gather_or_cancel(_fetch_user(), _fetch_quizzes(client, [course_id]))

    semaphore = asyncio.Semaphore(get_settings().moodle_max_concurrency)
    results = await gather_or_cancel(*(_fetch_pair_attempts(client, semaphore, user_id, q) for q in quizzes))

    quiz_attempts: List[QuizAttemptSummary] = []
    taken: List[float] = []
    for quiz, attempts in zip(quizzes, results):
        if not attempts:
            continue
        best, pct = _quiz_percentage(quiz, attempts)
        if best is None or pct is None:
            continue
        taken.append(pct)
        quiz_attempts.append(
            QuizAttemptSummary(
                quiz=_quiz_info(quiz),
                best_attempt=best,
                all_attempts=attempts,
                score=round2(pct),
            )
        )

    average = sum(taken) / len(taken) if taken else 0.0

    return StudentPerformance(
        student=StudentInfo(
            id=user["id"],
            name=full_name(user.get("firstname"), user.get("lastname")),
            email=user.get("email") or None,
            username=user.get("username") or "",
        ),
        course_id=course_id,
        performance=PerformanceSummary(
            average_score=round2(average),
            quizzes_taken=len(taken),
            total_quizzes=len(quizzes),
        ),
        quiz_attempts=quiz_attempts,
    )


async def list_student_quiz_attempts(client: MoodleClient, user_id: int, quiz_id: int) -> StudentQuizAttempts:
    attempts = await _fetch_attempts(client, quiz_id, user_id)
    best = best_attempt(attempts)
    ordered = sorted(attempts, key=lambda a: a.attempt)
    return StudentQuizAttempts(
        user_id=user_id,
        quiz_id=quiz_id,
        total_attempts=len(ordered),
        attempts=ordered,
        best_attempt=best,
    )


def _answer_options(raw_answers: List[Dict[str, Any]], chosen_id: Any = None) -> List[AnswerOption]:
    options = []
    for answer in raw_answers or []:
        answer_id = answer.get("id")
        options.append(
            AnswerOption(
                id=answer_id,
                text=strip_html(answer.get("answer") or answer.get("text")),
                is_correct=to_float(answer.get("fraction")) > 0,
                feedback=strip_html(answer.get("feedback")),
                chosen=chosen_id is not None and str(answer_id) == str(chosen_id),
            )
        )
    return options


async def get_quiz_questions(client: MoodleClient, quiz_id: int, include_answers: bool = False) -> QuizQuestions:
    quizzes = await _fetch_quizzes(client)
    quiz = next((q for q in quizzes if q.id == quiz_id), None)
    if quiz is None:
        raise NotFoundError("Quiz not found")

    attempts = await _fetch_attempts(client, quiz_id)
    questions: List[Question] = []
    if attempts:
        data = await client.call("mod_quiz_get_attempt_data", attemptid=attempts[0].id, page=-1)
        for q in (data or {}).get("questions") or []:
            questions.append(
                Question(
                    id=q.get("id", q.get("slot")),
                    number=q.get("number") or 0,
                    name=q.get("name") or f"Question {q.get('number') or ''}".strip(),
                    question_text=strip_html(q.get("questiontext")),
                    type=classify_question_type(q.get("qtype") or q.get("type")),
                    max_mark=question_max_mark(q.get("maxmark")),
                    answers=_answer_options(q.get("answers")) if include_answers else None,
                )
            )
    else:
        logger.info("No attempts found for quiz %s", quiz_id)

    return QuizQuestions(
        quiz=QuizDetail(
            id=quiz.id,
            name=quiz.name,
            intro=quiz.intro,
            max_grade=quiz.max_grade,
            time_limit=quiz.time_limit,
            total_questions=len(questions),
        ),
        questions=questions,
        total_attempts=len(attempts),
    )


def _student_answer(question: Dict[str, Any]) -> Tuple[str, Any]:
    """Return (answer text, chosen option id) for one attempted question."""
    response = question.get("response")
    if response is None or response == "":
        return NO_ANSWER, None
    if question.get("qtype") in SINGLE_CHOICE_TYPES and question.get("answers"):
        for answer in question["answers"]:
            if str(answer.get("id")) == str(response):
                return strip_html(answer.get("answer") or answer.get("text")), answer.get("id")
        return NO_ANSWER, None
    return strip_html(response), None


def review_question(question: Dict[str, Any], general_feedback: str = "") -> ReviewedQuestion:
    answer_text, chosen_id = _student_answer(question)
    mark = to_float(question.get("mark"))
    max_mark = question_max_mark(question.get("maxmark"))
    return ReviewedQuestion(
        id=question.get("id", question.get("slot")),
        number=question.get("number") or 0,
        name=question.get("name") or f"Question {question.get('number') or ''}".strip(),
        question_text=strip_html(question.get("questiontext")),
        question_type=classify_question_type(question.get("qtype")),
        student_answer=answer_text,
        student_response=question.get("response"),
        mark=mark,
        max_mark=max_mark,
        is_correct=question.get("mark") is not None and mark == max_mark,
        feedback=strip_html(question.get("feedback")),
        general_feedback=general_feedback,
        answer_options=_answer_options(question.get("answers"), chosen_id),
        state=question.get("state") or "unknown",
        flagged=bool(question.get("flagged")),
    )


def summarize_review(questions: List[ReviewedQuestion], attempt: AttemptInfo) -> ReviewSummary:
    total_marks = sum(q.mark for q in questions)
    max_marks = sum(q.max_mark for q in questions)
    minutes = attempt.time_taken // 60 if attempt.time_taken else 0
    return ReviewSummary(
        total_questions=len(questions),
        correct_answers=sum(1 for q in questions if q.is_correct),
        incorrect_answers=sum(1 for q in questions if not q.is_correct and q.student_answer != NO_ANSWER),
        unanswered=sum(1 for q in questions if q.student_answer == NO_ANSWER),
        total_marks=round2(total_marks),
        max_marks=round2(max_marks),
        percentage=format_score(total_marks, max_marks),
        time_taken_minutes=minutes,
        time_taken=f"{minutes} minutes" if attempt.time_taken else "Unknown",
    )


async def build_review(client: MoodleClient, attempt_id: int) -> AttemptReview:
    data = await client.call("mod_quiz_get_attempt_data", attemptid=attempt_id, page=-1)
    try:
        review = await client.call("mod_quiz_get_attempt_review", attemptid=attempt_id)
    except UpstreamError as e:
        logger.warning("Attempt review unavailable for attempt %s: %s", attempt_id, e)
        review = {}

    feedback_by_id: Dict[str, str] = {}
    for rq in (review or {}).get("questions") or []:
        key = rq.get("id", rq.get("slot"))
        if key is not None:
            feedback_by_id[str(key)] = strip_html(rq.get("generalfeedback"))

    questions = []
    for q in (data or {}).get("questions") or []:
        key = q.get("id", q.get("slot"))
        questions.append(review_question(q, feedback_by_id.get(str(key), "")))

    raw_attempt = (data or {}).get("attempt") or {}
    start = to_int(raw_attempt.get("timestart"))
    finish = to_int(raw_attempt.get("timefinish"))
    attempt = AttemptInfo(
        id=attempt_id,
        user_id=to_int(raw_attempt.get("userid")),
        quiz_id=to_int(raw_attempt.get("quiz")),
        state=raw_attempt.get("state"),
        time_start=start,
        time_finish=finish,
        time_taken=finish - start if start and finish else 0,
    )

    return AttemptReview(attempt=attempt, questions=questions, summary=summarize_review(questions, attempt))
