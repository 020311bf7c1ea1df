"""Canvas listings reshaped into flatter records."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from lms_bridge.adapters.canvas_client import CanvasClient
from lms_bridge.common.utils import gather_or_cancel
from lms_bridge.features.moodle.normalize import format_score, to_float
from .schemas import CanvasStudent, CourseFile, CourseFolder, QuizGrade, QuizGrades, QuizInfo

logger = logging.getLogger(__name__)

STUDENT_ENROLLMENTS = [("type[]", "StudentEnrollment")]


async def list_courses(client: CanvasClient) -> List[Dict[str, Any]]:
    return await client.get_all("courses")


async def list_assignments(client: CanvasClient, course_id: int) -> List[Dict[str, Any]]:
    return await client.get_all(f"courses/{course_id}/assignments")


async def _student_enrollments(client: CanvasClient, course_id: int) -> List[Dict[str, Any]]:
    return await client.get_all(f"courses/{course_id}/enrollments", STUDENT_ENROLLMENTS)


def _student_from_enrollment(enrollment: Dict[str, Any]) -> CanvasStudent:
    user = enrollment.get("user") or {}
    return CanvasStudent(
        id=user.get("id", enrollment.get("user_id")),
        name=user.get("name") or "",
        login_id=user.get("login_id"),
    )


async def list_students(client: CanvasClient, course_id: int) -> List[CanvasStudent]:
    enrollments = await _student_enrollments(client, course_id)
    return [_student_from_enrollment(e) for e in enrollments]


async def quiz_grades(client: CanvasClient, course_id: int, quiz_id: int) -> QuizGrades:
    """Join a quiz's submissions with the course's student enrollments by user id."""
    quiz, submissions, enrollments = await gather_or_cancel(
        client.get(f"courses/{course_id}/quizzes/{quiz_id}"),
        client.get_all(f"courses/{course_id}/quizzes/{quiz_id}/submissions", key="quiz_submissions"),
        _student_enrollments(client, course_id),
    )
    roster: Dict[Any, CanvasStudent] = {}
    for e in enrollments:
        student = _student_from_enrollment(e)
        roster[student.id] = student

    points = quiz.get("points_possible")
    grades = []
    for sub in submissions:
        student = roster.get(sub.get("user_id"))
        score = sub.get("score")
        grades.append(
            QuizGrade(
                user_id=sub.get("user_id"),
                score=score,
                points_possible=points,
                percentage=format_score(to_float(score), to_float(points)) if points else None,
                name=student.name if student else "Unknown",
                login_id=(student.login_id or "Unknown") if student else "Unknown",
            )
        )
    logger.info("Canvas quiz %s in course %s: %d submissions", quiz_id, course_id, len(grades))

    return QuizGrades(
        quiz_info=QuizInfo(
            id=quiz["id"],
            title=quiz.get("title") or "",
            points_possible=points,
            question_count=quiz.get("question_count"),
            due_at=quiz.get("due_at"),
            published=quiz.get("published"),
        ),
        grades=grades,
    )


async def list_files(client: CanvasClient, course_id: int) -> List[CourseFile]:
    files = await client.get_all(f"courses/{course_id}/files")
    return [
        CourseFile(
            id=f["id"],
            display_name=f.get("display_name") or "",
            filename=f.get("filename") or "",
            content_type=f.get("content-type"),
            size=f.get("size"),
            url=f.get("url"),
            created_at=f.get("created_at"),
            updated_at=f.get("updated_at"),
            folder_id=f.get("folder_id"),
            locked=bool(f.get("locked")),
            hidden=bool(f.get("hidden")),
            preview_url=f.get("preview_url"),
        )
        for f in files
    ]


async def list_folders(client: CanvasClient, course_id: int) -> List[CourseFolder]:
    folders = await client.get_all(f"courses/{course_id}/folders")
    return [
        CourseFolder(
            id=f["id"],
            name=f.get("name") or "",
            full_name=f.get("full_name") or "",
            parent_folder_id=f.get("parent_folder_id"),
            files_count=f.get("files_count") or 0,
            folders_count=f.get("folders_count") or 0,
            created_at=f.get("created_at"),
        )
        for f in folders
    ]
