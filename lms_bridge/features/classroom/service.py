"""Google Classroom operations on behalf of the signed-in caller."""

import logging
from datetime import datetime
from typing import Any, Dict, List

from lms_bridge.adapters.classroom_client import ClassroomClient
from lms_bridge.common.errors import ValidationError
from .schemas import CourseCreate, CourseWorkCreate, SubmissionGradeUpdate

logger = logging.getLogger(__name__)

PAGE_SIZE = 100


async def list_courses(client: ClassroomClient) -> List[Dict[str, Any]]:
    courses = await client.list_all("courses", "courses", pageSize=PAGE_SIZE)
    logger.info("Found %d Classroom courses", len(courses))
    return courses


async def get_course(client: ClassroomClient, course_id: str) -> Dict[str, Any]:
    return await client.get(f"courses/{course_id}")


def build_course(payload: CourseCreate) -> Dict[str, Any]:
    if not payload.name:
        raise ValidationError("Course name is required")
    return {
        "name": payload.name,
        "section": payload.section or "Default Section",
        "description": payload.description or "",
        "room": payload.room or "",
        "ownerId": "me",
        "courseState": "ACTIVE",
    }


async def create_course(client: ClassroomClient, payload: CourseCreate) -> Dict[str, Any]:
    body = build_course(payload)
    logger.info("Creating Classroom course: %s", body["name"])
    course = await client.request("POST", "courses", json=body)
    logger.info("Course created: %s (ID: %s)", course.get("name"), course.get("id"))
    return course


async def list_teachers(client: ClassroomClient, course_id: str) -> List[Dict[str, Any]]:
    return await client.list_all(f"courses/{course_id}/teachers", "teachers")


async def list_students(client: ClassroomClient, course_id: str) -> List[Dict[str, Any]]:
    return await client.list_all(f"courses/{course_id}/students", "students")


async def list_course_work(client: ClassroomClient, course_id: str) -> List[Dict[str, Any]]:
    return await client.list_all(f"courses/{course_id}/courseWork", "courseWork")


def build_course_work(payload: CourseWorkCreate) -> Dict[str, Any]:
    if not payload.title:
        raise ValidationError("Assignment title is required")
    body: Dict[str, Any] = {
        "title": payload.title,
        "description": payload.description or "",
        "workType": payload.workType or "ASSIGNMENT",
        "state": "PUBLISHED",
        "maxPoints": payload.maxPoints or 100,
    }
    if payload.dueDate:
        try:
            due = datetime.fromisoformat(payload.dueDate)
        except ValueError as e:
            raise ValidationError(f"Invalid dueDate: {payload.dueDate}") from e
        body["dueDate"] = {"year": due.year, "month": due.month, "day": due.day}
        body["dueTime"] = {"hours": 23, "minutes": 59}
    return body


async def create_course_work(client: ClassroomClient, course_id: str, payload: CourseWorkCreate) -> Dict[str, Any]:
    body = build_course_work(payload)
    logger.info("Creating assignment %r in course %s", body["title"], course_id)
    return await client.request("POST", f"courses/{course_id}/courseWork", json=body)


async def list_submissions(client: ClassroomClient, course_id: str, course_work_id: str) -> List[Dict[str, Any]]:
    return await client.list_all(
        f"courses/{course_id}/courseWork/{course_work_id}/studentSubmissions", "studentSubmissions"
    )


def build_grade_update(payload: SubmissionGradeUpdate) -> Dict[str, Any]:
    update = payload.model_dump(exclude_none=True)
    if not update:
        raise ValidationError("No grade data provided")
    return update


async def grade_submission(
    client: ClassroomClient,
    course_id: str,
    course_work_id: str,
    submission_id: str,
    payload: SubmissionGradeUpdate,
) -> Dict[str, Any]:
    update = build_grade_update(payload)
    logger.info("Updating submission %s (%s)", submission_id, ",".join(update))
    return await client.request(
        "PATCH",
        f"courses/{course_id}/courseWork/{course_work_id}/studentSubmissions/{submission_id}",
        params={"updateMask": ",".join(update)},
        json=update,
    )


async def get_profile(client: ClassroomClient) -> Dict[str, Any]:
    return await client.get("userProfiles/me")
