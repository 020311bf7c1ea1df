from typing import List

from fastapi import APIRouter, Depends, Query

from lms_bridge.adapters.moodle_client import MoodleClient, get_moodle_client
from lms_bridge.common.schemas import ERROR_RESPONSES
from lms_bridge.features.moodle import service
from lms_bridge.features.moodle.schemas import (
    AttemptReview,
    ConnectionStatus,
    Course,
    CoursePerformance,
    QuizQuestions,
    StudentPerformance,
    StudentQuizAttempts,
)

router = APIRouter(prefix="/moodle", tags=["moodle"], responses=ERROR_RESPONSES)


@router.get("/test", response_model=ConnectionStatus, summary="Check the Moodle web-service token")
async def test_connection(client: MoodleClient = Depends(get_moodle_client)):
    return await service.check_connection(client)


@router.get("/courses", response_model=List[Course])
async def courses(client: MoodleClient = Depends(get_moodle_client)):
    return await service.list_courses(client)


@router.get(
    "/courses/{course_id}",
    response_model=CoursePerformance,
    summary="Course students ranked by mean quiz score",
)
async def course_performance(course_id: int, client: MoodleClient = Depends(get_moodle_client)):
    return await service.compute_course_performance(client, course_id)


@router.get("/quizzes/{quiz_id}/questions", response_model=QuizQuestions, response_model_exclude_none=True)
async def quiz_questions(
    quiz_id: int,
    include_answers: bool = Query(False, alias="includeAnswers"),
    client: MoodleClient = Depends(get_moodle_client),
):
    return await service.get_quiz_questions(client, quiz_id, include_answers)


@router.get("/attempts/{attempt_id}", response_model=AttemptReview, summary="Question-by-question attempt review")
async def attempt_review(attempt_id: int, client: MoodleClient = Depends(get_moodle_client)):
    return await service.build_review(client, attempt_id)


@router.get("/students/{user_id}/quiz/{quiz_id}/attempts", response_model=StudentQuizAttempts)
async def student_quiz_attempts(user_id: int, quiz_id: int, client: MoodleClient = Depends(get_moodle_client)):
    return await service.list_student_quiz_attempts(client, user_id, quiz_id)


@router.get("/students/{user_id}/course/{course_id}", response_model=StudentPerformance)
async def student_course_performance(
    user_id: int,
    course_id: int,
    client: MoodleClient = Depends(get_moodle_client),
):
    return await service.compute_student_performance(client, user_id, course_id)
