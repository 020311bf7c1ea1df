from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from lms_bridge.adapters.canvas_client import CanvasClient, get_canvas_client
from lms_bridge.common.schemas import ERROR_RESPONSES
from lms_bridge.features.canvas import service
from lms_bridge.features.canvas.schemas import CanvasStudent, CourseFile, CourseFolder, QuizGrades

router = APIRouter(prefix="/canvas", tags=["canvas"], responses=ERROR_RESPONSES)


@router.get("/courses", response_model=List[Dict[str, Any]])
async def courses(client: CanvasClient = Depends(get_canvas_client)):
    return await service.list_courses(client)


@router.get("/courses/{course_id}/assignments", response_model=List[Dict[str, Any]])
async def assignments(course_id: int, client: CanvasClient = Depends(get_canvas_client)):
    return await service.list_assignments(client, course_id)


@router.get("/courses/{course_id}/students", response_model=List[CanvasStudent])
async def students(course_id: int, client: CanvasClient = Depends(get_canvas_client)):
    return await service.list_students(client, course_id)


@router.get("/courses/{course_id}/quizzes/{quiz_id}/grades", response_model=QuizGrades)
async def quiz_grades(course_id: int, quiz_id: int, client: CanvasClient = Depends(get_canvas_client)):
    return await service.quiz_grades(client, course_id, quiz_id)


@router.get("/courses/{course_id}/files", response_model=List[CourseFile])
async def files(course_id: int, client: CanvasClient = Depends(get_canvas_client)):
    return await service.list_files(client, course_id)


@router.get("/courses/{course_id}/folders", response_model=List[CourseFolder])
async def folders(course_id: int, client: CanvasClient = Depends(get_canvas_client)):
    return await service.list_folders(client, course_id)
