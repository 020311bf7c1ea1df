from fastapi import APIRouter, Depends

from lms_bridge.adapters.classroom_client import ClassroomClient
from lms_bridge.auth.deps import get_classroom_client
from lms_bridge.common.schemas import ERROR_RESPONSES
from lms_bridge.features.classroom import service
from lms_bridge.features.classroom.schemas import (
    CourseCreate,
    CourseList,
    CourseOut,
    CourseWorkCreate,
    CourseWorkList,
    CourseWorkOut,
    ProfileOut,
    StudentList,
    SubmissionGradeUpdate,
    SubmissionList,
    SubmissionOut,
    TeacherList,
)

router = APIRouter(prefix="/classroom", tags=["classroom"], responses=ERROR_RESPONSES)


@router.get("/courses", response_model=CourseList)
async def courses(client: ClassroomClient = Depends(get_classroom_client)):
    items = await service.list_courses(client)
    return CourseList(totalCount=len(items), courses=items)


@router.get("/courses/{course_id}", response_model=CourseOut)
async def course_detail(course_id: str, client: ClassroomClient = Depends(get_classroom_client)):
    return CourseOut(course=await service.get_course(client, course_id))


@router.post("/courses", response_model=CourseOut)
async def create_course(payload: CourseCreate, client: ClassroomClient = Depends(get_classroom_client)):
    course = await service.create_course(client, payload)
    return CourseOut(message="Course created successfully", course=course)


@router.get("/courses/{course_id}/teachers", response_model=TeacherList)
async def teachers(course_id: str, client: ClassroomClient = Depends(get_classroom_client)):
    items = await service.list_teachers(client, course_id)
    return TeacherList(count=len(items), teachers=items)


@router.get("/courses/{course_id}/students", response_model=StudentList)
async def students(course_id: str, client: ClassroomClient = Depends(get_classroom_client)):
    items = await service.list_students(client, course_id)
    return StudentList(count=len(items), students=items)


@router.get("/courses/{course_id}/courseWork", response_model=CourseWorkList)
async def course_work(course_id: str, client: ClassroomClient = Depends(get_classroom_client)):
    items = await service.list_course_work(client, course_id)
    return CourseWorkList(count=len(items), courseWork=items)


@router.post("/courses/{course_id}/courseWork", response_model=CourseWorkOut)
async def create_course_work(
    course_id: str,
    payload: CourseWorkCreate,
    client: ClassroomClient = Depends(get_classroom_client),
):
    work = await service.create_course_work(client, course_id, payload)
    return CourseWorkOut(message="Assignment created successfully", courseWork=work)


@router.get("/courses/{course_id}/courseWork/{course_work_id}/studentSubmissions", response_model=SubmissionList)
async def submissions(course_id: str, course_work_id: str, client: ClassroomClient = Depends(get_classroom_client)):
    items = await service.list_submissions(client, course_id, course_work_id)
    return SubmissionList(count=len(items), submissions=items)


@router.patch(
    "/courses/{course_id}/courseWork/{course_work_id}/studentSubmissions/{submission_id}",
    response_model=SubmissionOut,
)
async def grade_submission(
    course_id: str,
    course_work_id: str,
    submission_id: str,
    payload: SubmissionGradeUpdate,
    client: ClassroomClient = Depends(get_classroom_client),
):
    updated = await service.grade_submission(client, course_id, course_work_id, submission_id, payload)
    return SubmissionOut(message="Submission updated successfully", submission=updated)


@router.get("/profile", response_model=ProfileOut)
async def profile(client: ClassroomClient = Depends(get_classroom_client)):
    return ProfileOut(profile=await service.get_profile(client))
