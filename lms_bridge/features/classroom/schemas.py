from pydantic import BaseModel
from typing import Optional, List, Dict, Any


class CourseCreate(BaseModel):
    name: Optional[str] = None
    section: Optional[str] = None
    description: Optional[str] = None
    room: Optional[str] = None


class CourseWorkCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    workType: Optional[str] = None
    maxPoints: Optional[float] = None
    dueDate: Optional[str] = None  # ISO date or datetime


class SubmissionGradeUpdate(BaseModel):
    assignedGrade: Optional[float] = None
    draftGrade: Optional[float] = None


class CourseList(BaseModel):
    success: bool = True
    totalCount: int
    courses: List[Dict[str, Any]]


class CourseOut(BaseModel):
    success: bool = True
    message: Optional[str] = None
    course: Dict[str, Any]


class TeacherList(BaseModel):
    success: bool = True
    count: int
    teachers: List[Dict[str, Any]]


class StudentList(BaseModel):
    success: bool = True
    count: int
    students: List[Dict[str, Any]]


class CourseWorkList(BaseModel):
    success: bool = True
    count: int
    courseWork: List[Dict[str, Any]]


class CourseWorkOut(BaseModel):
    success: bool = True
    message: Optional[str] = None
    courseWork: Dict[str, Any]


class SubmissionList(BaseModel):
    success: bool = True
    count: int
    submissions: List[Dict[str, Any]]


class SubmissionOut(BaseModel):
    success: bool = True
    message: Optional[str] = None
    submission: Dict[str, Any]


class ProfileOut(BaseModel):
    success: bool = True
    profile: Dict[str, Any]
