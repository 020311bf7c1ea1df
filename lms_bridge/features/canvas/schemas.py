from __future__ import annotations

from typing import List, Optional

from lms_bridge.common.schemas import CamelModel


class CanvasStudent(CamelModel):
    id: int
    name: str = ""
    login_id: Optional[str] = None


class QuizGrade(CamelModel):
    user_id: Optional[int] = None
    score: Optional[float] = None
    points_possible: Optional[float] = None
    percentage: Optional[float] = None
    name: str = "Unknown"
    login_id: str = "Unknown"


class QuizInfo(CamelModel):
    id: int
    title: str = ""
    points_possible: Optional[float] = None
    question_count: Optional[int] = None
    due_at: Optional[str] = None
    published: Optional[bool] = None


class QuizGrades(CamelModel):
    quiz_info: QuizInfo
    grades: List[QuizGrade]


class CourseFile(CamelModel):
    id: int
    display_name: str = ""
    filename: str = ""
    content_type: Optional[str] = None
    size: Optional[int] = None
    url: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    folder_id: Optional[int] = None
    locked: bool = False
    hidden: bool = False
    preview_url: Optional[str] = None


class CourseFolder(CamelModel):
    id: int
    name: str = ""
    full_name: str = ""
    parent_folder_id: Optional[int] = None
    files_count: int = 0
    folders_count: int = 0
    created_at: Optional[str] = None
