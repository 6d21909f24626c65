import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.security import get_current_caller
from app.schema.courses import CourseDetailResponse, CourseOut, LessonOut, LessonProgressOut, ProgressRecordOut
from app.services.access_policy import Caller
from app.services.courses import get_course, list_courses, list_lessons
from app.services.progress import CourseDetail, list_progress_records, load_course_detail

router = APIRouter()


def build_course_detail_response(detail: CourseDetail) -> CourseDetailResponse:
  """Flatten a loaded course detail into the response payload."""
  course = CourseOut.model_validate(detail.course)
  lessons = [LessonProgressOut.model_validate(lesson).model_copy(update={"completed": detail.progress.is_lesson_completed(lesson.id)}) for lesson in detail.lessons]
  return CourseDetailResponse(
    course=course,
    difficulty_level=course.difficulty_level,
    lessons=lessons,
    lesson_count=detail.progress.lesson_count,
    completed_lesson_count=detail.progress.completed_lesson_count,
    progress_percentage=detail.progress.percentage,
    course_completed=detail.progress.course_completed,
    applied=detail.applied,
  )


@router.get("", response_model=list[CourseOut])
async def get_courses(caller: Caller = Depends(get_current_caller), db: AsyncSession = Depends(get_db)) -> list[CourseOut]:  # noqa: B008
  """
  List all courses, newest first.
  """
  courses = await list_courses(db, caller)
  return [CourseOut.model_validate(course) for course in courses]


@router.get("/{course_id}", response_model=CourseDetailResponse)
async def get_course_detail(course_id: uuid.UUID, caller: Caller = Depends(get_current_caller), db: AsyncSession = Depends(get_db)) -> CourseDetailResponse:  # noqa: B008
  """
  Get a course with its ordered lessons and the caller's derived progress.
  """
  detail = await load_course_detail(db, caller, course_id)
  return build_course_detail_response(detail)


@router.get("/{course_id}/lessons", response_model=list[LessonOut])
async def get_course_lessons(course_id: uuid.UUID, caller: Caller = Depends(get_current_caller), db: AsyncSession = Depends(get_db)) -> list[LessonOut]:  # noqa: B008
  """
  List a course's lessons ordered by position.
  """
  await get_course(db, caller, course_id)
  lessons = await list_lessons(db, caller, course_id)
  return [LessonOut.model_validate(lesson) for lesson in lessons]


@router.get("/{course_id}/progress", response_model=list[ProgressRecordOut])
async def get_course_progress(course_id: uuid.UUID, caller: Caller = Depends(get_current_caller), db: AsyncSession = Depends(get_db)) -> list[ProgressRecordOut]:  # noqa: B008
  """
  List the caller's raw progress records for a course.
  """
  records = await list_progress_records(db, caller, course_id)
  return [ProgressRecordOut.model_validate(record) for record in records]
