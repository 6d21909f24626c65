import logging
import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.routes.courses import build_course_detail_response
from app.core.database import get_db
from app.core.security import get_current_caller
from app.schema.courses import CourseDetailResponse
from app.services.access_policy import Caller
from app.services.progress import complete_course, toggle_lesson

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/courses/{course_id}/complete", response_model=CourseDetailResponse)
async def mark_course_completed(course_id: uuid.UUID, caller: Caller = Depends(get_current_caller), db: AsyncSession = Depends(get_db)) -> CourseDetailResponse:  # noqa: B008
  """
  Mark the course complete for the caller and return the re-fetched detail.
  """
  detail = await complete_course(db, caller, course_id)
  if not detail.applied:
    logger.warning("Course completion not stored course=%s caller=%s", course_id, caller.identity_id)
  return build_course_detail_response(detail)


@router.post("/lessons/{lesson_id}/toggle", response_model=CourseDetailResponse)
async def toggle_lesson_completed(lesson_id: uuid.UUID, caller: Caller = Depends(get_current_caller), db: AsyncSession = Depends(get_db)) -> CourseDetailResponse:  # noqa: B008
  """
  Toggle lesson completion for the caller and return the re-fetched course detail.
  """
  detail = await toggle_lesson(db, caller, lesson_id)
  if not detail.applied:
    logger.warning("Lesson toggle not stored lesson=%s caller=%s", lesson_id, caller.identity_id)
  return build_course_detail_response(detail)
