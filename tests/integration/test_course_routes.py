import uuid
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError

from app.core.security import get_current_caller
from app.main import app
from app.services.access_policy import Caller
from app.services.courses import ResourceNotFoundError
from app.services.progress import CourseDetail, summarize_progress
from tests.conftest import make_course, make_lesson, make_record


def _detail(caller: Caller, *, completed_lessons: int = 0, course_completed: bool = False, applied: bool = True, difficulty: str = "intermediate") -> CourseDetail:
  course = make_course(difficulty=difficulty)
  lessons = [make_lesson(course, 1), make_lesson(course, 2), make_lesson(course, 3)]
  records = [make_record(caller.identity_id, course, lesson) for lesson in lessons[:completed_lessons]]
  if course_completed:
    records.append(make_record(caller.identity_id, course))
  return CourseDetail(course=course, lessons=lessons, records=records, progress=summarize_progress(lessons, records), applied=applied)


@pytest.mark.anyio
async def test_list_courses(authed_client: AsyncClient, caller: Caller):
  courses = [make_course(title="Newer", difficulty="Advanced"), make_course(title="Older", difficulty="expert")]
  with patch("app.api.routes.courses.list_courses", AsyncMock(return_value=courses)) as list_mock:
    response = await authed_client.get("/v1/courses")

  assert response.status_code == 200
  assert [course["title"] for course in response.json()] == ["Newer", "Older"]
  assert response.json()[0]["durationMinutes"] == 90
  assert [course["difficultyLevel"] for course in response.json()] == ["advanced", "beginner"]
  assert [course["difficulty"] for course in response.json()] == ["Advanced", "expert"]
  list_mock.assert_awaited_once()
  assert list_mock.await_args.args[1] == caller


@pytest.mark.anyio
async def test_course_detail_reports_derived_progress(authed_client: AsyncClient, caller: Caller):
  detail = _detail(caller, completed_lessons=1)
  with patch("app.api.routes.courses.load_course_detail", AsyncMock(return_value=detail)):
    response = await authed_client.get(f"/v1/courses/{detail.course.id}")

  assert response.status_code == 200
  body = response.json()
  assert body["course"]["id"] == str(detail.course.id)
  assert body["difficultyLevel"] == "intermediate"
  assert body["lessonCount"] == 3
  assert body["completedLessonCount"] == 1
  assert body["progressPercentage"] == 33
  assert body["courseCompleted"] is False
  assert body["applied"] is True
  assert [lesson["completed"] for lesson in body["lessons"]] == [True, False, False]
  assert [lesson["orderNumber"] for lesson in body["lessons"]] == [1, 2, 3]


@pytest.mark.anyio
async def test_unknown_difficulty_renders_as_beginner(authed_client: AsyncClient, caller: Caller):
  detail = _detail(caller, difficulty="Expert-ish")
  with patch("app.api.routes.courses.load_course_detail", AsyncMock(return_value=detail)):
    response = await authed_client.get(f"/v1/courses/{detail.course.id}")

  assert response.json()["difficultyLevel"] == "beginner"
  assert response.json()["course"]["difficultyLevel"] == "beginner"
  assert response.json()["course"]["difficulty"] == "Expert-ish"


@pytest.mark.anyio
async def test_unknown_course_is_404(authed_client: AsyncClient):
  course_id = uuid.uuid4()
  with patch("app.api.routes.courses.load_course_detail", AsyncMock(side_effect=ResourceNotFoundError("Course", course_id))):
    response = await authed_client.get(f"/v1/courses/{course_id}")

  assert response.status_code == 404
  assert response.json()["detail"] == "Course not found"


@pytest.mark.anyio
async def test_malformed_course_id_is_422(authed_client: AsyncClient):
  response = await authed_client.get("/v1/courses/not-a-uuid")

  assert response.status_code == 422


@pytest.mark.anyio
async def test_course_lessons_are_listed(authed_client: AsyncClient):
  course = make_course()
  lessons = [make_lesson(course, 1), make_lesson(course, 1, title="Same slot, later")]
  with patch("app.api.routes.courses.get_course", AsyncMock(return_value=course)), patch("app.api.routes.courses.list_lessons", AsyncMock(return_value=lessons)):
    response = await authed_client.get(f"/v1/courses/{course.id}/lessons")

  assert response.status_code == 200
  assert [lesson["title"] for lesson in response.json()] == ["Lesson 1", "Same slot, later"]


@pytest.mark.anyio
async def test_course_progress_records_are_listed(authed_client: AsyncClient, caller: Caller):
  detail = _detail(caller, completed_lessons=2, course_completed=True)
  with patch("app.api.routes.courses.list_progress_records", AsyncMock(return_value=detail.records)):
    response = await authed_client.get(f"/v1/courses/{detail.course.id}/progress")

  assert response.status_code == 200
  body = response.json()
  assert len(body) == 3
  assert sum(1 for record in body if record["lessonId"] is None) == 1
  assert all(record["userId"] == str(caller.identity_id) for record in body)


@pytest.mark.anyio
async def test_anonymous_caller_is_refused_before_the_store(async_client: AsyncClient, db_session):
  app.dependency_overrides[get_current_caller] = Caller.anonymous

  response = await async_client.get("/v1/courses")

  assert response.status_code == 403
  assert response.json()["detail"] == "Operation not permitted"
  db_session.execute.assert_not_awaited()


@pytest.mark.anyio
async def test_transient_store_failure_on_read_is_503(authed_client: AsyncClient):
  failure = OperationalError("SELECT courses", {}, Exception("could not connect to server: Connection refused"))
  with patch("app.api.routes.courses.list_courses", AsyncMock(side_effect=failure)):
    response = await authed_client.get("/v1/courses")

  assert response.status_code == 503
  assert response.json()["detail"] == "Service temporarily unavailable"
