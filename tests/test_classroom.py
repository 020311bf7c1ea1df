import time

import httpx
import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request

from lms_bridge.main import app
from lms_bridge.adapters.classroom_client import ClassroomClient
from lms_bridge.auth import service as auth_service
from lms_bridge.auth.deps import get_classroom_client, read_session
from lms_bridge.auth.schemas import TokenPair
from lms_bridge.common.errors import AuthRequiredError, ValidationError
from lms_bridge.features.classroom import service
from lms_bridge.features.classroom.schemas import CourseCreate, CourseWorkCreate, SubmissionGradeUpdate


def teardown_function():
    app.dependency_overrides.clear()


def _fake_google(handler):
    return ClassroomClient("access-123", http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def test_routes_require_a_session():
    client = TestClient(app)

    r = client.get("/classroom/courses")

    assert r.status_code == 401
    assert "error" in r.json()


def test_status_reports_unauthenticated():
    r = TestClient(app).get("/classroom/status")

    assert r.status_code == 200
    assert r.json()["authenticated"] is False


def test_auth_url_carries_offline_consent():
    r = TestClient(app).get("/classroom/auth")

    assert r.status_code == 200
    url = r.json()["authUrl"]
    assert url.startswith(auth_service.GOOGLE_AUTH_URL)
    assert "access_type=offline" in url
    assert "prompt=consent" in url
    assert "classroom.courses" in url


def test_callback_without_code_is_400():
    r = TestClient(app).get("/classroom/google/callback")

    assert r.status_code == 400
    assert r.json() == {"error": "Missing authorization code"}


def test_callback_sets_session_cookie_and_status_sees_it(monkeypatch):
    async def fake_token_request(payload):
        assert payload["grant_type"] == "authorization_code"
        return {"access_token": "access-123", "refresh_token": "refresh-456", "expires_in": 3600}

    monkeypatch.setattr(auth_service, "_token_request", fake_token_request)
    client = TestClient(app)

    r = client.get("/classroom/google/callback", params={"code": "abc"})

    assert r.status_code == 200
    assert r.json()["success"] is True
    assert auth_service.SESSION_COOKIE_NAME in r.cookies
    tokens = auth_service.decode_session(r.json()["session"])
    assert tokens.access_token == "access-123"
    assert tokens.refresh_token == "refresh-456"

    status = client.get("/classroom/status")
    assert status.json()["authenticated"] is True


def test_tampered_session_is_rejected():
    good = auth_service.encode_session(TokenPair(access_token="a", refresh_token="r"))
    with pytest.raises(AuthRequiredError):
        auth_service.decode_session(good[:-2] + "xx")


def test_should_refresh_near_expiry():
    now = time.time()
    assert auth_service.should_refresh(TokenPair(access_token="a", refresh_token="r", expires_at=int(now) + 60), now)
    assert not auth_service.should_refresh(TokenPair(access_token="a", refresh_token="r", expires_at=int(now) + 3600), now)
    assert not auth_service.should_refresh(TokenPair(access_token="a", expires_at=int(now) + 60), now)


def test_courses_listing_sends_access_token():
    seen = {}

    def handler(request):
        seen["auth"] = request.headers["Authorization"]
        return httpx.Response(200, json={"courses": [{"id": "c1", "name": "Biology"}]})

    async def override():
        yield _fake_google(handler)

    app.dependency_overrides[get_classroom_client] = override

    r = TestClient(app).get("/classroom/courses")

    assert r.status_code == 200
    assert r.json() == {"success": True, "totalCount": 1, "courses": [{"id": "c1", "name": "Biology"}]}
    assert seen["auth"] == "Bearer access-123"


def test_expired_google_token_is_401():
    async def override():
        yield _fake_google(lambda request: httpx.Response(401, json={"error": {"message": "Invalid Credentials"}}))

    app.dependency_overrides[get_classroom_client] = override

    r = TestClient(app).get("/classroom/profile")

    assert r.status_code == 401


def test_create_course_requires_name():
    async def override():
        yield _fake_google(lambda request: httpx.Response(200, json={}))

    app.dependency_overrides[get_classroom_client] = override

    r = TestClient(app).post("/classroom/courses", json={"section": "A"})

    assert r.status_code == 400
    assert r.json() == {"error": "Course name is required"}


def test_build_course_defaults():
    body = service.build_course(CourseCreate(name="Biology"))

    assert body["section"] == "Default Section"
    assert body["ownerId"] == "me"
    assert body["courseState"] == "ACTIVE"


def test_build_course_work_due_date():
    body = service.build_course_work(CourseWorkCreate(title="Essay", dueDate="2025-03-14"))

    assert body["dueDate"] == {"year": 2025, "month": 3, "day": 14}
    assert body["dueTime"] == {"hours": 23, "minutes": 59}
    assert body["maxPoints"] == 100
    assert body["workType"] == "ASSIGNMENT"
    assert body["state"] == "PUBLISHED"


def test_build_course_work_validation():
    with pytest.raises(ValidationError):
        service.build_course_work(CourseWorkCreate(description="no title"))
    with pytest.raises(ValidationError):
        service.build_course_work(CourseWorkCreate(title="Essay", dueDate="next week"))


def test_grade_update_mask():
    assert service.build_grade_update(SubmissionGradeUpdate(assignedGrade=9)) == {"assignedGrade": 9}
    with pytest.raises(ValidationError):
        service.build_grade_update(SubmissionGradeUpdate())


@pytest.mark.anyio("asyncio")
async def test_list_all_follows_page_tokens():
    def handler(request):
        if request.url.params.get("pageToken") == "p2":
            return httpx.Response(200, json={"students": [{"userId": "s2"}]})
        return httpx.Response(200, json={"students": [{"userId": "s1"}], "nextPageToken": "p2"})

    students = await service.list_students(_fake_google(handler), "c1")

    assert [s["userId"] for s in students] == ["s1", "s2"]


def test_middleware_refreshes_expiring_session(monkeypatch):
    from lms_bridge.common import middleware

    async def fake_refresh(refresh_token):
        assert refresh_token == "refresh-456"
        return TokenPair(access_token="access-new", refresh_token=refresh_token, expires_at=int(time.time()) + 3600)

    monkeypatch.setattr(middleware, "refresh_access_token", fake_refresh)
    stale = auth_service.encode_session(
        TokenPair(access_token="access-old", refresh_token="refresh-456", expires_at=int(time.time()) + 30)
    )
    client = TestClient(app, cookies={auth_service.SESSION_COOKIE_NAME: stale})

    r = client.get("/classroom/status")

    assert r.status_code == 200
    assert r.json()["authenticated"] is True
    renewed = auth_service.decode_session(r.cookies[auth_service.SESSION_COOKIE_NAME])
    assert renewed.access_token == "access-new"


def _request_with_bearer(token):
    return Request({"type": "http", "headers": [(b"authorization", f"Bearer {token}".encode())]})


def test_bearer_session_token_from_callback_is_accepted():
    signed = auth_service.encode_session(TokenPair(access_token="access-123", refresh_token="refresh-456"))

    session = read_session(_request_with_bearer(signed))

    assert session.source == "session"
    assert session.tokens.access_token == "access-123"
    assert session.tokens.refresh_token == "refresh-456"


def test_bearer_google_access_token_passes_through():
    session = read_session(_request_with_bearer("ya29.raw-google-token"))

    assert session.source == "bearer"
    assert session.tokens.access_token == "ya29.raw-google-token"
