import json
from urllib.parse import parse_qs

import httpx
import pytest

from lms_bridge.adapters.moodle_client import MoodleClient, flatten_params
from lms_bridge.common.errors import UpstreamError

pytestmark = pytest.mark.anyio("asyncio")


def _client(handler):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return MoodleClient("https://moodle.test/", "tok", http_client=http)


def test_flatten_params_nested():
    flat = flatten_params({"options": {"ids": [3, 4]}, "courseid": 7, "skip": None, "flag": True})
    assert flat == {"options[ids][0]": 3, "options[ids][1]": 4, "courseid": 7, "flag": 1}


def test_flatten_params_list_of_dicts():
    flat = flatten_params({"users": [{"id": 1, "name": "a"}]})
    assert flat == {"users[0][id]": 1, "users[0][name]": "a"}


def test_missing_configuration_is_upstream_error():
    with pytest.raises(UpstreamError):
        MoodleClient("", "")


async def test_call_posts_form_with_token_and_function():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["form"] = parse_qs(request.content.decode())
        return httpx.Response(200, json=[{"id": 2}])

    client = _client(handler)
    result = await client.call("core_course_get_courses", options={"ids": [2]})

    assert result == [{"id": 2}]
    assert seen["url"] == "https://moodle.test/webservice/rest/server.php"
    assert seen["form"]["wstoken"] == ["tok"]
    assert seen["form"]["wsfunction"] == ["core_course_get_courses"]
    assert seen["form"]["moodlewsrestformat"] == ["json"]
    assert seen["form"]["options[ids][0]"] == ["2"]


async def test_exception_envelope_in_200_body_raises():
    def handler(request):
        return httpx.Response(
            200,
            json={"exception": "moodle_exception", "errorcode": "invalidtoken", "message": "Invalid token"},
        )

    with pytest.raises(UpstreamError) as exc:
        await _client(handler).call("core_webservice_get_site_info")
    assert exc.value.message == "Moodle Error: Invalid token"
    assert exc.value.error_code == "invalidtoken"


async def test_non_2xx_raises_with_status():
    def handler(request):
        return httpx.Response(503, text="Service Unavailable")

    with pytest.raises(UpstreamError) as exc:
        await _client(handler).call("core_course_get_courses")
    assert exc.value.upstream_status == 503
    assert exc.value.message.startswith("HTTP 503")


async def test_non_json_body_raises():
    def handler(request):
        return httpx.Response(200, text="<html>login</html>")

    with pytest.raises(UpstreamError):
        await _client(handler).call("core_course_get_courses")


async def test_network_error_raises():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamError) as exc:
        await _client(handler).call("core_course_get_courses")
    assert "Request to Moodle failed" in exc.value.message


async def test_plain_dict_body_is_returned():
    def handler(request):
        return httpx.Response(200, content=json.dumps({"quizzes": []}).encode())

    assert await _client(handler).call("mod_quiz_get_quizzes_by_courses") == {"quizzes": []}
