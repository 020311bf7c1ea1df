"""FastAPI entrypoint: Moodle, Canvas and Google Classroom adapters behind one app."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException
from fastapi.middleware.cors import CORSMiddleware

import re
import uuid
import logging
from time import perf_counter
from datetime import datetime, timezone
from typing import Any, Dict

from lms_bridge.core.config import get_settings
from lms_bridge.auth.routes import router as classroom_auth_router
from lms_bridge.common.errors import (
    LMSBridgeError,
    http_error_handler,
    lms_error_handler,
    request_validation_handler,
)
from lms_bridge.common.middleware import ClassroomSessionMiddleware
from lms_bridge.common.schemas import HealthCheckResponse
from lms_bridge.features.moodle.endpoints import router as moodle_router
from lms_bridge.features.canvas.endpoints import router as canvas_router
from lms_bridge.features.classroom.endpoints import router as classroom_router

_settings = get_settings()

logging.basicConfig(
    level=getattr(logging, _settings.log_level, logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)

app = FastAPI(title=_settings.app_name)
_START_TIME = datetime.now(timezone.utc)


# ------------------------
# CORS Setup
# ------------------------
_FRONTEND_ORIGINS = _settings.origins()
_CORS_ORIGIN_REGEX = re.compile(r"https?://(localhost|127\.0\.0\.1)(:\d+)?", re.I)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_FRONTEND_ORIGINS,
    allow_origin_regex=_CORS_ORIGIN_REGEX.pattern,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ------------------------
# Custom Middlewares
# ------------------------
app.add_middleware(ClassroomSessionMiddleware, auto_refresh=True)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    incoming = request.headers.get("X-Request-Id") or request.headers.get("X-Request-ID")
    req_id = incoming or str(uuid.uuid4())
    request.state.request_id = req_id
    logger = logging.getLogger("request")
    logger.info("request.start", extra={"request_id": req_id, "path": request.url.path, "method": request.method})
    t0 = perf_counter()
    response = await call_next(request)
    elapsed_ms = int((perf_counter() - t0) * 1000)
    response.headers["X-Request-Id"] = req_id
    logger.info(
        "request.end %s %s %dms %s",
        request.method,
        request.url.path,
        elapsed_ms,
        response.status_code,
        extra={"request_id": req_id, "path": request.url.path, "status_code": response.status_code},
    )
    return response


# ------------------------
# Error envelope
# ------------------------
app.add_exception_handler(LMSBridgeError, lms_error_handler)
app.add_exception_handler(HTTPException, http_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)


# ------------------------
# Routers
# ------------------------
app.include_router(moodle_router)
app.include_router(canvas_router)
app.include_router(classroom_auth_router)
app.include_router(classroom_router)


# ------------------------
# Meta endpoints
# ------------------------
@app.get("/", tags=["meta"], summary="API Root")
async def root() -> Dict[str, Any]:
    return {
        "name": _settings.app_name,
        "status": "ok",
        "docs": "/docs",
        "health": "/healthz",
        "adapters": {
            "moodle": {
                "GET /moodle/test": "Check the web-service token",
                "GET /moodle/courses": "List courses",
                "GET /moodle/courses/{courseId}": "Students ranked by mean quiz score",
                "GET /moodle/quizzes/{quizId}/questions?includeAnswers=bool": "Quiz questions",
                "GET /moodle/attempts/{attemptId}": "Attempt review",
                "GET /moodle/students/{userId}/quiz/{quizId}/attempts": "One student's attempts on a quiz",
                "GET /moodle/students/{userId}/course/{courseId}": "One student's course performance",
            },
            "canvas": {
                "GET /canvas/courses": "List courses",
                "GET /canvas/courses/{courseId}/assignments": "List assignments",
                "GET /canvas/courses/{courseId}/students": "List enrolled students",
                "GET /canvas/courses/{courseId}/quizzes/{quizId}/grades": "Quiz grades joined with the roster",
                "GET /canvas/courses/{courseId}/files": "List files",
                "GET /canvas/courses/{courseId}/folders": "List folders",
            },
            "classroom": {
                "GET /classroom/auth": "Get authentication URL",
                "GET /classroom/google/callback": "OAuth callback (used by Google)",
                "GET /classroom/status": "Check authentication status",
                "POST /classroom/logout": "End the session",
                "GET /classroom/profile": "Current user profile",
                "GET|POST /classroom/courses": "List or create courses",
                "GET /classroom/courses/{courseId}": "Course details",
                "GET /classroom/courses/{courseId}/teachers": "List teachers",
                "GET /classroom/courses/{courseId}/students": "List students",
                "GET|POST /classroom/courses/{courseId}/courseWork": "List or create coursework",
                "GET /classroom/courses/{courseId}/courseWork/{courseWorkId}/studentSubmissions": "List submissions",
                "PATCH /classroom/courses/{courseId}/courseWork/{courseWorkId}/studentSubmissions/{id}": "Grade a submission",
            },
        },
    }


@app.get("/healthz", tags=["meta"], summary="Liveness / readiness probe", response_model=HealthCheckResponse)
async def healthz() -> HealthCheckResponse:
    now = datetime.now(timezone.utc)
    return HealthCheckResponse(
        status="ok",
        timestamp=now,
        uptime_seconds=round((now - _START_TIME).total_seconds(), 2),
        adapters={
            "moodle": _settings.moodle_configured,
            "canvas": _settings.canvas_configured,
            "classroom": _settings.classroom_configured,
        },
        route_count=len(app.routes),
    )
