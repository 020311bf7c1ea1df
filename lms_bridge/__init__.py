"""LMS Bridge: HTTP adapters over Moodle, Canvas and Google Classroom.

The FastAPI application is ``lms_bridge.main:app``."""
