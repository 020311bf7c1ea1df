from __future__ import annotations

import os
import secrets
from functools import lru_cache
from dotenv import load_dotenv, find_dotenv

_env_path = find_dotenv(".env") or ".env"
load_dotenv(_env_path, override=False)


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() == "true"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


class Settings:
    """Central configuration (env driven)."""

    def __init__(self) -> None:
        # Moodle web services
        self.moodle_url: str = os.getenv("MOODLE_URL", "").rstrip("/")
        self.moodle_token: str = os.getenv("MOODLE_TOKEN", "")
        self.moodle_max_concurrency: int = max(1, _env_int("MOODLE_MAX_CONCURRENCY", 8))
        # Canvas REST
        self.canvas_api_base: str = os.getenv("CANVAS_API_BASE", "").rstrip("/")
        self.canvas_api_token: str = os.getenv("CANVAS_API_TOKEN", "")
        # Google Classroom OAuth
        self.google_client_id: str = os.getenv("GOOGLE_CLIENT_ID", "")
        self.google_client_secret: str = os.getenv("GOOGLE_CLIENT_SECRET", "")
        self.google_redirect_uri: str = os.getenv("GOOGLE_REDIRECT_URI", "")
        # Signs the Classroom session cookie; a per-process secret drops sessions on restart
        self.session_secret: str = os.getenv("SESSION_SECRET") or secrets.token_urlsafe(32)
        # Outbound HTTP
        try:
            self.http_timeout_s: float = float(os.getenv("HTTP_TIMEOUT_S", "30"))
        except ValueError:
            self.http_timeout_s = 30.0
        # App meta
        self.app_name: str = "LMS Bridge"
        self.debug: bool = _env_bool("DEBUG")
        self.log_level: str = os.getenv("LOG_LEVEL", "DEBUG" if self.debug else "INFO").upper()
        self.allow_origins: str = os.getenv(
            "ALLOW_ORIGINS",
            "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173",
        )
        # Cookie/session configuration
        self.cookie_domain: str | None = os.getenv("COOKIE_DOMAIN") or None
        self.cookie_secure: bool = os.getenv("COOKIE_SECURE", "true").lower() != "false"
        self.cookie_samesite: str = os.getenv("COOKIE_SAMESITE", "lax").capitalize()  # Lax|Strict|None

    @property
    def moodle_configured(self) -> bool:
        return bool(self.moodle_url and self.moodle_token)

    @property
    def canvas_configured(self) -> bool:
        return bool(self.canvas_api_base and self.canvas_api_token)

    @property
    def classroom_configured(self) -> bool:
        return bool(self.google_client_id and self.google_client_secret and self.google_redirect_uri)

    def origins(self) -> list[str]:
        return [o.strip().rstrip("/") for o in self.allow_origins.split(",") if o.strip()]


@lru_cache()
def get_settings() -> Settings:
    return Settings()
