from __future__ import annotations

import os
import re
from dataclasses import dataclass


_COLUMN_RE = re.compile(r"^[A-Za-z]+$")


def _env(name: str, default: str = "") -> str:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


def _column(name: str, default: str) -> str:
    value = _env(name, default)
    if not _COLUMN_RE.match(value):
        raise ValueError(f"{name} must be a spreadsheet column letter, got {value!r}")
    return value.upper()


@dataclass(frozen=True)
class Settings:
    # Approval sheet (spreadsheet id + tab name + the three mapped columns).
    google_api_key: str = ""
    sheet_id: str = ""
    sheet_name: str = "Sheet1"
    email_column: str = "A"
    name_column: str = "B"
    approved_column: str = "C"

    # Origin store folder holding the source PDFs.
    drive_folder_id: str = ""

    # Shown on the access-denied page.
    request_access_url: str = "#"

    session_secret: str = "change-me"
    session_max_age_seconds: int = 30 * 24 * 60 * 60  # 30 days
    login_url: str = "/auth/google"
    post_login_redirect_url: str = "/"
    post_logout_redirect_url: str = "/"

    # Google OAuth client for the /auth/google login handshake.
    google_client_id: str = ""
    google_client_secret: str = ""
    # Empty means the callback URL is derived from the incoming request.
    oauth_redirect_url: str = ""

    # Source PDFs change rarely; personalized copies should pick up a fresh timestamp.
    raw_cache_ttl_seconds: int = 86400
    watermark_cache_ttl_seconds: int = 7200
    cache_sweep_interval_seconds: int = 600

    upstream_timeout_seconds: float = 30.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            google_api_key=_env("GOOGLE_API_KEY"),
            sheet_id=_env("GOOGLE_SHEET_ID"),
            sheet_name=_env("APPROVED_SHEET_NAME", "Sheet1"),
            email_column=_column("EMAIL_COLUMN_LETTER", "A"),
            name_column=_column("FULL_NAME_COLUMN_LETTER", "B"),
            approved_column=_column("APPROVED_COLUMN_LETTER", "C"),
            drive_folder_id=_env("DRIVE_PDF_FOLDER_ID"),
            request_access_url=_env("GOOGLE_FORMS_LINK", "#"),
            session_secret=_env("SESSION_SECRET", "change-me"),
            session_max_age_seconds=int(_env("SESSION_MAX_AGE_SECONDS", str(30 * 24 * 60 * 60))),
            login_url=_env("LOGIN_URL", "/auth/google"),
            post_login_redirect_url=_env("POST_LOGIN_REDIRECT_URL", "/"),
            google_client_id=_env("GOOGLE_CLIENT_ID"),
            google_client_secret=_env("GOOGLE_CLIENT_SECRET"),
            oauth_redirect_url=_env("REDIRECT_URI"),
            post_logout_redirect_url=_env("POST_LOGOUT_REDIRECT_URL", "/"),
            raw_cache_ttl_seconds=int(_env("RAW_CACHE_TTL_SECONDS", "86400")),
            watermark_cache_ttl_seconds=int(_env("WATERMARK_CACHE_TTL_SECONDS", "7200")),
            cache_sweep_interval_seconds=int(_env("CACHE_SWEEP_INTERVAL_SECONDS", "600")),
            upstream_timeout_seconds=float(_env("UPSTREAM_TIMEOUT_SECONDS", "30")),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
        )
