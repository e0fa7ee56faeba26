"""Pytest configuration and fixtures

Provides in-memory stand-ins for the approval sheet and the origin folder
(with call counters), a controllable clock for cache expiry, sample PDFs, and
a factory for TestClients carrying a signed session cookie.
"""

import base64
import json
import sys
from datetime import datetime
from pathlib import Path

import pymupdf
import pytest
from itsdangerous import TimestampSigner

# Add project root to sys.path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from fastapi.testclient import TestClient

from byzant_backend.cache import CacheStore
from byzant_backend.config import Settings
from byzant_backend.errors import UpstreamUnavailable
from byzant_backend.sessions import SESSION_COOKIE_NAME
from byzant_backend.watermark import stamp


TEST_SECRET = "test-session-secret"
FIXED_NOW = datetime(2026, 10, 17, 9, 5)


# ============================================================================
# FAKE UPSTREAMS
# ============================================================================


class FakeSheets:
    def __init__(self, rows=None, error=None):
        self.rows = rows or []
        self.error = error
        self.calls = []

    async def get_values(self, spreadsheet_id, a1_range):
        self.calls.append((spreadsheet_id, a1_range))
        if self.error is not None:
            raise self.error
        return [list(r) for r in self.rows]


class FakeDrive:
    """Files keyed by name; a list value models several files sharing a name."""

    def __init__(self, files=None, error=None):
        self.files = files or {}
        self.error = error
        self.list_calls = []
        self.download_calls = []
        self._by_id = {}

    async def list_files(self, name, folder_id):
        self.list_calls.append((name, folder_id))
        if self.error is not None:
            raise self.error
        found = self.files.get(name)
        if found is None:
            return []
        blobs = found if isinstance(found, list) else [found]
        result = []
        for i, blob in enumerate(blobs):
            file_id = f"{name}-{i}"
            self._by_id[file_id] = blob
            result.append({"id": file_id, "name": name})
        return result

    async def download(self, file_id):
        self.download_calls.append(file_id)
        return self._by_id[file_id]


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class CountingStamp:
    def __init__(self):
        self.calls = []

    def __call__(self, pdf_bytes, display_name, generated_at):
        self.calls.append((display_name, generated_at))
        return stamp(pdf_bytes, display_name, generated_at)


# ============================================================================
# PDF SAMPLES
# ============================================================================


def make_pdf(pages=2, label="Psalm"):
    doc = pymupdf.open()
    for i in range(pages):
        page = doc.new_page(width=595, height=842)
        page.insert_text(pymupdf.Point(72, 72), f"{label} page {i + 1}", fontsize=14)
    data = doc.tobytes(no_new_id=True)
    doc.close()
    return data


def page_texts(pdf_bytes):
    doc = pymupdf.open(stream=pdf_bytes, filetype="pdf")
    try:
        return [page.get_text() for page in doc]
    finally:
        doc.close()


@pytest.fixture
def sample_pdf():
    return make_pdf(pages=2)


# ============================================================================
# APP FIXTURES
# ============================================================================


def session_cookie_value(user, secret=TEST_SECRET):
    # Same encoding as starlette's SessionMiddleware.
    payload = base64.b64encode(json.dumps({"user": user}).encode("utf-8"))
    return TimestampSigner(secret).sign(payload).decode("utf-8")


@pytest.fixture
def settings():
    return Settings(
        sheet_id="sheet-123",
        sheet_name="Approved",
        drive_folder_id="folder-abc",
        request_access_url="https://forms.example.com/request",
        session_secret=TEST_SECRET,
        login_url="/auth/google",
        post_logout_redirect_url="https://example.com/byzant",
        log_level="WARNING",
    )


@pytest.fixture
def approved_rows():
    return [
        ["Email", "Full Name", "Approved"],
        ["a@b.com", "Jane Doe", "TRUE"],
        ["e@f.com", "John Smith", "true"],
        ["pending@b.com", "Pat Pending", "FALSE"],
        ["noname@b.com", "", "TRUE"],
    ]


@pytest.fixture
def fake_sheets(approved_rows):
    return FakeSheets(approved_rows)


@pytest.fixture
def fake_drive(sample_pdf):
    return FakeDrive({"psalm.pdf": sample_pdf})


@pytest.fixture
def counting_stamp():
    return CountingStamp()


@pytest.fixture
def make_client(settings, fake_sheets, fake_drive, counting_stamp):
    """Build a TestClient; pass ``email=`` to log in."""
    from server import create_app

    def _make(email=None, name="", **overrides):
        kwargs = {
            "sheets": fake_sheets,
            "drive": fake_drive,
            "stamp": counting_stamp,
            "clock": lambda: FIXED_NOW,
        }
        kwargs.update(overrides)
        app = create_app(settings, **kwargs)
        client = TestClient(app, follow_redirects=False)
        if email is not None:
            client.cookies.set(SESSION_COOKIE_NAME, session_cookie_value({"email": email, "name": name}), domain="testserver.local")
        return client

    return _make


@pytest.fixture
def upstream_error():
    return UpstreamUnavailable("sheets", status=503, detail="Backend Error")


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def make_cache(fake_clock):
    def _make(ttl, name="cache"):
        return CacheStore(ttl, name=name, clock=fake_clock)

    return _make
