"""Tests for the Google sign-in routes and the session they establish."""

from dataclasses import replace
from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.responses import RedirectResponse
from fastapi.testclient import TestClient

from byzant_backend.auth import AuthenticationFailed
from server import create_app


class FakeLogin:
    configured = True

    def __init__(self, identity=None, error=None):
        self.identity = identity or {"email": "a@b.com", "name": "Jane G."}
        self.error = error
        self.callback_urls = []

    async def login_redirect(self, request, callback_url):
        self.callback_urls.append(callback_url)
        return RedirectResponse("https://idp.example.com/authorize", status_code=302)

    async def complete(self, request):
        if self.error is not None:
            raise self.error
        return self.identity


@pytest.fixture
def oauth_settings(settings):
    return replace(
        settings,
        google_client_id="client-123.apps.googleusercontent.com",
        google_client_secret="client-secret",
        post_login_redirect_url="https://example.com/byzant",
    )


def test_view_redirect_leads_to_google_authorize(oauth_settings, fake_sheets, fake_drive):
    client = TestClient(create_app(oauth_settings, sheets=fake_sheets, drive=fake_drive), follow_redirects=False)

    first = client.get("/view/psalm.pdf")
    assert first.status_code == 302
    login = client.get(first.headers["location"])
    assert login.status_code == 302

    target = urlparse(login.headers["location"])
    assert target.netloc == "accounts.google.com"
    params = parse_qs(target.query)
    assert params["client_id"] == ["client-123.apps.googleusercontent.com"]
    assert params["redirect_uri"] == ["http://testserver/auth/google/callback"]
    assert params["response_type"] == ["code"]
    assert "https://www.googleapis.com/auth/userinfo.email" in params["scope"][0]
    assert params["state"][0]


def test_login_without_client_credentials_is_503(make_client):
    response = make_client().get("/auth/google")
    assert response.status_code == 503
    assert response.text == "Login is not configured."


def test_callback_without_code_is_400(make_client):
    response = make_client(login=FakeLogin()).get("/auth/google/callback")
    assert response.status_code == 400
    assert response.text == "Missing authorization code."


def test_callback_with_unknown_state_fails(oauth_settings, fake_sheets, fake_drive):
    client = TestClient(create_app(oauth_settings, sheets=fake_sheets, drive=fake_drive), follow_redirects=False)
    response = client.get("/auth/google/callback", params={"code": "abc", "state": "forged"})
    assert response.status_code == 500
    assert response.text == "Authentication failed"
    assert client.get("/view/psalm.pdf").status_code == 302


def test_failed_exchange_does_not_sign_in(make_client):
    client = make_client(login=FakeLogin(error=AuthenticationFailed("invalid_grant: Bad Request")))
    response = client.get("/auth/google/callback", params={"code": "abc", "state": "s"})
    assert response.status_code == 500
    assert "invalid_grant" not in response.text
    assert client.get("/view/psalm.pdf").status_code == 302


def test_successful_callback_establishes_session(make_client):
    client = make_client(login=FakeLogin())
    response = client.get("/auth/google/callback", params={"code": "abc", "state": "s"})
    assert response.status_code == 302
    assert response.headers["location"] == "/"

    view = client.get("/view/psalm.pdf")
    assert view.status_code == 200
    assert view.headers["content-type"] == "application/pdf"


def test_index_greets_signed_in_user_by_name(make_client):
    client = make_client(login=FakeLogin())
    client.get("/auth/google/callback", params={"code": "abc", "state": "s"})
    response = client.get("/")
    assert "Signed in as Jane G." in response.text
    assert 'href="/logout"' in response.text


def test_index_falls_back_to_email(make_client):
    response = make_client(email="a@b.com").get("/")
    assert "Signed in as a@b.com" in response.text


def test_login_passes_callback_url(make_client):
    fake = FakeLogin()
    make_client(login=fake).get("/auth/google")
    assert fake.callback_urls == ["http://testserver/auth/google/callback"]
