from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request


SESSION_COOKIE_NAME = "byzant_session"
SESSION_USER_KEY = "user"


class LoginRequired(Exception):
    """Raised for requests without a logged-in session user."""


@dataclass(frozen=True)
class SessionUser:
    email: str
    name: str = ""


def current_user(request: Request) -> SessionUser | None:
    data = request.session.get(SESSION_USER_KEY)
    if not isinstance(data, dict):
        return None
    email = data.get("email")
    if not isinstance(email, str) or not email.strip():
        return None
    name = data.get("name")
    return SessionUser(email=email.strip(), name=name if isinstance(name, str) else "")


def require_session(request: Request) -> SessionUser:
    """FastAPI dependency: the session user, or a redirect to the login entry point."""
    user = current_user(request)
    if user is None:
        raise LoginRequired()
    return user


def clear_session(request: Request) -> None:
    request.session.clear()


def establish_session(request: Request, email: str, name: str = "") -> SessionUser:
    # Drops leftover OAuth state along with any previous user.
    request.session.clear()
    request.session[SESSION_USER_KEY] = {"email": email, "name": name}
    return SessionUser(email=email, name=name)
