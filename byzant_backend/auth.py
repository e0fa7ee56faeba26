"""Google sign-in for the session layer.

The authorization-code exchange is delegated to authlib's Starlette client;
the only thing kept afterwards is ``{"email", "name"}`` in the signed session.
State and the redirect URI live in the same session between the two legs.
"""
from __future__ import annotations

import logging
from typing import Any

import httpx
from authlib.integrations.starlette_client import OAuth, OAuthError
from fastapi import Request
from fastapi.responses import Response


logger = logging.getLogger(__name__)

GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"
# No "openid" scope: the profile comes from the userinfo endpoint, not an ID token.
GOOGLE_SCOPES = "https://www.googleapis.com/auth/userinfo.profile https://www.googleapis.com/auth/userinfo.email"


class AuthenticationFailed(Exception):
    pass


class GoogleLogin:
    def __init__(self, client_id: str, client_secret: str, redirect_url: str = "") -> None:
        self.configured = bool(client_id and client_secret)
        self.redirect_url = redirect_url
        oauth = OAuth()
        oauth.register(
            name="google",
            client_id=client_id,
            client_secret=client_secret,
            authorize_url=GOOGLE_AUTHORIZE_URL,
            access_token_url=GOOGLE_TOKEN_URL,
            userinfo_endpoint=GOOGLE_USERINFO_URL,
            client_kwargs={"scope": GOOGLE_SCOPES},
        )
        self.client = oauth.create_client("google")

    async def login_redirect(self, request: Request, callback_url: str) -> Response:
        return await self.client.authorize_redirect(request, self.redirect_url or callback_url, access_type="online")

    async def complete(self, request: Request) -> dict[str, Any]:
        """Exchange the callback's code for the user's email and display name."""
        try:
            token = await self.client.authorize_access_token(request)
            userinfo = await self.client.userinfo(token=token)
        except OAuthError as exc:
            raise AuthenticationFailed(f"{exc.error}: {exc.description}") from exc
        except httpx.HTTPError as exc:
            raise AuthenticationFailed(f"{type(exc).__name__}: {exc}") from exc

        email = userinfo.get("email")
        if not email:
            raise AuthenticationFailed("Identity provider returned no email")
        return {"email": email, "name": userinfo.get("name") or ""}
