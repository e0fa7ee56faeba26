from __future__ import annotations

import os
import html
import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Callable, Optional
from urllib.parse import quote

from fastapi import Depends, FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse, Response
from starlette.middleware.sessions import SessionMiddleware

from byzant_backend.auth import AuthenticationFailed, GoogleLogin
from byzant_backend.approval import ApprovalResolver, SheetValuesSource
from byzant_backend.cache import CacheStore
from byzant_backend.config import Settings
from byzant_backend.errors import AccessDenied, DeliveryError, MalformedDocument, UpstreamUnavailable
from byzant_backend.google_clients import DriveClient, SheetsClient, build_http_client
from byzant_backend.logging_setup import setup_logging
from byzant_backend.origin import DocumentOrigin, FileStore
from byzant_backend.pipeline import DeliveryPipeline
from byzant_backend.sessions import (
    SESSION_COOKIE_NAME,
    LoginRequired,
    SessionUser,
    clear_session,
    current_user,
    establish_session,
    require_session,
)


logger = logging.getLogger(__name__)

# Personalized PDFs must never be kept by browsers or shared proxies.
NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, private",
    "Pragma": "no-cache",
    "Expires": "0",
    "Vary": "Cookie",
}

ACCESS_DENIED_TEMPLATE = """
<html>
  <head><title>Access Denied</title></head>
  <body style="font-family: sans-serif; padding: 20px;">
    <h1>Access Denied</h1>
    <p>Your email ({email}) is logged in, but has not yet been approved.</p>
    <p><a href="{link}" target="_blank">Request Access Form</a></p>
    <p>Please wait for approval.</p>
  </body>
</html>
"""


def render_access_denied(email: str, request_access_url: str) -> str:
    return ACCESS_DENIED_TEMPLATE.format(
        email=html.escape(email),
        link=html.escape(request_access_url, quote=True),
    )


def inline_disposition(filename: str) -> str:
    # Header values are latin-1; non-ASCII names also get an RFC 5987 filename*.
    try:
        filename.encode("ascii")
    except UnicodeEncodeError:
        fallback = filename.encode("ascii", "replace").decode("ascii").replace("?", "_")
        return f"inline; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"
    return 'inline; filename="{}"'.format(filename.replace('"', '\\"'))


async def _cache_sweep_worker(caches: list[CacheStore], interval_seconds: int) -> None:
    # Periodically drop expired cache entries so one-off keys do not pile up.
    while True:
        await asyncio.sleep(max(30, interval_seconds))
        for cache in caches:
            try:
                removed = cache.sweep()
            except Exception:
                logger.exception("Cache sweep failed", extra={"cache": cache.name})
                continue
            if removed:
                logger.debug("Swept expired cache entries", extra={"cache": cache.name, "removed": removed})


def create_app(
    settings: Optional[Settings] = None,
    *,
    sheets: Optional[SheetValuesSource] = None,
    drive: Optional[FileStore] = None,
    raw_cache: Optional[CacheStore] = None,
    watermark_cache: Optional[CacheStore] = None,
    stamp: Optional[Callable] = None,
    clock: Optional[Callable[[], datetime]] = None,
    login: Optional[GoogleLogin] = None,
) -> FastAPI:
    """Build the app. Upstream clients and caches can be injected for tests."""
    settings = settings or Settings.from_env()
    setup_logging(settings.log_level)

    http_client = None
    if sheets is None or drive is None:
        http_client = build_http_client(settings.upstream_timeout_seconds)
        sheets = sheets or SheetsClient(http_client, settings.google_api_key)
        drive = drive or DriveClient(http_client, settings.google_api_key)

    raw_cache = raw_cache or CacheStore(settings.raw_cache_ttl_seconds, name="raw")
    watermark_cache = watermark_cache or CacheStore(settings.watermark_cache_ttl_seconds, name="watermarked")

    resolver = ApprovalResolver(
        sheets,
        settings.sheet_id,
        sheet_name=settings.sheet_name,
        email_column=settings.email_column,
        name_column=settings.name_column,
        approved_column=settings.approved_column,
    )
    origin = DocumentOrigin(drive, settings.drive_folder_id, raw_cache)
    pipeline_kwargs = {}
    if stamp is not None:
        pipeline_kwargs["stamp"] = stamp
    if clock is not None:
        pipeline_kwargs["clock"] = clock
    pipeline = DeliveryPipeline(resolver, origin, watermark_cache, **pipeline_kwargs)
    login = login or GoogleLogin(
        settings.google_client_id,
        settings.google_client_secret,
        redirect_url=settings.oauth_redirect_url,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        task = asyncio.create_task(
            _cache_sweep_worker([raw_cache, watermark_cache], settings.cache_sweep_interval_seconds)
        )
        app.state._sweep_task = task
        try:
            yield
        finally:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            if http_client is not None:
                await http_client.aclose()

    app = FastAPI(lifespan=lifespan)
    app.state.settings = settings
    app.state.pipeline = pipeline

    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        session_cookie=SESSION_COOKIE_NAME,
        max_age=settings.session_max_age_seconds,
        same_site="lax",
        https_only=False,
    )

    @app.middleware("http")
    async def _no_store_documents(request: Request, call_next):
        response = await call_next(request)
        # Applies to every /view outcome, errors and redirects included.
        if (request.url.path or "").startswith("/view/"):
            for name, value in NO_STORE_HEADERS.items():
                response.headers[name] = value
        return response

    @app.exception_handler(LoginRequired)
    async def _login_required(request: Request, exc: LoginRequired) -> Response:
        logger.info("User not authenticated, redirecting to login", extra={"path": request.url.path})
        return RedirectResponse(settings.login_url, status_code=302)

    @app.exception_handler(AccessDenied)
    async def _access_denied(request: Request, exc: AccessDenied) -> Response:
        logger.info(
            "Access denied",
            extra={"email": exc.email, "outcome": type(exc.outcome).__name__},
        )
        return HTMLResponse(render_access_denied(exc.email, settings.request_access_url), status_code=403)

    @app.exception_handler(UpstreamUnavailable)
    async def _upstream_unavailable(request: Request, exc: UpstreamUnavailable) -> Response:
        logger.error(
            "Upstream service failure",
            extra={"service": exc.service, "status": exc.status, "detail": exc.detail, "path": request.url.path},
        )
        return PlainTextResponse(exc.message, status_code=exc.status_code)

    @app.exception_handler(MalformedDocument)
    async def _malformed_document(request: Request, exc: MalformedDocument) -> Response:
        logger.error(
            "Source document could not be parsed",
            exc_info=exc.__cause__ or exc,
            extra={"path": request.url.path},
        )
        return PlainTextResponse(exc.message, status_code=exc.status_code)

    @app.exception_handler(DeliveryError)
    async def _delivery_error(request: Request, exc: DeliveryError) -> Response:
        return PlainTextResponse(exc.message, status_code=exc.status_code)

    @app.get("/")
    async def index(request: Request) -> Response:
        user = current_user(request)
        if user is None:
            return HTMLResponse(
                f'Byzantine Backend. <a href="{html.escape(settings.login_url)}">Login with Google</a>'
            )
        who = html.escape(user.name or user.email)
        return HTMLResponse(f'Byzantine Backend. Signed in as {who}. <a href="/logout">Log out</a>')

    @app.get("/auth/google")
    async def auth_google(request: Request) -> Response:
        if not login.configured:
            logger.error("Login requested but GOOGLE_CLIENT_ID/GOOGLE_CLIENT_SECRET are not set")
            return PlainTextResponse("Login is not configured.", status_code=503)
        return await login.login_redirect(request, str(request.url_for("auth_google_callback")))

    @app.get("/auth/google/callback", name="auth_google_callback")
    async def auth_google_callback(request: Request) -> Response:
        if not request.query_params.get("code"):
            return PlainTextResponse("Missing authorization code.", status_code=400)
        try:
            identity = await login.complete(request)
        except AuthenticationFailed as exc:
            logger.error("OAuth callback error", extra={"detail": str(exc)})
            return PlainTextResponse("Authentication failed", status_code=500)
        user = establish_session(request, identity["email"], identity["name"])
        logger.info("User signed in", extra={"email": user.email})
        return RedirectResponse(settings.post_login_redirect_url, status_code=302)

    @app.get("/ping")
    async def ping() -> JSONResponse:
        return JSONResponse(
            {
                "status": "ok",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "service": "byzant",
            }
        )

    @app.get("/logout")
    async def logout(request: Request) -> Response:
        clear_session(request)
        return RedirectResponse(settings.post_logout_redirect_url, status_code=302)

    @app.get("/view/{filename:path}")
    async def view_document(filename: str, user: SessionUser = Depends(require_session)) -> Response:
        try:
            delivery = await pipeline.deliver(user.email, filename)
        except DeliveryError:
            raise
        except Exception:
            logger.exception("View route error", extra={"doc": filename, "email": user.email})
            return PlainTextResponse("Error processing your request.", status_code=500)

        headers = {"Content-Disposition": inline_disposition(delivery.filename)}
        return Response(content=delivery.content, media_type="application/pdf", headers=headers)

    return app


app = create_app()


if __name__ == "__main__":
    # Convenience: python server.py
    import uvicorn

    port = int(os.environ.get("PORT", "3000"))
    uvicorn.run("server:app", host="0.0.0.0", port=port, reload=False)
