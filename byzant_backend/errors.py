"""Error taxonomy for the delivery pipeline.

Each error carries the HTTP status and the message that may be shown to the
client. Upstream detail (provider status codes, error bodies) belongs in the
log record, never in ``message``.
"""
from __future__ import annotations

from typing import Optional


class DeliveryError(Exception):
    status_code = 500
    message = "Error processing your request."

    def __init__(self, message: Optional[str] = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class InvalidInput(DeliveryError):
    status_code = 400
    message = "Invalid request."


class AccessDenied(DeliveryError):
    """The session user is missing from the approval list or not yet approved."""

    status_code = 403
    message = "Access denied."

    def __init__(self, email: str, outcome: object = None) -> None:
        super().__init__()
        self.email = email
        self.outcome = outcome


class DocumentNotFound(DeliveryError):
    status_code = 404
    message = "File not found."


class UpstreamUnavailable(DeliveryError):
    """An approval-list or origin-store call failed.

    ``service``, ``status`` and ``detail`` are for the server log only.
    """

    status_code = 502

    def __init__(self, service: str, status: Optional[int] = None, detail: str = "") -> None:
        super().__init__()
        self.service = service
        self.status = status
        self.detail = detail

    def __str__(self) -> str:
        return f"{self.service} unavailable (status={self.status}): {self.detail}"


class MalformedDocument(DeliveryError):
    status_code = 500
