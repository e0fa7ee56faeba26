"""Backend utilities for the Byzant document-delivery service.

This package intentionally keeps FastAPI route handlers thin:
- approval lookup against the approval sheet
- origin document retrieval with a raw-bytes cache
- per-user PDF watermarking with an artifact cache

Security note:
Watermarked artifacts are personal. They are cached server-side only and must
never be cached by browsers or proxies, so every /view response carries
no-store headers.
"""
