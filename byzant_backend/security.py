from __future__ import annotations

import re
from pathlib import Path

from .errors import InvalidInput


_UNSAFE_NAME_CHARS_RE = re.compile(r"[^A-Za-z0-9]")


def is_safe_basename(name: str) -> bool:
    """Allow only simple filenames (no directories, no parent segments)."""
    if not isinstance(name, str) or not name:
        return False
    if "/" in name or "\\" in name or ".." in name:
        return False
    if name != Path(name).name:
        return False
    return True


def validate_pdf_filename(filename: str) -> str:
    """Validate a requested document name.

    Only bare ``*.pdf`` names are served; anything that could address another
    object in the origin folder is rejected before approval is even checked.
    """
    if not isinstance(filename, str) or not filename.lower().endswith(".pdf"):
        raise InvalidInput("Invalid request: Filename must end with .pdf")
    if not is_safe_basename(filename):
        raise InvalidInput("Invalid filename.")
    return filename


def normalize_cache_name(name: str) -> str:
    # ASCII alphanumerics only; everything else (including non-ASCII letters) becomes "_".
    return _UNSAFE_NAME_CHARS_RE.sub("_", name).lower()


def watermark_cache_key(filename: str, display_name: str) -> str:
    return f"{filename}_{normalize_cache_name(display_name)}"
