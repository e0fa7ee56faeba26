"""Per-user PDF watermarking with PyMuPDF.

``stamp`` is a pure function of its three arguments: the same PDF, name and
timestamp always serialize to the same bytes, so it is safe to call from
several worker threads at once and to cache its output.
"""
from __future__ import annotations

from datetime import datetime
from functools import lru_cache

import pymupdf

from .errors import MalformedDocument


# Noto Sans Italic from pymupdf-fonts, embedded so Greek and Cyrillic names render.
WATERMARK_FONT_FILE = "notosit"
WATERMARK_FONT_NAME = "WmNotoSansIt"
WATERMARK_FONT_SIZE = 8
WATERMARK_COLOR = (0.5, 0.5, 0.5)
# Offsets from the bottom-left corner of each page.
WATERMARK_X = 30
WATERMARK_Y = 20


@lru_cache(maxsize=1)
def watermark_font_buffer() -> bytes:
    return pymupdf.Font(WATERMARK_FONT_FILE).buffer


def format_timestamp(value: datetime) -> str:
    """Medium date, short time: ``Oct 17, 2026, 9:05 AM``."""
    hour = value.hour % 12 or 12
    meridiem = "AM" if value.hour < 12 else "PM"
    return f"{value:%b} {value.day}, {value.year}, {hour}:{value:%M} {meridiem}"


def watermark_text(display_name: str, generated_at: datetime) -> str:
    return f"Authorized liturgical use for {display_name}. Generated: {format_timestamp(generated_at)}"


def stamp(pdf_bytes: bytes, display_name: str, generated_at: datetime) -> bytes:
    try:
        doc = pymupdf.open(stream=pdf_bytes, filetype="pdf")
    except Exception as exc:
        raise MalformedDocument() from exc

    try:
        if doc.page_count == 0:
            raise MalformedDocument()
        text = watermark_text(display_name, generated_at)
        font_buffer = watermark_font_buffer()
        for page in doc:
            page.insert_font(fontname=WATERMARK_FONT_NAME, fontbuffer=font_buffer)
            # PyMuPDF measures y from the top; the anchor is measured from the bottom.
            point = pymupdf.Point(WATERMARK_X, page.rect.height - WATERMARK_Y)
            page.insert_text(
                point,
                text,
                fontname=WATERMARK_FONT_NAME,
                fontsize=WATERMARK_FONT_SIZE,
                color=WATERMARK_COLOR,
            )
        # no_new_id keeps the trailer /ID stable so equal inputs give equal bytes.
        return doc.tobytes(garbage=3, deflate=True, no_new_id=True)
    finally:
        doc.close()
