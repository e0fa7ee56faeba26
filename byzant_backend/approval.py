from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Protocol, Union

from .errors import UpstreamUnavailable


logger = logging.getLogger(__name__)

_PLAIN_SHEET_NAME_RE = re.compile(r"^[A-Za-z0-9_]+$")


@dataclass(frozen=True)
class NotFound:
    pass


@dataclass(frozen=True)
class FoundNotApproved:
    pass


@dataclass(frozen=True)
class Approved:
    display_name: str = ""


ApprovalOutcome = Union[NotFound, FoundNotApproved, Approved]


class SheetValuesSource(Protocol):
    async def get_values(self, spreadsheet_id: str, a1_range: str) -> list[list[str]]: ...


def column_index(letters: str) -> int:
    """Zero-based index of a spreadsheet column: A -> 0, Z -> 25, AA -> 26."""
    if not letters or not letters.isalpha() or not letters.isascii():
        raise ValueError(f"Invalid column letter: {letters!r}")
    index = 0
    for ch in letters.upper():
        index = index * 26 + (ord(ch) - ord("A") + 1)
    return index - 1


def column_letters(index: int) -> str:
    if index < 0:
        raise ValueError("Column index must be >= 0")
    letters = ""
    n = index + 1
    while n:
        n, rem = divmod(n - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


def quote_sheet_name(sheet_name: str) -> str:
    if _PLAIN_SHEET_NAME_RE.match(sheet_name):
        return sheet_name
    return "'" + sheet_name.replace("'", "''") + "'"


class ApprovalResolver:
    """Looks a session email up in the approval sheet.

    The fetched range spans exactly the columns between the leftmost and the
    rightmost of the three mapped columns, whatever order they are in. The
    first row whose email matches (case-insensitively) decides the outcome.
    The resolver never raises: if the sheet cannot be read the caller is
    denied as if the email were missing.
    """

    def __init__(
        self,
        sheets: SheetValuesSource,
        spreadsheet_id: str,
        sheet_name: str = "Sheet1",
        email_column: str = "A",
        name_column: str = "B",
        approved_column: str = "C",
    ) -> None:
        self._sheets = sheets
        self._spreadsheet_id = spreadsheet_id
        self._sheet_name = sheet_name

        indexes = [column_index(c) for c in (email_column, name_column, approved_column)]
        start, end = min(indexes), max(indexes)
        self.a1_range = f"{quote_sheet_name(sheet_name)}!{column_letters(start)}:{column_letters(end)}"
        self._email_idx, self._name_idx, self._approved_idx = (i - start for i in indexes)
        self._width = end - start + 1

    async def resolve(self, email: str) -> ApprovalOutcome:
        if not email:
            return NotFound()

        try:
            rows = await self._sheets.get_values(self._spreadsheet_id, self.a1_range)
        except UpstreamUnavailable as exc:
            logger.error(
                "Error checking approval sheet",
                extra={"service": exc.service, "status": exc.status, "detail": exc.detail},
            )
            return NotFound()
        except Exception:
            logger.exception("Unexpected error checking approval sheet")
            return NotFound()

        wanted = email.lower()
        for row in rows:
            # The API drops trailing empty cells, so short rows are common.
            cells = list(row) + [""] * (self._width - len(row))
            row_email = cells[self._email_idx]
            if not row_email or row_email.lower() != wanted:
                continue
            # No trimming: "TRUE " is not an approval.
            if cells[self._approved_idx].upper() == "TRUE":
                return Approved(cells[self._name_idx] or "")
            logger.info("Email found but not approved", extra={"email": email})
            return FoundNotApproved()

        logger.info("Email not found in approval sheet", extra={"email": email})
        return NotFound()
