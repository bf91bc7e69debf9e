"""
Google Sheets guest sync.

The planner shares a sheet as "Anyone with the link can view" and pastes the
URL. We fetch its CSV export, find the name / phone columns from the header
row and run the rows through the same duplicate filter as the bulk importer.

Header matching (after lower-casing and dropping everything but a-z):
    first name  -> contains "first", or "fname"
    last name   -> contains "last", or "lname"
    phone       -> contains "phone", or "mobile" / "tel"
"""

import csv
import io
import logging
import re
from typing import Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from .core.errors import InvalidInput
from .importer import GuestRow, import_guests
from .models import Event

logger = logging.getLogger(__name__)

SHEETS_MAX_ROWS = 500
SHEETS_HOST_MARKER = "docs.google.com/spreadsheets"

_SPREADSHEET_ID = re.compile(r"/spreadsheets/d/([a-zA-Z0-9\-_]+)")
_GID = re.compile(r"[?&#]gid=(\d+)")


def to_csv_export_url(sheets_url: str) -> Optional[str]:
    """
    Turn a sheet URL into its CSV export URL, or None if it has no id.

        >>> to_csv_export_url("https://docs.google.com/spreadsheets/d/abc123/edit#gid=42")
        'https://docs.google.com/spreadsheets/d/abc123/export?format=csv&gid=42'
    """
    match = _SPREADSHEET_ID.search(sheets_url)
    if not match:
        return None
    gid_match = _GID.search(sheets_url)
    gid = gid_match.group(1) if gid_match else "0"
    return f"https://docs.google.com/spreadsheets/d/{match.group(1)}/export?format=csv&gid={gid}"


def _normalise_header(cell: str) -> str:
    return re.sub(r"[^a-z]", "", cell.lower())


def _find_column(header: list[str], contains: str, exact: tuple[str, ...]) -> int:
    for index, name in enumerate(header):
        if contains in name or name in exact:
            return index
    return -1


def parse_sheet(csv_text: str, max_rows: int = SHEETS_MAX_ROWS) -> list[GuestRow]:
    """
    Parse CSV text into guest rows.

    Rows with a blank first or last name are dropped before the cap.

    Raises:
        InvalidInput: empty sheet, missing name columns, or no usable rows
    """
    rows = [row for row in csv.reader(io.StringIO(csv_text.strip())) if row]
    if len(rows) < 2:
        raise InvalidInput("Sheet appears to be empty")

    header = [_normalise_header(cell) for cell in rows[0]]
    first_idx = _find_column(header, "first", ("fname",))
    last_idx = _find_column(header, "last", ("lname",))
    phone_idx = _find_column(header, "phone", ("mobile", "tel"))
    if first_idx == -1 or last_idx == -1:
        raise InvalidInput("Sheet must have 'First Name' and 'Last Name' columns.")

    def cell(cols: list[str], index: int) -> str:
        return cols[index].strip() if 0 <= index < len(cols) else ""

    guests = []
    for cols in rows[1:]:
        first, last = cell(cols, first_idx), cell(cols, last_idx)
        if first and last:
            guests.append(GuestRow(first_name=first, last_name=last, phone=cell(cols, phone_idx)))
    guests = guests[:max_rows]

    if not guests:
        raise InvalidInput("No valid rows found in sheet")
    return guests


async def fetch_sheet_csv(csv_url: str, transport: Optional[httpx.AsyncBaseTransport] = None) -> str:
    async with httpx.AsyncClient(timeout=15.0, transport=transport, follow_redirects=True) as client:
        response = await client.get(csv_url, headers={"User-Agent": "EventFlow/1.0"})
    if not response.is_success:
        logger.warning(f"Sheet export fetch failed: HTTP {response.status_code}")
        raise InvalidInput(
            "Could not access the sheet. Make sure it is shared as 'Anyone with the link can view'."
        )
    return response.text


async def sync_sheet(
    session: AsyncSession,
    event: Event,
    sheets_url: Optional[str],
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> dict:
    """
    Import guests from a shared Google Sheet.

    Returns:
        {"imported": n, "skipped": n, "total": n} where total counts usable rows
    """
    if not sheets_url or SHEETS_HOST_MARKER not in sheets_url:
        raise InvalidInput("Invalid Google Sheets URL")
    csv_url = to_csv_export_url(sheets_url)
    if csv_url is None:
        raise InvalidInput("Could not parse Google Sheets URL")

    guests = parse_sheet(await fetch_sheet_csv(csv_url, transport))
    result = await import_guests(session, event, guests, max_rows=SHEETS_MAX_ROWS)
    return {"imported": result.imported, "skipped": result.skipped, "total": len(guests)}
