"""
Bulk guest import.

Flow for one call:
    1. Validate batch size (1..200 rows for the JSON import)
    2. Load the event's existing guests ONCE into two lookup sets
    3. Filter rows with a pure function of (row, sets)
    4. Insert the survivors in one executemany INSERT

Steps 2-4 run under a per-event lock (an asyncio.Lock in this process plus a
transaction-scoped advisory lock on PostgreSQL) and inside one transaction,
so two concurrent imports into the same event cannot both pass the duplicate
check.

Rows in the same batch are only checked against guests that already exist,
not against each other.
"""

import asyncio
import logging
import secrets
import weakref
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from sqlalchemy import insert, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from .core.errors import InvalidInput
from .models import Event, Guest, InviteChannel, InviteModel, RsvpStatus
from .tenancy.queries import event_filter

logger = logging.getLogger(__name__)

MAX_IMPORT_ROWS = 200
ALL_DUPLICATES_MESSAGE = "All guests already exist"

_event_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()


@dataclass(frozen=True)
class GuestRow:
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None


@dataclass(frozen=True)
class ImportResult:
    imported: int
    skipped: int
    message: Optional[str] = None

    def as_dict(self) -> dict:
        body = {"imported": self.imported, "skipped": self.skipped}
        if self.message:
            body["message"] = self.message
        return body


def name_key(first_name: str, last_name: str) -> str:
    return f"{first_name.strip().lower()}|{last_name.strip().lower()}"


@dataclass
class ExistingGuests:
    """Lookup sets built from an event's guests, loaded once per import."""

    name_keys: set[str] = field(default_factory=set)
    phones: set[str] = field(default_factory=set)

    @classmethod
    def from_rows(cls, rows: Iterable[tuple[str, str, Optional[str]]]) -> "ExistingGuests":
        existing = cls()
        for first_name, last_name, phone in rows:
            existing.name_keys.add(name_key(first_name, last_name))
            if phone:
                existing.phones.add(phone)
        return existing


def is_importable(row: GuestRow, existing: ExistingGuests) -> bool:
    first = (row.first_name or "").strip()
    last = (row.last_name or "").strip()
    if not first or not last:
        return False
    if name_key(first, last) in existing.name_keys:
        return False
    phone = (row.phone or "").strip()
    if phone and phone in existing.phones:
        return False
    return True


def filter_new_rows(rows: Sequence[GuestRow], existing: ExistingGuests) -> list[GuestRow]:
    return [row for row in rows if is_importable(row, existing)]


def generate_invite_token() -> str:
    """128-bit URL-safe token."""
    return secrets.token_urlsafe(16)


def invite_token_for(event: Event) -> Optional[str]:
    return generate_invite_token() if event.invite_model == InviteModel.CLOSED else None


def _event_lock(event_id: str) -> asyncio.Lock:
    lock = _event_locks.get(event_id)
    if lock is None:
        lock = asyncio.Lock()
        _event_locks[event_id] = lock
    return lock


async def _load_existing(session: AsyncSession, event_id: str) -> ExistingGuests:
    result = await session.execute(
        select(Guest.first_name, Guest.last_name, Guest.phone).where(event_filter(Guest, event_id))
    )
    return ExistingGuests.from_rows(result.all())


async def _acquire_store_lock(session: AsyncSession, event_id: str) -> None:
    if session.bind.dialect.name == "postgresql":
        await session.execute(
            text("SELECT pg_advisory_xact_lock(hashtext(:event_id))"),
            {"event_id": event_id},
        )


async def import_guests(
    session: AsyncSession,
    event: Event,
    rows: Sequence[GuestRow],
    max_rows: int = MAX_IMPORT_ROWS,
) -> ImportResult:
    """
    Import a batch of guests into an event the caller already owns.

    Args:
        session: Database session (committed here)
        event: Event that passed the ownership guard
        rows: Candidate rows
        max_rows: Batch ceiling

    Returns:
        ImportResult where imported + skipped == len(rows)

    Raises:
        InvalidInput: empty batch or more than max_rows rows
    """
    if not rows:
        raise InvalidInput("No guests provided")
    if len(rows) > max_rows:
        raise InvalidInput(f"Maximum {max_rows} guests per import")

    async with _event_lock(event.id):
        await _acquire_store_lock(session, event.id)
        existing = await _load_existing(session, event.id)
        to_create = filter_new_rows(rows, existing)

        if to_create:
            await session.execute(
                insert(Guest),
                [
                    {
                        "event_id": event.id,
                        "first_name": row.first_name.strip(),
                        "last_name": row.last_name.strip(),
                        "phone": (row.phone or "").strip() or None,
                        "invite_token": invite_token_for(event),
                        "invite_channel": InviteChannel.MANUAL,
                        "rsvp_status": RsvpStatus.PENDING,
                    }
                    for row in to_create
                ],
            )
        await session.commit()

    skipped = len(rows) - len(to_create)
    logger.info(f"Imported {len(to_create)} guests into event {event.id} ({skipped} skipped)")
    if not to_create:
        return ImportResult(imported=0, skipped=skipped, message=ALL_DUPLICATES_MESSAGE)
    return ImportResult(imported=len(to_create), skipped=skipped)

