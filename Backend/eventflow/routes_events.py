"""
Event management endpoints.

    GET    /events              -> planner's events, newest first, with guest counts
    POST   /events              -> create (slug generated from name)
    GET    /events/{event_id}   -> one owned event
    PATCH  /events/{event_id}   -> partial update
    DELETE /events/{event_id}   -> delete with all children

Every route runs the ownership guard; a foreign event answers 404 exactly
like a missing one.
"""

import logging
import re
import unicodedata
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .core.db import get_session
from .core.errors import Internal, InvalidInput
from .core.responses import success_response
from .models import Event, EventStatus
from .resources import require_text
from .schemas import EventCreate, EventOut, EventUpdate
from .tenancy import (
    EventContext,
    PlannerContext,
    count_event_guests,
    get_event_context,
    get_planner_context,
    list_planner_events,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["events"])

VALID_STATUSES = {status.value for status in EventStatus}


# === Helper Functions ===

def generate_slug(name: str) -> str:
    """
    Generate a URL-safe slug from an event name.

    Examples:
        "Tolu & Ade's Wedding" -> "tolu-ade-s-wedding"
        "Fête 2026"            -> "fete-2026"
        "!!!"                  -> "event"
    """
    normalized = unicodedata.normalize("NFKD", name)
    ascii_str = normalized.encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9]+", "-", ascii_str.lower()).strip("-")
    return slug[:100] or "event"


async def ensure_unique_slug(db: AsyncSession, base_slug: str) -> str:
    """Append -2, -3, ... until the slug is free."""
    candidate = base_slug
    counter = 2

    while True:
        result = await db.execute(select(Event.id).where(Event.slug == candidate))
        if result.scalar_one_or_none() is None:
            return candidate

        candidate = f"{base_slug}-{counter}"
        counter += 1

        if counter > 1000:
            raise Internal("Unable to generate unique slug")


def to_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def event_out(event: Event, guest_count: int = 0) -> EventOut:
    return EventOut.model_validate(event).model_copy(update={"guest_count": guest_count})


# === Endpoints ===

@router.get("")
async def list_events(
    ctx: PlannerContext = Depends(get_planner_context),
    session: AsyncSession = Depends(get_session),
):
    rows = await list_planner_events(session, ctx.planner_id)
    return [event_out(event, guest_count) for event, guest_count in rows]


@router.post("", status_code=201)
async def create_event(
    body: EventCreate,
    ctx: PlannerContext = Depends(get_planner_context),
    session: AsyncSession = Depends(get_session),
):
    name = require_text(body.name, "Event name is required")
    slug = await ensure_unique_slug(session, generate_slug(name))

    fields = body.model_dump(exclude={"name", "date"})
    fields["rsvp_deadline"] = to_utc(fields.get("rsvp_deadline"))
    event = Event(
        planner_id=ctx.planner_id,
        name=name,
        slug=slug,
        event_date=to_utc(body.date),
        status=EventStatus.DRAFT,
        **fields,
    )
    session.add(event)
    await session.commit()
    await session.refresh(event)

    logger.info(f"Planner {ctx.planner_id} created event {event.id} ({slug})")
    return {"event": event_out(event)}


@router.get("/{event_id}")
async def get_event(
    ctx: EventContext = Depends(get_event_context),
    session: AsyncSession = Depends(get_session),
):
    return {"event": event_out(ctx.event, await count_event_guests(session, ctx.event_id))}


@router.patch("/{event_id}")
async def update_event(
    body: EventUpdate,
    ctx: EventContext = Depends(get_event_context),
    session: AsyncSession = Depends(get_session),
):
    changes = body.changes()

    status = changes.pop("status", None)
    if status is not None:
        if status not in VALID_STATUSES:
            raise InvalidInput("Invalid status")
        changes["status"] = EventStatus(status)

    if "name" in changes:
        changes["name"] = require_text(changes["name"], "Event name is required")
    if "date" in changes:
        if changes["date"] is None:
            raise InvalidInput("Event date is required")
        changes["event_date"] = to_utc(changes.pop("date"))
    if "rsvp_deadline" in changes:
        changes["rsvp_deadline"] = to_utc(changes["rsvp_deadline"])
    for flag in ("invite_model", "require_otp"):
        if flag in changes and changes[flag] is None:
            raise InvalidInput(f"{flag.replace('_', ' ').capitalize()} cannot be empty")

    event = ctx.event
    for name, value in changes.items():
        setattr(event, name, value)
    await session.commit()
    await session.refresh(event)

    logger.info(f"Updated event {event.id}: {sorted(changes)}")
    return {"event": event_out(event, await count_event_guests(session, event.id))}


@router.delete("/{event_id}")
async def delete_event(
    ctx: EventContext = Depends(get_event_context),
    session: AsyncSession = Depends(get_session),
):
    await session.delete(ctx.event)
    await session.commit()
    logger.info(f"Planner {ctx.planner_id} deleted event {ctx.event_id}")
    return success_response()
