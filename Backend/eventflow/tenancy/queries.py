"""
Event-scoped query helpers.

ALL queries for child resources (Guest, MenuItem, Table, Usher, Vendor) MUST
use these helpers or include an explicit event_id filter. Events themselves
are always filtered by planner_id. scripts/check_event_scoping.py enforces
this.

Usage:
    from eventflow.tenancy.queries import scoped_select, require_owned

    stmt = scoped_select(Guest, event_id).order_by(Guest.created_at.desc())
    guest = await require_owned(session, Guest, guest_id, event_id)
"""

from typing import Any, Optional, Sequence, Type, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.db import Base
from ..models import Event, Guest, Planner

T = TypeVar("T", bound=Base)


# ────────────────────────────────────────────────────────────────
# Composable Query Helpers
# ────────────────────────────────────────────────────────────────

def scoped_select(model: Type[T], event_id: str) -> Select:
    """
    Create a SELECT statement pre-filtered by event_id.

    Usage:
        stmt = scoped_select(MenuItem, event_id).where(MenuItem.is_available == True)
    """
    return select(model).where(model.event_id == event_id)


def event_filter(model: Type[T], event_id: str):
    """Return a SQLAlchemy filter clause for event_id."""
    return model.event_id == event_id


async def require_owned(
    session: AsyncSession,
    model: Type[T],
    entity_id: str,
    event_id: str,
) -> Optional[T]:
    """
    Fetch a child entity by ID, validating event ownership.
    Returns None if not found or it belongs to another event.
    """
    result = await session.execute(
        select(model).where(
            model.id == entity_id,
            model.event_id == event_id,
        )
    )
    return result.scalar_one_or_none()


async def max_in_event(
    session: AsyncSession,
    column: Any,
    event_id: str,
    *criteria: Any,
) -> int:
    """
    Highest value of an integer column among an event's rows, 0 when empty.

    Usage:
        next_number = await max_in_event(session, Table.table_number, event_id) + 1
    """
    model = column.class_
    result = await session.execute(
        select(func.max(column)).where(model.event_id == event_id, *criteria)
    )
    return result.scalar() or 0


# ────────────────────────────────────────────────────────────────
# Planner / Event Queries
# ────────────────────────────────────────────────────────────────

async def get_planner_by_email(session: AsyncSession, email: str) -> Optional[Planner]:
    result = await session.execute(select(Planner).where(Planner.email == email))
    return result.scalar_one_or_none()


async def get_owned_event(
    session: AsyncSession,
    event_id: str,
    planner_id: str,
) -> Optional[Event]:
    """Event by id AND owner. A foreign event looks exactly like a missing one."""
    result = await session.execute(
        select(Event).where(
            Event.id == event_id,
            Event.planner_id == planner_id,
        )
    )
    return result.scalar_one_or_none()


async def list_planner_events(session: AsyncSession, planner_id: str) -> Sequence[tuple[Event, int]]:
    """Planner's events newest first, each with its guest count."""
    guest_count = (
        select(func.count(Guest.id))
        .where(Guest.event_id == Event.id)
        .correlate(Event)
        .scalar_subquery()
    )
    result = await session.execute(
        select(Event, guest_count)
        .where(Event.planner_id == planner_id)
        .order_by(Event.created_at.desc())
    )
    return result.all()


async def count_event_guests(session: AsyncSession, event_id: str) -> int:
    result = await session.execute(select(func.count(Guest.id)).where(Guest.event_id == event_id))
    return result.scalar() or 0


async def list_guests(session: AsyncSession, event_id: str) -> Sequence[Guest]:
    """All guests of an event, newest first."""
    result = await session.execute(
        scoped_select(Guest, event_id).order_by(Guest.created_at.desc())
    )
    return result.scalars().all()


async def get_guests_by_ids(
    session: AsyncSession,
    event_id: str,
    guest_ids: Sequence[str],
) -> Sequence[Guest]:
    """Get multiple guests by IDs, scoped to event. Foreign ids are silently dropped."""
    if not guest_ids:
        return []
    result = await session.execute(
        scoped_select(Guest, event_id).where(Guest.id.in_(guest_ids))
    )
    return result.scalars().all()
