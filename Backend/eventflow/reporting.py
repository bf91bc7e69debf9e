"""
Dashboard aggregation for the planner overview.

Every counter is an independent read-only COUNT scoped to the planner's
events. They are issued concurrently with asyncio.gather, each on its own
session from the shared Database (an AsyncSession cannot run two statements
at once). If any query fails the whole aggregation fails.

Usage:
    reporter = Reporter(request.app.state.db)
    stats = await reporter.stats(planner_id)
"""

import asyncio
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from sqlalchemy import Select, func, select

from .core.db import Database
from .models import Event, EventStatus, Guest, RsvpStatus, Vendor

logger = logging.getLogger(__name__)

RECENT_RSVP_LIMIT = 8
UPCOMING_EVENT_LIMIT = 5


@dataclass(frozen=True)
class DashboardStats:
    total_events: int = 0
    upcoming_events: int = 0
    total_guests: int = 0
    checked_in: int = 0
    pending_rsvps: int = 0
    total_vendors: int = 0
    gate_crashers: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class RecentRsvp:
    id: str
    first_name: str
    last_name: str
    rsvp_at: datetime
    rsvp_status: RsvpStatus
    event_name: str


@dataclass(frozen=True)
class UpcomingEvent:
    id: str
    name: str
    event_date: datetime
    status: EventStatus
    guest_count: int


def _planner_guests(planner_id: str, *criteria: Any) -> Select:
    return (
        select(func.count(Guest.id))
        .join(Event, Guest.event_id == Event.id)
        .where(Event.planner_id == planner_id, *criteria)
    )


class Reporter:
    """Read-only aggregation over one planner's events."""

    def __init__(self, database: Database):
        self.database = database

    async def _count(self, stmt: Select) -> int:
        async with self.database.session() as session:
            result = await session.execute(stmt)
            return result.scalar() or 0

    async def stats(self, planner_id: str, now: Optional[datetime] = None) -> DashboardStats:
        now = now or datetime.now(timezone.utc)
        counters = await asyncio.gather(
            self._count(select(func.count(Event.id)).where(Event.planner_id == planner_id)),
            self._count(
                select(func.count(Event.id)).where(Event.planner_id == planner_id, Event.event_date >= now)
            ),
            self._count(_planner_guests(planner_id, Guest.rsvp_status == RsvpStatus.CONFIRMED)),
            self._count(_planner_guests(planner_id, Guest.checked_in.is_(True))),
            self._count(_planner_guests(planner_id, Guest.rsvp_status == RsvpStatus.PENDING)),
            self._count(
                select(func.count(Vendor.id))
                .join(Event, Vendor.event_id == Event.id)
                .where(Event.planner_id == planner_id)
            ),
            # Gate crashers: checked in without a confirmed RSVP
            self._count(
                _planner_guests(
                    planner_id,
                    Guest.checked_in.is_(True),
                    Guest.rsvp_status != RsvpStatus.CONFIRMED,
                )
            ),
        )
        logger.debug(f"Computed dashboard stats for planner {planner_id}")
        return DashboardStats(*counters)

    async def recent_rsvps(self, planner_id: str, limit: int = RECENT_RSVP_LIMIT) -> Sequence[RecentRsvp]:
        async with self.database.session() as session:
            result = await session.execute(
                select(
                    Guest.id,
                    Guest.first_name,
                    Guest.last_name,
                    Guest.rsvp_at,
                    Guest.rsvp_status,
                    Event.name,
                )
                .join(Event, Guest.event_id == Event.id)
                .where(Event.planner_id == planner_id, Guest.rsvp_at.is_not(None))
                .order_by(Guest.rsvp_at.desc())
                .limit(limit)
            )
            return [RecentRsvp(*row) for row in result.all()]

    async def upcoming(
        self,
        planner_id: str,
        now: Optional[datetime] = None,
        limit: int = UPCOMING_EVENT_LIMIT,
    ) -> Sequence[UpcomingEvent]:
        now = now or datetime.now(timezone.utc)
        guest_count = (
            select(func.count(Guest.id))
            .where(Guest.event_id == Event.id)
            .correlate(Event)
            .scalar_subquery()
        )
        async with self.database.session() as session:
            result = await session.execute(
                select(Event.id, Event.name, Event.event_date, Event.status, guest_count)
                .where(
                    Event.planner_id == planner_id,
                    Event.event_date >= now,
                    Event.status != EventStatus.CANCELLED,
                )
                .order_by(Event.event_date.asc())
                .limit(limit)
            )
            return [UpcomingEvent(*row) for row in result.all()]
