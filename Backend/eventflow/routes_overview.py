"""
Planner dashboard endpoints.

    GET /overview/stats         -> seven counters across all the planner's events
    GET /overview/recent-rsvps  -> last 8 RSVPs with event name
    GET /overview/upcoming      -> next 5 non-cancelled events with guest counts
"""

from fastapi import APIRouter, Depends

from .core.db import Database, get_database
from .reporting import Reporter
from .schemas import EventNameOut, RecentRsvpOut, StatsOut, UpcomingEventOut
from .tenancy import PlannerContext, get_planner_context

router = APIRouter(prefix="/overview", tags=["overview"])


def get_reporter(database: Database = Depends(get_database)) -> Reporter:
    return Reporter(database)


@router.get("/stats")
async def overview_stats(
    ctx: PlannerContext = Depends(get_planner_context),
    reporter: Reporter = Depends(get_reporter),
):
    stats = await reporter.stats(ctx.planner_id)
    return StatsOut(**stats.as_dict())


@router.get("/recent-rsvps")
async def overview_recent_rsvps(
    ctx: PlannerContext = Depends(get_planner_context),
    reporter: Reporter = Depends(get_reporter),
):
    rows = await reporter.recent_rsvps(ctx.planner_id)
    return [
        RecentRsvpOut(
            id=row.id,
            first_name=row.first_name,
            last_name=row.last_name,
            rsvp_at=row.rsvp_at,
            rsvp_status=row.rsvp_status,
            event=EventNameOut(name=row.event_name),
        )
        for row in rows
    ]


@router.get("/upcoming")
async def overview_upcoming(
    ctx: PlannerContext = Depends(get_planner_context),
    reporter: Reporter = Depends(get_reporter),
):
    events = await reporter.upcoming(ctx.planner_id)
    return [UpcomingEventOut.model_validate(event) for event in events]
