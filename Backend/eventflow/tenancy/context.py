"""
Tenant ownership guard for EventFlow.

Every scoped route walks the same chain before touching data:

    Session ──(1)──> Planner ──(2)──> Event ──(3)──> child resource

    1. Planner by session email          -> NotFound("user")
    2. Event by (event_id, planner_id)   -> NotFound("event")
    3. Resource by (resource_id, event)  -> NotFound(<resource>)

Steps run in order and a failing step stops the chain, so nothing is read
past the first failure and nothing is ever mutated. Step 2 answers the same
404 for "no such event" and "someone else's event".

authorize() is the one procedure that implements the chain. Routes reach it
through the FastAPI dependencies at the bottom of this module.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Type, TypeVar

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import Session
from ..core.db import Base, get_session
from ..core.errors import NotFound
from ..core.request_context import get_current_session
from ..models import Event, Planner
from .queries import get_owned_event, get_planner_by_email, require_owned

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Base)

# (session, event_id) -> resource or None
ResourceLookup = Callable[[AsyncSession, str], Awaitable[Optional[Any]]]


@dataclass(frozen=True)
class PlannerContext:
    """The resolved planner for a request (guard step 1)."""

    planner: Planner

    @property
    def planner_id(self) -> str:
        return self.planner.id


@dataclass(frozen=True)
class EventContext:
    """
    An event proven to belong to the acting planner (guard steps 1-2).

    Attributes:
        planner: the acting planner
        event: the owned event
    """

    planner: Planner
    event: Event

    @property
    def planner_id(self) -> str:
        return self.planner.id

    @property
    def event_id(self) -> str:
        return self.event.id


@dataclass(frozen=True)
class ResourceContext(EventContext):
    """A child resource proven to belong to an owned event (guard steps 1-3)."""

    resource: Any = None


# ────────────────────────────────────────────────────────────────
# Guard Steps
# ────────────────────────────────────────────────────────────────

async def resolve_planner(session: AsyncSession, identity: Session) -> Planner:
    planner = await get_planner_by_email(session, identity.email)
    if planner is None:
        logger.warning(f"No planner row for session uid {identity.uid}")
        raise NotFound("user")
    return planner


async def require_event(session: AsyncSession, planner: Planner, event_id: str) -> Event:
    event = await get_owned_event(session, event_id, planner.id)
    if event is None:
        logger.warning(f"Event {event_id} not owned by planner {planner.id}")
        raise NotFound("event")
    return event


def owned_by_event(model: Type[T], resource_id: str) -> ResourceLookup:
    """
    Build the step-3 lookup for one child model.

    Usage:
        ctx = await authorize(session, identity, event_id, "guest", owned_by_event(Guest, guest_id))
    """

    async def lookup(session: AsyncSession, event_id: str) -> Optional[T]:
        return await require_owned(session, model, resource_id, event_id)

    return lookup


async def authorize(
    session: AsyncSession,
    identity: Session,
    event_id: str,
    resource: Optional[str] = None,
    lookup: Optional[ResourceLookup] = None,
):
    """
    Run the ownership chain for one request.

    Args:
        session: Database session
        identity: Verified Session
        event_id: Event id from the URL
        resource: Label used in the step-3 NotFound ("guest", "item", ...)
        lookup: Step-3 resource lookup; omit for event-level routes

    Returns:
        EventContext, or ResourceContext when a lookup is given

    Raises:
        NotFound: user, event or the resource label, for the first failing step
    """
    planner = await resolve_planner(session, identity)
    event = await require_event(session, planner, event_id)
    if lookup is None:
        return EventContext(planner=planner, event=event)

    found = await lookup(session, event.id)
    if found is None:
        label = resource or "resource"
        logger.warning(f"{label} not found in event {event.id} for planner {planner.id}")
        raise NotFound(label)
    return ResourceContext(planner=planner, event=event, resource=found)


# ────────────────────────────────────────────────────────────────
# FastAPI Dependencies
# ────────────────────────────────────────────────────────────────

async def get_planner_context(
    session: AsyncSession = Depends(get_session),
    identity: Session = Depends(get_current_session),
) -> PlannerContext:
    """Guard step 1 for routes that are not under an event (overview, whatsapp)."""
    return PlannerContext(planner=await resolve_planner(session, identity))


async def get_event_context(
    event_id: str,
    session: AsyncSession = Depends(get_session),
    identity: Session = Depends(get_current_session),
) -> EventContext:
    """
    Guard steps 1-2 for /events/{event_id}/... routes.

        @router.get("/{event_id}/menu")
        async def list_menu(ctx: EventContext = Depends(get_event_context)):
            ...
    """
    return await authorize(session, identity, event_id)


def resource_context(model: Type[T], resource: str) -> Callable[..., Awaitable[ResourceContext]]:
    """
    Dependency factory for /events/{event_id}/<kind>/{resource_id} routes.

        require_item = resource_context(MenuItem, "item")

        @router.delete("/{event_id}/menu/{resource_id}")
        async def delete_item(ctx: ResourceContext = Depends(require_item)):
            ...
    """

    async def dependency(
        event_id: str,
        resource_id: str,
        session: AsyncSession = Depends(get_session),
        identity: Session = Depends(get_current_session),
    ) -> ResourceContext:
        return await authorize(session, identity, event_id, resource, owned_by_event(model, resource_id))

    dependency.__name__ = f"require_{resource}"
    return dependency
