"""
Multi-tenancy package for EventFlow.

Tenant isolation primitives: every child resource is reachable only through
its event, and every event only through its planner.

Modules:
    context: the ownership guard (authorize) and its FastAPI dependencies
    queries: event-scoped query helpers
"""

from .context import (
    EventContext,
    PlannerContext,
    ResourceContext,
    authorize,
    get_event_context,
    get_planner_context,
    owned_by_event,
    require_event,
    resolve_planner,
    resource_context,
)
from .queries import (
    count_event_guests,
    event_filter,
    get_guests_by_ids,
    get_owned_event,
    get_planner_by_email,
    list_guests,
    list_planner_events,
    max_in_event,
    require_owned,
    scoped_select,
)

__all__ = [
    # Guard
    "EventContext",
    "PlannerContext",
    "ResourceContext",
    "authorize",
    "get_event_context",
    "get_planner_context",
    "owned_by_event",
    "require_event",
    "resolve_planner",
    "resource_context",
    # Queries
    "count_event_guests",
    "event_filter",
    "get_guests_by_ids",
    "get_owned_event",
    "get_planner_by_email",
    "list_guests",
    "list_planner_events",
    "max_in_event",
    "require_owned",
    "scoped_select",
]
