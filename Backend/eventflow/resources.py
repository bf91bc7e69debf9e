"""
Uniform list / update / delete for event child resources.

Each kind (guest, menu item, table, usher, vendor) is described once by a
ResourceKind: its model, its NotFound label, its list ordering and which
fields a PATCH may touch. Routes pair a kind with the ownership guard and
only write their own create logic.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from .core.errors import InvalidInput
from .models import Guest, MenuItem, Table, Usher, Vendor
from .tenancy.context import EventContext, ResourceContext, resource_context
from .tenancy.queries import scoped_select

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class ResourceKind:
    """
    Attributes:
        model: ORM class with an event_id column
        label: used in NotFound ("Item not found")
        ordering: ORDER BY clauses for list()
        patchable: attribute names PATCH may set
        required_text: patchable text fields that may not be blanked
    """

    model: type
    label: str
    ordering: tuple
    patchable: frozenset[str] = field(default_factory=frozenset)
    required_text: frozenset[str] = field(default_factory=frozenset)

    @property
    def dependency(self):
        """Guard steps 1-3 for routes with {event_id} and {resource_id}."""
        return resource_context(self.model, self.label)


def clean_text(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def require_text(value: str | None, message: str) -> str:
    """Trimmed value, or InvalidInput when it is missing or blank."""
    cleaned = (value or "").strip()
    if not cleaned:
        raise InvalidInput(message)
    return cleaned


async def list_resources(session: AsyncSession, kind: ResourceKind, ctx: EventContext) -> Sequence[Any]:
    result = await session.execute(scoped_select(kind.model, ctx.event_id).order_by(*kind.ordering))
    return result.scalars().all()


def _nullable(kind: ResourceKind, name: str) -> bool:
    column = kind.model.__table__.columns.get(name)
    return column is None or column.nullable


def _field_label(name: str) -> str:
    return name.replace("_", " ").capitalize()


def apply_changes(kind: ResourceKind, entity: Any, changes: dict) -> dict:
    """
    Set only the patchable fields present in changes. Absent fields are
    left untouched, never nulled. Returns what was applied.
    """
    applied = {}
    for name, value in changes.items():
        if name not in kind.patchable:
            continue
        value = clean_text(value)
        if value is None and not _nullable(kind, name):
            raise InvalidInput(f"{_field_label(name)} cannot be empty")
        if name in kind.required_text:
            value = require_text(value, f"{_field_label(name)} cannot be blank")
        setattr(entity, name, value)
        applied[name] = value
    return applied


async def update_resource(
    session: AsyncSession,
    kind: ResourceKind,
    ctx: ResourceContext,
    changes: dict,
    on_applied: Optional[Callable[[Any, dict], None]] = None,
) -> Any:
    """
    Partial PATCH of a guarded resource.

    on_applied(entity, applied) runs before commit, for derived fields such
    as timestamps.
    """
    entity = ctx.resource
    applied = apply_changes(kind, entity, changes)
    if on_applied is not None:
        on_applied(entity, applied)
    await session.commit()
    await session.refresh(entity)
    logger.info(f"Updated {kind.label} {entity.id} in event {ctx.event_id}: {sorted(applied)}")
    return entity


async def delete_resource(session: AsyncSession, kind: ResourceKind, ctx: ResourceContext) -> None:
    resource_id = ctx.resource.id
    await session.delete(ctx.resource)
    await session.commit()
    logger.info(f"Deleted {kind.label} {resource_id} from event {ctx.event_id}")


# ────────────────────────────────────────────────────────────────
# Resource kinds
# ────────────────────────────────────────────────────────────────

GUESTS = ResourceKind(
    model=Guest,
    label="guest",
    ordering=(Guest.created_at.desc(),),
    patchable=frozenset(
        {"first_name", "last_name", "phone", "email", "rsvp_status", "checked_in", "is_flagged", "table_number"}
    ),
    required_text=frozenset({"first_name", "last_name"}),
)

MENU_ITEMS = ResourceKind(
    model=MenuItem,
    label="item",
    ordering=(MenuItem.category.asc(), MenuItem.sort_order.asc(), MenuItem.created_at.asc()),
    patchable=frozenset({"name", "description", "is_available", "sort_order"}),
    required_text=frozenset({"name"}),
)

TABLES = ResourceKind(
    model=Table,
    label="table",
    ordering=(Table.table_number.asc(),),
    patchable=frozenset({"label", "capacity"}),
)

USHERS = ResourceKind(
    model=Usher,
    label="usher",
    ordering=(Usher.role.asc(), Usher.created_at.asc()),
    patchable=frozenset({"name", "phone", "role"}),
    required_text=frozenset({"name"}),
)

VENDORS = ResourceKind(
    model=Vendor,
    label="vendor",
    ordering=(Vendor.created_at.desc(),),
    patchable=frozenset(
        {"name", "contact_name", "email", "phone", "role", "notes", "can_override_capacity"}
    ),
    required_text=frozenset({"name"}),
)
