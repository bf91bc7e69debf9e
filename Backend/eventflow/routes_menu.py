"""
Event menu endpoints.

    GET    /events/{event_id}/menu                  -> by category, sort order, creation
    POST   /events/{event_id}/menu                  -> sort order = max in category + 1
    PATCH  /events/{event_id}/menu/{resource_id}    -> isAvailable, name, description, sortOrder
    DELETE /events/{event_id}/menu/{resource_id}
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from .core.db import get_session
from .core.responses import success_response
from .models import MenuItem
from .resources import MENU_ITEMS, delete_resource, list_resources, require_text, update_resource
from .schemas import MenuItemCreate, MenuItemOut, MenuItemUpdate
from .tenancy import EventContext, ResourceContext, get_event_context, max_in_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events/{event_id}/menu", tags=["menu"])

require_item = MENU_ITEMS.dependency


@router.get("")
async def list_menu(
    ctx: EventContext = Depends(get_event_context),
    session: AsyncSession = Depends(get_session),
):
    items = await list_resources(session, MENU_ITEMS, ctx)
    return [MenuItemOut.model_validate(item) for item in items]


@router.post("", status_code=201)
async def create_menu_item(
    body: MenuItemCreate,
    ctx: EventContext = Depends(get_event_context),
    session: AsyncSession = Depends(get_session),
):
    name = require_text(body.name, "Item name is required")
    last = await max_in_event(session, MenuItem.sort_order, ctx.event_id, MenuItem.category == body.category)

    item = MenuItem(
        event_id=ctx.event_id,
        category=body.category,
        name=name,
        description=(body.description or "").strip() or None,
        sort_order=last + 1,
    )
    session.add(item)
    await session.commit()
    await session.refresh(item)

    logger.info(f"Added menu item {item.id} ({body.category.value} #{item.sort_order}) to event {ctx.event_id}")
    return {"item": MenuItemOut.model_validate(item)}


@router.patch("/{resource_id}")
async def update_menu_item(
    body: MenuItemUpdate,
    ctx: ResourceContext = Depends(require_item),
    session: AsyncSession = Depends(get_session),
):
    item = await update_resource(session, MENU_ITEMS, ctx, body.changes())
    return {"item": MenuItemOut.model_validate(item)}


@router.delete("/{resource_id}")
async def delete_menu_item(
    ctx: ResourceContext = Depends(require_item),
    session: AsyncSession = Depends(get_session),
):
    await delete_resource(session, MENU_ITEMS, ctx)
    return success_response()
