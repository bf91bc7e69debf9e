"""
Ushers and vendors for an event.

    GET/POST          /events/{event_id}/ushers
    PATCH/DELETE      /events/{event_id}/ushers/{resource_id}
    GET/POST          /events/{event_id}/vendors
    PATCH/DELETE      /events/{event_id}/vendors/{resource_id}

Ushers list by role then creation time; vendors newest first.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from .core.db import get_session
from .core.responses import success_response
from .models import Usher, Vendor
from .resources import USHERS, VENDORS, clean_text, delete_resource, list_resources, require_text, update_resource
from .schemas import UsherCreate, UsherOut, UsherUpdate, VendorCreate, VendorOut, VendorUpdate
from .tenancy import EventContext, ResourceContext, get_event_context

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events/{event_id}", tags=["staff"])

require_usher = USHERS.dependency
require_vendor = VENDORS.dependency


# ────────────────────────────────────────────────────────────────
# Ushers
# ────────────────────────────────────────────────────────────────

@router.get("/ushers")
async def list_ushers(
    ctx: EventContext = Depends(get_event_context),
    session: AsyncSession = Depends(get_session),
):
    ushers = await list_resources(session, USHERS, ctx)
    return [UsherOut.model_validate(usher) for usher in ushers]


@router.post("/ushers", status_code=201)
async def create_usher(
    body: UsherCreate,
    ctx: EventContext = Depends(get_event_context),
    session: AsyncSession = Depends(get_session),
):
    usher = Usher(
        event_id=ctx.event_id,
        name=require_text(body.name, "Usher name is required"),
        phone=clean_text(body.phone) or None,
        role=body.role,
    )
    session.add(usher)
    await session.commit()
    await session.refresh(usher)

    logger.info(f"Added {usher.role.value} usher {usher.id} to event {ctx.event_id}")
    return {"usher": UsherOut.model_validate(usher)}


@router.patch("/ushers/{resource_id}")
async def update_usher(
    body: UsherUpdate,
    ctx: ResourceContext = Depends(require_usher),
    session: AsyncSession = Depends(get_session),
):
    usher = await update_resource(session, USHERS, ctx, body.changes())
    return {"usher": UsherOut.model_validate(usher)}


@router.delete("/ushers/{resource_id}")
async def delete_usher(
    ctx: ResourceContext = Depends(require_usher),
    session: AsyncSession = Depends(get_session),
):
    await delete_resource(session, USHERS, ctx)
    return success_response()


# ────────────────────────────────────────────────────────────────
# Vendors
# ────────────────────────────────────────────────────────────────

@router.get("/vendors")
async def list_vendors(
    ctx: EventContext = Depends(get_event_context),
    session: AsyncSession = Depends(get_session),
):
    vendors = await list_resources(session, VENDORS, ctx)
    return [VendorOut.model_validate(vendor) for vendor in vendors]


@router.post("/vendors", status_code=201)
async def create_vendor(
    body: VendorCreate,
    ctx: EventContext = Depends(get_event_context),
    session: AsyncSession = Depends(get_session),
):
    vendor = Vendor(
        event_id=ctx.event_id,
        name=require_text(body.name, "Vendor name is required"),
        contact_name=clean_text(body.contact_name) or None,
        email=clean_text(body.email) or None,
        phone=clean_text(body.phone) or None,
        role=body.role,
        notes=clean_text(body.notes) or None,
        can_override_capacity=body.can_override_capacity,
    )
    session.add(vendor)
    await session.commit()
    await session.refresh(vendor)

    logger.info(f"Added vendor {vendor.id} ({vendor.role.value}) to event {ctx.event_id}")
    return {"vendor": VendorOut.model_validate(vendor)}


@router.patch("/vendors/{resource_id}")
async def update_vendor(
    body: VendorUpdate,
    ctx: ResourceContext = Depends(require_vendor),
    session: AsyncSession = Depends(get_session),
):
    vendor = await update_resource(session, VENDORS, ctx, body.changes())
    return {"vendor": VendorOut.model_validate(vendor)}


@router.delete("/vendors/{resource_id}")
async def delete_vendor(
    ctx: ResourceContext = Depends(require_vendor),
    session: AsyncSession = Depends(get_session),
):
    await delete_resource(session, VENDORS, ctx)
    return success_response()
