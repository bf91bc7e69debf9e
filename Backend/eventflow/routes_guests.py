"""
Guest list endpoints.

    GET    /events/{event_id}/guests                     -> newest first
    POST   /events/{event_id}/guests                     -> add one guest
    PATCH  /events/{event_id}/guests/{resource_id}       -> partial update
    DELETE /events/{event_id}/guests/{resource_id}
    POST   /events/{event_id}/guests/import              -> bulk JSON import (<= 200 rows)
    POST   /events/{event_id}/guests/sync-sheets         -> import from a shared Google Sheet
    POST   /events/{event_id}/guests/send-invites        -> WhatsApp invitations
"""

import logging
from datetime import datetime, timezone
from typing import Optional

import httpx
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from .core.config import Settings, get_settings
from .core.db import get_session
from .core.errors import InvalidInput
from .core.responses import success_response
from .importer import GuestRow, import_guests, invite_token_for
from .invites import send_invites
from .models import Guest, InviteChannel, RsvpStatus
from .resources import GUESTS, delete_resource, list_resources, update_resource
from .routes_whatsapp import get_credential_cipher, get_whatsapp_client
from .schemas import (
    GuestCreate,
    GuestImportRequest,
    GuestOut,
    GuestUpdate,
    SendInvitesRequest,
    SheetsSyncRequest,
)
from .sheets_sync import sync_sheet
from .tenancy import EventContext, ResourceContext, get_event_context
from .whatsapp import CredentialCipher, WhatsAppClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events/{event_id}/guests", tags=["guests"])

require_guest = GUESTS.dependency


def get_sheets_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Outbound transport for sheet exports; tests swap in httpx.MockTransport."""
    return None


def _stamp_guest(guest: Guest, applied: dict) -> None:
    now = datetime.now(timezone.utc)
    if "rsvp_status" in applied:
        guest.rsvp_at = now
    if applied.get("checked_in") is True:
        guest.checked_in_at = now


@router.get("")
async def list_guests(
    ctx: EventContext = Depends(get_event_context),
    session: AsyncSession = Depends(get_session),
):
    guests = await list_resources(session, GUESTS, ctx)
    return [GuestOut.model_validate(guest) for guest in guests]


@router.post("", status_code=201)
async def create_guest(
    body: GuestCreate,
    ctx: EventContext = Depends(get_event_context),
    session: AsyncSession = Depends(get_session),
):
    if not (body.first_name or "").strip() or not (body.last_name or "").strip():
        raise InvalidInput("First name and last name are required")

    guest = Guest(
        event_id=ctx.event_id,
        first_name=body.first_name.strip(),
        last_name=body.last_name.strip(),
        phone=(body.phone or "").strip() or None,
        email=(body.email or "").strip() or None,
        invite_token=invite_token_for(ctx.event),
        invite_channel=InviteChannel.MANUAL,
        rsvp_status=RsvpStatus.PENDING,
    )
    session.add(guest)
    await session.commit()
    await session.refresh(guest)

    logger.info(f"Added guest {guest.id} to event {ctx.event_id}")
    return {"guest": GuestOut.model_validate(guest)}


@router.post("/import")
async def import_guest_rows(
    body: GuestImportRequest,
    ctx: EventContext = Depends(get_event_context),
    session: AsyncSession = Depends(get_session),
):
    rows = [GuestRow(first_name=r.first_name, last_name=r.last_name, phone=r.phone) for r in body.guests]
    result = await import_guests(session, ctx.event, rows)
    return result.as_dict()


@router.post("/sync-sheets")
async def sync_guests_from_sheet(
    body: SheetsSyncRequest,
    ctx: EventContext = Depends(get_event_context),
    session: AsyncSession = Depends(get_session),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_sheets_transport),
):
    return await sync_sheet(session, ctx.event, body.sheets_url, transport=transport)


@router.post("/send-invites")
async def send_guest_invites(
    body: SendInvitesRequest,
    ctx: EventContext = Depends(get_event_context),
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
    client: WhatsAppClient = Depends(get_whatsapp_client),
    cipher: CredentialCipher = Depends(get_credential_cipher),
):
    report = await send_invites(
        session,
        ctx.planner,
        ctx.event,
        body.guest_ids,
        client,
        cipher,
        settings.app_url,
    )
    return report.as_dict()


@router.patch("/{resource_id}")
async def update_guest(
    body: GuestUpdate,
    ctx: ResourceContext = Depends(require_guest),
    session: AsyncSession = Depends(get_session),
):
    guest = await update_resource(session, GUESTS, ctx, body.changes(), on_applied=_stamp_guest)
    return {"guest": GuestOut.model_validate(guest)}


@router.delete("/{resource_id}")
async def delete_guest(
    ctx: ResourceContext = Depends(require_guest),
    session: AsyncSession = Depends(get_session),
):
    await delete_resource(session, GUESTS, ctx)
    return success_response()
