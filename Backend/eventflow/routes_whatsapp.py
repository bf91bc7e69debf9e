"""
WhatsApp Business connection endpoints.

    GET    /whatsapp/status           -> connection metadata (never the token)
    POST   /whatsapp/send             -> one message from the planner's number
    POST   /whatsapp/setup            -> store manually entered credentials
    DELETE /whatsapp/setup            -> disconnect
    GET    /whatsapp/setup/callback   -> embedded-signup OAuth popup landing page

Tokens are verified against the Graph API before they are stored, and always
stored encrypted.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from .auth import Session
from .core.config import Settings, get_settings
from .core.db import get_session
from .core.errors import InvalidInput, UpstreamFailure
from .core.request_context import get_optional_session
from .core.responses import success_response
from .models import Planner
from .schemas import WhatsAppSendRequest, WhatsAppSetupRequest, WhatsAppStatusOut
from .tenancy import PlannerContext, get_planner_by_email, get_planner_context
from .whatsapp import CredentialCipher, WhatsAppApiError, WhatsAppClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/whatsapp", tags=["whatsapp"])

NOT_CONNECTED_MESSAGE = "WhatsApp not connected. Go to Settings → WhatsApp to set it up."

CALLBACK_PAGE = """<!DOCTYPE html>
<html>
  <head><title>{title}</title></head>
  <body style="font-family: sans-serif; text-align: center; padding-top: 3rem;">
    <h2>{title}</h2>
    <p>{detail}</p>
    <script>setTimeout(function () {{ window.close(); }}, 2000);</script>
  </body>
</html>
"""


def get_whatsapp_client(settings: Settings = Depends(get_settings)) -> WhatsAppClient:
    return WhatsAppClient.from_settings(settings)


def get_credential_cipher(settings: Settings = Depends(get_settings)) -> CredentialCipher:
    return CredentialCipher.from_settings(settings)


def _callback_page(connected: bool, detail: str) -> HTMLResponse:
    title = "Connected!" if connected else "Connection failed"
    return HTMLResponse(CALLBACK_PAGE.format(title=title, detail=detail))


def _clean(value: Optional[str]) -> Optional[str]:
    return (value or "").strip() or None


@router.get("/status")
async def whatsapp_status(ctx: PlannerContext = Depends(get_planner_context)):
    planner = ctx.planner
    if not planner.whatsapp_connected:
        return WhatsAppStatusOut(connected=False, messages_sent_total=planner.wa_messages_sent or 0)

    return WhatsAppStatusOut(
        connected=True,
        phone_number=planner.wa_phone_number,
        display_name=planner.wa_display_name,
        business_name=planner.wa_business_name,
        waba_id=planner.wa_waba_id,
        phone_number_id=planner.wa_phone_number_id,
        connected_at=planner.wa_connected_at,
        messages_sent_total=planner.wa_messages_sent or 0,
    )


@router.post("/send")
async def whatsapp_send(
    body: WhatsAppSendRequest,
    ctx: PlannerContext = Depends(get_planner_context),
    session: AsyncSession = Depends(get_session),
    client: WhatsAppClient = Depends(get_whatsapp_client),
    cipher: CredentialCipher = Depends(get_credential_cipher),
):
    planner = ctx.planner
    if not planner.whatsapp_connected:
        raise InvalidInput(NOT_CONNECTED_MESSAGE)
    if not _clean(body.to):
        raise InvalidInput("Recipient phone number required")
    if not _clean(body.message):
        raise InvalidInput("Message body required")

    result = await client.send_text(
        cipher.decrypt(planner.wa_access_token),
        planner.wa_phone_number_id,
        body.to.strip(),
        body.message,
        preview_url=True,
    )
    if not result.success:
        raise UpstreamFailure(result.error or "Failed to send message")

    if not body.test:
        await session.execute(
            update(Planner)
            .where(Planner.id == planner.id)
            .values(wa_messages_sent=Planner.wa_messages_sent + 1)
        )
        await session.commit()

    return success_response(messageId=result.message_id)


@router.post("/setup")
async def whatsapp_setup(
    body: WhatsAppSetupRequest,
    ctx: PlannerContext = Depends(get_planner_context),
    session: AsyncSession = Depends(get_session),
    client: WhatsAppClient = Depends(get_whatsapp_client),
    cipher: CredentialCipher = Depends(get_credential_cipher),
):
    access_token = _clean(body.access_token)
    phone_number_id = _clean(body.phone_number_id)
    waba_id = _clean(body.waba_id)
    if not access_token or not phone_number_id or not waba_id:
        raise InvalidInput("accessToken, phoneNumberId and wabaId are required")

    try:
        meta = await client.verify_phone_number(access_token, phone_number_id)
    except WhatsAppApiError as exc:
        logger.warning(f"Meta rejected credentials for planner {ctx.planner_id}: {exc.message}")
        raise InvalidInput(f"Meta API rejected the credentials: {exc.message}")

    verified_name = meta.get("verified_name") or _clean(body.display_name)
    planner = ctx.planner
    planner.wa_access_token = cipher.encrypt(access_token)
    planner.wa_phone_number_id = phone_number_id
    planner.wa_waba_id = waba_id
    planner.wa_display_name = verified_name
    planner.wa_phone_number = _clean(body.phone_number) or meta.get("display_phone_number")
    planner.wa_business_name = meta.get("business_name")
    planner.wa_connected_at = datetime.now(timezone.utc)
    await session.commit()

    logger.info(f"WhatsApp connected for planner {ctx.planner_id} (token {access_token[:6]}...)")
    return success_response(displayName=verified_name)


@router.delete("/setup")
async def whatsapp_disconnect(
    ctx: PlannerContext = Depends(get_planner_context),
    session: AsyncSession = Depends(get_session),
):
    planner = ctx.planner
    planner.wa_access_token = None
    planner.wa_phone_number_id = None
    planner.wa_waba_id = None
    planner.wa_display_name = None
    planner.wa_phone_number = None
    planner.wa_business_name = None
    planner.wa_connected_at = None
    await session.commit()

    logger.info(f"WhatsApp disconnected for planner {ctx.planner_id}")
    return success_response()


@router.get("/setup/callback", response_class=HTMLResponse)
async def whatsapp_setup_callback(
    code: Optional[str] = Query(default=None),
    identity: Optional[Session] = Depends(get_optional_session),
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
    client: WhatsAppClient = Depends(get_whatsapp_client),
    cipher: CredentialCipher = Depends(get_credential_cipher),
):
    """
    Landing page for the Meta embedded-signup popup.

    Always answers with HTML; failures are shown in the popup and logged.
    """
    if identity is None:
        return _callback_page(False, "Please sign in and try again.")
    if not code:
        return _callback_page(False, "No authorisation code was returned.")
    if not settings.meta_app_id or not settings.meta_app_secret:
        logger.error("WhatsApp callback hit without META_APP_ID / META_APP_SECRET")
        return _callback_page(False, "WhatsApp signup is not configured.")

    planner = await get_planner_by_email(session, identity.email)
    if planner is None:
        return _callback_page(False, "Account not found.")

    redirect_uri = f"{settings.app_url.rstrip('/')}/whatsapp/setup/callback"
    try:
        access_token = await client.exchange_code(settings.meta_app_id, settings.meta_app_secret, redirect_uri, code)
        account = await client.discover_business(access_token)
    except (WhatsAppApiError, httpx.HTTPError) as exc:
        logger.warning(f"WhatsApp signup failed for planner {planner.id}: {exc}")
        return _callback_page(False, "Meta did not accept the signup. Please try again.")

    planner.wa_access_token = cipher.encrypt(access_token)
    planner.wa_phone_number_id = account.phone_number_id or None
    planner.wa_waba_id = account.waba_id or None
    planner.wa_display_name = account.display_name or None
    planner.wa_phone_number = account.display_phone or None
    planner.wa_business_name = account.business_name or None
    planner.wa_connected_at = datetime.now(timezone.utc)
    await session.commit()

    logger.info(f"WhatsApp connected via embedded signup for planner {planner.id}")
    return _callback_page(True, "You can close this window.")
