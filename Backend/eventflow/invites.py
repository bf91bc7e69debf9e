"""
WhatsApp invitation dispatch for a batch of guests.

Each guest with a phone gets one text message containing their RSVP link.
Successful sends stamp invite_sent_at and switch the guest's channel to
WHATSAPP; the planner's send counter goes up by the number sent.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Sequence

import httpx
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from .core.errors import InvalidInput
from .models import Event, Guest, InviteChannel, InviteModel, Planner
from .tenancy.queries import get_guests_by_ids
from .whatsapp import CredentialCipher, WhatsAppClient

logger = logging.getLogger(__name__)


@dataclass
class InviteReport:
    sent: int = 0
    failed: int = 0
    no_phone: int = 0
    errors: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {"sent": self.sent, "failed": self.failed, "noPhone": self.no_phone, "errors": self.errors}


def rsvp_link(app_url: str, event: Event, guest: Guest) -> str:
    link = f"{app_url.rstrip('/')}/rsvp/{event.slug}"
    if event.invite_model == InviteModel.CLOSED and guest.invite_token:
        link = f"{link}?invite={guest.invite_token}"
    return link


def invitation_message(guest: Guest, event: Event, link: str) -> str:
    return "\n".join(
        [
            f"Hello {guest.first_name} 👋",
            "",
            f"You're invited to *{event.name}*.",
            "",
            "Click the link below to RSVP and confirm your attendance:",
            link,
            "",
            "We look forward to celebrating with you! 🎉",
        ]
    )


async def send_invites(
    session: AsyncSession,
    planner: Planner,
    event: Event,
    guest_ids: Sequence[str],
    client: WhatsAppClient,
    cipher: CredentialCipher,
    app_url: str,
) -> InviteReport:
    """
    Send invitations to the given guests of an owned event.

    Guest ids outside the event are ignored. Sends are sequential and never
    retried; a failure is counted and the batch carries on.

    Raises:
        InvalidInput: WhatsApp not connected, or no guest ids
    """
    if not planner.whatsapp_connected:
        raise InvalidInput("WhatsApp not connected.")
    if not guest_ids:
        raise InvalidInput("No guest IDs provided")

    guests = await get_guests_by_ids(session, event.id, guest_ids)
    access_token = cipher.decrypt(planner.wa_access_token)
    report = InviteReport()

    for guest in guests:
        if not guest.phone:
            report.no_phone += 1
            continue

        message = invitation_message(guest, event, rsvp_link(app_url, event, guest))
        try:
            result = await client.send_text(access_token, planner.wa_phone_number_id, guest.phone, message)
        except httpx.HTTPError as e:
            logger.error(f"Invite send to guest {guest.id} raised: {e}")
            report.errors.append(str(e) or type(e).__name__)
            report.failed += 1
            continue

        if result.success:
            guest.invite_sent_at = datetime.now(timezone.utc)
            guest.invite_channel = InviteChannel.WHATSAPP
            report.sent += 1
        else:
            report.errors.append(result.error or "unknown")
            report.failed += 1

    if report.sent:
        await session.execute(
            update(Planner)
            .where(Planner.id == planner.id)
            .values(wa_messages_sent=Planner.wa_messages_sent + report.sent)
        )
    await session.commit()

    logger.info(
        f"Invites for event {event.id}: sent={report.sent} failed={report.failed} no_phone={report.no_phone}"
    )
    return report
