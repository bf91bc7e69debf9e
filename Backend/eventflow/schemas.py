"""
Request and response models.

The JSON API is camelCase (firstName, eventDate, ...); attributes stay
snake_case. Request models accept either spelling. Update models are partial:
only fields present in the body are applied (model_dump(exclude_unset=True)).
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from .models import (
    EventStatus,
    InviteChannel,
    InviteModel,
    MenuCategory,
    RsvpStatus,
    UsherRole,
    VendorRole,
)


class CamelModel(BaseModel):
    model_config = {"alias_generator": to_camel, "populate_by_name": True, "from_attributes": True}

    def changes(self) -> dict:
        """Fields the client actually sent, keyed by attribute name."""
        return self.model_dump(exclude_unset=True)


# ────────────────────────────────────────────────────────────────
# Planner / identity
# ────────────────────────────────────────────────────────────────

class PlannerOut(CamelModel):
    id: str
    email: str
    name: Optional[str] = None
    image: Optional[str] = None
    created_at: Optional[datetime] = None


class AuthSyncRequest(CamelModel):
    uid: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    image: Optional[str] = None


# ────────────────────────────────────────────────────────────────
# Events
# ────────────────────────────────────────────────────────────────

class EventOut(CamelModel):
    id: str
    name: str
    slug: str
    description: Optional[str] = None
    event_type: Optional[str] = None
    event_date: datetime
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    venue_name: Optional[str] = None
    venue_address: Optional[str] = None
    venue_capacity: Optional[int] = None
    invite_model: InviteModel
    require_otp: bool = False
    rsvp_deadline: Optional[datetime] = None
    brand_color: Optional[str] = None
    invitation_card: Optional[str] = None
    status: EventStatus
    created_at: datetime
    updated_at: datetime
    guest_count: int = 0


class EventCreate(CamelModel):
    name: str = ""
    date: datetime
    description: Optional[str] = None
    event_type: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    venue_name: Optional[str] = None
    venue_address: Optional[str] = None
    venue_capacity: Optional[int] = Field(default=None, ge=0)
    invite_model: InviteModel = InviteModel.OPEN
    require_otp: bool = False
    rsvp_deadline: Optional[datetime] = None
    brand_color: Optional[str] = None
    invitation_card: Optional[str] = None


class EventUpdate(CamelModel):
    name: Optional[str] = None
    date: Optional[datetime] = None
    description: Optional[str] = None
    event_type: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    venue_name: Optional[str] = None
    venue_address: Optional[str] = None
    venue_capacity: Optional[int] = Field(default=None, ge=0)
    invite_model: Optional[InviteModel] = None
    require_otp: Optional[bool] = None
    rsvp_deadline: Optional[datetime] = None
    brand_color: Optional[str] = None
    invitation_card: Optional[str] = None
    status: Optional[str] = None


# ────────────────────────────────────────────────────────────────
# Guests
# ────────────────────────────────────────────────────────────────

class GuestOut(CamelModel):
    id: str
    event_id: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    rsvp_status: RsvpStatus
    rsvp_at: Optional[datetime] = None
    checked_in: bool = False
    checked_in_at: Optional[datetime] = None
    invite_token: Optional[str] = None
    invite_channel: InviteChannel
    invite_sent_at: Optional[datetime] = None
    is_flagged: bool = False
    table_number: Optional[int] = None
    created_at: datetime


class GuestCreate(CamelModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class GuestUpdate(CamelModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    rsvp_status: Optional[RsvpStatus] = None
    checked_in: Optional[bool] = None
    is_flagged: Optional[bool] = None
    table_number: Optional[int] = None


class GuestImportRow(CamelModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None


class GuestImportRequest(CamelModel):
    guests: list[GuestImportRow] = Field(default_factory=list)


class SheetsSyncRequest(CamelModel):
    sheets_url: Optional[str] = None


class SendInvitesRequest(CamelModel):
    guest_ids: list[str] = Field(default_factory=list)


# ────────────────────────────────────────────────────────────────
# Menu / tables / ushers / vendors
# ────────────────────────────────────────────────────────────────

class MenuItemOut(CamelModel):
    id: str
    event_id: str
    category: MenuCategory
    name: str
    description: Optional[str] = None
    is_available: bool = True
    sort_order: int
    created_at: datetime


class MenuItemCreate(CamelModel):
    category: MenuCategory = MenuCategory.MAIN
    name: str = ""
    description: Optional[str] = None


class MenuItemUpdate(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    is_available: Optional[bool] = None
    sort_order: Optional[int] = None


class TableOut(CamelModel):
    id: str
    event_id: str
    table_number: int
    label: Optional[str] = None
    capacity: int
    created_at: datetime


class TableCreate(CamelModel):
    table_number: Optional[int] = None
    label: Optional[str] = None
    capacity: int = Field(default=10, ge=1)


class TableBulkCreate(CamelModel):
    count: Optional[int] = None
    seats_per_table: int = Field(default=10, ge=1)


class TableUpdate(CamelModel):
    label: Optional[str] = None
    capacity: Optional[int] = Field(default=None, ge=1)


class UsherOut(CamelModel):
    id: str
    event_id: str
    name: str
    phone: Optional[str] = None
    role: UsherRole
    created_at: datetime


class UsherCreate(CamelModel):
    name: str = ""
    phone: Optional[str] = None
    role: UsherRole = UsherRole.FLOOR


class UsherUpdate(CamelModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[UsherRole] = None


class VendorOut(CamelModel):
    id: str
    event_id: str
    name: str
    contact_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    role: VendorRole
    notes: Optional[str] = None
    can_override_capacity: bool = False
    created_at: datetime


class VendorCreate(CamelModel):
    name: str = ""
    contact_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    role: VendorRole = VendorRole.OTHER
    notes: Optional[str] = None
    can_override_capacity: bool = False


class VendorUpdate(CamelModel):
    name: Optional[str] = None
    contact_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[VendorRole] = None
    notes: Optional[str] = None
    can_override_capacity: Optional[bool] = None


# ────────────────────────────────────────────────────────────────
# Overview
# ────────────────────────────────────────────────────────────────

class StatsOut(CamelModel):
    total_events: int
    upcoming_events: int
    total_guests: int
    checked_in: int
    pending_rsvps: int
    total_vendors: int
    gate_crashers: int


class EventNameOut(CamelModel):
    name: str


class RecentRsvpOut(CamelModel):
    id: str
    first_name: str
    last_name: str
    rsvp_at: datetime
    rsvp_status: RsvpStatus
    event: EventNameOut


class UpcomingEventOut(CamelModel):
    id: str
    name: str
    event_date: datetime
    status: EventStatus
    guest_count: int


# ────────────────────────────────────────────────────────────────
# WhatsApp
# ────────────────────────────────────────────────────────────────

class WhatsAppStatusOut(CamelModel):
    connected: bool
    phone_number: Optional[str] = None
    display_name: Optional[str] = None
    business_name: Optional[str] = None
    waba_id: Optional[str] = None
    phone_number_id: Optional[str] = None
    connected_at: Optional[datetime] = None
    messages_sent_total: int = 0


class WhatsAppSetupRequest(CamelModel):
    access_token: Optional[str] = None
    phone_number_id: Optional[str] = None
    waba_id: Optional[str] = None
    display_name: Optional[str] = None
    phone_number: Optional[str] = None


class WhatsAppSendRequest(CamelModel):
    to: Optional[str] = None
    message: Optional[str] = None
    test: bool = False
