import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .core.db import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum(enum_cls: type[Enum], name: str) -> SAEnum:
    # Stored as VARCHAR so ordering is alphabetical on every dialect
    return SAEnum(enum_cls, name=name, native_enum=False, length=32)


class EventStatus(str, Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class InviteModel(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class RsvpStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    DECLINED = "DECLINED"


class InviteChannel(str, Enum):
    MANUAL = "MANUAL"
    LINK = "LINK"
    WHATSAPP = "WHATSAPP"


class MenuCategory(str, Enum):
    APPETIZER = "APPETIZER"
    MAIN = "MAIN"
    DRINK = "DRINK"
    DESSERT = "DESSERT"
    SPECIAL = "SPECIAL"


class UsherRole(str, Enum):
    MAIN = "MAIN"  # gate, scans QR codes
    FLOOR = "FLOOR"


class VendorRole(str, Enum):
    CATERER = "CATERER"
    SECURITY = "SECURITY"
    MEDIA = "MEDIA"
    LIVE_BAND = "LIVE_BAND"
    DJ = "DJ"
    MC = "MC"
    HYPEMAN = "HYPEMAN"
    AFTER_PARTY = "AFTER_PARTY"
    DECORATOR = "DECORATOR"
    PHOTOGRAPHER = "PHOTOGRAPHER"
    VIDEOGRAPHER = "VIDEOGRAPHER"
    OTHER = "OTHER"


class Planner(Base):
    """A signed-in planner. Keyed by the identity provider's uid, unique by email."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    image: Mapped[str | None] = mapped_column(Text, nullable=True)

    # WhatsApp Business credentials; wa_access_token is always ciphertext
    wa_access_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    wa_phone_number_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    wa_waba_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    wa_display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    wa_phone_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    wa_business_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    wa_connected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    wa_messages_sent: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    events: Mapped[list["Event"]] = relationship(
        back_populates="planner", cascade="all, delete-orphan", passive_deletes=True
    )

    @property
    def whatsapp_connected(self) -> bool:
        return bool(self.wa_access_token and self.wa_phone_number_id)


class Event(Base):
    __tablename__ = "events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    planner_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(120), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    event_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    event_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    start_time: Mapped[str | None] = mapped_column(String(16), nullable=True)
    end_time: Mapped[str | None] = mapped_column(String(16), nullable=True)
    venue_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    venue_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    venue_capacity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    invite_model: Mapped[InviteModel] = mapped_column(
        _enum(InviteModel, "invite_model"), default=InviteModel.OPEN, nullable=False
    )
    require_otp: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    rsvp_deadline: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    brand_color: Mapped[str | None] = mapped_column(String(16), nullable=True)
    invitation_card: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[EventStatus] = mapped_column(
        _enum(EventStatus, "event_status"), default=EventStatus.DRAFT, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    planner: Mapped[Planner] = relationship(back_populates="events")
    guests: Mapped[list["Guest"]] = relationship(cascade="all, delete-orphan", passive_deletes=True)
    menu_items: Mapped[list["MenuItem"]] = relationship(cascade="all, delete-orphan", passive_deletes=True)
    tables: Mapped[list["Table"]] = relationship(cascade="all, delete-orphan", passive_deletes=True)
    ushers: Mapped[list["Usher"]] = relationship(cascade="all, delete-orphan", passive_deletes=True)
    vendors: Mapped[list["Vendor"]] = relationship(cascade="all, delete-orphan", passive_deletes=True)


class Guest(Base):
    __tablename__ = "guests"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    event_id: Mapped[str] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    first_name: Mapped[str] = mapped_column(String(255), nullable=False)
    last_name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    rsvp_status: Mapped[RsvpStatus] = mapped_column(
        _enum(RsvpStatus, "rsvp_status"), default=RsvpStatus.PENDING, nullable=False, index=True
    )
    rsvp_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    checked_in: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    checked_in_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    invite_token: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    invite_channel: Mapped[InviteChannel] = mapped_column(
        _enum(InviteChannel, "invite_channel"), default=InviteChannel.MANUAL, nullable=False
    )
    invite_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_flagged: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    table_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    event: Mapped[Event] = relationship(back_populates="guests")


class MenuItem(Base):
    __tablename__ = "menu_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    event_id: Mapped[str] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category: Mapped[MenuCategory] = mapped_column(
        _enum(MenuCategory, "menu_category"), default=MenuCategory.MAIN, nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    event: Mapped[Event] = relationship(back_populates="menu_items")


class Table(Base):
    __tablename__ = "tables"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    event_id: Mapped[str] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    table_number: Mapped[int] = mapped_column(Integer, nullable=False)
    label: Mapped[str | None] = mapped_column(String(120), nullable=True)
    capacity: Mapped[int] = mapped_column(Integer, default=10, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    event: Mapped[Event] = relationship(back_populates="tables")

    __table_args__ = (UniqueConstraint("event_id", "table_number", name="uq_table_event_number"),)


class Usher(Base):
    __tablename__ = "ushers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    event_id: Mapped[str] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    role: Mapped[UsherRole] = mapped_column(
        _enum(UsherRole, "usher_role"), default=UsherRole.FLOOR, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    event: Mapped[Event] = relationship(back_populates="ushers")


class Vendor(Base):
    __tablename__ = "vendors"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    event_id: Mapped[str] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    role: Mapped[VendorRole] = mapped_column(
        _enum(VendorRole, "vendor_role"), default=VendorRole.OTHER, nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    can_override_capacity: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    event: Mapped[Event] = relationship(back_populates="vendors")
