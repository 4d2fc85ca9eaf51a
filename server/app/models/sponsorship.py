from __future__ import annotations

from sqlalchemy import CheckConstraint, Column, Enum, Index, Integer, String, Text

from app.core.db import Base
from app.core.types import UTCDateTime, now_utc

# Ordered slot labels per placement; the position is the slot_index.
PLACEMENT_SLOTS: dict[str, tuple[str, ...]] = {
    "home_top": ("left", "right"),
    "home_right": ("1", "2", "3"),
}

PRODUCT_ID_MAX_LENGTH = 64

# Placement stays plain text so the Postgres exclusion constraint can index it with btree_gist.
PLACEMENT_CHECK = "placement IN ('home_top', 'home_right')"

SponsorshipRequestStatus = Enum("pending", "processed", "rejected", name="sponsorship_request_status")
SponsorshipGrantSource = Enum("manual", "checkout", name="sponsorship_grant_source")


class SponsorshipRequest(Base):
    __tablename__ = "sponsorship_requests"
    __table_args__ = (
        CheckConstraint(PLACEMENT_CHECK, name="ck_sponsorship_requests_placement"),
        CheckConstraint("duration_days > 0", name="ck_sponsorship_requests_duration"),
    )

    id = Column(Integer, primary_key=True)
    requester_email = Column(String(255), nullable=False, index=True)
    product_ref = Column(String(500), nullable=False)
    placement = Column(String(20), nullable=False)
    slot_index = Column(Integer, nullable=True)
    duration_days = Column(Integer, nullable=False)
    note = Column(Text, nullable=True)
    status = Column(SponsorshipRequestStatus, nullable=False, default="pending", index=True)
    # Plain reference: grants may be deleted while the request stays as audit trail.
    processed_grant_id = Column(Integer, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=now_utc, index=True)
    updated_at = Column(UTCDateTime, nullable=False, default=now_utc)


class SponsorshipGrant(Base):
    __tablename__ = "sponsorship_grants"
    __table_args__ = (
        CheckConstraint(PLACEMENT_CHECK, name="ck_sponsorship_grants_placement"),
        CheckConstraint("ends_at > starts_at", name="ck_sponsorship_grants_window"),
        CheckConstraint("slot_index >= 0", name="ck_sponsorship_grants_slot_index"),
        Index("ix_sponsorship_grants_slot_window", "placement", "slot_index", "starts_at"),
    )

    id = Column(Integer, primary_key=True)
    product_id = Column(String(PRODUCT_ID_MAX_LENGTH), nullable=False, index=True)
    placement = Column(String(20), nullable=False)
    slot_index = Column(Integer, nullable=False)
    starts_at = Column(UTCDateTime, nullable=False)
    ends_at = Column(UTCDateTime, nullable=False)
    source = Column(SponsorshipGrantSource, nullable=False, default="manual")
    amount_usd_cents = Column(Integer, nullable=True)
    order_id = Column(String(64), nullable=True, unique=True)
    created_at = Column(UTCDateTime, nullable=False, default=now_utc)
