from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from app.core.types import as_utc, now_utc
from app.models.sponsorship import SponsorshipRequest
from app.schemas.sponsorship import (
    SponsorshipRequestCreate,
    SponsorshipRequestListResponse,
    SponsorshipRequestOut,
)
from app.services.slot_allocator import validate_duration, validate_slot
from app.services.sponsorship_errors import InvalidProduct, InvalidSlot, NotFound

logger = logging.getLogger(__name__)

TOP_SIDE_SLOTS = {"left": 0, "right": 1}


def clean_note(note: str | None) -> str | None:
    if note is None:
        return None
    cleaned = note.strip()
    return cleaned or None


def _resolve_slot_index(payload: SponsorshipRequestCreate) -> int | None:
    if payload.top_side is None:
        return payload.slot_index
    if payload.placement != "home_top":
        raise InvalidSlot("top_side only applies to the home_top placement")
    side_index = TOP_SIDE_SLOTS[payload.top_side]
    if payload.slot_index is not None and payload.slot_index != side_index:
        raise InvalidSlot(f"top_side '{payload.top_side}' contradicts slot_index {payload.slot_index}")
    return side_index


def submit_request(db: Session, payload: SponsorshipRequestCreate, *, now: datetime | None = None) -> SponsorshipRequest:
    product_ref = payload.product_ref.strip()
    if not product_ref:
        raise InvalidProduct("A product reference is required")
    slot_index = _resolve_slot_index(payload)
    validate_slot(payload.placement, slot_index)
    validate_duration(payload.duration_days)

    timestamp = as_utc(now) if now else now_utc()
    record = SponsorshipRequest(
        requester_email=str(payload.email).strip().lower(),
        product_ref=product_ref,
        placement=payload.placement,
        slot_index=slot_index,
        duration_days=payload.duration_days,
        note=clean_note(payload.note),
        status="pending",
        created_at=timestamp,
        updated_at=timestamp,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    logger.info(
        "sponsorship_request_submitted",
        extra={"request_id": record.id, "placement": record.placement, "slot_index": record.slot_index},
    )
    return record


def get_request(db: Session, request_id: int) -> SponsorshipRequest:
    record = db.get(SponsorshipRequest, request_id)
    if not record:
        raise NotFound("Sponsorship request not found")
    return record


def list_requests(
    db: Session,
    *,
    page: int,
    page_size: int,
    status_filter: str | None = None,
) -> SponsorshipRequestListResponse:
    query = db.query(SponsorshipRequest)
    if status_filter:
        query = query.filter(SponsorshipRequest.status == status_filter)
    total = query.count()
    items = (
        query.order_by(SponsorshipRequest.created_at.desc(), SponsorshipRequest.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return SponsorshipRequestListResponse(
        items=[SponsorshipRequestOut.model_validate(item) for item in items],
        total=total,
        page=page,
        page_size=page_size,
    )
