from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Session

from app.core.types import as_utc, now_utc
from app.models.sponsorship import SponsorshipGrant
from app.schemas.sponsorship import PlacementOccupancyOut, SlotOccupancyOut, SponsorshipGrantOut
from app.services import grant_store
from app.services.slot_allocator import slot_indexes, slot_label, validate_slot
from app.services.sponsorship_errors import InvalidSlot


def current_grant(
    db: Session,
    placement: str,
    slot_index: int,
    at: datetime | None = None,
) -> SponsorshipGrant | None:
    """Return the grant occupying the slot at ``at`` (default: now)."""
    if slot_index is None:
        raise InvalidSlot("A slot index is required")
    validate_slot(placement, slot_index)
    return grant_store.active_at(db, placement, slot_index, as_utc(at) if at else now_utc())


def placement_occupancy(db: Session, placement: str, at: datetime | None = None) -> PlacementOccupancyOut:
    moment = as_utc(at) if at else now_utc()
    slots = []
    for index in slot_indexes(placement):
        grant = grant_store.active_at(db, placement, index, moment)
        slots.append(
            SlotOccupancyOut(
                slot_index=index,
                label=slot_label(placement, index),
                grant=SponsorshipGrantOut.model_validate(grant) if grant else None,
            )
        )
    return PlacementOccupancyOut(placement=placement, at=moment, slots=slots)
