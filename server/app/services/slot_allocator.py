from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.types import as_utc, now_utc
from app.models.sponsorship import PLACEMENT_SLOTS, PRODUCT_ID_MAX_LENGTH, SponsorshipGrant
from app.services import grant_store
from app.services.sponsorship_errors import InvalidDuration, InvalidProduct, InvalidSlot, OverlapViolation

logger = logging.getLogger(__name__)

GRANT_SOURCES = {"manual", "checkout"}


@dataclass(frozen=True)
class SlotWindow:
    placement: str
    slot_index: int
    starts_at: datetime
    ends_at: datetime


def slot_indexes(placement: str) -> range:
    labels = PLACEMENT_SLOTS.get(placement)
    if labels is None:
        raise InvalidSlot(f"Unknown placement '{placement}'")
    return range(len(labels))


def slot_label(placement: str, slot_index: int) -> str:
    return PLACEMENT_SLOTS[placement][slot_index]


def validate_slot(placement: str, slot_index: int | None) -> None:
    """Check ``slot_index`` against the placement; None means any slot."""
    indexes = slot_indexes(placement)
    if slot_index is None:
        return
    if isinstance(slot_index, bool) or not isinstance(slot_index, int) or slot_index not in indexes:
        raise InvalidSlot(
            f"{placement} accepts slot_index {indexes.start}..{indexes.stop - 1}, got {slot_index!r}"
        )


def validate_duration(duration_days: int) -> None:
    if isinstance(duration_days, bool) or not isinstance(duration_days, int) or duration_days <= 0:
        raise InvalidDuration(f"duration_days must be a positive integer, got {duration_days!r}")
    if duration_days > settings.SPONSORSHIP_MAX_DURATION_DAYS:
        raise InvalidDuration(f"duration_days cannot exceed {settings.SPONSORSHIP_MAX_DURATION_DAYS}")


def validate_product(product_id: str | None) -> str:
    cleaned = (product_id or "").strip()
    if not cleaned:
        raise InvalidProduct()
    if len(cleaned) > PRODUCT_ID_MAX_LENGTH or any(char.isspace() for char in cleaned):
        raise InvalidProduct(f"'{cleaned[:80]}' is not a usable product id")
    return cleaned


def plan_window(db: Session, placement: str, slot_index: int, duration_days: int, now: datetime) -> SlotWindow:
    """Place a window right after the slot's latest grant, or at ``now`` if the slot is free by then."""
    tail = grant_store.slot_tail(db, placement, slot_index)
    starts_at = now if tail is None or tail <= now else tail
    return SlotWindow(
        placement=placement,
        slot_index=slot_index,
        starts_at=starts_at,
        ends_at=starts_at + timedelta(days=duration_days),
    )


def choose_window(
    db: Session,
    placement: str,
    slot_index: int | None,
    duration_days: int,
    now: datetime,
) -> SlotWindow:
    if slot_index is not None:
        return plan_window(db, placement, slot_index, duration_days, now)
    # Earliest start wins; ties go to the lowest slot index.
    candidates = [plan_window(db, placement, index, duration_days, now) for index in slot_indexes(placement)]
    return min(candidates, key=lambda window: (window.starts_at, window.slot_index))


def allocate(
    db: Session,
    *,
    placement: str,
    slot_index: int | None,
    duration_days: int,
    product_id: str,
    source: str,
    amount_usd_cents: int | None = None,
    order_id: str | None = None,
    now: datetime | None = None,
    auto_commit: bool = True,
) -> SponsorshipGrant:
    """Create a grant in the first free window of the slot.

    A busy slot defers the new grant instead of rejecting it. Conflicts with
    concurrent allocators are retried a bounded number of times, each attempt
    recomputing the window from the store. When ``order_id`` already owns a
    grant that grant is returned unchanged.
    """
    validate_slot(placement, slot_index)
    validate_duration(duration_days)
    product_id = validate_product(product_id)
    if source not in GRANT_SOURCES:
        raise ValueError(f"Unsupported grant source '{source}'")

    attempts = max(1, settings.SPONSORSHIP_ALLOCATION_ATTEMPTS)
    for attempt in range(1, attempts + 1):
        if order_id:
            existing = grant_store.find_by_order(db, order_id)
            if existing:
                logger.info("sponsorship_order_already_granted", extra={"order_id": order_id, "grant_id": existing.id})
                return existing

        reference = as_utc(now) if now else now_utc()
        window = choose_window(db, placement, slot_index, duration_days, reference)
        grant = SponsorshipGrant(
            product_id=product_id,
            placement=window.placement,
            slot_index=window.slot_index,
            starts_at=window.starts_at,
            ends_at=window.ends_at,
            source=source,
            amount_usd_cents=amount_usd_cents,
            order_id=order_id,
        )
        try:
            grant = grant_store.insert_grant(db, grant, auto_commit=auto_commit)
        except OverlapViolation:
            logger.warning(
                "sponsorship_allocation_conflict",
                extra={
                    "placement": window.placement,
                    "slot_index": window.slot_index,
                    "attempt": attempt,
                    "max_attempts": attempts,
                },
            )
            if attempt == attempts:
                raise
            continue

        logger.info(
            "sponsorship_grant_allocated",
            extra={
                "grant_id": grant.id,
                "placement": grant.placement,
                "slot_index": grant.slot_index,
                "starts_at": grant.starts_at.isoformat(),
                "ends_at": grant.ends_at.isoformat(),
                "source": source,
                "deferred": window.starts_at > reference,
            },
        )
        return grant

    raise OverlapViolation()  # pragma: no cover - loop always returns or raises
