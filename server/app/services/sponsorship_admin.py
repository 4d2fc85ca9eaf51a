from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.types import as_utc, now_utc
from app.models.sponsorship import SponsorshipGrant, SponsorshipRequest
from app.services import slot_allocator
from app.services.sponsorship_errors import AlreadyProcessed, InvalidProduct, ReconciliationError
from app.services.sponsorship_requests import clean_note, get_request

logger = logging.getLogger(__name__)


@dataclass
class ProcessOutcome:
    request: SponsorshipRequest
    grant: SponsorshipGrant


def _ensure_pending(request: SponsorshipRequest) -> None:
    if request.status != "pending":
        raise AlreadyProcessed(f"Sponsorship request {request.id} is already {request.status}")


def _resolve_product_id(request: SponsorshipRequest, product_id: str | None) -> str:
    if product_id and product_id.strip():
        return product_id
    try:
        return slot_allocator.validate_product(request.product_ref)
    except InvalidProduct as exc:
        raise InvalidProduct("Cannot resolve a product id from product_ref; set product_id") from exc


def _transition(db: Session, request_id: int, values: dict) -> None:
    """Move a pending request to a terminal state, losing to any concurrent transition."""
    result = db.execute(
        update(SponsorshipRequest)
        .where(SponsorshipRequest.id == request_id, SponsorshipRequest.status == "pending")
        .values(**values)
    )
    if result.rowcount == 0:
        db.rollback()
        raise AlreadyProcessed(f"Sponsorship request {request_id} is no longer pending")


def process_request(
    db: Session,
    request_id: int,
    *,
    product_id: str | None = None,
    placement: str | None = None,
    slot_index: int | None = None,
    duration_days: int | None = None,
    amount_usd_cents: int | None = None,
    note: str | None = None,
    now: datetime | None = None,
) -> ProcessOutcome:
    """Turn a pending request into a grant.

    Unset arguments fall back to what the requester asked for; ``product_id``
    falls back to the request's ``product_ref``. The grant insert and the
    request transition commit together or not at all.
    """
    request = get_request(db, request_id)
    _ensure_pending(request)

    timestamp = as_utc(now) if now else now_utc()
    grant = slot_allocator.allocate(
        db,
        placement=placement or request.placement,
        slot_index=slot_index if slot_index is not None else request.slot_index,
        duration_days=duration_days if duration_days is not None else request.duration_days,
        product_id=_resolve_product_id(request, product_id),
        source="manual",
        amount_usd_cents=amount_usd_cents,
        now=timestamp,
        auto_commit=False,
    )

    grant_id = grant.id
    values = {"status": "processed", "processed_grant_id": grant_id, "updated_at": timestamp}
    cleaned = clean_note(note)
    if cleaned:
        values["note"] = cleaned
    _transition(db, request.id, values)

    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(
            "sponsorship_request_reconciliation_failed",
            exc_info=True,
            extra={"request_id": request_id, "grant_id": grant_id},
        )
        raise ReconciliationError() from exc

    db.refresh(request)
    db.refresh(grant)
    logger.info(
        "sponsorship_request_processed",
        extra={"request_id": request.id, "grant_id": grant.id, "slot_index": grant.slot_index},
    )
    return ProcessOutcome(request=request, grant=grant)


def reject_request(
    db: Session,
    request_id: int,
    *,
    note: str | None = None,
    now: datetime | None = None,
) -> SponsorshipRequest:
    request = get_request(db, request_id)
    _ensure_pending(request)

    values = {"status": "rejected", "updated_at": as_utc(now) if now else now_utc()}
    cleaned = clean_note(note)
    if cleaned:
        values["note"] = cleaned
    _transition(db, request.id, values)
    db.commit()
    db.refresh(request)
    logger.info("sponsorship_request_rejected", extra={"request_id": request.id})
    return request
