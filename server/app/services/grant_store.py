from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session

from app.models.sponsorship import SponsorshipGrant
from app.services.sponsorship_errors import InvalidDuration, NotFound, OverlapViolation

logger = logging.getLogger(__name__)


def _slot_query(db: Session, placement: str, slot_index: int) -> Query:
    return db.query(SponsorshipGrant).filter(
        SponsorshipGrant.placement == placement,
        SponsorshipGrant.slot_index == slot_index,
    )


def get_grant(db: Session, grant_id: int) -> SponsorshipGrant:
    grant = db.get(SponsorshipGrant, grant_id)
    if not grant:
        raise NotFound("Sponsorship grant not found")
    return grant


def find_by_order(db: Session, order_id: str) -> SponsorshipGrant | None:
    return db.query(SponsorshipGrant).filter(SponsorshipGrant.order_id == order_id).first()


def slot_tail(db: Session, placement: str, slot_index: int) -> datetime | None:
    """Return the latest ``ends_at`` scheduled in the slot, or None when empty."""
    latest = (
        _slot_query(db, placement, slot_index)
        .order_by(SponsorshipGrant.ends_at.desc(), SponsorshipGrant.id.desc())
        .first()
    )
    return latest.ends_at if latest else None


def insert_grant(db: Session, grant: SponsorshipGrant, *, auto_commit: bool = True) -> SponsorshipGrant:
    """Persist ``grant`` unless it overlaps another grant in the same slot.

    The overlap check runs inside the caller's transaction and locks the
    slot's conflicting rows where the backend supports it; PostgreSQL also
    enforces the invariant with an exclusion constraint, whose violation is
    reported the same way.
    """
    if grant.ends_at <= grant.starts_at:
        raise InvalidDuration("Grant must end after it starts")

    conflict = (
        _slot_query(db, grant.placement, grant.slot_index)
        .filter(
            SponsorshipGrant.starts_at < grant.ends_at,
            SponsorshipGrant.ends_at > grant.starts_at,
        )
        .with_for_update()
        .first()
    )
    if conflict:
        raise OverlapViolation(
            f"{grant.placement}/{grant.slot_index} is already booked until {conflict.ends_at.isoformat()}"
        )

    db.add(grant)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        logger.warning(
            "sponsorship_grant_insert_rejected",
            extra={"placement": grant.placement, "slot_index": grant.slot_index, "order_id": grant.order_id},
        )
        raise OverlapViolation("Slot window was taken by a concurrent allocation") from exc

    if auto_commit:
        db.commit()
        db.refresh(grant)
    return grant


def delete_grant(db: Session, grant_id: int) -> None:
    """Remove a grant. Later grants in the slot keep their windows."""
    grant = get_grant(db, grant_id)
    snapshot = {
        "grant_id": grant.id,
        "placement": grant.placement,
        "slot_index": grant.slot_index,
        "starts_at": grant.starts_at.isoformat(),
        "ends_at": grant.ends_at.isoformat(),
    }
    db.delete(grant)
    db.commit()
    logger.info("sponsorship_grant_deleted", extra=snapshot)


def active_at(db: Session, placement: str, slot_index: int, at: datetime) -> SponsorshipGrant | None:
    return (
        _slot_query(db, placement, slot_index)
        .filter(SponsorshipGrant.starts_at <= at, SponsorshipGrant.ends_at > at)
        .order_by(SponsorshipGrant.starts_at.asc())
        .first()
    )


def list_by_slot(db: Session, placement: str, slot_index: int) -> list[SponsorshipGrant]:
    return (
        _slot_query(db, placement, slot_index)
        .order_by(SponsorshipGrant.starts_at.asc(), SponsorshipGrant.id.asc())
        .all()
    )


def list_grants(
    db: Session,
    *,
    page: int,
    page_size: int,
    placement: str | None = None,
) -> tuple[list[SponsorshipGrant], int]:
    query = db.query(SponsorshipGrant)
    if placement:
        query = query.filter(SponsorshipGrant.placement == placement)
    total = query.count()
    items = (
        query.order_by(SponsorshipGrant.starts_at.desc(), SponsorshipGrant.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return items, total
