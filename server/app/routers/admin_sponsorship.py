from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.auth.deps import Principal, require_roles
from app.core.db import get_db
from app.schemas.sponsorship import (
    SponsorshipGrantListResponse,
    SponsorshipGrantOut,
    SponsorshipPlacement,
    SponsorshipProcessIn,
    SponsorshipProcessOut,
    SponsorshipRejectIn,
    SponsorshipRequestListResponse,
    SponsorshipRequestOut,
    SponsorshipRequestStatus,
)
from app.services import grant_store
from app.services import sponsorship_admin as admin_service
from app.services import sponsorship_requests as requests_service
from app.services.slot_allocator import validate_slot

router = APIRouter(prefix="/admin/sponsorship", tags=["admin-sponsorship"])

MANAGE_ROLES = ("SponsorshipAdmin", "Admin")


@router.get("/requests", response_model=SponsorshipRequestListResponse)
def list_requests(
    *,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    status_filter: SponsorshipRequestStatus | None = Query(None, alias="status"),
    db: Session = Depends(get_db),
    _: Principal = Depends(require_roles(*MANAGE_ROLES)),
) -> SponsorshipRequestListResponse:
    return requests_service.list_requests(db, page=page, page_size=page_size, status_filter=status_filter)


@router.get("/requests/{request_id:int}", response_model=SponsorshipRequestOut)
def get_request(
    request_id: int,
    db: Session = Depends(get_db),
    _: Principal = Depends(require_roles(*MANAGE_ROLES)),
) -> SponsorshipRequestOut:
    return SponsorshipRequestOut.model_validate(requests_service.get_request(db, request_id))


@router.post("/requests/{request_id:int}/process", response_model=SponsorshipProcessOut)
def process_request(
    request_id: int,
    payload: SponsorshipProcessIn,
    db: Session = Depends(get_db),
    _: Principal = Depends(require_roles(*MANAGE_ROLES)),
) -> SponsorshipProcessOut:
    outcome = admin_service.process_request(
        db,
        request_id,
        product_id=payload.product_id,
        placement=payload.placement,
        slot_index=payload.slot_index,
        duration_days=payload.duration_days,
        amount_usd_cents=payload.amount_usd_cents,
        note=payload.note,
    )
    return SponsorshipProcessOut(
        request=SponsorshipRequestOut.model_validate(outcome.request),
        grant=SponsorshipGrantOut.model_validate(outcome.grant),
    )


@router.post("/requests/{request_id:int}/reject", response_model=SponsorshipRequestOut)
def reject_request(
    request_id: int,
    payload: SponsorshipRejectIn,
    db: Session = Depends(get_db),
    _: Principal = Depends(require_roles(*MANAGE_ROLES)),
) -> SponsorshipRequestOut:
    record = admin_service.reject_request(db, request_id, note=payload.note)
    return SponsorshipRequestOut.model_validate(record)


@router.get("/grants", response_model=SponsorshipGrantListResponse)
def list_grants(
    *,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    placement: SponsorshipPlacement | None = Query(None),
    db: Session = Depends(get_db),
    _: Principal = Depends(require_roles(*MANAGE_ROLES)),
) -> SponsorshipGrantListResponse:
    items, total = grant_store.list_grants(db, page=page, page_size=page_size, placement=placement)
    return SponsorshipGrantListResponse(
        items=[SponsorshipGrantOut.model_validate(item) for item in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/slots/{placement}/{slot_index:int}", response_model=list[SponsorshipGrantOut])
def list_slot_schedule(
    placement: SponsorshipPlacement,
    slot_index: int,
    db: Session = Depends(get_db),
    _: Principal = Depends(require_roles(*MANAGE_ROLES)),
) -> list[SponsorshipGrantOut]:
    validate_slot(placement, slot_index)
    return [SponsorshipGrantOut.model_validate(item) for item in grant_store.list_by_slot(db, placement, slot_index)]


@router.delete("/grants/{grant_id:int}", status_code=status.HTTP_204_NO_CONTENT)
def delete_grant(
    grant_id: int,
    db: Session = Depends(get_db),
    _: Principal = Depends(require_roles(*MANAGE_ROLES)),
) -> Response:
    grant_store.delete_grant(db, grant_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
