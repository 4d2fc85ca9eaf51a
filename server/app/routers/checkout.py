from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from app.auth.deps import Principal, require_roles
from app.core.db import get_db
from app.schemas.sponsorship import CheckoutGrantIn, SponsorshipGrantOut
from app.services import grant_store, slot_allocator

router = APIRouter(prefix="/sponsorship/checkout", tags=["sponsorship"])

CHECKOUT_ROLES = ("Checkout", "Admin")


@router.post("/grants", response_model=SponsorshipGrantOut, status_code=status.HTTP_201_CREATED)
def confirm_checkout(
    payload: CheckoutGrantIn,
    response: Response,
    db: Session = Depends(get_db),
    _: Principal = Depends(require_roles(*CHECKOUT_ROLES)),
) -> SponsorshipGrantOut:
    """Allocate the paid window for a confirmed order; replays return the original grant."""
    if grant_store.find_by_order(db, payload.order_id):
        response.status_code = status.HTTP_200_OK
    grant = slot_allocator.allocate(
        db,
        placement=payload.placement,
        slot_index=payload.slot_index,
        duration_days=payload.duration_days,
        product_id=payload.product_id,
        source="checkout",
        amount_usd_cents=payload.amount_usd_cents,
        order_id=payload.order_id,
    )
    return SponsorshipGrantOut.model_validate(grant)
