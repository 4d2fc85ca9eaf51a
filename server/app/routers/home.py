from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.schemas.sponsorship import PlacementOccupancyOut, SponsorshipGrantOut, SponsorshipPlacement
from app.services import grant_query

router = APIRouter(prefix="/home/sponsored", tags=["home"])


@router.get("/{placement}", response_model=PlacementOccupancyOut)
def read_placement(placement: SponsorshipPlacement, db: Session = Depends(get_db)) -> PlacementOccupancyOut:
    return grant_query.placement_occupancy(db, placement)


@router.get("/{placement}/{slot_index:int}", response_model=SponsorshipGrantOut | None)
def read_slot(
    placement: SponsorshipPlacement,
    slot_index: int,
    db: Session = Depends(get_db),
) -> SponsorshipGrantOut | None:
    grant = grant_query.current_grant(db, placement, slot_index)
    return SponsorshipGrantOut.model_validate(grant) if grant else None
