from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field

SponsorshipPlacement = Literal["home_top", "home_right"]
SponsorshipRequestStatus = Literal["pending", "processed", "rejected"]
SponsorshipGrantSource = Literal["manual", "checkout"]
TopSide = Literal["left", "right"]


class SponsorshipRequestCreate(BaseModel):
    email: EmailStr
    product_ref: str = Field(..., min_length=1, max_length=500)
    placement: SponsorshipPlacement
    # Range checks happen in the allocator so callers get invalid_slot / invalid_duration codes.
    slot_index: Optional[int] = None
    top_side: Optional[TopSide] = None
    duration_days: int
    note: Optional[str] = Field(None, max_length=2000)
    recaptcha_token: Optional[str] = None


class SponsorshipRequestOut(BaseModel):
    id: int
    requester_email: str
    product_ref: str
    placement: SponsorshipPlacement
    slot_index: Optional[int]
    duration_days: int
    note: Optional[str]
    status: SponsorshipRequestStatus
    processed_grant_id: Optional[int]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class SponsorshipRequestListResponse(BaseModel):
    items: list[SponsorshipRequestOut]
    total: int
    page: int
    page_size: int


class SponsorshipProcessIn(BaseModel):
    product_id: Optional[str] = Field(None, max_length=64)
    placement: Optional[SponsorshipPlacement] = None
    slot_index: Optional[int] = None
    duration_days: Optional[int] = None
    amount_usd_cents: Optional[int] = Field(None, ge=0)
    note: Optional[str] = Field(None, max_length=2000)


class SponsorshipRejectIn(BaseModel):
    note: Optional[str] = Field(None, max_length=2000)


class SponsorshipGrantOut(BaseModel):
    id: int
    product_id: str
    placement: SponsorshipPlacement
    slot_index: int
    starts_at: datetime
    ends_at: datetime
    source: SponsorshipGrantSource
    amount_usd_cents: Optional[int]
    order_id: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class SponsorshipGrantListResponse(BaseModel):
    items: list[SponsorshipGrantOut]
    total: int
    page: int
    page_size: int


class SponsorshipProcessOut(BaseModel):
    request: SponsorshipRequestOut
    grant: SponsorshipGrantOut


class CheckoutGrantIn(BaseModel):
    order_id: str = Field(..., min_length=1, max_length=64)
    product_id: str = Field(..., max_length=64)
    placement: SponsorshipPlacement
    slot_index: Optional[int] = None
    duration_days: int
    amount_usd_cents: int = Field(..., ge=0)


class SlotOccupancyOut(BaseModel):
    slot_index: int
    label: str
    grant: Optional[SponsorshipGrantOut] = None


class PlacementOccupancyOut(BaseModel):
    placement: SponsorshipPlacement
    at: datetime
    slots: list[SlotOccupancyOut]
