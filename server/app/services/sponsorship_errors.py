from __future__ import annotations

from fastapi import HTTPException, status


class SponsorshipError(HTTPException):
    """Base class for scheduler failures surfaced to API callers verbatim."""

    code = "sponsorship_error"
    http_status = status.HTTP_400_BAD_REQUEST
    default_detail = "Sponsorship operation failed"
    retryable = False

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(status_code=self.http_status, detail=detail or self.default_detail)


class InvalidSlot(SponsorshipError):
    code = "invalid_slot"
    default_detail = "Slot index is outside the placement's range"


class InvalidDuration(SponsorshipError):
    code = "invalid_duration"
    default_detail = "duration_days must be a positive integer"


class InvalidProduct(SponsorshipError):
    code = "invalid_product"
    default_detail = "A product id is required"


class AlreadyProcessed(SponsorshipError):
    code = "already_processed"
    http_status = status.HTTP_409_CONFLICT
    default_detail = "Sponsorship request is not pending"


class OverlapViolation(SponsorshipError):
    code = "overlap_violation"
    http_status = status.HTTP_409_CONFLICT
    default_detail = "Slot window overlaps an existing grant"
    retryable = True


class NotFound(SponsorshipError):
    code = "not_found"
    http_status = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class ReconciliationError(SponsorshipError):
    code = "reconciliation_failed"
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Grant allocation and request update could not be committed together"
