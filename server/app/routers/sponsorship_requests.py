from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import get_db
from app.schemas.sponsorship import SponsorshipRequestCreate, SponsorshipRequestOut
from app.services import sponsorship_requests as requests_service
from app.services.recaptcha import RecaptchaError, verify_recaptcha

router = APIRouter(prefix="/sponsorship", tags=["sponsorship"])


@router.post("/requests", response_model=SponsorshipRequestOut, status_code=status.HTTP_201_CREATED)
async def submit_sponsorship_request(
    request: Request,
    payload: SponsorshipRequestCreate,
    db: Session = Depends(get_db),
) -> SponsorshipRequestOut:
    if settings.RECAPTCHA_SECRET:
        if not payload.recaptcha_token:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing reCAPTCHA token")
        client_ip = request.client.host if request.client else None
        try:
            await verify_recaptcha(payload.recaptcha_token, remote_ip=client_ip)
        except RecaptchaError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    record = requests_service.submit_request(db, payload)
    return SponsorshipRequestOut.model_validate(record)
