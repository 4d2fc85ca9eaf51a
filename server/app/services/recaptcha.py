from __future__ import annotations

import logging
from typing import Optional

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)

SITEVERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"


class RecaptchaError(Exception):
    pass


async def verify_recaptcha(token: str, remote_ip: Optional[str] = None) -> float:
    """
    Verify a reCAPTCHA v3 token submitted with a public sponsorship request.
    Returns the score on success or raises RecaptchaError.
    """
    if not settings.RECAPTCHA_SECRET:
        raise RecaptchaError("reCAPTCHA not configured")

    data = {"secret": settings.RECAPTCHA_SECRET, "response": token}
    if remote_ip:
        data["remoteip"] = remote_ip

    try:
        async with httpx.AsyncClient(timeout=5) as client:
            resp = await client.post(SITEVERIFY_URL, data=data)
    except httpx.HTTPError as exc:
        logger.exception("recaptcha_request_failed")
        raise RecaptchaError("Unable to verify reCAPTCHA") from exc

    if resp.status_code != 200:
        logger.error("recaptcha_unexpected_status", extra={"status_code": resp.status_code})
        raise RecaptchaError("Unable to verify reCAPTCHA")

    payload = resp.json()
    if not payload.get("success"):
        logger.warning("recaptcha_rejected", extra={"errors": payload.get("error-codes")})
        raise RecaptchaError("reCAPTCHA validation failed")

    score = payload.get("score")
    if score is None:
        raise RecaptchaError("Missing reCAPTCHA score")
    if score < settings.RECAPTCHA_MIN_SCORE:
        raise RecaptchaError("reCAPTCHA score too low")
    return float(score)
