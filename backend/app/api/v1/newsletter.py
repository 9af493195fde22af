# app/api/v1/newsletter.py
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
import logging

from app.schemas.auth import NewsletterSubscribe
from app.services.captcha import TurnstileVerifier, get_captcha_verifier
from app.services.email_client import BrevoMailer, get_mailer
from app.services.errors import EmailDeliveryError, ValidationFailed

router = APIRouter(prefix="/newsletter", tags=["Newsletter"])
logger = logging.getLogger(__name__)


@router.post("/subscribe")
def subscribe(
    payload: NewsletterSubscribe,
    captcha: TurnstileVerifier = Depends(get_captcha_verifier),
    mailer: BrevoMailer = Depends(get_mailer),
):
    """
    订阅邮件简报，需要先通过 Turnstile 校验
    """
    if not payload.captcha_token:
        raise ValidationFailed("Captcha verification is required")
    if not captcha.verify(payload.captcha_token):
        raise ValidationFailed("Captcha verification failed. Please try again.")

    try:
        result = mailer.add_contact(
            payload.email,
            {
                "NEWSLETTER_SUBSCRIBER": True,
                "SUBSCRIBED_AT": datetime.now(timezone.utc).isoformat(),
            },
        )
    except EmailDeliveryError as e:
        logger.error(f"订阅失败 email={payload.email}: {e}")
        raise HTTPException(status_code=502, detail="Failed to subscribe")

    if not result.get("created"):
        return {"success": True, "message": "You are already subscribed to our newsletter!"}
    logger.info(f"新的订阅 {payload.email}")
    return {"success": True, "message": "Successfully subscribed to the newsletter!"}
