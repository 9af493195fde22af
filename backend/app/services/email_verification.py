# app/services/email_verification.py
"""邮箱验证：校验 token / 重新发送 / 查询状态"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
import logging
import secrets

from app.config import settings
from app.schemas.auth import VerifyEmailResponse
from app.services import email_templates
from app.services.email_client import BrevoMailer
from app.services.errors import NotFound, ValidationFailed

logger = logging.getLogger(__name__)


def generate_verification_token() -> str:
    return secrets.token_hex(32)


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _is_expired(profile: Dict[str, Any]) -> bool:
    expires_at = _parse_time(profile.get("email_verification_expires"))
    return expires_at is None or expires_at < datetime.now(timezone.utc)


class EmailVerificationService:
    def __init__(self, db, mailer: BrevoMailer, ttl_hours: int = settings.EMAIL_VERIFICATION_TTL_HOURS):
        self.db = db
        self.mailer = mailer
        self.ttl_hours = ttl_hours

    def _profile_by(self, column: str, value: str) -> Optional[Dict[str, Any]]:
        result = self.db.table("profiles").select("*").eq(column, value).order(
            "created_at", desc=True
        ).limit(1).execute()
        return result.data[0] if result.data else None

    def verify(self, token: str) -> VerifyEmailResponse:
        if not token:
            raise ValidationFailed("Verification token is required")

        profile = self._profile_by("email_verification_token", token)
        if not profile:
            raise ValidationFailed("Invalid or expired verification token")
        if profile.get("email_verified"):
            return VerifyEmailResponse(success=True, message="Email is already verified", already_verified=True)
        if _is_expired(profile):
            raise ValidationFailed("Verification link has expired. Please request a new one.")

        self.db.table("profiles").update({
            "email_verified": True,
            "email_verification_token": None,
            "email_verification_expires": None,
        }).eq("id", profile["id"]).execute()
        logger.info(f"邮箱已验证 profile={profile['id']}")
        return VerifyEmailResponse(success=True, message="Email verified successfully! You can now login.")

    def resend(self, email: str) -> VerifyEmailResponse:
        profile = self._profile_by("email", email)
        if not profile:
            raise NotFound("No account found with this email")
        if profile.get("email_verified"):
            return VerifyEmailResponse(
                success=True, message="Email is already verified. You can login.", already_verified=True
            )

        token = generate_verification_token()
        expires_at = datetime.now(timezone.utc) + timedelta(hours=self.ttl_hours)
        self.db.table("profiles").update({
            "email_verification_token": token,
            "email_verification_expires": expires_at.isoformat(),
        }).eq("id", profile["id"]).execute()

        content = email_templates.resend_verification_email(
            user_name=profile.get("full_name") or "there",
            verification_url=f"{settings.APP_URL.rstrip('/')}/verify-email?token={token}",
            expires_in=f"{self.ttl_hours} hours",
        )
        # 这里邮件就是主操作，失败直接抛出 EmailDeliveryError
        self.mailer.send(
            to=email, subject=content.subject, html=content.html, text=content.text,
            to_name=profile.get("full_name"),
        )
        logger.info(f"已重新发送验证邮件 profile={profile['id']}")
        return VerifyEmailResponse(success=True, message="Verification email sent! Please check your inbox.")

    def status_by_email(self, email: str) -> Dict[str, Any]:
        profile = self._profile_by("email", email)
        if not profile:
            raise NotFound("No account found with this email")
        return {"email": email, "email_verified": bool(profile.get("email_verified"))}

    def token_status(self, token: str) -> Dict[str, Any]:
        profile = self._profile_by("email_verification_token", token)
        if not profile:
            return {"valid": False, "verified": False, "expired": False}
        if profile.get("email_verified"):
            return {"valid": True, "verified": True, "expired": False, "email": profile.get("email")}
        expired = _is_expired(profile)
        return {"valid": not expired, "verified": False, "expired": expired, "email": profile.get("email")}
