# app/services/email_client.py
"""
Brevo（Sendinblue）邮件发送
"""
from functools import lru_cache
from typing import Any, Dict, Optional
import logging

import httpx

from app.config import settings
from app.services.errors import EmailDeliveryError

logger = logging.getLogger(__name__)


class BrevoMailer:
    """Brevo 事务邮件 + 联系人 API"""

    def __init__(
        self,
        api_key: str,
        from_email: str,
        from_name: str,
        base_url: str = "https://api.brevo.com/v3",
        timeout: float = 15.0,
    ):
        self.api_key = api_key
        self.from_email = from_email
        self.from_name = from_name
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def is_configured(self) -> bool:
        return bool(self.api_key and self.from_email)

    def _headers(self) -> Dict[str, str]:
        return {
            "accept": "application/json",
            "content-type": "application/json",
            "api-key": self.api_key,
        }

    def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: Optional[str] = None,
        to_name: Optional[str] = None,
        reply_to: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        发送一封邮件，返回 {"message_id": ...}
        未配置或发送失败时抛出 EmailDeliveryError
        """
        if not self.api_key:
            raise EmailDeliveryError("Email service not configured")
        if not self.from_email:
            raise EmailDeliveryError("Email sender not configured")

        payload: Dict[str, Any] = {
            "sender": {"name": self.from_name, "email": self.from_email},
            "to": [{"email": to, "name": to_name or to}],
            "subject": subject,
            "htmlContent": html,
        }
        if text:
            payload["textContent"] = text
        if reply_to:
            payload["replyTo"] = {"email": reply_to}

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    f"{self.base_url}/smtp/email", headers=self._headers(), json=payload
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise EmailDeliveryError(f"Failed to send email: {e}") from e

        body = response.json() if response.content else {}
        logger.info(f"邮件已发送: to={to}, subject={subject}")
        return {"message_id": body.get("messageId")}

    def add_contact(self, email: str, attributes: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        添加/更新联系人（新闻订阅）
        返回 {"created": bool}；联系人已存在时 created=False
        """
        if not self.api_key:
            raise EmailDeliveryError("Newsletter service not configured")

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    f"{self.base_url}/contacts",
                    headers=self._headers(),
                    json={"email": email, "updateEnabled": True, "attributes": attributes or {}},
                )
        except httpx.HTTPError as e:
            raise EmailDeliveryError(f"Failed to subscribe: {e}") from e

        if response.is_success:
            return {"created": True}

        data = response.json() if response.content else {}
        if data.get("code") == "duplicate_parameter":
            return {"created": False}
        raise EmailDeliveryError(data.get("message") or "Failed to subscribe")


@lru_cache(maxsize=1)
def get_mailer() -> BrevoMailer:
    return BrevoMailer(
        api_key=settings.BREVO_API_KEY,
        from_email=settings.BREVO_FROM_EMAIL,
        from_name=settings.BREVO_FROM_NAME,
        base_url=settings.BREVO_API_URL,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
    )
