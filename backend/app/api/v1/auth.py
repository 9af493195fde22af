# app/api/v1/auth.py
"""
邮箱验证
登录 / 注册由 Supabase Auth 直接处理，这里只负责验证链接
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional
import logging

from app.api.deps import get_email_verification
from app.schemas.auth import ResendVerificationRequest, VerifyEmailRequest, VerifyEmailResponse
from app.services.email_verification import EmailVerificationService
from app.services.errors import EmailDeliveryError, PortalError, ValidationFailed

router = APIRouter(prefix="/auth", tags=["Auth"])
logger = logging.getLogger(__name__)


@router.post("/verify-email", response_model=VerifyEmailResponse)
def verify_email(
    payload: VerifyEmailRequest,
    service: EmailVerificationService = Depends(get_email_verification),
):
    """使用 token 完成验证"""
    try:
        return service.verify(payload.token)
    except PortalError:
        raise
    except Exception as e:
        logger.error(f"邮箱验证失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Verification failed")


@router.put("/verify-email", response_model=VerifyEmailResponse)
def resend_verification(
    payload: ResendVerificationRequest,
    service: EmailVerificationService = Depends(get_email_verification),
):
    """重新发送验证邮件"""
    try:
        return service.resend(payload.email)
    except PortalError:
        raise
    except EmailDeliveryError as e:
        logger.error(f"验证邮件发送失败: {e}")
        raise HTTPException(status_code=502, detail="Failed to send verification email")
    except Exception as e:
        logger.error(f"重新发送验证邮件失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to resend verification")


@router.get("/verify-email")
def verification_status(
    email: Optional[str] = Query(None),
    token: Optional[str] = Query(None),
    service: EmailVerificationService = Depends(get_email_verification),
):
    """
    ?email= 查询是否已验证
    ?token= 查询验证链接是否仍然有效
    """
    try:
        if token:
            return service.token_status(token)
        if email:
            return service.status_by_email(email)
        raise ValidationFailed("Email or token is required")
    except PortalError:
        raise
    except Exception as e:
        logger.error(f"查询验证状态失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to check verification status")
