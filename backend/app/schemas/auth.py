# app/schemas/auth.py
from typing import Optional

from pydantic import BaseModel, EmailStr


class VerifyEmailRequest(BaseModel):
    token: str = ""


class ResendVerificationRequest(BaseModel):
    email: EmailStr


class VerifyEmailResponse(BaseModel):
    success: bool
    message: str
    already_verified: bool = False


class NewsletterSubscribe(BaseModel):
    email: EmailStr
    captcha_token: Optional[str] = None
