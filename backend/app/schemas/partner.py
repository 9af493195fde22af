# app/schemas/partner.py
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class VerificationStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


# 管理员可以给出的结论
VERIFICATION_DECISIONS = (VerificationStatus.VERIFIED.value, VerificationStatus.REJECTED.value)


class PartnerVerify(BaseModel):
    organization_id: Optional[str] = None
    verification_status: Optional[str] = None  # verified / rejected
    verification_notes: Optional[str] = None
