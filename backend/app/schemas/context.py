# app/schemas/context.py
from typing import Optional

from pydantic import BaseModel


ROLE_APPLICANT = "applicant"
ROLE_MENTOR = "mentor"
ROLE_PARTNER = "partner"
ROLE_ADMIN = "admin"


class CallerContext(BaseModel):
    """当前调用者（profiles.id + 角色），显式传给每个业务操作"""
    caller_id: str  # profiles.id
    caller_role: str  # applicant / mentor / partner / admin
    user_id: Optional[str] = None  # auth.users.id

    @property
    def is_admin(self) -> bool:
        return self.caller_role == ROLE_ADMIN
