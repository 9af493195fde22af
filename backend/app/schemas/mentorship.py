# app/schemas/mentorship.py
from enum import Enum
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator


class MatchStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


# 「当前匹配」= pending 或 active
OPEN_MATCH_STATUSES = [MatchStatus.ACTIVE.value, MatchStatus.PENDING.value]


class SessionMode(str, Enum):
    VIDEO = "video"
    PHONE = "phone"
    IN_PERSON = "in-person"


class SessionStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class MentorApplicationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# ===============================
# 导师申请
# ===============================
class MentorApply(BaseModel):
    expertise: Optional[str] = None
    bio: Optional[str] = None
    headline: Optional[str] = None
    years_of_experience: Optional[int] = Field(default=None, ge=0)
    max_mentees: Optional[int] = Field(default=None, gt=0)
    linkedin_url: Optional[str] = None


class MentorReview(BaseModel):
    status: Optional[str] = None  # approved / rejected
    admin_notes: Optional[str] = None


# ===============================
# 匹配
# ===============================
class MentorRequest(BaseModel):
    mentor_id: str  # 导师的 profiles.id
    goals: Optional[str] = None


class MatchCreate(BaseModel):
    """管理员直接创建匹配"""
    mentor_id: str
    mentee_id: str
    goals: Optional[str] = None


class MentorshipStatus(BaseModel):
    has_mentor: bool
    can_request_mentor: bool
    status: Optional[str] = None
    match_id: Optional[str] = None
    mentor_name: Optional[str] = None
    mentor_email: Optional[str] = None
    goals: Optional[str] = None
    start_date: Optional[str] = None


# ===============================
# 会议记录
# ===============================
class SessionCreate(BaseModel):
    match_id: Optional[str] = None
    session_date: Optional[str] = None
    # 兼容旧字段名 duration
    duration_minutes: Optional[int] = Field(
        default=None, gt=0, validation_alias=AliasChoices("duration_minutes", "duration")
    )
    mode: SessionMode = SessionMode.VIDEO
    notes: Optional[str] = None
    topics_covered: Optional[List[str]] = None
    action_items: Optional[List[str]] = None
    next_session_goals: Optional[str] = None
    status: SessionStatus = SessionStatus.COMPLETED


class SessionUpdate(BaseModel):
    session_date: Optional[str] = None
    duration_minutes: Optional[int] = Field(
        default=None, gt=0, validation_alias=AliasChoices("duration_minutes", "duration")
    )
    mode: Optional[SessionMode] = None
    notes: Optional[str] = None
    topics_covered: Optional[List[str]] = None
    action_items: Optional[List[str]] = None
    next_session_goals: Optional[str] = None
    status: Optional[SessionStatus] = None

    # 可以不传，但不能显式置空
    @field_validator("session_date", "duration_minutes", "mode", "status")
    @classmethod
    def _not_null(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v


class SessionStats(BaseModel):
    total: int = 0
    by_status: dict = Field(default_factory=dict)
    total_hours: float = 0.0
    average_duration: float = 0.0
