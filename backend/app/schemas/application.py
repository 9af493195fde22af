# app/schemas/application.py
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


class ApplicationStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"  # 旧状态，保留兼容
    APPROVED = "approved"
    REJECTED = "rejected"
    PENDING = "pending"  # 管理员要求补充材料


# 申请人可以编辑/提交的状态
EDITABLE_STATUSES = (ApplicationStatus.DRAFT.value, ApplicationStatus.PENDING.value)


class ReviewDecision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_INFO = "request_info"


REVIEW_TARGET_STATUS = {
    ReviewDecision.APPROVE: ApplicationStatus.APPROVED.value,
    ReviewDecision.REJECT: ApplicationStatus.REJECTED.value,
    ReviewDecision.REQUEST_INFO: ApplicationStatus.PENDING.value,
}

MORE_INFO_PREFIX = "More information requested: "


class DocumentType(str, Enum):
    ACADEMIC_TRANSCRIPT = "academic_transcript"
    ENROLLMENT_PROOF = "enrollment_proof"
    RECOMMENDATION_LETTER = "recommendation_letter"
    FINANCIAL_STATEMENT = "financial_statement"
    STATE_OF_ORIGIN = "state_of_origin"
    ADDITIONAL_DOCUMENT = "additional_document"


# ===============================
# application_data 版本化结构
# ===============================
class ApplicationDataV1(BaseModel):
    """旧版申请表（自由文本）"""
    schema_version: Literal[1] = 1
    motivation: str = ""
    goals: str = ""
    experience: str = ""
    additional_info: str = ""


class ApplicationDataV2(BaseModel):
    """当前申请表"""
    schema_version: Literal[2] = 2
    # 学业背景
    current_institution: str = ""
    program_of_study: str = ""
    year_of_study: str = ""
    previous_qualifications: str = ""
    # 资助申请
    grant_type: str = ""  # education_level_1 / education_level_2 / business_grant
    amount_requested: str = ""
    purpose_of_grant: str = ""
    duration_of_support: str = ""
    # 个人陈述
    academic_goals: str = ""
    how_grant_will_help: str = ""
    challenges_faced: str = ""
    # 声明
    declaration_accepted: bool = False


ApplicationData = Union[ApplicationDataV1, ApplicationDataV2]

LEGACY_KEYS = set(ApplicationDataV1.model_fields) - {"schema_version"}

# 提交时必填字段（按表单顺序）及提示
REQUIRED_SUBMIT_FIELDS: List[Tuple[str, str]] = [
    ("current_institution", "Institution is required"),
    ("program_of_study", "Program of study is required"),
    ("grant_type", "Grant type is required"),
    ("purpose_of_grant", "Purpose of grant is required"),
    ("academic_goals", "Academic goals are required"),
    ("how_grant_will_help", "Please explain how the grant will help you"),
]
DECLARATION_MESSAGE = "You must accept the declaration before submitting"


def _parse_version(version: Any) -> Optional[int]:
    try:
        return int(version)
    except (TypeError, ValueError):
        return None


def _coerce_field(key: str, value: Any) -> Any:
    """存储里的值可能是数字或布尔值，统一转成模型字段的类型"""
    if value is None:
        return False if key == "declaration_accepted" else ""
    if key == "declaration_accepted":
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in ("true", "1", "yes", "on")
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


def read_application_data(raw: Optional[Dict[str, Any]]) -> ApplicationData:
    """
    读取 application_data，兼容旧版与新版
    有 schema_version 时以其为准（无法解析时按 V2）；没有时只含旧版字段视为 V1，否则视为 V2
    """
    raw = dict(raw) if isinstance(raw, dict) else {}
    version = raw.get("schema_version")
    if version is None:
        present = {k for k, v in raw.items() if v not in (None, "")}
        version = 1 if present and present <= LEGACY_KEYS else 2
    version = 1 if _parse_version(version) == 1 else 2

    known = ApplicationDataV1.model_fields if version == 1 else ApplicationDataV2.model_fields
    cleaned = {k: _coerce_field(k, v) for k, v in raw.items() if k in known and k != "schema_version"}
    cleaned["schema_version"] = version
    if version == 1:
        return ApplicationDataV1(**cleaned)
    return ApplicationDataV2(**cleaned)


def validate_for_submit(data: ApplicationDataV2) -> Optional[str]:
    """返回第一个未通过校验的提示，全部通过返回 None"""
    for field, message in REQUIRED_SUBMIT_FIELDS:
        if not str(getattr(data, field) or "").strip():
            return message
    if not data.declaration_accepted:
        return DECLARATION_MESSAGE
    return None


# ===============================
# 请求 / 响应模型
# ===============================
class DraftOpen(BaseModel):
    program_id: str


class DraftSave(BaseModel):
    application_data: ApplicationDataV2


class ApplicationSubmit(BaseModel):
    application_id: Optional[str] = None
    application_data: ApplicationDataV2


class ApplicationReview(BaseModel):
    decision: ReviewDecision
    reviewer_notes: str = ""


class DocumentCreate(BaseModel):
    document_type: DocumentType
    file_url: str
    file_name: str


class Application(BaseModel):
    id: str
    program_id: str
    applicant_id: str
    status: str = ApplicationStatus.DRAFT.value
    application_data: ApplicationData = Field(default_factory=ApplicationDataV2)
    reviewer_notes: Optional[str] = None
    reviewed_by: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    submitted_at: Optional[str] = None
    reviewed_at: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Application":
        data = dict(row)
        data["application_data"] = read_application_data(row.get("application_data"))
        for key in ("id", "program_id", "applicant_id"):
            if data.get(key) is not None:
                data[key] = str(data[key])
        return cls(**{k: v for k, v in data.items() if k in cls.model_fields})
