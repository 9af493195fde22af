# app/api/deps.py
"""
路由依赖：当前调用者 + 各业务服务
测试时通过 app.dependency_overrides 替换 get_db / get_mailer / get_caller
"""
from typing import Optional
import logging

from fastapi import Depends, Header

from app.schemas.context import CallerContext
from app.services.applications import ApplicationLifecycle
from app.services.email_client import BrevoMailer, get_mailer
from app.services.email_verification import EmailVerificationService
from app.services.errors import NotAuthenticated, NotFound
from app.services.mentors import MentorApplications
from app.services.mentorship import MentorshipLifecycle
from app.services.notifications import NotificationDispatcher
from app.services.partners import PartnerVerification
from app.services.sessions import SessionLog
from app.services.supabase_client import get_supabase

logger = logging.getLogger(__name__)


def get_db():
    return get_supabase()


def get_caller(
    authorization: Optional[str] = Header(None),
    db=Depends(get_db),
) -> CallerContext:
    """
    Bearer token -> auth 用户 -> profiles 记录
    """
    if not authorization or not authorization.lower().startswith("bearer "):
        raise NotAuthenticated("Unauthorized")
    token = authorization.split(" ", 1)[1].strip()

    try:
        response = db.auth.get_user(token)
    except Exception as e:
        logger.warning(f"token 校验失败: {e}")
        raise NotAuthenticated("Unauthorized")
    user = getattr(response, "user", None)
    if user is None:
        raise NotAuthenticated("Unauthorized")

    result = db.table("profiles").select("id, role").eq("user_id", user.id).limit(1).execute()
    if not result.data:
        raise NotFound("Profile not found")
    profile = result.data[0]
    return CallerContext(caller_id=str(profile["id"]), caller_role=profile.get("role") or "applicant", user_id=str(user.id))


def get_dispatcher(db=Depends(get_db), mailer: BrevoMailer = Depends(get_mailer)) -> NotificationDispatcher:
    return NotificationDispatcher(db, mailer)


def get_application_lifecycle(
    db=Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> ApplicationLifecycle:
    return ApplicationLifecycle(db, dispatcher)


def get_mentorship_lifecycle(
    db=Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> MentorshipLifecycle:
    return MentorshipLifecycle(db, dispatcher)


def get_mentor_applications(
    db=Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> MentorApplications:
    return MentorApplications(db, dispatcher)


def get_partner_verification(
    db=Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> PartnerVerification:
    return PartnerVerification(db, dispatcher)


def get_session_log(db=Depends(get_db)) -> SessionLog:
    return SessionLog(db)


def get_email_verification(
    db=Depends(get_db),
    mailer: BrevoMailer = Depends(get_mailer),
) -> EmailVerificationService:
    return EmailVerificationService(db, mailer)
