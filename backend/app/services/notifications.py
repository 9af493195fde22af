# app/services/notifications.py
"""
通知分发（站内通知 + 邮件）以及通知收件箱操作

分发是 best-effort 的：每次调用都返回 DispatchResult，失败只记录日志，
绝不向上抛出，也不会回滚触发它的状态变更。
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import logging

from app.services.email_client import BrevoMailer
from app.services.email_templates import EmailContent
from app.services.errors import NotFound, ValidationFailed
from app.schemas.context import CallerContext, ROLE_ADMIN

logger = logging.getLogger(__name__)

CHANNEL_IN_APP = "in_app"
CHANNEL_EMAIL = "email"


@dataclass
class DispatchResult:
    channel: str
    recipient: str
    ok: bool
    error: Optional[str] = None

    @classmethod
    def success(cls, channel: str, recipient: str) -> "DispatchResult":
        return cls(channel=channel, recipient=recipient, ok=True)

    @classmethod
    def failure(cls, channel: str, recipient: str, error: Any) -> "DispatchResult":
        return cls(channel=channel, recipient=recipient, ok=False, error=str(error))


@dataclass
class TransitionOutcome:
    """主状态变更的结果 + 所有尝试过的副作用"""
    record: Dict[str, Any]
    side_effects: List[DispatchResult]

    @property
    def all_delivered(self) -> bool:
        return all(r.ok for r in self.side_effects)


class NotificationDispatcher:
    def __init__(self, db, mailer: BrevoMailer):
        self.db = db
        self.mailer = mailer

    def notify(
        self,
        user_id: str,
        title: str,
        message: str,
        type: str = "info",
        link: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> DispatchResult:
        """给单个用户创建站内通知"""
        try:
            self.db.table("notifications").insert({
                "user_id": user_id,
                "title": title,
                "message": message,
                "type": type,
                "link": link,
                "metadata": metadata or {},
                "is_read": False,
            }).execute()
            return DispatchResult.success(CHANNEL_IN_APP, user_id)
        except Exception as e:
            logger.error(f"创建站内通知失败 user={user_id}: {e}")
            return DispatchResult.failure(CHANNEL_IN_APP, user_id, e)

    def notify_many(
        self,
        user_ids: List[str],
        title: str,
        message: str,
        type: str = "info",
        link: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> DispatchResult:
        """批量创建站内通知（一次插入）"""
        recipient = ",".join(user_ids)
        if not user_ids:
            return DispatchResult.failure(CHANNEL_IN_APP, recipient, "no recipients")
        rows = [
            {
                "user_id": user_id,
                "title": title,
                "message": message,
                "type": type,
                "link": link,
                "metadata": metadata or {},
                "is_read": False,
            }
            for user_id in user_ids
        ]
        try:
            self.db.table("notifications").insert(rows).execute()
            return DispatchResult.success(CHANNEL_IN_APP, recipient)
        except Exception as e:
            logger.error(f"批量创建站内通知失败: {e}")
            return DispatchResult.failure(CHANNEL_IN_APP, recipient, e)

    def list_admins(self) -> List[Dict[str, Any]]:
        result = self.db.table("profiles").select("id, full_name, email").eq("role", ROLE_ADMIN).execute()
        return result.data or []

    def notify_admins(
        self,
        title: str,
        message: str,
        type: str = "info",
        link: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        admins: Optional[List[Dict[str, Any]]] = None,
    ) -> DispatchResult:
        """通知所有管理员"""
        if admins is None:
            try:
                admins = self.list_admins()
            except Exception as e:
                logger.error(f"获取管理员列表失败: {e}")
                return DispatchResult.failure(CHANNEL_IN_APP, "admins", e)
        return self.notify_many([a["id"] for a in admins], title, message, type, link, metadata)

    def email(self, to: Optional[str], content: EmailContent, to_name: Optional[str] = None) -> DispatchResult:
        """发送一封邮件"""
        if not to:
            return DispatchResult.failure(CHANNEL_EMAIL, "", "missing recipient email")
        try:
            self.mailer.send(to=to, subject=content.subject, html=content.html, text=content.text, to_name=to_name)
            return DispatchResult.success(CHANNEL_EMAIL, to)
        except Exception as e:
            logger.error(f"发送邮件失败 to={to}, subject={content.subject}: {e}")
            return DispatchResult.failure(CHANNEL_EMAIL, to, e)


def log_side_effects(operation: str, results: List[DispatchResult]) -> None:
    """记录副作用结果；失败不影响主操作"""
    failed = [r for r in results if not r.ok]
    if failed:
        logger.warning(
            f"{operation}: {len(failed)}/{len(results)} 个通知发送失败 "
            + "; ".join(f"{r.channel}->{r.recipient}: {r.error}" for r in failed)
        )
    else:
        logger.info(f"{operation}: {len(results)} 个通知已发送")


# ===============================
# 收件箱（当前用户自己的通知）
# ===============================
def list_notifications(db, caller: CallerContext, unread_only: bool = False, limit: int = 50) -> List[Dict[str, Any]]:
    query = db.table("notifications").select("*").eq("user_id", caller.caller_id)
    if unread_only:
        query = query.eq("is_read", False)
    query = query.order("created_at", desc=True).limit(limit)
    return query.execute().data or []


def mark_notification_read(db, caller: CallerContext, notification_id: str) -> None:
    result = db.table("notifications").update({"is_read": True}).eq(
        "id", notification_id
    ).eq("user_id", caller.caller_id).execute()
    if not result.data:
        raise NotFound("Notification not found")


def mark_all_notifications_read(db, caller: CallerContext) -> int:
    result = db.table("notifications").update({"is_read": True}).eq(
        "user_id", caller.caller_id
    ).eq("is_read", False).execute()
    return len(result.data or [])


def delete_notification(db, caller: CallerContext, notification_id: Optional[str]) -> None:
    if not notification_id:
        raise ValidationFailed("Missing notification ID")
    result = db.table("notifications").delete().eq(
        "id", notification_id
    ).eq("user_id", caller.caller_id).execute()
    if not result.data:
        raise NotFound("Notification not found")
