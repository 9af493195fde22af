# app/api/v1/notifications.py
from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional
import logging

from app.api.deps import get_caller, get_db
from app.schemas.context import CallerContext
from app.schemas.notification import NotificationUpdate
from app.services import notifications as inbox
from app.services.errors import PortalError, ValidationFailed

router = APIRouter(prefix="/notifications", tags=["Notifications"])
logger = logging.getLogger(__name__)


@router.get("")
def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=100),
    caller: CallerContext = Depends(get_caller),
    db=Depends(get_db),
):
    try:
        items = inbox.list_notifications(db, caller, unread_only=unread_only, limit=limit)
        return {"count": len(items), "items": items}
    except PortalError:
        raise
    except Exception as e:
        logger.error(f"获取通知失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch notifications")


@router.patch("")
def mark_read(
    payload: NotificationUpdate,
    caller: CallerContext = Depends(get_caller),
    db=Depends(get_db),
):
    """标记单条或全部已读"""
    try:
        if payload.mark_all_as_read:
            updated = inbox.mark_all_notifications_read(db, caller)
            return {"success": True, "updated": updated}
        if payload.notification_id:
            inbox.mark_notification_read(db, caller, payload.notification_id)
            return {"success": True, "updated": 1}
        raise ValidationFailed("Missing notificationId or markAllAsRead")
    except PortalError:
        raise
    except Exception as e:
        logger.error(f"更新通知失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update notification")


@router.delete("")
def delete_notification(
    id: Optional[str] = Query(None, description="通知 ID"),
    caller: CallerContext = Depends(get_caller),
    db=Depends(get_db),
):
    try:
        inbox.delete_notification(db, caller, id)
        return {"success": True}
    except PortalError:
        raise
    except Exception as e:
        logger.error(f"删除通知失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to delete notification")
