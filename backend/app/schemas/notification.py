# app/schemas/notification.py
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field


class NotificationUpdate(BaseModel):
    # 前端旧版使用驼峰字段名
    notification_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("notification_id", "notificationId")
    )
    mark_all_as_read: bool = Field(
        default=False, validation_alias=AliasChoices("mark_all_as_read", "markAllAsRead")
    )
