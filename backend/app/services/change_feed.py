# app/services/change_feed.py
"""
进程内变更事件流

写操作完成后按表名发布事件，消费者通过 subscribe(topic, on_event) 订阅，
拿到的 Subscription 在销毁时必须显式 unsubscribe()。
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
import itertools
import logging
import threading

logger = logging.getLogger(__name__)


@dataclass
class ChangeEvent:
    topic: str  # 表名，例如 applications / mentorship_matches
    action: str  # insert / update / delete
    record: Dict[str, Any]
    old_status: Optional[str] = None
    occurred_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


EventHandler = Callable[[ChangeEvent], None]


class Subscription:
    def __init__(self, feed: "ChangeFeed", topic: str, key: int):
        self._feed = feed
        self.topic = topic
        self._key = key
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._feed._remove(self.topic, self._key)
            self.active = False


class ChangeFeed:
    def __init__(self):
        self._handlers: Dict[str, Dict[int, EventHandler]] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def subscribe(self, topic: str, on_event: EventHandler) -> Subscription:
        with self._lock:
            key = next(self._ids)
            self._handlers.setdefault(topic, {})[key] = on_event
        return Subscription(self, topic, key)

    def _remove(self, topic: str, key: int) -> None:
        with self._lock:
            handlers = self._handlers.get(topic, {})
            handlers.pop(key, None)
            if not handlers:
                self._handlers.pop(topic, None)

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._handlers.get(topic, {}))

    def publish(self, event: ChangeEvent) -> None:
        """分发给当前订阅者的快照；单个处理器出错只记录日志"""
        with self._lock:
            handlers: List[EventHandler] = list(self._handlers.get(event.topic, {}).values())
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"处理 {event.topic} 事件失败: {e}", exc_info=True)


class PendingReviewCounter:
    """
    管理员侧边栏的待审核数量（status = submitted）
    启动时从数据库读取一次，之后由 applications 事件增量更新
    """

    def __init__(self):
        self.count = 0
        self._subscription: Optional[Subscription] = None
        self._lock = threading.Lock()

    def seed(self, count: int) -> None:
        with self._lock:
            self.count = count

    def start(self, feed: ChangeFeed) -> None:
        if self._subscription is None:
            self._subscription = feed.subscribe("applications", self.on_event)

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def on_event(self, event: ChangeEvent) -> None:
        new_status = event.record.get("status")
        with self._lock:
            if new_status == "submitted" and event.old_status != "submitted":
                self.count += 1
            elif event.old_status == "submitted" and new_status != "submitted":
                self.count = max(0, self.count - 1)


change_feed = ChangeFeed()
pending_review_counter = PendingReviewCounter()
