# app/services/autosave.py
"""
草稿自动保存：按 key 去抖，静默期结束后只写最新的一次
"""
from typing import Callable, Dict, Hashable, Optional
import logging
import threading

from app.config import settings

logger = logging.getLogger(__name__)


class _PendingWrite:
    def __init__(self, timer: threading.Timer, write: Callable[[], None]):
        self.timer = timer
        self.write = write


class DraftAutosaver:
    def __init__(self, delay: float = 2.0):
        self.delay = delay
        self._pending: Dict[Hashable, _PendingWrite] = {}
        self._lock = threading.Lock()

    def schedule(self, key: Hashable, write: Callable[[], None]) -> None:
        """安排一次写入；同一个 key 在静默期内再次调用会取消前一次"""
        entry = _PendingWrite(None, write)
        entry.timer = threading.Timer(self.delay, self._fire, args=(key, entry))
        entry.timer.daemon = True
        with self._lock:
            previous = self._pending.get(key)
            if previous is not None:
                previous.timer.cancel()
            self._pending[key] = entry
        entry.timer.start()

    def _take(self, key: Hashable, entry: Optional[_PendingWrite] = None) -> Optional[_PendingWrite]:
        # entry 不为空时，只有它仍是最新的那次才取出
        with self._lock:
            current = self._pending.get(key)
            if current is None or (entry is not None and current is not entry):
                return None
            return self._pending.pop(key)

    def cancel(self, key: Hashable) -> bool:
        entry = self._take(key)
        if entry is None:
            return False
        entry.timer.cancel()
        return True

    def is_pending(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._pending

    def flush(self, key: Hashable) -> bool:
        """立即执行该 key 的待写入（如有）"""
        entry = self._take(key)
        if entry is None:
            return False
        entry.timer.cancel()
        self._run(key, entry.write)
        return True

    def flush_all(self) -> None:
        with self._lock:
            pending = list(self._pending.items())
            self._pending.clear()
        for key, entry in pending:
            entry.timer.cancel()
            self._run(key, entry.write)

    def _fire(self, key: Hashable, entry: _PendingWrite) -> None:
        if self._take(key, entry) is not None:
            self._run(key, entry.write)

    @staticmethod
    def _run(key: Hashable, write: Callable[[], None]) -> None:
        # 自动保存失败不打扰用户
        try:
            write()
        except Exception as e:
            logger.error(f"自动保存失败 key={key}: {e}")


draft_autosaver = DraftAutosaver(delay=settings.AUTOSAVE_DELAY_SECONDS)
