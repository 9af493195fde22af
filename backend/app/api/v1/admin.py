# backend/app/api/v1/admin.py

from fastapi import APIRouter, HTTPException, Depends
from typing import Dict
import logging

from app.api.deps import get_caller, get_db
from app.schemas.context import CallerContext
from app.services.change_feed import pending_review_counter
from app.services.errors import Forbidden, PortalError

router = APIRouter(prefix="/admin", tags=["Admin"])
logger = logging.getLogger(__name__)


def require_admin(caller: CallerContext = Depends(get_caller)) -> CallerContext:
    if not caller.is_admin:
        raise Forbidden("Forbidden: Admin access required")
    return caller


def _count_by(rows, key: str) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for row in rows:
        value = row.get(key) or "unknown"
        counts[value] = counts.get(value, 0) + 1
    return counts


# ===============================
# 后台统计
# ===============================

@router.get("/stats")
def get_stats(caller: CallerContext = Depends(require_admin), db=Depends(get_db)):
    """
    后台首页统计：申请 / 项目 / 用户 / 导师匹配
    """
    try:
        applications = db.table("applications").select("status").execute().data or []
        programs = db.table("programs").select("status").execute().data or []
        users = db.table("profiles").select("role").execute().data or []
        matches = db.table("mentorship_matches").select("status").execute().data or []

        by_status = _count_by(applications, "status")
        return {
            "applications": {"total": len(applications), "by_status": by_status},
            "programs": {"total": len(programs), "active": _count_by(programs, "status").get("active", 0)},
            "users": {"total": len(users), "by_role": _count_by(users, "role")},
            "mentorship": {"total": len(matches), "by_status": _count_by(matches, "status")},
            "pending_review": pending_review_counter.count,
        }
    except PortalError:
        raise
    except Exception as e:
        logger.error(f"获取后台统计失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch statistics")


@router.get("/pending-count")
def get_pending_count(caller: CallerContext = Depends(require_admin)):
    """侧边栏待审核数量（由变更事件实时维护）"""
    return {"count": pending_review_counter.count}
