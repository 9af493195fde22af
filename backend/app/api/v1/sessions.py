# app/api/v1/sessions.py
from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import Optional
import logging

from app.api.deps import get_caller, get_session_log
from app.schemas.context import CallerContext
from app.schemas.mentorship import SessionCreate, SessionUpdate
from app.services.errors import PortalError
from app.services.sessions import SessionLog, compute_session_stats

router = APIRouter(prefix="/mentorship/sessions", tags=["Mentorship Sessions"])
logger = logging.getLogger(__name__)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_session(
    payload: SessionCreate,
    caller: CallerContext = Depends(get_caller),
    sessions: SessionLog = Depends(get_session_log),
):
    """导师记录一次会议"""
    try:
        return {"success": True, "data": sessions.create(payload, caller)}
    except PortalError:
        raise
    except Exception as e:
        logger.error(f"创建会议记录失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create session")


@router.get("")
def list_sessions(
    match_id: Optional[str] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    include_stats: bool = Query(False, description="是否返回统计"),
    caller: CallerContext = Depends(get_caller),
    sessions: SessionLog = Depends(get_session_log),
):
    """
    不传 match_id 时按角色自动限定范围：
    导师 -> 自己所有匹配，学员 -> 自己所有匹配，管理员 -> 全部
    """
    try:
        items = sessions.list(caller, match_id=match_id, status=status_filter)
        response = {"data": items}
        if include_stats:
            response["stats"] = compute_session_stats(items)
        return response
    except PortalError:
        raise
    except Exception as e:
        logger.error(f"获取会议记录失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch sessions")


@router.patch("/{session_id}")
def update_session(
    session_id: str,
    payload: SessionUpdate,
    caller: CallerContext = Depends(get_caller),
    sessions: SessionLog = Depends(get_session_log),
):
    try:
        return {"success": True, "data": sessions.update(session_id, payload, caller)}
    except PortalError:
        raise
    except Exception as e:
        logger.error(f"更新会议记录失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update session")


@router.delete("/{session_id}")
def delete_session(
    session_id: str,
    caller: CallerContext = Depends(get_caller),
    sessions: SessionLog = Depends(get_session_log),
):
    try:
        sessions.delete(session_id, caller)
        return {"success": True}
    except PortalError:
        raise
    except Exception as e:
        logger.error(f"删除会议记录失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to delete session")
