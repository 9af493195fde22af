# app/api/v1/mentorship.py
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import Any, Dict, Optional
import logging

from app.api.deps import get_caller, get_mentorship_lifecycle
from app.schemas.context import CallerContext
from app.schemas.mentorship import MatchCreate, MentorRequest, MentorshipStatus
from app.services.errors import PortalError
from app.services.mentorship import MentorshipLifecycle
from app.services.notifications import TransitionOutcome

router = APIRouter(prefix="/mentorship", tags=["Mentorship"])
logger = logging.getLogger(__name__)


def _outcome_response(outcome: TransitionOutcome, message: str) -> Dict[str, Any]:
    return {
        "success": True,
        "match": outcome.record,
        "message": message,
        "notifications": [asdict(r) for r in outcome.side_effects],
    }


@router.post("/request", status_code=status.HTTP_201_CREATED)
def request_mentor(
    payload: MentorRequest,
    caller: CallerContext = Depends(get_caller),
    lifecycle: MentorshipLifecycle = Depends(get_mentorship_lifecycle),
):
    """
    学员向导师发起匹配请求
    """
    try:
        outcome = lifecycle.request_mentor(payload.mentor_id, payload.goals, caller)
        return _outcome_response(outcome, "Mentorship request sent successfully!")
    except PortalError:
        raise
    except Exception as e:
        logger.error(f"发起导师请求失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create mentorship request")


@router.get("/status", response_model=MentorshipStatus)
def mentorship_status(
    caller: CallerContext = Depends(get_caller),
    lifecycle: MentorshipLifecycle = Depends(get_mentorship_lifecycle),
):
    """当前匹配（active 或 pending）"""
    try:
        return lifecycle.current_match(caller)
    except PortalError:
        raise
    except Exception as e:
        logger.error(f"获取导师状态失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch mentorship status")


@router.get("/matches")
def list_matches(
    status_filter: Optional[str] = Query(None, alias="status"),
    caller: CallerContext = Depends(get_caller),
    lifecycle: MentorshipLifecycle = Depends(get_mentorship_lifecycle),
):
    try:
        items = lifecycle.list_matches(caller, status=status_filter)
        return {"count": len(items), "items": items}
    except PortalError:
        raise
    except Exception as e:
        logger.error(f"获取匹配列表失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch mentorship matches")


@router.post("/match", status_code=status.HTTP_201_CREATED)
def create_match(
    payload: MatchCreate,
    caller: CallerContext = Depends(get_caller),
    lifecycle: MentorshipLifecycle = Depends(get_mentorship_lifecycle),
):
    """管理员直接创建匹配"""
    try:
        return {"success": True, "data": lifecycle.create_match(payload.mentor_id, payload.mentee_id, payload.goals, caller)}
    except PortalError:
        raise
    except Exception as e:
        logger.error(f"创建匹配失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create mentorship match")


@router.post("/matches/{match_id}/withdraw")
def withdraw(
    match_id: str,
    caller: CallerContext = Depends(get_caller),
    lifecycle: MentorshipLifecycle = Depends(get_mentorship_lifecycle),
):
    try:
        return _outcome_response(lifecycle.withdraw(match_id, caller), "Mentorship request withdrawn")
    except PortalError:
        raise
    except Exception as e:
        logger.error(f"撤回匹配失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to withdraw mentorship")


@router.post("/matches/{match_id}/accept")
def accept(
    match_id: str,
    caller: CallerContext = Depends(get_caller),
    lifecycle: MentorshipLifecycle = Depends(get_mentorship_lifecycle),
):
    try:
        return _outcome_response(lifecycle.accept(match_id, caller), "Mentorship request accepted")
    except PortalError:
        raise
    except Exception as e:
        logger.error(f"接受匹配失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to accept mentorship request")


@router.post("/matches/{match_id}/reject")
def reject(
    match_id: str,
    caller: CallerContext = Depends(get_caller),
    lifecycle: MentorshipLifecycle = Depends(get_mentorship_lifecycle),
):
    try:
        return _outcome_response(lifecycle.reject(match_id, caller), "Mentorship request declined")
    except PortalError:
        raise
    except Exception as e:
        logger.error(f"拒绝匹配失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to reject mentorship request")
