# app/api/v1/mentors.py
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import Optional
import logging

from app.api.deps import get_caller, get_mentor_applications
from app.schemas.context import CallerContext
from app.schemas.mentorship import MentorApply, MentorReview
from app.services.errors import PortalError
from app.services.mentors import MentorApplications

router = APIRouter(prefix="/mentors", tags=["Mentors"])
logger = logging.getLogger(__name__)


@router.post("/apply", status_code=status.HTTP_201_CREATED)
def apply_as_mentor(
    payload: MentorApply,
    caller: CallerContext = Depends(get_caller),
    mentors: MentorApplications = Depends(get_mentor_applications),
):
    try:
        return {"success": True, "data": mentors.apply(payload, caller)}
    except PortalError:
        raise
    except Exception as e:
        logger.error(f"提交导师申请失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to submit mentor application")


@router.get("/applications")
def list_mentor_applications(
    status_filter: Optional[str] = Query(None, alias="status"),
    caller: CallerContext = Depends(get_caller),
    mentors: MentorApplications = Depends(get_mentor_applications),
):
    """仅管理员"""
    try:
        items = mentors.list(caller, status=status_filter)
        return {"count": len(items), "items": items}
    except PortalError:
        raise
    except Exception as e:
        logger.error(f"获取导师申请失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch mentor applications")


@router.post("/applications/{application_id}/review")
def review_mentor_application(
    application_id: str,
    payload: MentorReview,
    caller: CallerContext = Depends(get_caller),
    mentors: MentorApplications = Depends(get_mentor_applications),
):
    """管理员审核导师申请：approved / rejected"""
    try:
        outcome = mentors.review(application_id, payload.status, caller, admin_notes=payload.admin_notes)
        return {
            "success": True,
            "data": outcome.record,
            "notifications": [asdict(r) for r in outcome.side_effects],
        }
    except PortalError:
        raise
    except Exception as e:
        logger.error(f"审核导师申请失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to review mentor application")
