# app/api/v1/applications.py
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import Any, Dict, List, Optional
import logging

from app.api.deps import get_application_lifecycle, get_caller
from app.schemas.application import (
    Application,
    ApplicationReview,
    ApplicationSubmit,
    DocumentCreate,
    DraftOpen,
    DraftSave,
)
from app.schemas.context import CallerContext
from app.services.applications import ApplicationLifecycle
from app.services.errors import PortalError

router = APIRouter(prefix="/applications", tags=["Applications"])
logger = logging.getLogger(__name__)


def _outcome_response(outcome) -> Dict[str, Any]:
    return {
        "success": True,
        "application": Application.from_row(outcome.record),
        "notifications": [asdict(r) for r in outcome.side_effects],
    }


@router.post("/drafts", response_model=Application)
def open_draft(
    payload: DraftOpen,
    caller: CallerContext = Depends(get_caller),
    lifecycle: ApplicationLifecycle = Depends(get_application_lifecycle),
):
    """
    打开申请表：复用已有草稿或新建
    """
    try:
        return Application.from_row(lifecycle.open_draft(payload.program_id, caller))
    except PortalError:
        raise
    except Exception as e:
        logger.error(f"创建草稿失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to start application")


@router.get("", response_model=List[Application])
def list_applications(
    status_filter: Optional[str] = Query(None, alias="status", description="按状态筛选"),
    program_id: Optional[str] = Query(None),
    caller: CallerContext = Depends(get_caller),
    lifecycle: ApplicationLifecycle = Depends(get_application_lifecycle),
):
    """申请人只看到自己的申请，管理员看到全部"""
    try:
        rows = lifecycle.list(caller, status=status_filter, program_id=program_id)
        return [Application.from_row(row) for row in rows]
    except PortalError:
        raise
    except Exception as e:
        logger.error(f"获取申请列表失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch applications")


@router.post("/submit")
def submit_application(
    payload: ApplicationSubmit,
    caller: CallerContext = Depends(get_caller),
    lifecycle: ApplicationLifecycle = Depends(get_application_lifecycle),
):
    """
    提交申请
    通知管理员失败不会影响提交结果
    """
    try:
        outcome = lifecycle.submit(payload.application_id, payload.application_data, caller)
        return _outcome_response(outcome)
    except PortalError:
        raise
    except Exception as e:
        logger.error(f"提交申请失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to submit application")


@router.get("/{application_id}", response_model=Application)
def get_application(
    application_id: str,
    caller: CallerContext = Depends(get_caller),
    lifecycle: ApplicationLifecycle = Depends(get_application_lifecycle),
):
    try:
        return Application.from_row(lifecycle.get(application_id, caller))
    except PortalError:
        raise
    except Exception as e:
        logger.error(f"获取申请详情失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch application")


@router.put("/{application_id}/draft", response_model=Application)
def save_draft(
    application_id: str,
    payload: DraftSave,
    caller: CallerContext = Depends(get_caller),
    lifecycle: ApplicationLifecycle = Depends(get_application_lifecycle),
):
    """手动保存草稿"""
    try:
        return Application.from_row(lifecycle.save_draft(application_id, payload.application_data, caller))
    except PortalError:
        raise
    except Exception as e:
        logger.error(f"保存草稿失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to save draft")


@router.post("/{application_id}/autosave", status_code=status.HTTP_202_ACCEPTED)
def autosave_draft(
    application_id: str,
    payload: DraftSave,
    caller: CallerContext = Depends(get_caller),
    lifecycle: ApplicationLifecycle = Depends(get_application_lifecycle),
):
    """去抖后台保存，立即返回"""
    try:
        lifecycle.autosave(application_id, payload.application_data, caller)
        return {"scheduled": True}
    except PortalError:
        raise
    except Exception as e:
        logger.error(f"安排自动保存失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to autosave draft")


@router.post("/{application_id}/review")
def review_application(
    application_id: str,
    payload: ApplicationReview,
    caller: CallerContext = Depends(get_caller),
    lifecycle: ApplicationLifecycle = Depends(get_application_lifecycle),
):
    """
    管理员审核：approve / reject / request_info
    """
    try:
        outcome = lifecycle.review(application_id, payload.decision, payload.reviewer_notes, caller)
        return _outcome_response(outcome)
    except PortalError:
        raise
    except Exception as e:
        logger.error(f"审核申请失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to review application")


@router.post("/{application_id}/documents", status_code=status.HTTP_201_CREATED)
def add_document(
    application_id: str,
    payload: DocumentCreate,
    caller: CallerContext = Depends(get_caller),
    lifecycle: ApplicationLifecycle = Depends(get_application_lifecycle),
):
    try:
        return lifecycle.add_document(application_id, payload, caller)
    except PortalError:
        raise
    except Exception as e:
        logger.error(f"保存附件记录失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to save document")


@router.get("/{application_id}/documents")
def list_documents(
    application_id: str,
    caller: CallerContext = Depends(get_caller),
    lifecycle: ApplicationLifecycle = Depends(get_application_lifecycle),
):
    try:
        items = lifecycle.list_documents(application_id, caller)
        return {"count": len(items), "items": items}
    except PortalError:
        raise
    except Exception as e:
        logger.error(f"获取附件列表失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch documents")
