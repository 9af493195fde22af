# app/api/v1/partners.py
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional
import logging

from app.api.deps import get_caller, get_partner_verification
from app.schemas.context import CallerContext
from app.schemas.partner import PartnerVerify
from app.services.errors import PortalError
from app.services.partners import PartnerVerification

router = APIRouter(prefix="/partners", tags=["Partners"])
logger = logging.getLogger(__name__)


@router.get("")
def list_partners(
    verification_status: Optional[str] = Query(None),
    caller: CallerContext = Depends(get_caller),
    partners: PartnerVerification = Depends(get_partner_verification),
):
    """管理员：全部机构；合作机构：自己的机构"""
    try:
        items = partners.list(caller, verification_status=verification_status)
        return {"count": len(items), "items": items}
    except PortalError:
        raise
    except Exception as e:
        logger.error(f"获取合作机构失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch partner organizations")


@router.post("/verify")
def verify_partner(
    payload: PartnerVerify,
    caller: CallerContext = Depends(get_caller),
    partners: PartnerVerification = Depends(get_partner_verification),
):
    """
    管理员审核合作机构：verified / rejected
    通知失败不影响审核结果
    """
    try:
        outcome = partners.verify(
            payload.organization_id,
            payload.verification_status,
            caller,
            verification_notes=payload.verification_notes,
        )
        return {
            "success": True,
            "data": outcome.record,
            "notifications": [asdict(r) for r in outcome.side_effects],
        }
    except PortalError:
        raise
    except Exception as e:
        logger.error(f"审核合作机构失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to verify partner")
