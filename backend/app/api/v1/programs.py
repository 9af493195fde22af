# backend/app/api/v1/programs.py

from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional
import logging

from app.api.deps import get_db
from app.schemas.program import Program

router = APIRouter(prefix="/programs", tags=["Programs"])
logger = logging.getLogger(__name__)


@router.get("")
def list_programs(
    status: Optional[str] = Query(None, description="状态，例如：active / closed"),
    type: Optional[str] = Query(None, description="类型，例如：education / business"),
    keyword: Optional[str] = Query(None, description="标题关键词"),
    limit: int = Query(20, ge=1, le=100, description="每页数量"),
    offset: int = Query(0, ge=0, description="分页偏移量"),
    db=Depends(get_db),
):
    try:
        query = db.table("programs").select("*")

        if status:
            query = query.eq("status", status)
        if type:
            query = query.eq("type", type)
        # 标题模糊搜索
        if keyword:
            query = query.ilike("title", f"%{keyword}%")

        # 分页
        query = query.order("created_at", desc=True).range(offset, offset + limit - 1)

        res = query.execute()
        items = [Program(**{**row, "id": str(row["id"])}) for row in (res.data or [])]
        return {
            "count": len(items),
            "items": items,
            "limit": limit,
            "offset": offset
        }
    except Exception as e:
        logger.error(f"获取项目列表失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch programs")


@router.get("/{program_id}", response_model=Program)
def get_program(program_id: str, db=Depends(get_db)):
    """
    获取单个项目详情
    """
    try:
        result = db.table("programs").select("*").eq("id", program_id).limit(1).execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="Program not found")
        row = result.data[0]
        return Program(**{**row, "id": str(row["id"])})
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"获取项目详情失败: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch program")
