# app/services/sessions.py
"""导师会议记录：增删改查 + 统计"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import logging

from app.schemas.context import CallerContext, ROLE_APPLICANT, ROLE_MENTOR
from app.schemas.mentorship import MatchStatus, SessionCreate, SessionStats, SessionStatus, SessionUpdate
from app.services.errors import Forbidden, NotFound, ValidationFailed

logger = logging.getLogger(__name__)


def compute_session_stats(sessions: List[Dict[str, Any]]) -> SessionStats:
    """
    total_hours 只统计 completed 的时长
    average_duration 是所有返回记录的平均分钟数
    """
    by_status: Dict[str, int] = {}
    completed_minutes = 0
    all_minutes = 0
    for s in sessions:
        status = s.get("status") or SessionStatus.COMPLETED.value
        by_status[status] = by_status.get(status, 0) + 1
        # 旧记录只有 duration 列
        minutes = int(s.get("duration_minutes") or s.get("duration") or 0)
        all_minutes += minutes
        if status == SessionStatus.COMPLETED.value:
            completed_minutes += minutes

    total = len(sessions)
    return SessionStats(
        total=total,
        by_status=by_status,
        total_hours=round(completed_minutes / 60, 2),
        average_duration=round(all_minutes / total, 1) if total else 0.0,
    )


class SessionLog:
    def __init__(self, db):
        self.db = db

    def _fetch_match(self, match_id: str) -> Dict[str, Any]:
        result = self.db.table("mentorship_matches").select("*").eq("id", match_id).limit(1).execute()
        if not result.data:
            raise NotFound("Match not found")
        return result.data[0]

    def _fetch_session(self, session_id: str) -> Dict[str, Any]:
        result = self.db.table("mentorship_sessions").select("*").eq("id", session_id).limit(1).execute()
        if not result.data:
            raise NotFound("Session not found")
        return result.data[0]

    @staticmethod
    def _check_mentor(match: Dict[str, Any], caller: CallerContext) -> None:
        # 只有该匹配的导师或管理员可以修改记录
        if str(match.get("mentor_id")) != caller.caller_id and not caller.is_admin:
            raise Forbidden("You are not authorized to manage sessions for this match")

    def create(self, payload: SessionCreate, caller: CallerContext) -> Dict[str, Any]:
        if not payload.match_id or not payload.session_date or not payload.duration_minutes:
            raise ValidationFailed("Missing required fields")

        match = self._fetch_match(payload.match_id)
        self._check_mentor(match, caller)
        if match.get("status") != MatchStatus.ACTIVE.value:
            raise ValidationFailed("Sessions can only be logged for active mentorships")

        row = payload.model_dump(mode="json")
        row["created_at"] = datetime.now(timezone.utc).isoformat()
        result = self.db.table("mentorship_sessions").insert(row).execute()
        if not result.data:
            raise RuntimeError("Session insert returned no rows")
        logger.info(f"记录会议 match={payload.match_id} duration={payload.duration_minutes}min")
        return result.data[0]

    def _visible_match_ids(self, caller: CallerContext) -> Optional[List[str]]:
        """None 表示不限制（管理员）"""
        if caller.is_admin:
            return None
        if caller.caller_role == ROLE_MENTOR:
            column = "mentor_id"
        elif caller.caller_role == ROLE_APPLICANT:
            column = "mentee_id"
        else:
            return []
        result = self.db.table("mentorship_matches").select("id").eq(column, caller.caller_id).execute()
        return [str(m["id"]) for m in (result.data or [])]

    def list(
        self,
        caller: CallerContext,
        match_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        query = self.db.table("mentorship_sessions").select("*")
        if match_id:
            match = self._fetch_match(match_id)
            participants = {str(match.get("mentor_id")), str(match.get("mentee_id"))}
            if caller.caller_id not in participants and not caller.is_admin:
                raise Forbidden("You are not a participant in this mentorship")
            query = query.eq("match_id", match_id)
        else:
            match_ids = self._visible_match_ids(caller)
            if match_ids is not None:
                if not match_ids:
                    return []
                query = query.in_("match_id", match_ids)
        if status:
            query = query.eq("status", status)
        return query.order("session_date", desc=True).execute().data or []

    def update(self, session_id: str, patch: SessionUpdate, caller: CallerContext) -> Dict[str, Any]:
        session = self._fetch_session(session_id)
        self._check_mentor(self._fetch_match(str(session.get("match_id"))), caller)

        changes = patch.model_dump(mode="json", exclude_unset=True)
        if not changes:
            raise ValidationFailed("No fields to update")
        changes["updated_at"] = datetime.now(timezone.utc).isoformat()
        result = self.db.table("mentorship_sessions").update(changes).eq("id", session_id).execute()
        return result.data[0] if result.data else {**session, **changes}

    def delete(self, session_id: str, caller: CallerContext) -> None:
        session = self._fetch_session(session_id)
        self._check_mentor(self._fetch_match(str(session.get("match_id"))), caller)
        self.db.table("mentorship_sessions").delete().eq("id", session_id).execute()
        logger.info(f"删除会议记录 {session_id}")
