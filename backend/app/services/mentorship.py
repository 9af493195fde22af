# app/services/mentorship.py
"""
导师匹配生命周期
pending -> active / rejected，pending 或 active -> withdrawn
rejected 和 withdrawn 是终态，记录永不删除
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import logging

from app.schemas.context import CallerContext, ROLE_APPLICANT, ROLE_MENTOR
from app.schemas.mentorship import MatchStatus, MentorshipStatus, OPEN_MATCH_STATUSES
from app.services import email_templates
from app.services.change_feed import ChangeEvent, ChangeFeed, change_feed
from app.services.errors import Conflict, Forbidden, NotFound, ValidationFailed
from app.services.notifications import (
    DispatchResult,
    NotificationDispatcher,
    TransitionOutcome,
    log_side_effects,
)

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def mentor_is_available(mentor_profile: Dict[str, Any]) -> bool:
    """mentor_profiles 有两种写法：is_available 布尔值或 availability_status 字符串"""
    if "is_available" in mentor_profile and mentor_profile["is_available"] is not None:
        return bool(mentor_profile["is_available"])
    return mentor_profile.get("availability_status") == "available"


class MentorshipLifecycle:
    def __init__(self, db, dispatcher: NotificationDispatcher, feed: ChangeFeed = change_feed):
        self.db = db
        self.dispatcher = dispatcher
        self.feed = feed

    def _profile(self, profile_id: Optional[str]) -> Optional[Dict[str, Any]]:
        if not profile_id:
            return None
        result = self.db.table("profiles").select("*").eq("id", profile_id).limit(1).execute()
        return result.data[0] if result.data else None

    def _safe_profile(self, profile_id: Optional[str]) -> Dict[str, Any]:
        """通知用，失败返回空字典"""
        try:
            return self._profile(profile_id) or {}
        except Exception as e:
            logger.error(f"读取 profile {profile_id} 失败: {e}")
            return {}

    def _fetch_match(self, match_id: str) -> Dict[str, Any]:
        result = self.db.table("mentorship_matches").select("*").eq("id", match_id).limit(1).execute()
        if not result.data:
            raise NotFound("Mentorship match not found")
        return result.data[0]

    def _open_match_for(self, mentee_id: str) -> Optional[Dict[str, Any]]:
        result = self.db.table("mentorship_matches").select("*").eq(
            "mentee_id", mentee_id
        ).in_("status", OPEN_MATCH_STATUSES).order("created_at", desc=True).limit(1).execute()
        return result.data[0] if result.data else None

    def _set_status(self, match: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
        update = {**update, "updated_at": _now()}
        result = self.db.table("mentorship_matches").update(update).eq("id", match["id"]).execute()
        record = result.data[0] if result.data else {**match, **update}
        self.feed.publish(ChangeEvent("mentorship_matches", "update", record, old_status=match.get("status")))
        return record

    # ===============================
    # 学员发起
    # ===============================
    def request_mentor(self, mentor_id: str, goals: Optional[str], caller: CallerContext) -> TransitionOutcome:
        mentee_id = caller.caller_id
        if not mentor_id:
            raise ValidationFailed("Mentor ID is required")

        mentor = self._profile(mentor_id)
        if not mentor:
            raise NotFound("Mentor not found")
        if mentor.get("role") != ROLE_MENTOR:
            raise ValidationFailed("Selected user is not a mentor")

        mentor_profile = self.db.table("mentor_profiles").select("*").eq("user_id", mentor_id).limit(1).execute()
        if not mentor_profile.data or not mentor_is_available(mentor_profile.data[0]):
            raise ValidationFailed("This mentor is not currently accepting new mentees")

        # 先查后插，没有存储层唯一约束
        existing = self._open_match_for(mentee_id)
        if existing:
            if existing.get("status") == MatchStatus.ACTIVE.value:
                raise Conflict("You already have an active mentor")
            raise Conflict("You have a pending mentorship request. Please wait for a response.")

        now = _now()
        result = self.db.table("mentorship_matches").insert({
            "mentor_id": mentor_id,
            "mentee_id": mentee_id,
            "status": MatchStatus.PENDING.value,
            "goals": goals or None,
            "start_date": now,
            "created_at": now,
            "updated_at": now,
        }).execute()
        if not result.data:
            raise RuntimeError("Mentorship match insert returned no rows")
        match = result.data[0]
        logger.info(f"学员 {mentee_id} 向导师 {mentor_id} 发起匹配请求 {match.get('id')}")
        self.feed.publish(ChangeEvent("mentorship_matches", "insert", match))

        mentee = self._safe_profile(mentee_id)
        mentee_name = mentee.get("full_name") or "A mentee"
        mentor_name = mentor.get("full_name") or "your mentor"
        metadata = {"matchId": str(match.get("id")), "menteeId": mentee_id, "mentorId": mentor_id}

        # 四个通知互不影响
        side_effects = [
            self.dispatcher.notify(
                mentor_id,
                "New Mentorship Request",
                f"{mentee_name} has requested you as their mentor.",
                "info",
                "/mentor/dashboard",
                metadata,
            ),
            self.dispatcher.email(
                mentor.get("email"),
                email_templates.mentorship_request_received_email(
                    mentor_name=mentor_name,
                    mentee_name=mentee_name,
                    mentee_email=mentee.get("email") or "",
                    mentee_bio=mentee.get("bio"),
                ),
                to_name=mentor.get("full_name"),
            ),
            self.dispatcher.notify(
                mentee_id,
                "Mentorship Request Sent",
                f"Your request has been sent to {mentor_name}. We'll notify you when they respond.",
                "success",
                "/mentorship",
                metadata,
            ),
            self.dispatcher.email(
                mentee.get("email"),
                email_templates.mentorship_request_sent_email(mentee_name=mentee_name, mentor_name=mentor_name),
                to_name=mentee.get("full_name"),
            ),
        ]
        log_side_effects(f"request_mentor {match.get('id')}", side_effects)
        return TransitionOutcome(record=match, side_effects=side_effects)

    def withdraw(self, match_id: str, caller: CallerContext) -> TransitionOutcome:
        match = self._fetch_match(match_id)
        if str(match.get("mentee_id")) != caller.caller_id:
            raise Forbidden("You can only withdraw your own mentorship request")
        if match.get("status") not in OPEN_MATCH_STATUSES:
            raise Conflict("This mentorship is no longer active")

        record = self._set_status(match, {"status": MatchStatus.WITHDRAWN.value})
        logger.info(f"匹配 {match_id} 已被学员撤回")

        mentee = self._safe_profile(caller.caller_id)
        mentee_name = mentee.get("full_name") or "Your mentee"
        side_effects = [
            self.dispatcher.notify(
                str(match.get("mentor_id")),
                "Mentorship Withdrawn",
                f"{mentee_name} has withdrawn from the mentorship.",
                "info",
                "/mentor/dashboard",
                {"matchId": str(match_id), "menteeId": caller.caller_id},
            )
        ]
        log_side_effects(f"withdraw {match_id}", side_effects)
        return TransitionOutcome(record=record, side_effects=side_effects)

    # ===============================
    # 导师处理请求
    # ===============================
    def _respond(self, match_id: str, caller: CallerContext, accept: bool) -> TransitionOutcome:
        match = self._fetch_match(match_id)
        if str(match.get("mentor_id")) != caller.caller_id and not caller.is_admin:
            raise Forbidden("Only the requested mentor can respond to this request")
        if match.get("status") != MatchStatus.PENDING.value:
            raise Conflict("This mentorship request has already been handled")

        if accept:
            update = {"status": MatchStatus.ACTIVE.value, "matched_at": _now()}
        else:
            update = {"status": MatchStatus.REJECTED.value}
        record = self._set_status(match, update)
        logger.info(f"匹配 {match_id} -> {update['status']}")

        mentor = self._safe_profile(str(match.get("mentor_id")))
        mentee = self._safe_profile(str(match.get("mentee_id")))
        mentor_name = mentor.get("full_name") or "Your mentor"
        mentee_name = mentee.get("full_name") or "Mentee"
        mentee_id = str(match.get("mentee_id"))
        metadata = {"matchId": str(match_id), "mentorId": str(match.get("mentor_id"))}

        if accept:
            notice = self.dispatcher.notify(
                mentee_id,
                "Mentorship Request Accepted!",
                f"{mentor_name} has accepted your mentorship request.",
                "success",
                "/mentorship",
                metadata,
            )
            content = email_templates.mentorship_request_accepted_email(
                mentee_name=mentee_name,
                mentor_name=mentor_name,
                mentor_email=mentor.get("email") or "",
            )
        else:
            notice = self.dispatcher.notify(
                mentee_id,
                "Mentorship Request Update",
                f"{mentor_name} is unable to take on your mentorship request at this time.",
                "warning",
                "/dashboard/mentorship/request",
                metadata,
            )
            content = email_templates.mentorship_request_rejected_email(
                mentee_name=mentee_name, mentor_name=mentor_name
            )

        side_effects: List[DispatchResult] = [
            notice,
            self.dispatcher.email(mentee.get("email"), content, to_name=mentee.get("full_name")),
        ]
        log_side_effects(f"{'accept' if accept else 'reject'} {match_id}", side_effects)
        return TransitionOutcome(record=record, side_effects=side_effects)

    def accept(self, match_id: str, caller: CallerContext) -> TransitionOutcome:
        return self._respond(match_id, caller, accept=True)

    def reject(self, match_id: str, caller: CallerContext) -> TransitionOutcome:
        return self._respond(match_id, caller, accept=False)

    # ===============================
    # 管理员
    # ===============================
    def create_match(
        self, mentor_id: str, mentee_id: str, goals: Optional[str], caller: CallerContext
    ) -> Dict[str, Any]:
        """管理员直接创建 active 匹配，不发通知"""
        if not caller.is_admin:
            raise Forbidden("Forbidden: Admin access required")
        if not mentor_id or not mentee_id:
            raise ValidationFailed("Missing required fields")

        mentor_profile = self.db.table("mentor_profiles").select("*").eq("user_id", mentor_id).limit(1).execute()
        if not mentor_profile.data:
            raise ValidationFailed("Mentor not found or not approved")
        status = mentor_profile.data[0].get("status")
        if status is not None and status != "approved":
            raise ValidationFailed("Mentor not found or not approved")
        if not self._profile(mentee_id):
            raise NotFound("Mentee not found")
        if self._open_match_for(mentee_id):
            raise Conflict("Mentee already has an active or pending mentorship")

        now = _now()
        result = self.db.table("mentorship_matches").insert({
            "mentor_id": mentor_id,
            "mentee_id": mentee_id,
            "status": MatchStatus.ACTIVE.value,
            "goals": goals or None,
            "start_date": now,
            "matched_at": now,
            "created_at": now,
            "updated_at": now,
        }).execute()
        if not result.data:
            raise RuntimeError("Mentorship match insert returned no rows")
        logger.info(f"管理员 {caller.caller_id} 创建匹配 mentor={mentor_id} mentee={mentee_id}")
        self.feed.publish(ChangeEvent("mentorship_matches", "insert", result.data[0]))
        return result.data[0]

    # ===============================
    # 查询
    # ===============================
    def current_match(self, caller: CallerContext) -> MentorshipStatus:
        match = self._open_match_for(caller.caller_id)
        if not match:
            return MentorshipStatus(has_mentor=False, can_request_mentor=True)

        mentor = self._safe_profile(str(match.get("mentor_id")))
        return MentorshipStatus(
            has_mentor=True,
            can_request_mentor=False,
            status=match.get("status"),
            match_id=str(match.get("id")),
            mentor_name=mentor.get("full_name") or "Unknown",
            mentor_email=mentor.get("email"),
            goals=match.get("goals"),
            start_date=match.get("start_date") or match.get("created_at"),
        )

    def list_matches(self, caller: CallerContext, status: Optional[str] = None) -> List[Dict[str, Any]]:
        query = self.db.table("mentorship_matches").select("*")
        if caller.caller_role == ROLE_MENTOR:
            query = query.eq("mentor_id", caller.caller_id)
        elif caller.caller_role == ROLE_APPLICANT:
            query = query.eq("mentee_id", caller.caller_id)
        elif not caller.is_admin:
            return []
        if status:
            query = query.eq("status", status)
        return query.order("created_at", desc=True).execute().data or []
