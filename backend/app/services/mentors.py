# app/services/mentors.py
"""
导师申请：用户提交 mentor_profiles（status=pending），管理员 approve / reject
approve 后才会出现在可请求的导师里（status=approved 且 available）
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import logging

from app.schemas.context import CallerContext, ROLE_ADMIN, ROLE_MENTOR
from app.schemas.mentorship import MentorApplicationStatus, MentorApply
from app.services import email_templates
from app.services.change_feed import ChangeEvent, ChangeFeed, change_feed
from app.services.errors import Conflict, Forbidden, NotFound, ValidationFailed
from app.services.notifications import NotificationDispatcher, TransitionOutcome, log_side_effects

logger = logging.getLogger(__name__)

REVIEW_DECISIONS = (MentorApplicationStatus.APPROVED.value, MentorApplicationStatus.REJECTED.value)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class MentorApplications:
    def __init__(self, db, dispatcher: NotificationDispatcher, feed: ChangeFeed = change_feed):
        self.db = db
        self.dispatcher = dispatcher
        self.feed = feed

    def _own_profile(self, profile_id: str) -> Optional[Dict[str, Any]]:
        result = self.db.table("mentor_profiles").select("*").eq("user_id", profile_id).limit(1).execute()
        return result.data[0] if result.data else None

    def apply(self, payload: MentorApply, caller: CallerContext) -> Dict[str, Any]:
        """提交导师申请；被拒绝过的可以重新申请"""
        if not (payload.expertise or "").strip() or not (payload.bio or "").strip():
            raise ValidationFailed("Missing required fields")

        fields = payload.model_dump(exclude_none=True)
        fields.update({
            "status": MentorApplicationStatus.PENDING.value,
            "availability_status": "unavailable",
            "is_available": False,
            "admin_notes": None,
            "updated_at": _now(),
        })

        existing = self._own_profile(caller.caller_id)
        if existing and existing.get("status") != MentorApplicationStatus.REJECTED.value:
            raise Conflict("Mentor application already exists")

        if existing:
            result = self.db.table("mentor_profiles").update(fields).eq("id", existing["id"]).execute()
            record = result.data[0] if result.data else {**existing, **fields}
            action = "update"
        else:
            result = self.db.table("mentor_profiles").insert({"user_id": caller.caller_id, **fields}).execute()
            if not result.data:
                raise RuntimeError("Mentor profile insert returned no rows")
            record = result.data[0]
            action = "insert"
        logger.info(f"用户 {caller.caller_id} 提交导师申请 {record.get('id')}")
        self.feed.publish(ChangeEvent("mentor_profiles", action, record))
        return record

    def list(self, caller: CallerContext, status: Optional[str] = None) -> List[Dict[str, Any]]:
        if not caller.is_admin:
            raise Forbidden("Forbidden: Admin access required")
        query = self.db.table("mentor_profiles").select("*")
        if status:
            query = query.eq("status", status)
        return query.order("created_at", desc=True).execute().data or []

    def review(
        self,
        application_id: str,
        status: Optional[str],
        caller: CallerContext,
        admin_notes: Optional[str] = None,
    ) -> TransitionOutcome:
        if not caller.is_admin:
            raise Forbidden("Forbidden: Admin access required")
        if not application_id or not status:
            raise ValidationFailed("Missing required fields")
        if status not in REVIEW_DECISIONS:
            raise ValidationFailed('Invalid status. Must be "approved" or "rejected"')

        result = self.db.table("mentor_profiles").select("*").eq("id", application_id).limit(1).execute()
        if not result.data:
            raise NotFound("Application not found")
        application = result.data[0]
        old_status = application.get("status")
        if old_status not in (None, MentorApplicationStatus.PENDING.value):
            raise Conflict("This mentor application has already been reviewed")

        approved = status == MentorApplicationStatus.APPROVED.value
        update = {
            "status": status,
            "admin_notes": admin_notes or None,
            "reviewed_by": caller.caller_id,
            "reviewed_at": _now(),
            "availability_status": "available" if approved else "unavailable",
            "is_available": approved,
            "updated_at": _now(),
        }
        result = self.db.table("mentor_profiles").update(update).eq("id", application_id).execute()
        record = result.data[0] if result.data else {**application, **update}

        mentor_id = str(application.get("user_id"))
        profile = self.db.table("profiles").select("*").eq("id", mentor_id).limit(1).execute()
        person = profile.data[0] if profile.data else {}
        # 通过后角色改为 mentor（管理员保持不变）
        if approved and person and person.get("role") != ROLE_ADMIN:
            self.db.table("profiles").update({"role": ROLE_MENTOR}).eq("id", mentor_id).execute()
        logger.info(f"导师申请 {application_id} -> {status} (by {caller.caller_id})")
        self.feed.publish(ChangeEvent("mentor_profiles", "update", record, old_status=old_status))

        name = person.get("full_name") or "there"
        metadata = {"mentorProfileId": str(application_id)}
        if approved:
            notice = self.dispatcher.notify(
                mentor_id,
                "Mentor Application Approved",
                "Congratulations! You are now a mentor. Complete your mentor profile to start receiving requests.",
                "success",
                "/mentor/profile",
                metadata,
            )
            content = email_templates.mentor_approved_email(name)
        else:
            notice = self.dispatcher.notify(
                mentor_id,
                "Mentor Application Update",
                "We are unable to approve your mentor application at this time.",
                "info",
                "/dashboard",
                metadata,
            )
            content = email_templates.mentor_rejected_email(name, admin_notes or None)

        side_effects = [notice, self.dispatcher.email(person.get("email"), content, to_name=person.get("full_name"))]
        log_side_effects(f"review mentor application {application_id}", side_effects)
        return TransitionOutcome(record=record, side_effects=side_effects)
