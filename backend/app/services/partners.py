# app/services/partners.py
"""
合作机构审核：管理员把 partner_organizations 标记为 verified / rejected，
然后 best-effort 通知机构负责人（站内 + 邮件）
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import logging

from app.schemas.context import CallerContext, ROLE_PARTNER
from app.schemas.partner import VERIFICATION_DECISIONS, VerificationStatus
from app.services import email_templates
from app.services.change_feed import ChangeEvent, ChangeFeed, change_feed
from app.services.errors import Forbidden, NotFound, ValidationFailed
from app.services.notifications import (
    CHANNEL_IN_APP,
    DispatchResult,
    NotificationDispatcher,
    TransitionOutcome,
    log_side_effects,
)

logger = logging.getLogger(__name__)


class PartnerVerification:
    def __init__(self, db, dispatcher: NotificationDispatcher, feed: ChangeFeed = change_feed):
        self.db = db
        self.dispatcher = dispatcher
        self.feed = feed

    def _fetch(self, organization_id: str) -> Dict[str, Any]:
        result = self.db.table("partner_organizations").select("*").eq("id", organization_id).limit(1).execute()
        if not result.data:
            raise NotFound("Organization not found")
        return result.data[0]

    def list(self, caller: CallerContext, verification_status: Optional[str] = None) -> List[Dict[str, Any]]:
        """管理员看全部，合作机构只看自己的"""
        query = self.db.table("partner_organizations").select("*")
        if caller.caller_role == ROLE_PARTNER:
            query = query.eq("user_id", caller.caller_id)
        elif not caller.is_admin:
            raise Forbidden("Forbidden: Admin access required")
        if verification_status:
            query = query.eq("verification_status", verification_status)
        return query.order("created_at", desc=True).execute().data or []

    def verify(
        self,
        organization_id: Optional[str],
        verification_status: Optional[str],
        caller: CallerContext,
        verification_notes: Optional[str] = None,
    ) -> TransitionOutcome:
        if not caller.is_admin:
            raise Forbidden("Forbidden: Admin access required")
        if not organization_id or not verification_status:
            raise ValidationFailed("Missing required fields")
        if verification_status not in VERIFICATION_DECISIONS:
            raise ValidationFailed('Invalid status. Must be "verified" or "rejected"')

        org = self._fetch(organization_id)
        update = {
            "verification_status": verification_status,
            "verified_by": caller.caller_id,
            "verified_at": datetime.now(timezone.utc).isoformat(),
            "verification_notes": verification_notes or None,
        }
        result = self.db.table("partner_organizations").update(update).eq("id", organization_id).execute()
        record = result.data[0] if result.data else {**org, **update}
        logger.info(f"合作机构 {organization_id} -> {verification_status} (by {caller.caller_id})")
        self.feed.publish(ChangeEvent(
            "partner_organizations", "update", record, old_status=org.get("verification_status")
        ))

        side_effects = self._notify_partner(record, verification_status)
        log_side_effects(f"verify partner {organization_id}", side_effects)
        return TransitionOutcome(record=record, side_effects=side_effects)

    def _notify_partner(self, org: Dict[str, Any], verification_status: str) -> List[DispatchResult]:
        partner_id = str(org.get("user_id") or "")
        org_name = org.get("organization_name") or "your organization"
        if not partner_id:
            return [DispatchResult.failure(CHANNEL_IN_APP, "", "organization has no owner profile")]
        try:
            result = self.db.table("profiles").select("*").eq("id", partner_id).limit(1).execute()
            partner = result.data[0] if result.data else {}
        except Exception as e:
            logger.error(f"读取机构负责人 {partner_id} 失败: {e}")
            partner = {}
        partner_name = partner.get("full_name") or org_name

        metadata = {"organizationId": str(org.get("id"))}
        if verification_status == VerificationStatus.VERIFIED.value:
            notice = self.dispatcher.notify(
                partner_id,
                "Organization Verified!",
                f"{org_name} has been verified. You can now post opportunities.",
                "success",
                "/partner/dashboard",
                metadata,
            )
            content = email_templates.partner_verified_email(partner_name, org_name)
        else:
            notice = self.dispatcher.notify(
                partner_id,
                "Organization Verification Update",
                f"We are unable to verify {org_name} at this time.",
                "warning",
                "/partner/profile",
                metadata,
            )
            content = email_templates.partner_rejected_email(partner_name, org_name)
        return [notice, self.dispatcher.email(partner.get("email"), content, to_name=partner.get("full_name"))]
