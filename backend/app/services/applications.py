# app/services/applications.py
"""
资助申请生命周期
draft -> submitted -> approved / rejected / pending（要求补充材料）
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import logging

from app.schemas.application import (
    ApplicationDataV2,
    ApplicationStatus,
    DocumentCreate,
    EDITABLE_STATUSES,
    MORE_INFO_PREFIX,
    REVIEW_TARGET_STATUS,
    ReviewDecision,
    validate_for_submit,
)
from app.schemas.context import CallerContext
from app.services import email_templates
from app.services.autosave import DraftAutosaver, draft_autosaver
from app.services.change_feed import ChangeEvent, ChangeFeed, change_feed
from app.services.errors import Conflict, Forbidden, NotFound, ValidationFailed
from app.services.notifications import (
    CHANNEL_IN_APP,
    DispatchResult,
    NotificationDispatcher,
    TransitionOutcome,
    log_side_effects,
)

logger = logging.getLogger(__name__)

MISSING_NOTES_MESSAGES = {
    ReviewDecision.APPROVE: "Please add reviewer notes",
    ReviewDecision.REJECT: "Please provide a reason for rejection",
    ReviewDecision.REQUEST_INFO: "Please specify what information is needed",
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ApplicationLifecycle:
    def __init__(
        self,
        db,
        dispatcher: NotificationDispatcher,
        feed: ChangeFeed = change_feed,
        autosaver: DraftAutosaver = draft_autosaver,
    ):
        self.db = db
        self.dispatcher = dispatcher
        self.feed = feed
        self.autosaver = autosaver

    # ===============================
    # 查询
    # ===============================
    def _fetch(self, application_id: str) -> Dict[str, Any]:
        result = self.db.table("applications").select("*").eq("id", application_id).limit(1).execute()
        if not result.data:
            raise NotFound("Application not found")
        return result.data[0]

    def _lookup(self, table: str, record_id: Optional[str]) -> Dict[str, Any]:
        """通知用的辅助查询，失败时返回空字典"""
        if not record_id:
            return {}
        try:
            result = self.db.table(table).select("*").eq("id", record_id).limit(1).execute()
            return result.data[0] if result.data else {}
        except Exception as e:
            logger.error(f"读取 {table} {record_id} 失败: {e}")
            return {}

    @staticmethod
    def _check_owner(row: Dict[str, Any], caller: CallerContext, allow_admin: bool = True) -> None:
        if str(row.get("applicant_id")) == caller.caller_id:
            return
        if allow_admin and caller.is_admin:
            return
        raise Forbidden("You do not have access to this application")

    def get(self, application_id: str, caller: CallerContext) -> Dict[str, Any]:
        row = self._fetch(application_id)
        self._check_owner(row, caller)
        return row

    def list(
        self,
        caller: CallerContext,
        status: Optional[str] = None,
        program_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        query = self.db.table("applications").select("*")
        if not caller.is_admin:
            query = query.eq("applicant_id", caller.caller_id)
        if status:
            query = query.eq("status", status)
        if program_id:
            query = query.eq("program_id", program_id)
        return query.order("created_at", desc=True).execute().data or []

    # ===============================
    # 草稿
    # ===============================
    def open_draft(self, program_id: str, caller: CallerContext) -> Dict[str, Any]:
        """
        打开申请表时调用：已有草稿则复用，否则新建
        先查后插，没有加锁（并发时可能产生两个草稿）
        """
        program = self.db.table("programs").select("id").eq("id", program_id).limit(1).execute()
        if not program.data:
            raise NotFound("Program not found")

        existing = self.db.table("applications").select("*").eq(
            "program_id", program_id
        ).eq("applicant_id", caller.caller_id).eq("status", ApplicationStatus.DRAFT.value).limit(1).execute()
        if existing.data:
            return existing.data[0]

        now = _now()
        result = self.db.table("applications").insert({
            "program_id": program_id,
            "applicant_id": caller.caller_id,
            "status": ApplicationStatus.DRAFT.value,
            "application_data": ApplicationDataV2().model_dump(),
            "submitted_at": None,
            "created_at": now,
            "updated_at": now,
        }).execute()
        if not result.data:
            raise RuntimeError("Draft insert returned no rows")
        logger.info(f"新建草稿申请 {result.data[0].get('id')} program={program_id} applicant={caller.caller_id}")
        return result.data[0]

    def autosave(self, application_id: str, data: ApplicationDataV2, caller: CallerContext) -> None:
        """
        后台去抖保存，写入失败只记日志
        排队前先确认是申请人本人，否则别人的请求会顶掉本人待写入的内容
        """
        self._check_owner(self._fetch(application_id), caller, allow_admin=False)
        applicant_id = caller.caller_id
        payload = data.model_dump()

        def write():
            result = self.db.table("applications").update({
                "application_data": payload,
                "updated_at": _now(),
            }).eq("id", application_id).eq("applicant_id", applicant_id).in_(
                "status", list(EDITABLE_STATUSES)
            ).execute()
            if not result.data:
                logger.warning(f"自动保存未命中可编辑的申请 {application_id}")

        self.autosaver.schedule(application_id, write)

    def save_draft(self, application_id: str, data: ApplicationDataV2, caller: CallerContext) -> Dict[str, Any]:
        """手动保存，不改变状态"""
        row = self._fetch(application_id)
        self._check_owner(row, caller, allow_admin=False)
        if row.get("status") not in EDITABLE_STATUSES:
            raise Conflict("Only draft applications can be edited")

        self.autosaver.cancel(application_id)
        update = {"application_data": data.model_dump(), "updated_at": _now()}
        result = self.db.table("applications").update(update).eq("id", application_id).execute()
        return result.data[0] if result.data else {**row, **update}

    # ===============================
    # 提交
    # ===============================
    def submit(
        self, application_id: Optional[str], data: ApplicationDataV2, caller: CallerContext
    ) -> TransitionOutcome:
        if not application_id:
            raise ValidationFailed("Unable to submit application")
        problem = validate_for_submit(data)
        if problem:
            raise ValidationFailed(problem)

        row = self._fetch(application_id)
        self._check_owner(row, caller, allow_admin=False)
        old_status = row.get("status")
        if old_status not in EDITABLE_STATUSES:
            raise Conflict("Application already submitted")

        self.autosaver.cancel(application_id)
        now = _now()
        update = {
            "status": ApplicationStatus.SUBMITTED.value,
            "application_data": data.model_dump(),
            "submitted_at": now,
            "updated_at": now,
        }
        result = self.db.table("applications").update(update).eq("id", application_id).execute()
        record = result.data[0] if result.data else {**row, **update}
        logger.info(f"申请 {application_id} 已提交")
        self.feed.publish(ChangeEvent("applications", "update", record, old_status=old_status))

        side_effects = self._notify_admins_of_submission(record, caller)
        log_side_effects(f"submit {application_id}", side_effects)
        return TransitionOutcome(record=record, side_effects=side_effects)

    def _notify_admins_of_submission(self, record: Dict[str, Any], caller: CallerContext) -> List[DispatchResult]:
        program = self._lookup("programs", record.get("program_id"))
        applicant = self._lookup("profiles", caller.caller_id)
        program_title = program.get("title") or "a program"
        applicant_name = applicant.get("full_name") or "An applicant"
        application_id = str(record["id"])

        try:
            admins = self.dispatcher.list_admins()
        except Exception as e:
            logger.error(f"获取管理员列表失败: {e}")
            return [DispatchResult.failure(CHANNEL_IN_APP, "admins", e)]

        results = [
            self.dispatcher.notify_admins(
                title="New Program Application",
                message=f'{applicant_name} has submitted an application for "{program_title}".',
                type="info",
                link=f"/admin/dashboard/applications/{application_id}",
                metadata={
                    "programId": record.get("program_id"),
                    "programTitle": program_title,
                    "applicantId": caller.caller_id,
                    "applicantName": applicant_name,
                    "applicationId": application_id,
                },
                admins=admins,
            )
        ]
        for admin in admins:
            content = email_templates.new_application_email(
                admin_name=admin.get("full_name") or "Admin",
                applicant_name=applicant_name,
                program_title=program_title,
                application_id=application_id,
            )
            results.append(self.dispatcher.email(admin.get("email"), content, to_name=admin.get("full_name")))
        return results

    # ===============================
    # 审核
    # ===============================
    def review(
        self,
        application_id: str,
        decision: ReviewDecision,
        reviewer_notes: Optional[str],
        caller: CallerContext,
    ) -> TransitionOutcome:
        if not caller.is_admin:
            raise Forbidden("Forbidden: Admin access required")
        decision = ReviewDecision(decision)
        notes = (reviewer_notes or "").strip()
        if not notes:
            raise ValidationFailed(MISSING_NOTES_MESSAGES[decision])

        row = self._fetch(application_id)
        old_status = row.get("status")
        if old_status == ApplicationStatus.DRAFT.value:
            raise Conflict("Draft applications cannot be reviewed")
        program = self._lookup("programs", row.get("program_id"))
        applicant = self._lookup("profiles", row.get("applicant_id"))

        stored_notes = MORE_INFO_PREFIX + notes if decision == ReviewDecision.REQUEST_INFO else notes
        update = {
            "status": REVIEW_TARGET_STATUS[decision],
            "reviewer_notes": stored_notes,
            "reviewed_at": _now(),
            "reviewed_by": caller.caller_id,
        }
        result = self.db.table("applications").update(update).eq("id", application_id).execute()
        record = result.data[0] if result.data else {**row, **update}
        logger.info(f"申请 {application_id} 审核结果: {decision.value}")
        self.feed.publish(ChangeEvent("applications", "update", record, old_status=old_status))

        side_effects = self._notify_applicant_of_review(record, decision, notes, program, applicant)
        log_side_effects(f"review {application_id}", side_effects)
        return TransitionOutcome(record=record, side_effects=side_effects)

    def _notify_applicant_of_review(
        self,
        record: Dict[str, Any],
        decision: ReviewDecision,
        notes: str,
        program: Dict[str, Any],
        applicant: Dict[str, Any],
    ) -> List[DispatchResult]:
        application_id = str(record["id"])
        applicant_id = str(record.get("applicant_id"))
        program_title = program.get("title") or "your program"
        applicant_name = applicant.get("full_name") or "Applicant"
        link = f"/applications/{application_id}"
        metadata = {
            "applicationId": application_id,
            "programId": record.get("program_id"),
            "decision": decision.value,
        }

        if decision == ReviewDecision.APPROVE:
            title, kind = "Application Approved!", "success"
            message = f'Your application for "{program_title}" has been approved. Reviewer notes: {notes}'
            content = email_templates.application_approved_email(applicant_name, program_title, application_id, notes)
        elif decision == ReviewDecision.REJECT:
            title, kind = "Application Update", "error"
            message = f'Your application for "{program_title}" was not approved. Reviewer notes: {notes}'
            content = email_templates.application_rejected_email(applicant_name, program_title, application_id, notes)
        else:
            title, kind = "More Information Required", "warning"
            message = f'Additional information is needed for your application to "{program_title}": {notes}'
            content = email_templates.more_info_requested_email(applicant_name, program_title, application_id, notes)

        return [
            self.dispatcher.notify(applicant_id, title, message, kind, link, metadata),
            self.dispatcher.email(applicant.get("email"), content, to_name=applicant.get("full_name")),
        ]

    # ===============================
    # 附件记录
    # ===============================
    def add_document(self, application_id: str, document: DocumentCreate, caller: CallerContext) -> Dict[str, Any]:
        row = self._fetch(application_id)
        self._check_owner(row, caller, allow_admin=False)
        result = self.db.table("application_documents").insert({
            "application_id": application_id,
            "document_type": document.document_type.value,
            "file_url": document.file_url,
            "file_name": document.file_name,
            "uploaded_at": _now(),
        }).execute()
        if not result.data:
            raise RuntimeError("Document insert returned no rows")
        return result.data[0]

    def list_documents(self, application_id: str, caller: CallerContext) -> List[Dict[str, Any]]:
        row = self._fetch(application_id)
        self._check_owner(row, caller)
        result = self.db.table("application_documents").select("*").eq(
            "application_id", application_id
        ).order("uploaded_at", desc=True).execute()
        return result.data or []
