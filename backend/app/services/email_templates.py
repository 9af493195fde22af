# app/services/email_templates.py
"""
所有通知邮件模板，每个函数返回 EmailContent(subject, html, text)
"""
from dataclasses import dataclass
from datetime import datetime
from html import escape
from typing import Optional

from app.config import settings


@dataclass
class EmailContent:
    subject: str
    html: str
    text: str


ALERT_COLORS = {
    "success": ("#d4edda", "#28a745", "#155724"),
    "warning": ("#fff3cd", "#ffc107", "#856404"),
    "error": ("#f8d7da", "#dc3545", "#721c24"),
    "info": ("#d1ecf1", "#17a2b8", "#0c5460"),
}


# ===============================
# 公共组件
# ===============================
def _wrap(content: str) -> str:
    name = settings.APP_NAME
    year = datetime.now().year
    return f"""<!DOCTYPE html>
<html lang="en">
<head><meta charset="UTF-8"><title>{name}</title></head>
<body style="margin:0;padding:0;font-family:Arial,sans-serif;background-color:#f5f5f5;">
  <table width="100%" cellpadding="0" cellspacing="0" style="padding:40px 20px;">
    <tr><td align="center">
      <table width="600" cellpadding="0" cellspacing="0" style="background-color:#ffffff;border-radius:8px;">
        <tr><td style="padding:40px 40px 20px;text-align:center;border-bottom:3px solid #0070f3;">
          <h1 style="margin:0;color:#0070f3;font-size:28px;">{name}</h1>
        </td></tr>
        <tr><td style="padding:40px;">{content}</td></tr>
        <tr><td style="padding:30px 40px;background-color:#f8f9fa;font-size:12px;color:#666;text-align:center;">
          This is an automated email from {name}. Please do not reply to this email.<br>
          &copy; {year} {name}. All rights reserved.
        </td></tr>
      </table>
    </td></tr>
  </table>
</body>
</html>"""


def _paragraph(text: str) -> str:
    return f'<p style="font-size:16px;line-height:1.6;color:#333;margin:0 0 15px;">{text}</p>'


def _button(label: str, url: str, color: str = "#0070f3") -> str:
    return (
        f'<a href="{url}" style="display:inline-block;padding:14px 28px;background-color:{color};'
        f'color:#ffffff;text-decoration:none;border-radius:6px;font-weight:600;margin:20px 0;">{label}</a>'
    )


def _alert(message: str, kind: str = "info") -> str:
    bg, border, fg = ALERT_COLORS[kind]
    return (
        f'<div style="padding:15px;background-color:{bg};border-left:4px solid {border};'
        f'border-radius:4px;margin:20px 0;"><p style="margin:0;color:{fg};font-size:14px;">{message}</p></div>'
    )


def _url(path: str) -> str:
    return f"{settings.APP_URL.rstrip('/')}{path}"


# ===============================
# 申请相关
# ===============================
def application_approved_email(
    applicant_name: str, program_title: str, application_id: str, reviewer_notes: Optional[str] = None
) -> EmailContent:
    link = _url(f"/applications/{application_id}")
    notes = _alert(f"<strong>Reviewer's Feedback:</strong><br>{escape(reviewer_notes)}", "success") if reviewer_notes else ""
    content = (
        '<h2 style="color:#28a745;margin:0 0 20px;">Congratulations!</h2>'
        + _paragraph(f"Dear {escape(applicant_name)},")
        + _paragraph(
            f"We're excited to inform you that your application for <strong>{escape(program_title)}</strong> "
            "has been <strong>approved</strong>!"
        )
        + notes
        + _button("View Application", link, "#28a745")
    )
    text = f"Congratulations {applicant_name}!\n\nYour application for {program_title} has been approved!\n\n"
    if reviewer_notes:
        text += f"Reviewer's Feedback: {reviewer_notes}\n\n"
    text += f"View your application: {link}"
    return EmailContent(f"Application Approved - {program_title}", _wrap(content), text)


def application_rejected_email(
    applicant_name: str, program_title: str, application_id: str, reviewer_notes: Optional[str] = None
) -> EmailContent:
    link = _url(f"/applications/{application_id}")
    notes = _alert(f"<strong>Feedback:</strong><br>{escape(reviewer_notes)}", "warning") if reviewer_notes else ""
    content = (
        '<h2 style="color:#333;margin:0 0 20px;">Application Status Update</h2>'
        + _paragraph(f"Dear {escape(applicant_name)},")
        + _paragraph(
            f"Thank you for your interest in <strong>{escape(program_title)}</strong>. After careful consideration, "
            "we regret to inform you that we are unable to approve your application at this time."
        )
        + notes
        + _button("Browse Other Programs", _url("/programs"))
    )
    text = (
        f"Dear {applicant_name},\n\nThank you for your interest in {program_title}. "
        "We regret to inform you that we are unable to approve your application at this time.\n\n"
    )
    if reviewer_notes:
        text += f"Feedback: {reviewer_notes}\n\n"
    text += f"View application: {link}"
    return EmailContent(f"Application Update - {program_title}", _wrap(content), text)


def more_info_requested_email(
    applicant_name: str, program_title: str, application_id: str, reviewer_notes: str
) -> EmailContent:
    link = _url(f"/applications/{application_id}")
    content = (
        '<h2 style="color:#ffc107;margin:0 0 20px;">Additional Information Required</h2>'
        + _paragraph(f"Dear {escape(applicant_name)},")
        + _paragraph(
            f"We're reviewing your application for <strong>{escape(program_title)}</strong> "
            "and need some additional information to proceed."
        )
        + _alert(f"<strong>What we need from you:</strong><br>{escape(reviewer_notes)}", "warning")
        + _button("Update Application", link)
    )
    text = (
        f"Dear {applicant_name},\n\nWe need additional information for your {program_title} application.\n\n"
        f"What we need: {reviewer_notes}\n\nUpdate application: {link}"
    )
    return EmailContent(
        f"Action Required - Additional Information Needed for {program_title}", _wrap(content), text
    )


def new_application_email(
    admin_name: str, applicant_name: str, program_title: str, application_id: str
) -> EmailContent:
    link = _url(f"/admin/dashboard/applications/{application_id}")
    content = (
        '<h2 style="color:#0070f3;margin:0 0 20px;">New Application Received</h2>'
        + _paragraph(f"Hello {escape(admin_name)},")
        + _paragraph("A new application has been submitted and is ready for your review.")
        + _paragraph(
            f"<strong>Applicant:</strong> {escape(applicant_name)}<br>"
            f"<strong>Program:</strong> {escape(program_title)}<br>"
            "<strong>Status:</strong> Pending Review"
        )
        + _button("Review Application", link)
    )
    text = (
        f"New Application Received\n\nApplicant: {applicant_name}\nProgram: {program_title}\n"
        f"Status: Pending Review\n\nReview: {link}"
    )
    return EmailContent(f"New Application - {applicant_name} for {program_title}", _wrap(content), text)


# ===============================
# 合作机构 / 导师审核
# ===============================
def partner_verified_email(partner_name: str, organization_name: str) -> EmailContent:
    link = _url("/partner/dashboard")
    content = (
        '<h2 style="color:#28a745;margin:0 0 20px;">Organization Verified!</h2>'
        + _paragraph(f"Dear {escape(partner_name)},")
        + _paragraph(
            f"Great news! <strong>{escape(organization_name)}</strong> has been successfully verified "
            f"on the {settings.APP_NAME} platform."
        )
        + _paragraph("You can now post internship and job opportunities and connect with talented applicants.")
        + _button("Go to Dashboard", link, "#28a745")
    )
    text = (
        f"Dear {partner_name},\n\nGreat news! {organization_name} has been verified.\n\n"
        f"You can now post opportunities and connect with applicants.\n\nDashboard: {link}"
    )
    return EmailContent(f"Organization Verified - {organization_name}", _wrap(content), text)


def partner_rejected_email(partner_name: str, organization_name: str) -> EmailContent:
    link = _url("/contact")
    content = (
        '<h2 style="color:#333;margin:0 0 20px;">Organization Verification Update</h2>'
        + _paragraph(f"Dear {escape(partner_name)},")
        + _paragraph(
            f"Thank you for your interest in partnering with {settings.APP_NAME}. After reviewing your organization "
            f"<strong>{escape(organization_name)}</strong>, we are unable to verify it at this time."
        )
        + _alert("If you believe this is an error or would like more information, please contact our support team.")
        + _button("Contact Support", link)
    )
    text = (
        f"Dear {partner_name},\n\nWe are unable to verify {organization_name} at this time.\n\n"
        f"If you believe this is an error, please contact support.\n\n{link}"
    )
    return EmailContent(f"Organization Verification Update - {organization_name}", _wrap(content), text)


def mentor_approved_email(mentor_name: str) -> EmailContent:
    link = _url("/mentor/profile")
    content = (
        '<h2 style="color:#28a745;margin:0 0 20px;">Welcome to the Mentor Network!</h2>'
        + _paragraph(f"Dear {escape(mentor_name)},")
        + _paragraph(
            "Congratulations! Your mentor application has been <strong>approved</strong>. "
            "We're excited to have you join our mentorship program!"
        )
        + _button("Complete Your Mentor Profile", link, "#28a745")
    )
    text = (
        f"Dear {mentor_name},\n\nCongratulations! Your mentor application has been approved.\n\n"
        f"Complete your profile: {link}"
    )
    return EmailContent("Mentor Application Approved - Welcome!", _wrap(content), text)


def mentor_rejected_email(mentor_name: str, admin_notes: Optional[str] = None) -> EmailContent:
    notes = _alert(f"<strong>Feedback:</strong><br>{escape(admin_notes)}") if admin_notes else ""
    content = (
        '<h2 style="color:#333;margin:0 0 20px;">Mentor Application Update</h2>'
        + _paragraph(f"Dear {escape(mentor_name)},")
        + _paragraph(
            f"Thank you for your interest in becoming a mentor with {settings.APP_NAME}. After careful review, "
            "we are unable to approve your mentor application at this time."
        )
        + notes
        + _paragraph("You may reapply in the future.")
    )
    text = (
        f"Dear {mentor_name},\n\nThank you for your interest in becoming a mentor. "
        "We are unable to approve your application at this time.\n\n"
    )
    if admin_notes:
        text += f"Feedback: {admin_notes}\n\n"
    text += "You may reapply in the future."
    return EmailContent("Mentor Application Update", _wrap(content), text)


# ===============================
# 导师制相关
# ===============================
def mentorship_request_received_email(
    mentor_name: str, mentee_name: str, mentee_email: str, mentee_bio: Optional[str] = None
) -> EmailContent:
    link = _url("/mentor/mentees")
    bio = _paragraph(f"<strong>About {escape(mentee_name)}:</strong> {escape(mentee_bio)}") if mentee_bio else ""
    content = (
        '<h2 style="color:#0070f3;margin:0 0 20px;">New Mentorship Request</h2>'
        + _paragraph(f"Dear {escape(mentor_name)},")
        + _paragraph(
            f"You have received a new mentorship request from <strong>{escape(mentee_name)}</strong> "
            f"({escape(mentee_email)})!"
        )
        + bio
        + _button("View Request & Respond", link)
    )
    text = f"Dear {mentor_name},\n\nYou have received a new mentorship request from {mentee_name} ({mentee_email}).\n\n"
    if mentee_bio:
        text += f"About {mentee_name}: {mentee_bio}\n\n"
    text += f"Please review and respond: {link}"
    return EmailContent(f"New Mentorship Request from {mentee_name}", _wrap(content), text)


def mentorship_request_sent_email(mentee_name: str, mentor_name: str) -> EmailContent:
    link = _url("/mentorship")
    content = (
        '<h2 style="color:#28a745;margin:0 0 20px;">Mentorship Request Sent</h2>'
        + _paragraph(f"Dear {escape(mentee_name)},")
        + _paragraph(f"Your mentorship request to <strong>{escape(mentor_name)}</strong> has been successfully sent!")
        + _alert("Your request is now pending review. The mentor will be notified and will respond soon.", "success")
        + _button("View Mentorship Status", link)
    )
    text = (
        f"Dear {mentee_name},\n\nYour mentorship request to {mentor_name} has been sent!\n\n"
        f"The mentor will review your request and respond soon.\n\nView status: {link}"
    )
    return EmailContent(f"Mentorship Request Sent to {mentor_name}", _wrap(content), text)


def mentorship_request_accepted_email(mentee_name: str, mentor_name: str, mentor_email: str) -> EmailContent:
    link = _url("/mentorship")
    content = (
        '<h2 style="color:#28a745;margin:0 0 20px;">Mentorship Request Accepted!</h2>'
        + _paragraph(f"Dear {escape(mentee_name)},")
        + _paragraph(f"Great news! <strong>{escape(mentor_name)}</strong> has accepted your mentorship request!")
        + _alert(f"Your mentor can be reached at {escape(mentor_email)}.", "success")
        + _button("View Mentorship", link, "#28a745")
    )
    text = (
        f"Dear {mentee_name},\n\nGreat news! {mentor_name} has accepted your mentorship request!\n\n"
        f"Mentor Contact: {mentor_email}\n\nView mentorship: {link}"
    )
    return EmailContent(f"Mentorship Request Accepted by {mentor_name}", _wrap(content), text)


def mentorship_request_rejected_email(mentee_name: str, mentor_name: str) -> EmailContent:
    link = _url("/mentorship")
    content = (
        '<h2 style="color:#333;margin:0 0 20px;">Mentorship Request Update</h2>'
        + _paragraph(f"Dear {escape(mentee_name)},")
        + _paragraph(
            f"Thank you for your interest in mentorship with <strong>{escape(mentor_name)}</strong>. "
            "Unfortunately, the mentor is unable to accept your request at this time."
        )
        + _alert("We encourage you to request mentorship from other available mentors.", "info")
        + _button("Find Other Mentors", link)
    )
    text = (
        f"Dear {mentee_name},\n\nThe mentor {mentor_name} is unable to accept your mentorship request at this time.\n\n"
        f"Find mentors: {link}"
    )
    return EmailContent(f"Mentorship Request Update from {mentor_name}", _wrap(content), text)


# ===============================
# 邮箱验证
# ===============================
def email_verification_email(user_name: str, verification_url: str, expires_in: str = "24 hours") -> EmailContent:
    content = (
        '<h2 style="color:#0070f3;margin:0 0 20px;">Verify Your Email</h2>'
        + _paragraph(f"Hello {escape(user_name)},")
        + _paragraph(f"Please confirm your email address. This link expires in {expires_in}.")
        + _button("Verify Email", verification_url)
    )
    text = (
        f"Hello {user_name},\n\nPlease verify your email address: {verification_url}\n\n"
        f"This link expires in {expires_in}."
    )
    return EmailContent(f"Verify Your Email - {settings.APP_NAME}", _wrap(content), text)


def resend_verification_email(user_name: str, verification_url: str, expires_in: str = "24 hours") -> EmailContent:
    content = (
        '<h2 style="color:#0070f3;margin:0 0 20px;">New Verification Link</h2>'
        + _paragraph(f"Hello {escape(user_name)},")
        + _paragraph(f"You requested a new verification link. It expires in {expires_in}.")
        + _button("Verify Email", verification_url)
    )
    text = (
        f"Hello {user_name},\n\nHere is your new verification link: {verification_url}\n\n"
        f"This link expires in {expires_in}."
    )
    return EmailContent(f"New Verification Link - {settings.APP_NAME}", _wrap(content), text)
