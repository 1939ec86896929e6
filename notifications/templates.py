"""
Account Lifecycle Email Templates.

Each builder returns subject, plain text and HTML. Values
interpolated into HTML are escaped.
"""

import html
from dataclasses import dataclass
from typing import Optional


BRAND = "Forex Flow"

_FOOTER = (
    '<hr style="border: none; border-top: 1px solid #ddd; margin: 20px 0;">'
    '<p style="color: #666; font-size: 12px;">This is an automated message. '
    "Please do not reply to this email.</p>"
)


@dataclass(frozen=True)
class Template:
    subject: str
    text: str
    html: str


def _wrap(body: str) -> str:
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        f"{body}{_FOOTER}</div>"
    )


def registration_received(name: str) -> Template:
    """Sent after registration: the profile is under review."""
    subject = "Profile Approval Request Submitted"
    text = (
        f"Dear {name},\n\n"
        "Your profile approval request has been submitted successfully. Our admin team "
        "will review your profile and you will receive an email notification once your "
        "profile is approved or rejected.\n\n"
        "IMPORTANT: After verification, you will receive your login password via email "
        "to access and login to your account.\n\n"
        f"Thank you for registering with {BRAND}!"
    )
    body = (
        f'<h2 style="color: #43B852;">{subject}</h2>'
        f"<p>Dear {html.escape(name)},</p>"
        "<p>Your profile approval request has been submitted successfully. Our admin team "
        "will review your profile and you will receive an email notification once your "
        "profile is approved or rejected.</p>"
        "<p><strong>After verification, you will receive your login password via email "
        "to access and login to your account.</strong></p>"
        f"<p>Thank you for registering with <strong>{BRAND}</strong>!</p>"
    )
    return Template(subject, text, _wrap(body))


def approval_with_credentials(name: str, email: str, password: str) -> Template:
    """Sent on approval: carries the freshly generated credential."""
    subject = "Profile Approved - Your Login Credentials"
    text = (
        f"Dear {name},\n\n"
        "Congratulations! Your profile has been approved by our admin team.\n\n"
        "Your login credentials are:\n"
        f"Email: {email}\n"
        f"Password: {password}\n\n"
        "Please keep your password safe and secure. You can now log in to your account.\n\n"
        f"Thank you for choosing {BRAND}!"
    )
    body = (
        '<h2 style="color: #43B852;">Profile Approved!</h2>'
        f"<p>Dear {html.escape(name)},</p>"
        "<p>Congratulations! Your profile has been approved by our admin team.</p>"
        '<div style="background-color: #f5f5f5; padding: 20px; border-left: 4px solid #43B852;">'
        "<h3>Your Login Credentials</h3>"
        f"<p><strong>Email:</strong> {html.escape(email)}</p>"
        f"<p><strong>Password:</strong> <code>{html.escape(password)}</code></p>"
        "</div>"
        "<p><strong>Important:</strong> Please keep your password safe and secure. "
        "Do not share it with anyone.</p>"
        f"<p>Thank you for choosing <strong>{BRAND}</strong>!</p>"
    )
    return Template(subject, text, _wrap(body))


def rejection(name: str, reason: Optional[str] = None) -> Template:
    """Sent on rejection, with the admin's reason when one was given."""
    subject = "Profile Verification Rejected"
    reason_text = f"\n\nReason: {reason}" if reason else ""
    text = (
        f"Dear {name},\n\n"
        "We regret to inform you that your profile verification request has been "
        f"rejected by our admin team.{reason_text}\n\n"
        "If you believe this is an error or would like to resubmit your profile, please "
        "contact our support team for assistance.\n\n"
        f"Thank you for your interest in {BRAND}."
    )
    reason_html = (
        f'<p style="color: #721c24;"><strong>Reason:</strong> {html.escape(reason)}</p>'
        if reason else ""
    )
    body = (
        f'<h2 style="color: #dc3545;">{subject}</h2>'
        f"<p>Dear {html.escape(name)},</p>"
        "<p>We regret to inform you that your profile verification request has been "
        "rejected by our admin team.</p>"
        f"{reason_html}"
        "<ul>"
        "<li>Review your submitted information and documents</li>"
        "<li>Contact our support team if you believe this is an error</li>"
        "<li>You may resubmit your profile after addressing any issues</li>"
        "</ul>"
        f"<p>Thank you for your interest in <strong>{BRAND}</strong>.</p>"
    )
    return Template(subject, text, _wrap(body))
