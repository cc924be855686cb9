"""
Email templates for TaskKash.

Inline CSS only, for email client compatibility. Light card on a soft grey
background with the TaskKash green accent.

Each template function returns (subject, html_body, text_body).
"""

from __future__ import annotations

from html import escape

APP_NAME = "TaskKash"

# Color constants
BG_PAGE = "#F4F6F8"
BG_CARD = "#FFFFFF"
BG_CALLOUT = "#FFF7E6"
GREEN = "#16A34A"
AMBER = "#B45309"
TEXT_PRIMARY = "#111827"
TEXT_SECONDARY = "#4B5563"
BORDER = "#E5E7EB"

_SIGNATURE = f"-- The {APP_NAME} Team"


def _base_layout(content: str) -> str:
    """Wrap content in the base email layout."""
    return f"""\
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{APP_NAME}</title>
</head>
<body style="margin: 0; padding: 0; background-color: {BG_PAGE}; font-family: Arial, Helvetica, sans-serif;">
    <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%" style="background-color: {BG_PAGE};">
        <tr>
            <td align="center" style="padding: 32px 16px;">
                <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="560" style="max-width: 560px; width: 100%;">
                    <tr>
                        <td align="center" style="padding-bottom: 24px; font-size: 24px; font-weight: 700; color: {GREEN};">
                            {APP_NAME}
                        </td>
                    </tr>
                    <tr>
                        <td style="background-color: {BG_CARD}; border: 1px solid {BORDER}; border-radius: 10px; padding: 32px 28px;">
                            {content}
                        </td>
                    </tr>
                    <tr>
                        <td align="center" style="padding-top: 24px; color: {TEXT_SECONDARY}; font-size: 12px; line-height: 1.5;">
                            You are receiving this email because you have a {APP_NAME} account.
                        </td>
                    </tr>
                </table>
            </td>
        </tr>
    </table>
</body>
</html>"""


def _button(url: str, label: str) -> str:
    """Render a green CTA button."""
    return f"""\
<table role="presentation" cellspacing="0" cellpadding="0" border="0" style="margin: 24px auto;">
    <tr>
        <td align="center" style="background-color: {GREEN}; border-radius: 6px;">
            <a href="{url}" target="_blank" style="display: inline-block; padding: 12px 28px; color: #FFFFFF; font-size: 15px; font-weight: 600; text-decoration: none;">{label}</a>
        </td>
    </tr>
</table>"""


def _paragraph(text: str) -> str:
    return f'<p style="color: {TEXT_SECONDARY}; font-size: 15px; line-height: 1.6; margin: 0 0 16px 0;">{text}</p>'


def welcome_email(name: str | None, dashboard_url: str, welcome_bonus: int = 50) -> tuple[str, str, str]:
    """
    Welcome email sent after registration.

    Returns:
        (subject, html_body, text_body)
    """
    name = escape(name or "there")
    subject = f"Welcome to {APP_NAME}!"
    content = (
        f'<h1 style="color: {TEXT_PRIMARY}; font-size: 22px; margin: 0 0 16px 0;">Welcome aboard, {name}!</h1>'
        + _paragraph(
            f"Your account is ready and we've added <strong>{welcome_bonus} TP</strong> to your balance to get you started."
        )
        + _paragraph("Complete tasks, claim your daily login bonus and withdraw your points once you reach the minimum.")
        + _button(dashboard_url, "Browse tasks")
    )
    text_body = (
        f"Hi {name},\n\n"
        f"Welcome to {APP_NAME}! We've added {welcome_bonus} TP to your balance.\n\n"
        f"Start earning here: {dashboard_url}\n\n"
        f"{_SIGNATURE}"
    )
    return subject, _base_layout(content), text_body


def password_reset(reset_url: str, expires_minutes: int = 60) -> tuple[str, str, str]:
    """
    Password reset email.

    Returns:
        (subject, html_body, text_body)
    """
    subject = f"Reset your {APP_NAME} password"
    expires_text = "1 hour" if expires_minutes == 60 else f"{expires_minutes} minutes"
    content = (
        f'<h1 style="color: {TEXT_PRIMARY}; font-size: 22px; margin: 0 0 16px 0;">Reset your password</h1>'
        + _paragraph("Someone asked to reset the password on your account. Use the button below to choose a new one.")
        + _button(reset_url, "Choose a new password")
        + _paragraph(f"The link expires in <strong>{expires_text}</strong>. If you didn't ask for this, ignore this email.")
        + f'<p style="color: {TEXT_SECONDARY}; font-size: 12px; margin: 0; word-break: break-all;">{reset_url}</p>'
    )
    text_body = (
        f"Reset your password\n\n"
        f"Open this link to choose a new password:\n\n{reset_url}\n\n"
        f"The link expires in {expires_text}. If you didn't ask for this, ignore this email.\n\n"
        f"{_SIGNATURE}"
    )
    return subject, _base_layout(content), text_body


def password_changed(name: str | None) -> tuple[str, str, str]:
    """
    Password changed notification.

    Returns:
        (subject, html_body, text_body)
    """
    name = escape(name or "there")
    subject = f"Your {APP_NAME} password was changed"
    content = (
        f'<h1 style="color: {TEXT_PRIMARY}; font-size: 22px; margin: 0 0 16px 0;">Password changed</h1>'
        + _paragraph(f"Hi {name}, the password on your account was just changed.")
        + f'<div style="background-color: {BG_CALLOUT}; border-radius: 6px; padding: 14px;">'
        + f'<p style="color: {AMBER}; font-size: 14px; font-weight: 600; margin: 0;">Not you? Reset your password right away and contact support.</p>'
        + "</div>"
    )
    text_body = (
        f"Hi {name},\n\n"
        f"The password on your {APP_NAME} account was just changed.\n\n"
        f"Not you? Reset your password right away and contact support.\n\n"
        f"{_SIGNATURE}"
    )
    return subject, _base_layout(content), text_body
