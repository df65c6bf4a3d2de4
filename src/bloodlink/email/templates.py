"""
Email templates for BloodLink.

Inline CSS only, for email-client compatibility. Each template function
returns (subject, html_body, text_body).
"""

from __future__ import annotations

# Color constants
BG_PAGE = "#F6F7F9"
BG_CARD = "#FFFFFF"
RED = "#C62828"
TEXT_PRIMARY = "#1F2328"
TEXT_SECONDARY = "#59636E"
BORDER = "#D1D9E0"

APP_NAME = "BloodLink"


def _base_layout(content: str, app_name: str = APP_NAME) -> str:
    """Wrap content in the base email layout."""
    return f"""\
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{app_name}</title>
</head>
<body style="margin: 0; padding: 0; background-color: {BG_PAGE}; font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;">
    <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%" style="background-color: {BG_PAGE};">
        <tr>
            <td align="center" style="padding: 40px 20px;">
                <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="560" style="max-width: 560px; width: 100%;">
                    <tr>
                        <td align="center" style="padding-bottom: 24px;">
                            <span style="font-size: 24px; font-weight: 700; color: {RED};">&#x1FA78; {app_name}</span>
                        </td>
                    </tr>
                    <tr>
                        <td style="background-color: {BG_CARD}; border: 1px solid {BORDER}; border-radius: 10px; padding: 36px 32px;">
                            {content}
                        </td>
                    </tr>
                    <tr>
                        <td align="center" style="padding-top: 24px;">
                            <p style="color: {TEXT_SECONDARY}; font-size: 12px; line-height: 1.5; margin: 0;">
                                This email was sent by {app_name}.<br>
                                If you didn't expect it, you can safely ignore it.
                            </p>
                        </td>
                    </tr>
                </table>
            </td>
        </tr>
    </table>
</body>
</html>"""


def _code_block(code: str) -> str:
    """Render the OTP in a large monospace box."""
    return f"""\
<p style="text-align: center; margin: 28px 0;">
    <span style="display: inline-block; padding: 14px 28px; border: 2px dashed {RED}; border-radius: 8px; font-family: 'SFMono-Regular', Consolas, monospace; font-size: 30px; letter-spacing: 8px; color: {TEXT_PRIMARY};">{code}</span>
</p>"""


def registration_otp(name: str | None, otp: str, expires_minutes: int = 10) -> tuple[str, str, str]:
    """
    Sent right after registration with the first verification code.

    Returns:
        (subject, html_body, text_body)
    """
    display = name or "there"
    subject = f"Your {APP_NAME} verification code"
    content = f"""\
<h1 style="color: {TEXT_PRIMARY}; font-size: 22px; font-weight: 700; margin: 0 0 16px 0;">Welcome to {APP_NAME}!</h1>
<p style="color: {TEXT_SECONDARY}; font-size: 16px; line-height: 1.6; margin: 0 0 8px 0;">Hi {display},</p>
<p style="color: {TEXT_SECONDARY}; font-size: 16px; line-height: 1.6; margin: 0;">
    Enter this code to verify your email address and activate your account.
</p>
{_code_block(otp)}
<p style="color: {TEXT_SECONDARY}; font-size: 13px; line-height: 1.5; margin: 0;">
    The code expires in <strong style="color: {TEXT_PRIMARY};">{expires_minutes} minutes</strong>.
</p>"""
    text_body = (
        f"Hi {display},\n\n"
        f"Welcome to {APP_NAME}! Your verification code is: {otp}\n\n"
        f"The code expires in {expires_minutes} minutes.\n\n"
        f"If you did not create an account, please ignore this email.\n\n"
        f"-- The {APP_NAME} Team"
    )
    return subject, _base_layout(content), text_body


def resend_otp(name: str | None, otp: str, expires_minutes: int = 10) -> tuple[str, str, str]:
    """A replacement verification code."""
    display = name or "there"
    subject = f"Your new {APP_NAME} verification code"
    content = f"""\
<h1 style="color: {TEXT_PRIMARY}; font-size: 22px; font-weight: 700; margin: 0 0 16px 0;">New verification code</h1>
<p style="color: {TEXT_SECONDARY}; font-size: 16px; line-height: 1.6; margin: 0;">
    Hi {display}, here is your new code. Any earlier code no longer works.
</p>
{_code_block(otp)}
<p style="color: {TEXT_SECONDARY}; font-size: 13px; line-height: 1.5; margin: 0;">
    The code expires in <strong style="color: {TEXT_PRIMARY};">{expires_minutes} minutes</strong>.
</p>"""
    text_body = (
        f"Hi {display},\n\n"
        f"Your new {APP_NAME} verification code is: {otp}\n\n"
        f"The code expires in {expires_minutes} minutes. Any earlier code no longer works.\n\n"
        f"-- The {APP_NAME} Team"
    )
    return subject, _base_layout(content), text_body
