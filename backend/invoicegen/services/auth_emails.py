"""Email templates for account verification and password reset."""
from __future__ import annotations

import logging
from typing import Optional

from invoicegen.core.settings import Settings
from invoicegen.models.user import User
from invoicegen.services.email import EmailSendError, EmailSendResult, send_email


logger = logging.getLogger(__name__)


def build_verification_link(config: Settings, token: str) -> str:
    return f"{config.app_base_url.rstrip('/')}/verify-email?token={token}"


def build_reset_link(config: Settings, token: str) -> str:
    return f"{config.app_base_url.rstrip('/')}/reset-password?token={token}"


def _action_email(*, heading: str, intro: str, link: str, button: str) -> tuple[str, str]:
    html = f"""
    <html>
      <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
        <h2 style="color: #2563eb;">{heading}</h2>
        <p>{intro}</p>
        <p>
          <a href="{link}"
             style="display: inline-block; background-color: #2563eb; color: white;
                    padding: 12px 24px; text-decoration: none; border-radius: 6px;
                    font-weight: bold;">
            {button}
          </a>
        </p>
        <p style="color: #6b7280; font-size: 14px; margin-top: 30px;">
          If you did not request this, you can ignore this email.
        </p>
      </body>
    </html>
    """
    text = f"""
    {heading}

    {intro}

    {button}: {link}
    """
    return html, text


def _deliver(config: Settings, *, user: User, subject: str, html: str, text: str) -> Optional[EmailSendResult]:
    try:
        return send_email(to_address=user.email, subject=subject, html=html, text=text, config=config)
    except EmailSendError as exc:
        logger.warning("email_not_sent", extra={"user_id": user.id, "event": subject, "error": str(exc)})
        return None


def send_verification_email(config: Settings, *, user: User, token: str) -> Optional[EmailSendResult]:
    link = build_verification_link(config, token)
    html, text = _action_email(
        heading="Verify your email",
        intro="Confirm your email address to start creating invoices.",
        link=link,
        button="Verify email",
    )
    return _deliver(config, user=user, subject="Verify your email", html=html, text=text)


def send_password_reset_email(config: Settings, *, user: User, token: str) -> Optional[EmailSendResult]:
    link = build_reset_link(config, token)
    html, text = _action_email(
        heading="Reset your password",
        intro=f"A password reset was requested for {user.email}. The link expires in "
        f"{config.reset_token_expire_minutes} minutes.",
        link=link,
        button="Reset password",
    )
    return _deliver(config, user=user, subject="Reset your password", html=html, text=text)
