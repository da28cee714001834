from __future__ import annotations

import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional

import httpx

from invoicegen.core.settings import Settings


@dataclass
class EmailSendResult:
    provider: str
    message_id: Optional[str] = None


class EmailSendError(RuntimeError):
    pass


def email_enabled(config: Settings) -> bool:
    return (config.email_provider or "disabled").lower() not in {"disabled", "none"}


def send_email(
    *,
    to_address: str,
    subject: str,
    html: str,
    text: str | None = None,
    config: Settings,
) -> EmailSendResult:
    provider = (config.email_provider or "disabled").lower()
    if not email_enabled(config):
        raise EmailSendError("EMAIL_PROVIDER disabled")
    if not config.email_from:
        raise EmailSendError("EMAIL_FROM not configured")

    if provider == "resend":
        return _send_resend(config, to_address=to_address, subject=subject, html=html, text=text)
    if provider == "postmark":
        return _send_postmark(config, to_address=to_address, subject=subject, html=html, text=text)
    if provider == "smtp":
        return _send_smtp(config, to_address=to_address, subject=subject, html=html, text=text)

    raise EmailSendError(f"Unsupported EMAIL_PROVIDER: {config.email_provider}")


def _send_resend(config: Settings, *, to_address: str, subject: str, html: str, text: str | None) -> EmailSendResult:
    if not config.email_api_key:
        raise EmailSendError("EMAIL_API_KEY not configured for Resend")
    payload = {
        "from": config.email_from,
        "to": [to_address],
        "subject": subject,
        "html": html,
    }
    if text:
        payload["text"] = text
    headers = {
        "Authorization": f"Bearer {config.email_api_key}",
        "Content-Type": "application/json",
    }
    with httpx.Client(timeout=15) as client:
        resp = client.post("https://api.resend.com/emails", json=payload, headers=headers)
    if resp.status_code >= 400:
        raise EmailSendError(f"Resend error: {resp.status_code} {resp.text}")
    data = resp.json()
    return EmailSendResult(provider="resend", message_id=data.get("id"))


def _send_postmark(config: Settings, *, to_address: str, subject: str, html: str, text: str | None) -> EmailSendResult:
    if not config.email_api_key:
        raise EmailSendError("EMAIL_API_KEY not configured for Postmark")
    payload = {
        "From": config.email_from,
        "To": to_address,
        "Subject": subject,
        "HtmlBody": html,
    }
    if text:
        payload["TextBody"] = text
    headers = {
        "X-Postmark-Server-Token": config.email_api_key,
        "Content-Type": "application/json",
    }
    with httpx.Client(timeout=15) as client:
        resp = client.post("https://api.postmarkapp.com/email", json=payload, headers=headers)
    if resp.status_code >= 400:
        raise EmailSendError(f"Postmark error: {resp.status_code} {resp.text}")
    data = resp.json()
    return EmailSendResult(provider="postmark", message_id=data.get("MessageID"))


def _send_smtp(config: Settings, *, to_address: str, subject: str, html: str, text: str | None) -> EmailSendResult:
    if not config.smtp_host:
        raise EmailSendError("SMTP_HOST not configured")
    message = EmailMessage()
    message["Subject"] = subject
    message["From"] = config.email_from
    message["To"] = to_address
    message.set_content(text or "This email requires an HTML-capable client.")
    message.add_alternative(html, subtype="html")

    with smtplib.SMTP(config.smtp_host, config.smtp_port) as server:
        if config.smtp_use_tls:
            server.starttls()
        if config.smtp_username and config.smtp_password:
            server.login(config.smtp_username, config.smtp_password)
        server.send_message(message)
    return EmailSendResult(provider="smtp")
