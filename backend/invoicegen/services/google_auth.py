from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx


GOOGLE_TOKENINFO_URL = "https://oauth2.googleapis.com/tokeninfo"
GOOGLE_ISSUERS = frozenset({"accounts.google.com", "https://accounts.google.com"})


@dataclass
class GoogleIdentity:
    subject: str
    email: str
    email_verified: bool
    name: Optional[str] = None
    picture: Optional[str] = None


class GoogleAuthError(RuntimeError):
    pass


def verify_google_id_token(
    id_token: str,
    *,
    client_id: str | None,
    timeout: float = 10.0,
    transport: httpx.BaseTransport | None = None,
) -> GoogleIdentity:
    """Validate a Google ID token against the tokeninfo endpoint."""
    if not client_id:
        raise GoogleAuthError("GOOGLE_CLIENT_ID not configured")

    try:
        with httpx.Client(timeout=timeout, transport=transport) as client:
            resp = client.get(GOOGLE_TOKENINFO_URL, params={"id_token": id_token})
    except httpx.HTTPError as exc:
        raise GoogleAuthError(f"Google token check failed: {exc}") from exc
    if resp.status_code >= 400:
        raise GoogleAuthError(f"Google rejected the token: {resp.status_code}")

    try:
        data = resp.json()
    except ValueError as exc:
        raise GoogleAuthError("Google returned an unreadable response") from exc
    if not isinstance(data, dict):
        raise GoogleAuthError("Google returned an unreadable response")
    if data.get("aud") != client_id:
        raise GoogleAuthError("Token was issued for a different client")
    if data.get("iss") not in GOOGLE_ISSUERS:
        raise GoogleAuthError("Token was not issued by Google")
    email = (data.get("email") or "").strip().lower()
    subject = data.get("sub")
    if not email or not subject:
        raise GoogleAuthError("Token carries no email identity")
    # An unverified Google address must not sign in as the local account that owns it.
    if str(data.get("email_verified", "")).lower() != "true":
        raise GoogleAuthError("Google has not verified this email address")

    return GoogleIdentity(
        subject=str(subject),
        email=email,
        email_verified=True,
        name=data.get("name"),
        picture=data.get("picture"),
    )
