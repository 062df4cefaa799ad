"""
Newsletter subscriptions for the HTTP facade.

A new address is stored unverified with a one-time token that expires after
24 hours. Subscribing again before verifying issues a fresh token. Sending
the verification email is the job of a ``Mailer``; ``LoggingMailer`` only
logs the link.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional, Protocol

from config import settings
from database import create_document, find_document, update_document

logger = logging.getLogger(__name__)

COLLECTION = "subscriber"
VERIFICATION_TTL = timedelta(hours=24)


class Mailer(Protocol):
    def send_verification(self, email: str, token: str) -> None:
        ...


class LoggingMailer:
    def __init__(self, site_url: str = settings.site_url):
        self.site_url = site_url.rstrip("/")

    def verification_link(self, token: str) -> str:
        return f"{self.site_url}/verify-email?token={token}"

    def send_verification(self, email: str, token: str) -> None:
        logger.info("Verification link for %s: %s", email, self.verification_link(token))


class SubscribeOutcome(str, Enum):
    CREATED = "created"
    RESENT = "resent"
    ALREADY_SUBSCRIBED = "already_subscribed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # pymongo hands back naive UTC datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _new_token(now: datetime) -> Dict[str, Any]:
    return {
        "verification_token": secrets.token_hex(32),
        "verification_expires": now + VERIFICATION_TTL,
    }


def subscribe(email: str, mailer: Mailer, now: Optional[datetime] = None) -> SubscribeOutcome:
    """Store or refresh an unverified subscriber and send the verification token."""
    now = now or _utcnow()
    email = normalize_email(email)
    existing = find_document(COLLECTION, {"email": email})

    if existing is not None and existing.get("is_verified"):
        return SubscribeOutcome.ALREADY_SUBSCRIBED

    token = _new_token(now)
    if existing is None:
        create_document(COLLECTION, {"email": email, "subscribed_at": now, "is_verified": False, **token})
        outcome = SubscribeOutcome.CREATED
    else:
        update_document(COLLECTION, str(existing["_id"]), token)
        outcome = SubscribeOutcome.RESENT

    mailer.send_verification(email, token["verification_token"])
    return outcome


def verify(token: str, now: Optional[datetime] = None) -> bool:
    """Mark the subscriber holding ``token`` as verified. False for unknown, used or expired tokens."""
    now = now or _utcnow()
    subscriber = find_document(COLLECTION, {"verification_token": token, "is_verified": False})
    if subscriber is None:
        return False
    expires = subscriber.get("verification_expires")
    if expires is None or _as_utc(expires) <= now:
        return False
    update_document(
        COLLECTION,
        str(subscriber["_id"]),
        {"is_verified": True, "verification_token": None, "verification_expires": None},
    )
    return True


def public_view(doc: Dict[str, Any]) -> Dict[str, Any]:
    subscribed_at = doc.get("subscribed_at")
    return {
        "id": str(doc["_id"]),
        "email": doc["email"],
        "subscribed_at": subscribed_at.isoformat() if subscribed_at else None,
        "is_verified": bool(doc.get("is_verified")),
    }
