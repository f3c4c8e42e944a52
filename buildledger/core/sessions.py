"""
Login session tokens.

The raw token only ever lives in the client's cookie or Authorization
header; the database keeps its sha256 digest.
"""
import hashlib
import logging
import secrets
from datetime import timedelta

from django.conf import settings
from django.utils import timezone

from .models import UserSession

logger = logging.getLogger(__name__)


def hash_token(token):
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(user, user_agent=None, ip_address=None):
    """Create a session for `user` and return (session, raw_token)"""
    raw_token = secrets.token_hex(32)
    session = UserSession.objects.create(
        user=user,
        token_hash=hash_token(raw_token),
        expires_at=timezone.now() + timedelta(days=settings.SESSION_TOKEN_TTL_DAYS),
        user_agent=(user_agent or '')[:500] or None,
        ip_address=ip_address,
    )
    logger.info(f"Session {session.id} created for user {user.id}")
    return session, raw_token


def get_active_session(raw_token):
    """Return the live session for a raw token, or None if unknown, revoked or expired"""
    if not raw_token:
        return None
    session = (
        UserSession.objects.select_related('user')
        .filter(token_hash=hash_token(raw_token))
        .first()
    )
    if not session or session.revoked_at or session.expires_at < timezone.now():
        return None
    return session


def revoke_session_by_id(session_id):
    return UserSession.objects.filter(id=session_id, revoked_at__isnull=True).update(revoked_at=timezone.now())


def revoke_session_by_token(raw_token):
    return UserSession.objects.filter(
        token_hash=hash_token(raw_token), revoked_at__isnull=True
    ).update(revoked_at=timezone.now())


def purge_expired_sessions():
    """Delete sessions that are expired or were revoked; returns the number removed"""
    now = timezone.now()
    expired = UserSession.objects.filter(expires_at__lt=now)
    revoked = UserSession.objects.filter(revoked_at__isnull=False)
    deleted, _ = (expired | revoked).delete()
    return deleted
