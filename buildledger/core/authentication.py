import logging

from django.conf import settings
from django.utils import timezone
from rest_framework import exceptions
from rest_framework.authentication import BaseAuthentication, get_authorization_header

from .sessions import get_active_session

logger = logging.getLogger(__name__)


class SessionTokenAuthentication(BaseAuthentication):
    """
    Authenticate with the opaque login token issued by `auth/login/`.

    The token is read from the session cookie and from an
    `Authorization: Bearer <token>` header, in that order. The first one
    that maps to a live session is used.
    Workers are read-only.
    """
    keyword = 'Bearer'

    def get_raw_tokens(self, request):
        tokens = []
        cookie = (request.COOKIES.get(settings.SESSION_TOKEN_COOKIE_NAME) or '').strip()
        if cookie:
            tokens.append(cookie)
        auth = get_authorization_header(request).split()
        if len(auth) == 2 and auth[0].lower() == self.keyword.lower().encode():
            header = auth[1].decode('utf-8', errors='ignore').strip()
            if header and header not in tokens:
                tokens.append(header)
        return tokens

    def authenticate(self, request):
        raw_tokens = self.get_raw_tokens(request)
        if not raw_tokens:
            return None

        session = None
        for raw_token in raw_tokens:
            session = get_active_session(raw_token)
            if session is not None:
                break
            logger.debug("Skipping a token with no live session")
        if session is None:
            raise exceptions.AuthenticationFailed('Session expired. Please log in again.')

        user = session.user
        if not user.is_active:
            raise exceptions.AuthenticationFailed('Session expired. Please log in again.')

        if user.role == user.ROLE_WORKER and request.method != 'GET':
            raise exceptions.PermissionDenied('Workers are not permitted to perform this action')

        type(session).objects.filter(pk=session.pk).update(last_used_at=timezone.now())
        return (user, session)

    def authenticate_header(self, request):
        return self.keyword
