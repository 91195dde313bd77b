"""
JWT authentication for WebSocket connections.

Browsers cannot set an Authorization header on a WebSocket handshake,
so the access token travels as ``?token=<jwt>``. Without a valid token
the scope keeps whatever the session middleware found.
"""

import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import AuthenticationFailed, InvalidToken, TokenError

logger = logging.getLogger(__name__)


@database_sync_to_async
def get_token_user(raw_token: str):
    auth = JWTAuthentication()
    try:
        validated = auth.get_validated_token(raw_token)
        return auth.get_user(validated)
    except (InvalidToken, TokenError, AuthenticationFailed) as e:
        logger.info(f"Rejected websocket token: {e}")
        return None


class JWTAuthMiddleware(BaseMiddleware):

    async def __call__(self, scope, receive, send):
        query = parse_qs(scope.get('query_string', b'').decode())
        token = (query.get('token') or [None])[0]
        if token:
            user = await get_token_user(token)
            if user is not None:
                scope = dict(scope, user=user)
        return await super().__call__(scope, receive, send)
