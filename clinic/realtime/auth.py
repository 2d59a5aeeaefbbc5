"""
WebSocket authentication.

Browsers cannot set an ``Authorization`` header on a WebSocket handshake,
so the client passes ``?token=<legacy token or JWT access>`` instead.  A
missing or bad token leaves whatever the session middleware resolved.
"""
from urllib.parse import parse_qs

from channels.auth import AuthMiddlewareStack
from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth import get_user_model
from rest_framework.authtoken.models import Token
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import AccessToken

User = get_user_model()


@database_sync_to_async
def get_user_for_token(raw: str):
    token = Token.objects.select_related('user').filter(key=raw).first()
    if token is not None:
        return token.user if token.user.is_active else None
    try:
        access = AccessToken(raw)
    except TokenError:
        return None
    return User.objects.filter(id=access.get('user_id'), is_active=True).first()


class TokenAuthMiddleware(BaseMiddleware):
    async def __call__(self, scope, receive, send):
        params = parse_qs(scope.get('query_string', b'').decode())
        raw = (params.get('token') or [''])[0]
        if raw:
            user = await get_user_for_token(raw)
            if user is not None:
                scope = dict(scope, user=user)
        return await super().__call__(scope, receive, send)


def TokenAuthMiddlewareStack(inner):
    return AuthMiddlewareStack(TokenAuthMiddleware(inner))
