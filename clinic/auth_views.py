"""
Authentication endpoints.

Login hands out both the legacy DRF token (``Authorization: Token ...``)
and a SimpleJWT pair (``Authorization: Bearer ...``); either is accepted
by every API view.  The role a client sends is never trusted: it comes
from the user row.
"""
from __future__ import annotations

from django.contrib.auth import authenticate
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.serializers import TokenRefreshSerializer
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework_simplejwt.tokens import RefreshToken

from clinic.serializers.auth import LoginSerializer, RefreshSerializer, RegisterSerializer
from clinic.services.audit import log_action
from clinic.services.users import find_user_for_login, register_user, serialize_user
from clinic.throttling import LoginRateThrottle, RegisterRateThrottle


def _token_payload(user) -> dict:
    token_obj, _ = Token.objects.get_or_create(user=user)
    refresh = RefreshToken.for_user(user)
    return {
        'ok': True,
        'token': token_obj.key,
        'jwt_access': str(refresh.access_token),
        'jwt_refresh': str(refresh),
        'role': user.role,
        'user': serialize_user(user, private=True),
    }


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([RegisterRateThrottle])
def register_view(request):
    s = RegisterSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = dict(s.validated_data)
    user = register_user(
        username=vd.pop('username'),
        password=vd.pop('password'),
        role=vd.pop('role'),
        email=vd.pop('email', ''),
        **vd,
    )
    log_action(user=user, action='register', object_type='user', object_id=user.id,
               detail={'role': user.role, 'ip': request.META.get('REMOTE_ADDR')})
    return Response(_token_payload(user), status=201)


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([LoginRateThrottle])
def login_view(request):
    """
    Username (or email) + password login.
    Any ``role`` field in the body is ignored.
    """
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    identifier = s.validated_data['username']
    password = s.validated_data['password']

    candidate = find_user_for_login(identifier)
    user = None
    if candidate is not None:
        user = authenticate(request, username=candidate.username, password=password)
    if not user:
        # only the identifier is recorded, never the password
        log_action(user=None, action='login', object_type='user', object_id=None,
                   detail={'result': 'fail', 'username': identifier, 'ip': request.META.get('REMOTE_ADDR')})
        return Response({'ok': False, 'error': {'code': 'invalid_credentials',
                                                'message': 'Invalid username or password.'}}, status=400)

    log_action(user=user, action='login', object_type='user', object_id=user.id,
               detail={'result': 'ok', 'ip': request.META.get('REMOTE_ADDR')})
    return Response(_token_payload(user), status=200)


@api_view(['POST'])
@permission_classes([AllowAny])
def refresh_view(request):
    """Exchange a refresh token for a new access token."""
    s = RefreshSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    inner = TokenRefreshSerializer(data={'refresh': s.validated_data['refresh']})
    try:
        inner.is_valid(raise_exception=True)
    except TokenError:
        return Response({'ok': False, 'error': {'code': 'token_not_valid',
                                                'message': 'Token is invalid or expired.'}}, status=401)
    data = dict(inner.validated_data)
    payload = {'ok': True, 'jwt_access': data.pop('access')}
    if 'refresh' in data:
        payload['jwt_refresh'] = data['refresh']
    return Response(payload)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def logout_view(request):
    """Blacklist the given refresh token, or all of the caller's, and drop the legacy token."""
    refresh = request.data.get('refresh')
    count = 0
    if refresh:
        try:
            token = RefreshToken(refresh)
        except TokenError:
            return Response({'ok': False, 'error': {'code': 'token_not_valid',
                                                    'message': 'Token is invalid or expired.'}}, status=400)
        if token.get('user_id') is not None and str(token['user_id']) != str(request.user.id):
            return Response({'ok': False, 'error': {'code': 'permission_denied',
                                                    'message': 'Token belongs to another user.'}}, status=403)
        token.blacklist()
        count = 1
    else:
        for outstanding in OutstandingToken.objects.filter(user=request.user):
            _, created = BlacklistedToken.objects.get_or_create(token=outstanding)
            count += int(created)

    Token.objects.filter(user=request.user).delete()
    log_action(user=request.user, action='logout', object_type='user', object_id=request.user.id,
               detail={'blacklisted': count})
    return Response({'ok': True, 'blacklisted': count})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def me_view(request):
    return Response({'ok': True, 'data': serialize_user(request.user, private=True)})
