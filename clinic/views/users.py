from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core.cache import cache
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from clinic.permissions import IsDoctorOrAdmin
from clinic.serializers.auth import ChangePasswordSerializer
from clinic.serializers.users import DoctorListQuerySerializer, ProfileUpdateSerializer
from clinic.services.audit import log_action
from clinic.services.users import can_view_profile, list_doctors, list_patients_for, serialize_user

User = get_user_model()

DOCTORS_CACHE_TTL = 60


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated])
def me(request):
    user = request.user
    if request.method == 'GET':
        return Response({'ok': True, 'data': serialize_user(user, private=True)})

    s = ProfileUpdateSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    if 'email' in vd and vd['email'] and User.objects.filter(email__iexact=vd['email']).exclude(id=user.id).exists():
        return Response({'ok': False, 'error': {'code': 'validation_error',
                                                'message': {'email': ['An account with this email already exists.']}}},
                        status=400)
    for name, value in vd.items():
        setattr(user, name, value)
    if vd:
        user.save(update_fields=list(vd))
    log_action(user=user, action='profile_update', object_type='user', object_id=user.id,
               detail={'fields': sorted(vd)})
    return Response({'ok': True, 'data': serialize_user(user, private=True)})


@api_view(['GET'])
@permission_classes([AllowAny])
def doctors(request):
    """Public doctor directory.
    Query params:
      - q: name / username / specialization contains
      - specialization: exact (case-insensitive) match
      - page, pageSize: pagination (optional)
    """
    s = DoctorListQuerySerializer(data=request.query_params)
    s.is_valid(raise_exception=True)
    q = (s.validated_data.get('q') or '').strip() or None
    specialization = (s.validated_data.get('specialization') or '').strip() or None
    page = s.validated_data.get('page')
    page_size = s.validated_data.get('pageSize')

    cache_key = f"doctors:q={q or ''}:s={specialization or ''}:p={page}:ps={page_size}"
    cached = cache.get(cache_key)
    if cached:
        return Response(cached)

    data, total = list_doctors(q=q, specialization=specialization, page=page, page_size=page_size)
    payload = {'ok': True, 'data': data,
               'pagination': {'total': total, 'page': page or 1, 'pageSize': page_size or total}}
    cache.set(cache_key, payload, DOCTORS_CACHE_TTL)
    return Response(payload)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDoctorOrAdmin])
def patients(request):
    q = (request.query_params.get('q') or '').strip() or None
    data = list_patients_for(request.user, q=q)
    return Response({'ok': True, 'data': data, 'total': len(data)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_detail(request, user_id: int):
    target = User.objects.filter(id=user_id, is_active=True).first()
    if target is None or not can_view_profile(request.user, target):
        return Response({'ok': False, 'error': {'code': 'not_found', 'message': 'User not found.'}}, status=404)
    private = request.user.id == target.id or request.user.is_admin_role or target.role == 'patient'
    return Response({'ok': True, 'data': serialize_user(target, private=private)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def change_password(request):
    s = ChangePasswordSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    user = request.user
    if not user.check_password(s.validated_data['old_password']):
        return Response({'ok': False, 'error': {'code': 'validation_error',
                                                'message': {'old_password': ['Current password is incorrect.']}}},
                        status=400)
    validate_password(s.validated_data['new_password'], user=user)
    user.set_password(s.validated_data['new_password'])
    user.save(update_fields=['password'])
    log_action(user=user, action='password_change', object_type='user', object_id=user.id)
    return Response({'ok': True})
