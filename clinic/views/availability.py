from django.contrib.auth import get_user_model
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from clinic.models import Availability
from clinic.permissions import IsDoctor
from clinic.serializers.scheduling import AvailabilityQuerySerializer, AvailabilitySerializer, SlotQuerySerializer
from clinic.services.availability import (
    list_availability,
    open_slots,
    serialize_availability,
    set_availability,
)

User = get_user_model()


def _not_found(message='Not found.'):
    return Response({'ok': False, 'error': {'code': 'not_found', 'message': message}}, status=404)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def availability(request):
    """GET ?doctorId=&from=&to= lists a doctor's days; POST upserts the caller's own day."""
    if request.method == 'POST':
        if not IsDoctor().has_permission(request, None):
            return Response({'ok': False, 'error': {'code': 'permission_denied',
                                                    'message': 'Only doctors can publish availability.'}},
                            status=403)
        s = AvailabilitySerializer(data=request.data)
        s.is_valid(raise_exception=True)
        entry, created = set_availability(request.user, s.validated_data['date'], s.validated_data['slots'])
        return Response({'ok': True, 'data': serialize_availability(entry)}, status=201 if created else 200)

    s = AvailabilityQuerySerializer(data=request.query_params)
    s.is_valid(raise_exception=True)
    doctor_id = s.validated_data.get('doctorId')
    if doctor_id is None:
        if request.user.role != 'doctor':
            return Response({'ok': False, 'error': {'code': 'validation_error',
                                                    'message': {'doctorId': ['This field is required.']}}},
                            status=400)
        doctor_id = request.user.id
    data = list_availability(
        doctor_id, date_from=s.validated_data.get('date_from'), date_to=s.validated_data.get('date_to'),
    )
    return Response({'ok': True, 'data': data})


@api_view(['GET'])
@permission_classes([AllowAny])
def doctor_slots(request, doctor_id: int):
    if not User.objects.filter(id=doctor_id, role='doctor', is_active=True).exists():
        return _not_found('Doctor not found.')
    s = SlotQuerySerializer(data=request.query_params)
    s.is_valid(raise_exception=True)
    date = s.validated_data['date']
    return Response({'ok': True, 'data': {'doctorId': doctor_id, 'date': date.isoformat(),
                                          'slots': open_slots(doctor_id, date)}})


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def availability_detail(request, availability_id: int):
    entry = Availability.objects.filter(id=availability_id).first()
    if entry is None or not (request.user.is_admin_role or entry.doctor_id == request.user.id):
        return _not_found('Availability not found.')
    entry.delete()
    return Response(status=204)
