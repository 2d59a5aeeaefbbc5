from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from clinic.permissions import IsPatient
from clinic.serializers.scheduling import (
    AppointmentCreateSerializer,
    AppointmentListQuerySerializer,
    AppointmentNotesSerializer,
    AppointmentRescheduleSerializer,
    AppointmentStatusSerializer,
)
from clinic.services.appointments import (
    book_appointment,
    change_status,
    get_appointment_for,
    list_appointments,
    reschedule,
    serialize_appointment,
    update_notes,
)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def appointments(request):
    if request.method == 'POST':
        if not IsPatient().has_permission(request, None):
            return Response({'ok': False, 'error': {'code': 'permission_denied',
                                                    'message': 'Only patients can book appointments.'}},
                            status=403)
        s = AppointmentCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        vd = s.validated_data
        appointment = book_appointment(
            request.user, doctor_id=vd['doctorId'], date=vd['date'], time=vd['time'], notes=vd.get('notes', ''),
        )
        return Response({'ok': True, 'data': serialize_appointment(appointment)}, status=201)

    s = AppointmentListQuerySerializer(data=request.query_params)
    s.is_valid(raise_exception=True)
    data = list_appointments(
        request.user,
        status=s.validated_data.get('status'),
        date=s.validated_data.get('date'),
        upcoming=s.validated_data.get('upcoming', False),
    )
    return Response({'ok': True, 'data': data, 'total': len(data)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def appointment_detail(request, appointment_id: int):
    appointment = get_appointment_for(request.user, appointment_id)
    return Response({'ok': True, 'data': serialize_appointment(appointment)})


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def appointment_status(request, appointment_id: int):
    appointment = get_appointment_for(request.user, appointment_id)
    s = AppointmentStatusSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    appointment = change_status(request.user, appointment, s.validated_data['status'])
    return Response({'ok': True, 'data': serialize_appointment(appointment)})


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def appointment_reschedule(request, appointment_id: int):
    appointment = get_appointment_for(request.user, appointment_id)
    s = AppointmentRescheduleSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    appointment = reschedule(request.user, appointment, date=s.validated_data['date'], time=s.validated_data['time'])
    return Response({'ok': True, 'data': serialize_appointment(appointment)})


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def appointment_notes(request, appointment_id: int):
    appointment = get_appointment_for(request.user, appointment_id)
    s = AppointmentNotesSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    appointment = update_notes(request.user, appointment, s.validated_data['notes'])
    return Response({'ok': True, 'data': serialize_appointment(appointment)})
