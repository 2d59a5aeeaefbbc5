from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from clinic.serializers.records import RecordCreateSerializer, RecordUpdateSerializer
from clinic.services.records import (
    create_record,
    get_record_for,
    list_records,
    resolve_patient,
    serialize_record,
    soft_delete_record,
    update_record,
)


def _patient_id_param(request):
    raw = request.query_params.get('patientId')
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError({'patientId': ['A valid integer is required.']})


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def records(request):
    """
    GET  ?patientId=&type=  list a patient's records (patients: their own)
    POST multipart ``file`` or JSON ``fileUrl`` with ``type``/``title``
    """
    if request.method == 'GET':
        data = list_records(
            request.user,
            _patient_id_param(request),
            record_type=(request.query_params.get('type') or '').strip() or None,
        )
        return Response({'ok': True, 'data': data, 'total': len(data)})

    s = RecordCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    patient = resolve_patient(request.user, vd.get('patientId'))
    record = create_record(
        request.user, patient,
        type=vd['type'], title=vd['title'], notes=vd.get('notes', ''), data=vd.get('data'),
        file=vd.get('file'), file_url=vd.get('fileUrl'),
    )
    return Response({'ok': True, 'data': serialize_record(record)}, status=201)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated])
def record_detail(request, record_id: int):
    record = get_record_for(request.user, record_id)
    if request.method == 'GET':
        return Response({'ok': True, 'data': serialize_record(record)})
    if request.method == 'DELETE':
        soft_delete_record(request.user, record)
        return Response({'ok': True})

    s = RecordUpdateSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    vd = dict(s.validated_data)
    if 'fileUrl' in vd:
        vd['file_url'] = vd.pop('fileUrl')
    record = update_record(request.user, record, **vd)
    return Response({'ok': True, 'data': serialize_record(record)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def patient_records(request, patient_id: int):
    data = list_records(request.user, patient_id)
    return Response({'ok': True, 'data': data, 'total': len(data)})
