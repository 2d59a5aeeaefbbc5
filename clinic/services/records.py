from typing import Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.http import Http404
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied, ValidationError

from clinic.models import Record
from clinic.sanitize import clean_text
from clinic.services.audit import log_action
from clinic.services.users import has_care_relationship

User = get_user_model()


def serialize_record(r: Record) -> dict:
    return {
        'id': r.id,
        'patientId': r.patient_id,
        'type': r.type,
        'title': r.title,
        'fileUrl': r.file_url,
        'contentType': r.content_type,
        'size': r.size,
        'notes': r.notes,
        'data': r.data,
        'uploadedBy': r.uploaded_by_id,
        'lastUpdatedBy': r.last_updated_by_id,
        'createdAt': r.created_at.isoformat() if r.created_at else None,
        'updatedAt': r.updated_at.isoformat() if r.updated_at else None,
    }


def can_access_patient_records(user: User, patient_id: int) -> bool:
    if user.is_admin_role or user.id == patient_id:
        return True
    return user.role == 'doctor' and has_care_relationship(user.id, patient_id)


def resolve_patient(user: User, patient_id: Optional[int]) -> User:
    """Pick the patient a records call is about, enforcing who may touch whose records."""
    if user.role == 'patient':
        if patient_id and patient_id != user.id:
            raise PermissionDenied('Patients can only access their own records.')
        return user
    if not patient_id:
        raise ValidationError({'patientId': ['This field is required.']})
    patient = User.objects.filter(id=patient_id, role='patient').first()
    if patient is None:
        raise Http404('patient not found')
    if not can_access_patient_records(user, patient.id):
        raise PermissionDenied('No care relationship with this patient.')
    return patient


def list_records(user: User, patient_id: Optional[int] = None, *, record_type: Optional[str] = None) -> list[dict]:
    patient = resolve_patient(user, patient_id)
    qs = Record.objects.filter(patient=patient)
    if record_type:
        qs = qs.filter(type=record_type)
    return [serialize_record(r) for r in qs.order_by('-created_at', '-id')]


def get_record_for(user: User, record_id: int) -> Record:
    record = Record.objects.filter(id=record_id).first()
    if record is None or not can_access_patient_records(user, record.patient_id):
        raise Http404('record not found')
    return record


def _check_upload(f) -> str:
    size_mb = (f.size or 0) / (1024 * 1024)
    if size_mb > settings.UPLOAD_MAX_MB:
        raise ValidationError({'file': [f'File exceeds {settings.UPLOAD_MAX_MB} MB.']})
    ctype = getattr(f, 'content_type', '') or ''
    if not any(ctype.startswith(prefix) for prefix in settings.ALLOWED_UPLOAD_TYPES):
        raise ValidationError({'file': ['Unsupported file type.']})
    return ctype


@transaction.atomic
def create_record(user: User, patient: User, *, type: str, title: str, notes: str = '',
                  data=None, file=None, file_url: Optional[str] = None) -> Record:
    if file is None and not file_url:
        raise ValidationError({'file': ['Provide a file or a fileUrl.']})

    record = Record(
        patient=patient,
        type=type,
        title=clean_text(title),
        notes=clean_text(notes),
        data=data,
        uploaded_by=user,
        file_url=file_url or '',
    )
    if file is not None:
        record.content_type = _check_upload(file)
        record.size = file.size or 0
        record.file = file
        record.save()
        record.file_url = record.file.url
        record.save(update_fields=['file_url'])
    else:
        record.save()

    log_action(user=user, action='record_create', object_type='record', object_id=record.id,
               detail={'patientId': patient.id, 'type': type})
    return record


def update_record(user: User, record: Record, **changes) -> Record:
    if user.role == 'patient' and record.uploaded_by_id != user.id:
        raise PermissionDenied('Patients can only edit records they uploaded.')
    fields = []
    for name in ('type', 'title', 'notes', 'data', 'file_url'):
        if name in changes and changes[name] is not None:
            value = changes[name]
            if name in ('title', 'notes'):
                value = clean_text(value)
            setattr(record, name, value)
            fields.append(name)
    record.last_updated_by = user
    record.save(update_fields=fields + ['last_updated_by', 'updated_at'])
    log_action(user=user, action='record_update', object_type='record', object_id=record.id,
               detail={'fields': fields})
    return record


def soft_delete_record(user: User, record: Record) -> Record:
    if not (user.is_admin_role or user.id in (record.patient_id, record.uploaded_by_id)):
        raise PermissionDenied('Not allowed to delete this record.')
    record.is_deleted = True
    record.deleted_by = user
    record.deleted_at = timezone.now()
    record.save(update_fields=['is_deleted', 'deleted_by', 'deleted_at', 'updated_at'])
    log_action(user=user, action='record_delete', object_type='record', object_id=record.id)
    return record
