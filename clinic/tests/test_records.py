import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.urls import reverse

from clinic.models import Appointment, Record
from clinic.services.records import list_records

pytestmark = pytest.mark.django_db


@pytest.fixture(autouse=True)
def _media(settings, tmp_path):
    settings.MEDIA_ROOT = tmp_path


@pytest.fixture
def care(patient, doctor, tomorrow):
    return Appointment.objects.create(patient=patient, doctor=doctor, date=tomorrow, time='09:00')


def _record(patient, uploader, **extra):
    values = {'type': 'lab', 'title': 'Blood panel', 'file_url': 'https://files.example.com/a.pdf'}
    values.update(extra)
    return Record.objects.create(patient=patient, uploaded_by=uploader, **values)


def test_patient_creates_record_with_file_url(client_for, patient):
    r = client_for(patient).post(reverse('records'), {
        'type': 'prescription', 'title': '<b>Amoxicillin</b>', 'fileUrl': 'https://files.example.com/rx.pdf',
    }, format='json')
    assert r.status_code == 201
    assert r.data['data']['title'] == 'Amoxicillin'
    assert r.data['data']['patientId'] == patient.id
    assert r.data['data']['uploadedBy'] == patient.id
    assert r.data['data']['title'] == 'Amoxicillin'


def test_record_requires_title_type_and_file(client_for, patient):
    r = client_for(patient).post(reverse('records'), {'notes': 'x'}, format='json')
    assert r.status_code == 400
    message = r.data['error']['message']
    assert 'title' in message and 'type' in message

    r = client_for(patient).post(reverse('records'), {'type': 'lab', 'title': 'No file'}, format='json')
    assert r.status_code == 400
    assert 'file' in r.data['error']['message']


def test_multipart_upload_is_stored(client_for, patient):
    upload = SimpleUploadedFile('scan.pdf', b'%PDF-1.4 test', content_type='application/pdf')
    r = client_for(patient).post(reverse('records'), {'type': 'scan', 'title': 'Chest', 'file': upload},
                                 format='multipart')
    assert r.status_code == 201
    assert r.data['data']['contentType'] == 'application/pdf'
    assert r.data['data']['fileUrl'].startswith('/media/records/')


def test_upload_type_is_restricted(client_for, patient):
    upload = SimpleUploadedFile('run.sh', b'echo hi', content_type='text/x-shellscript')
    r = client_for(patient).post(reverse('records'), {'type': 'scan', 'title': 'Bad', 'file': upload},
                                 format='multipart')
    assert r.status_code == 400


def test_doctor_needs_care_relationship(client_for, patient, doctor, make_user):
    stranger = make_user('dr_stranger', 'doctor')
    _record(patient, patient)

    r = client_for(stranger).get(reverse('records'), {'patientId': patient.id})
    assert r.status_code == 403

    r = client_for(doctor).get(reverse('records'))
    assert r.status_code == 400


def test_doctor_with_appointment_reads_and_writes(client_for, patient, doctor, care):
    _record(patient, patient)
    client = client_for(doctor)
    r = client.get(reverse('patient_records', args=[patient.id]))
    assert r.status_code == 200
    assert r.data['total'] == 1

    r = client.post(reverse('records'), {
        'patientId': patient.id, 'type': 'lab', 'title': 'Follow-up', 'fileUrl': 'https://files.example.com/b.pdf',
    }, format='json')
    assert r.status_code == 201
    assert r.data['data']['uploadedBy'] == doctor.id


def test_patient_cannot_read_other_patients(client_for, patient, make_user):
    other = make_user('pat2', 'patient')
    rec = _record(other, other)
    assert client_for(patient).get(reverse('records'), {'patientId': other.id}).status_code == 403
    assert client_for(patient).get(reverse('record_detail', args=[rec.id])).status_code == 404


def test_update_sets_last_updated_by(client_for, patient, doctor, care):
    rec = _record(patient, patient)
    r = client_for(doctor).put(reverse('record_detail', args=[rec.id]), {'title': 'Blood panel (rev)'},
                               format='json')
    assert r.status_code == 200
    rec.refresh_from_db()
    assert rec.title == 'Blood panel (rev)'
    assert rec.last_updated_by_id == doctor.id


def test_soft_delete_hides_record(client_for, patient):
    rec = _record(patient, patient)
    client = client_for(patient)
    assert client.delete(reverse('record_detail', args=[rec.id])).status_code == 200

    assert client.get(reverse('record_detail', args=[rec.id])).status_code == 404
    assert client.get(reverse('records')).data['total'] == 0
    assert not Record.objects.filter(id=rec.id).exists()

    kept = Record.all_objects.get(id=rec.id)
    assert kept.is_deleted and kept.deleted_by_id == patient.id and kept.deleted_at is not None


def test_listing_newest_first(patient):
    first = _record(patient, patient, title='old')
    second = _record(patient, patient, title='new')
    assert [r['id'] for r in list_records(patient)] == [second.id, first.id]
