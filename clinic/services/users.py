from typing import Optional

from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError
from django.db.models import Q
from rest_framework.exceptions import ValidationError as DRFValidation

from clinic.models import Appointment

User = get_user_model()

SELF_REGISTRABLE_ROLES = ('patient', 'doctor')


def serialize_user(u: User, *, private: bool = False) -> dict:
    data = {
        'id': u.id,
        'username': u.username,
        'name': u.display_name,
        'firstName': u.first_name,
        'lastName': u.last_name,
        'role': u.role,
        'specialization': u.specialization,
        'bio': u.bio,
    }
    if private:
        data.update({
            'email': u.email,
            'phone': u.phone,
            'gender': u.gender,
            'dateOfBirth': u.date_of_birth.isoformat() if u.date_of_birth else None,
            'address': u.address,
        })
    return data


def register_user(*, username: str, password: str, role: str = 'patient', email: str = '', **profile) -> User:
    if role not in SELF_REGISTRABLE_ROLES:
        raise DRFValidation({'role': ['Only patient or doctor accounts can be registered.']})
    if User.objects.filter(username__iexact=username).exists():
        raise DRFValidation({'username': ['This username is taken.']})
    if email and User.objects.filter(email__iexact=email).exists():
        raise DRFValidation({'email': ['An account with this email already exists.']})

    candidate = User(username=username, email=email, role=role, **profile)
    try:
        validate_password(password, user=candidate)
    except ValidationError as e:
        raise DRFValidation({'password': e.messages})

    candidate.set_password(password)
    candidate.save()
    return candidate


def find_user_for_login(identifier: str) -> Optional[User]:
    """Resolve a login identifier that may be a username or an email."""
    user = User.objects.filter(username__iexact=identifier).first()
    if user is None and '@' in identifier:
        user = User.objects.filter(email__iexact=identifier).first()
    return user


def has_care_relationship(doctor_id: int, patient_id: int) -> bool:
    """True when the doctor has (or had) any appointment with the patient."""
    return Appointment.objects.filter(doctor_id=doctor_id, patient_id=patient_id).exists()


def list_doctors(*, q: Optional[str] = None, specialization: Optional[str] = None,
                 page: Optional[int] = None, page_size: Optional[int] = None) -> tuple[list[dict], int]:
    qs = User.objects.filter(role='doctor', is_active=True)
    if specialization:
        qs = qs.filter(specialization__iexact=specialization)
    if q:
        qs = qs.filter(
            Q(first_name__icontains=q) | Q(last_name__icontains=q)
            | Q(username__icontains=q) | Q(specialization__icontains=q)
        )
    qs = qs.order_by('last_name', 'first_name', 'id')

    total = qs.count()
    if page and page_size:
        start = (page - 1) * page_size
        qs = qs[start:start + page_size]
    return [serialize_user(u) for u in qs], total


def list_patients_for(user: User, *, q: Optional[str] = None) -> list[dict]:
    qs = User.objects.filter(role='patient')
    if not user.is_admin_role:
        qs = qs.filter(patient_appointments__doctor=user).distinct()
    if q:
        qs = qs.filter(
            Q(first_name__icontains=q) | Q(last_name__icontains=q)
            | Q(username__icontains=q) | Q(email__icontains=q)
        )
    return [serialize_user(u, private=True) for u in qs.order_by('last_name', 'first_name', 'id')]


def can_view_profile(viewer: User, target: User) -> bool:
    if viewer.id == target.id or viewer.is_admin_role or target.role == 'doctor':
        return True
    if target.role == 'patient' and viewer.role == 'doctor':
        return has_care_relationship(viewer.id, target.id)
    return False
