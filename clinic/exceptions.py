import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError
from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class AppointmentConflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The requested time slot is already booked.'
    default_code = 'appointment_conflict'


class InvalidTransition(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'This status change is not allowed.'
    default_code = 'invalid_transition'


class SlotUnavailable(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'The doctor is not available at the requested time.'
    default_code = 'slot_unavailable'


class UpstreamUnavailable(APIException):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = 'Upstream service unavailable.'
    default_code = 'upstream_unavailable'


def _error(code, message, http_status):
    return Response({'ok': False, 'error': {'code': code, 'message': message}}, status=http_status)


def api_exception_handler(exc, context):
    if isinstance(exc, IntegrityError):
        logger.warning('integrity error in %s: %s', context.get('view'), exc)
        return _error('conflict', 'The request conflicts with existing data.', status.HTTP_409_CONFLICT)
    if isinstance(exc, DjangoValidationError):
        return _error('validation_error', exc.message_dict if hasattr(exc, 'error_dict') else exc.messages,
                      status.HTTP_400_BAD_REQUEST)

    resp = drf_exception_handler(exc, context)
    if resp is None:
        logger.exception('unhandled error in %s', context.get('view'), exc_info=exc)
        return _error('server_error', 'Internal server error.', status.HTTP_500_INTERNAL_SERVER_ERROR)

    # normalize response
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = resp.data
    if isinstance(exc, ValidationError):
        code = 'validation_error'
    elif isinstance(exc, APIException) and isinstance(exc.get_codes(), str):
        code = exc.get_codes()
    else:
        code = 'api_error'
    normalized = _error(code, detail, resp.status_code)
    for header in ('WWW-Authenticate', 'Retry-After'):
        if header in resp:
            normalized[header] = resp[header]
    return normalized
