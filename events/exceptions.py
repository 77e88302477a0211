import logging

from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class CheckInError(Exception):
    """Base for domain failures; each subclass maps to one HTTP status and code."""
    status_code = status.HTTP_400_BAD_REQUEST
    code = 'CHECK_IN_ERROR'
    default_message = 'Check-in request failed'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def as_payload(self):
        return {'code': self.code, 'message': self.message}


class EventNotFound(CheckInError):
    status_code = status.HTTP_404_NOT_FOUND
    code = 'EVENT_NOT_FOUND'
    default_message = 'Event not found'


class TicketNotFound(CheckInError):
    status_code = status.HTTP_404_NOT_FOUND
    code = 'TICKET_NOT_FOUND'
    default_message = 'Invalid ticket'


class AttendeeNotFound(CheckInError):
    status_code = status.HTTP_404_NOT_FOUND
    code = 'ATTENDEE_NOT_FOUND'
    default_message = 'Attendee not found'


class AttendeeNotApproved(CheckInError):
    status_code = status.HTTP_404_NOT_FOUND
    code = 'ATTENDEE_NOT_APPROVED'
    default_message = 'Attendee is not approved or has no ticket'


class UserNotFound(CheckInError):
    status_code = status.HTTP_404_NOT_FOUND
    code = 'USER_NOT_FOUND'
    default_message = 'User not found'


class AlreadyCheckedIn(CheckInError):
    status_code = status.HTTP_409_CONFLICT
    code = 'ALREADY_CHECKED_IN'
    default_message = 'Attendee is already checked in'

    def __init__(self, message=None, checked_in_at=None):
        super().__init__(message)
        self.checked_in_at = checked_in_at

    def as_payload(self):
        payload = super().as_payload()
        if self.checked_in_at is not None:
            payload['checkInDate'] = self.checked_in_at
        return payload


class NotCheckedIn(CheckInError):
    status_code = status.HTTP_409_CONFLICT
    code = 'NOT_CHECKED_IN'
    default_message = 'Attendee is not checked in'


class EventMismatch(CheckInError):
    code = 'EVENT_MISMATCH'
    default_message = 'Ticket is not for this event'


class InvalidTicketCode(CheckInError):
    code = 'INVALID_TICKET_CODE'
    default_message = 'Malformed ticket code'


class CheckInUnavailable(CheckInError):
    code = 'CHECK_IN_UNAVAILABLE'
    default_message = 'Check-in is only available for venue events'


class NotEventTeamMember(CheckInError):
    status_code = status.HTTP_403_FORBIDDEN
    code = 'FORBIDDEN'
    default_message = 'Unauthorized access to event'


class EventFull(CheckInError):
    code = 'EVENT_FULL'
    default_message = 'Event has reached maximum capacity'


class AlreadyRegistered(CheckInError):
    code = 'ALREADY_REGISTERED'
    default_message = 'User is already registered for this event'


class AlreadyOnTeam(CheckInError):
    code = 'ALREADY_ON_TEAM'
    default_message = 'User is already in the event team'


class AdminNotFound(CheckInError):
    status_code = status.HTTP_404_NOT_FOUND
    code = 'ADMIN_NOT_FOUND'
    default_message = 'Admin not found'


def _code_for(exc):
    if isinstance(exc, exceptions.ValidationError):
        return 'VALIDATION_ERROR'
    if isinstance(exc, (exceptions.NotAuthenticated, exceptions.AuthenticationFailed)):
        return 'NOT_AUTHENTICATED'
    if isinstance(exc, exceptions.PermissionDenied):
        return 'FORBIDDEN'
    if isinstance(exc, (exceptions.NotFound, Http404)):
        return 'NOT_FOUND'
    return getattr(exc, 'default_code', 'error').upper()


def api_exception_handler(exc, context):
    """
    REST_FRAMEWORK['EXCEPTION_HANDLER'].

    Domain errors become `{code, message}` bodies with their own status.
    DRF's errors keep DRF's status and get the same envelope; field errors
    from serializers are kept under `errors`.
    """
    if isinstance(exc, CheckInError):
        view = context.get('view')
        logger.info(f"{exc.code} in {view.__class__.__name__ if view else 'unknown view'}: {exc.message}")
        return Response(exc.as_payload(), status=exc.status_code)

    response = exception_handler(exc, context)
    if response is None:
        return None

    code = _code_for(exc)
    if code == 'VALIDATION_ERROR':
        response.data = {'code': code, 'message': 'Invalid request', 'errors': response.data}
    elif isinstance(response.data, dict) and 'detail' in response.data:
        detail = response.data.pop('detail')
        response.data = {'code': code, 'message': str(detail), **response.data}
    return response
