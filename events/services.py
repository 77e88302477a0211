"""
Ticket verification, check-in transitions and attendance counts.

Every change to a ticket's check-in state goes through apply_check_in or
apply_uncheck_in. Each is a single conditional UPDATE whose WHERE clause is
the transition guard, so two door operators scanning the same ticket at the
same moment cannot both succeed.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from .exceptions import (
    AlreadyCheckedIn,
    AttendeeNotApproved,
    AttendeeNotFound,
    CheckInUnavailable,
    EventMismatch,
    InvalidTicketCode,
    NotCheckedIn,
    TicketNotFound,
)
from .models import Attendee, CheckInRecord, Event, LocationType, Ticket
from .utils import is_well_formed_code

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TicketStatus:
    attendee_id: UUID
    attendee_name: str
    attendee_email: str
    ticket_code: str
    event_id: UUID
    is_checked_in: bool
    checked_in_at: Optional[datetime] = None


@dataclass(frozen=True)
class CheckInResult:
    attendee_name: str
    ticket_code: str
    checked_in_at: Optional[datetime] = None


@dataclass(frozen=True)
class EventCounts:
    event_id: UUID
    event_name: str
    total_attendees: int
    checked_in_count: int
    location_type: str


def _status_for(ticket: Ticket) -> TicketStatus:
    user = ticket.attendee.user
    return TicketStatus(
        attendee_id=ticket.attendee_id,
        attendee_name=user.display_name,
        attendee_email=user.email,
        ticket_code=ticket.code,
        event_id=ticket.event_id,
        is_checked_in=ticket.checked_in,
        checked_in_at=ticket.checked_in_at,
    )


def _resolve_ticket(code: str, event: Optional[Event] = None) -> Ticket:
    if not is_well_formed_code(code):
        raise InvalidTicketCode()

    try:
        ticket = Ticket.objects.select_related('attendee__user').get(
            code=code,
            is_revoked=False,
            attendee__is_approved=True,
        )
    except Ticket.DoesNotExist:
        raise TicketNotFound()

    if event is not None and ticket.event_id != event.event_id:
        logger.warning(f"Ticket {code} belongs to event {ticket.event_id}, presented at {event.event_id}")
        raise EventMismatch()
    return ticket


def _ensure_check_in_available(event: Event):
    if event.location_type != LocationType.VENUE:
        raise CheckInUnavailable()


def verify_ticket(code: str, event: Optional[Event] = None) -> TicketStatus:
    """Read-only lookup of a scanned code. Never changes state."""
    return _status_for(_resolve_ticket(code, event))


def verify_attendee(event: Event, attendee_id) -> TicketStatus:
    """Manual lookup from the roster, for attendees whose QR will not scan."""
    try:
        attendee = Attendee.objects.select_related('user').get(pk=attendee_id, event=event)
    except (Attendee.DoesNotExist, ValidationError):
        raise AttendeeNotFound()

    if not attendee.is_approved:
        raise AttendeeNotApproved()

    ticket = Ticket.objects.select_related('attendee__user').filter(attendee=attendee, is_revoked=False).first()
    if ticket is None:
        raise AttendeeNotApproved()
    return _status_for(ticket)


def apply_check_in(event: Event, code: str, operator=None) -> CheckInResult:
    _ensure_check_in_available(event)
    ticket = _resolve_ticket(code, event)
    operator = operator if operator is not None and operator.is_authenticated else None
    now = timezone.now()

    with transaction.atomic():
        updated = Ticket.objects.filter(
            pk=ticket.pk,
            checked_in=False,
            is_revoked=False,
        ).update(checked_in=True, checked_in_at=now)

        if not updated:
            current = Ticket.objects.filter(pk=ticket.pk).values('checked_in_at', 'is_revoked').first()
            if current is None or current['is_revoked']:
                raise TicketNotFound()
            logger.info(f"Refused check-in of ticket {code}: already checked in at {current['checked_in_at']}")
            raise AlreadyCheckedIn(checked_in_at=current['checked_in_at'])

        CheckInRecord.objects.create(ticket=ticket, checked_in_at=now, checked_in_by=operator)

    logger.info(f"Checked in {ticket.attendee.user.email} to event {event.event_id} (ticket {code})")
    return CheckInResult(
        attendee_name=ticket.attendee.user.display_name,
        ticket_code=ticket.code,
        checked_in_at=now,
    )


def apply_uncheck_in(event: Event, code: str, operator=None) -> CheckInResult:
    _ensure_check_in_available(event)
    ticket = _resolve_ticket(code, event)
    operator = operator if operator is not None and operator.is_authenticated else None
    now = timezone.now()

    with transaction.atomic():
        updated = Ticket.objects.filter(
            pk=ticket.pk,
            checked_in=True,
        ).update(checked_in=False, checked_in_at=None)

        if not updated:
            logger.info(f"Refused uncheck-in of ticket {code}: not checked in")
            raise NotCheckedIn()

        CheckInRecord.objects.filter(ticket=ticket, voided_at__isnull=True).update(
            voided_at=now,
            voided_by=operator,
        )

    logger.info(f"Reverted check-in of {ticket.attendee.user.email} for event {event.event_id} (ticket {code})")
    return CheckInResult(attendee_name=ticket.attendee.user.display_name, ticket_code=ticket.code)


def get_counts(event: Event) -> EventCounts:
    # Recomputed on every call; no cached counters to drift.
    return EventCounts(
        event_id=event.event_id,
        event_name=event.name,
        total_attendees=Attendee.objects.filter(event=event, is_approved=True).count(),
        checked_in_count=Ticket.objects.filter(event=event, checked_in=True).count(),
        location_type=event.location_type,
    )


def list_check_ins(event: Event):
    """Live check-in history, newest first."""
    return (
        CheckInRecord.objects
        .filter(ticket__event=event, voided_at__isnull=True)
        .select_related('ticket__attendee__user')
        .order_by('-checked_in_at')
    )


def list_attendees(event: Event):
    return (
        Attendee.objects
        .filter(event=event)
        .select_related('user', 'ticket')
        .order_by('-registration_date')
    )
