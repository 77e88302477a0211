import logging

from django.contrib.auth import get_user_model
from django.db import transaction

from .exceptions import (
    AdminNotFound,
    AlreadyOnTeam,
    AlreadyRegistered,
    AttendeeNotFound,
    EventFull,
    NotEventTeamMember,
    UserNotFound,
)
from .models import Attendee, Event, EventTeam, TeamRole, Ticket

logger = logging.getLogger(__name__)

User = get_user_model()


def get_user_role(event, user):
    if not user or not user.is_authenticated:
        return None
    return EventTeam.objects.filter(event=event, user=user).values_list('role', flat=True).first()


def issue_ticket(attendee):
    """Return the attendee's ticket, creating it on first approval."""
    ticket, created = Ticket.objects.get_or_create(attendee=attendee, defaults={'event_id': attendee.event_id})
    if created:
        logger.info(f"Issued ticket {ticket.ticket_id} to attendee {attendee.id}")
    return ticket


def _lock_event(event):
    return Event.objects.select_for_update().get(pk=event.pk)


def _occupied_seats(event):
    attendees = Attendee.objects.filter(event=event)
    if event.require_approval:
        attendees = attendees.filter(is_approved=True)
    return attendees.count()


def register(event, user):
    """
    Register `user` for `event`.

    Without approval the attendee is approved straight away and, for venue
    events, gets a ticket. Capacity counts approved attendees when approval
    is required, everybody otherwise.
    """
    with transaction.atomic():
        event = _lock_event(event)

        if Attendee.objects.filter(event=event, user=user).exists():
            raise AlreadyRegistered()

        if event.capacity is not None and _occupied_seats(event) >= event.capacity:
            logger.info(f"Registration of {user.email} refused: event {event.event_id} is full")
            raise EventFull()

        attendee = Attendee.objects.create(event=event, user=user, is_approved=not event.require_approval)
        if attendee.is_approved and event.is_venue:
            issue_ticket(attendee)

    logger.info(f"{user.email} registered for event {event.event_id} (approved={attendee.is_approved})")
    return attendee


def registration_status(event, user):
    attendee = Attendee.objects.filter(event=event, user=user).select_related('ticket').first()
    if attendee is None:
        return {'isRegistered': False, 'isApproved': False, 'attendeeId': None, 'ticketId': None}
    ticket = getattr(attendee, 'ticket', None) if attendee.is_approved else None
    return {
        'isRegistered': True,
        'isApproved': attendee.is_approved,
        'attendeeId': attendee.id,
        'ticketId': ticket.ticket_id if ticket else None,
    }


def _attendees_in_event(event, attendee_ids):
    attendee_ids = set(attendee_ids)
    attendees = list(Attendee.objects.filter(event=event, id__in=attendee_ids))
    if len(attendees) != len(attendee_ids):
        raise AttendeeNotFound()
    return attendees


def approve_attendees(event, attendee_ids):
    with transaction.atomic():
        event = _lock_event(event)
        attendees = _attendees_in_event(event, attendee_ids)
        pending = [a for a in attendees if not a.is_approved]

        if event.capacity is not None:
            approved = Attendee.objects.filter(event=event, is_approved=True).count()
            if approved + len(pending) > event.capacity:
                raise EventFull()

        for attendee in pending:
            attendee.is_approved = True
            attendee.save(update_fields=['is_approved'])

        # Re-approving is idempotent; tickets are only ever issued once.
        if event.is_venue:
            for attendee in attendees:
                issue_ticket(attendee)

    logger.info(f"Approved {len(pending)} attendee(s) for event {event.event_id}")
    return attendees


def add_attendee(event, user_id):
    """Organizer adds a user directly; the attendee is approved immediately."""
    try:
        user = User.objects.get(pk=user_id)
    except User.DoesNotExist:
        raise UserNotFound()

    with transaction.atomic():
        if Attendee.objects.filter(event=event, user=user).exists():
            raise AlreadyRegistered()
        attendee = Attendee.objects.create(event=event, user=user, is_approved=True)
        if event.is_venue:
            issue_ticket(attendee)

    logger.info(f"Added {user.email} to event {event.event_id}")
    return attendee


def remove_attendees(event, attendee_ids):
    """Delete attendees along with their tickets and check-in history."""
    attendees = Attendee.objects.filter(event=event, id__in=attendee_ids)
    removed = attendees.count()
    attendees.delete()
    logger.info(f"Removed {removed} attendee(s) from event {event.event_id}")
    return removed


def revoke_tickets(tickets):
    count = Ticket.objects.filter(pk__in=[t.pk for t in tickets]).update(is_revoked=True)
    logger.warning(f"Revoked {count} ticket(s)")
    return count


def _require_creator(event, user, message):
    if not EventTeam.objects.filter(event=event, user=user, role=TeamRole.CREATOR).exists():
        raise NotEventTeamMember(message)


def delete_event(event, user):
    _require_creator(event, user, 'Only the creator can delete the event')

    with transaction.atomic():
        location = event.location
        event_id = event.event_id
        event.delete()
        if location is not None:
            location.delete()

    logger.info(f"Event {event_id} deleted by {user.email}")


def list_team(event):
    return EventTeam.objects.filter(event=event).select_related('user').order_by('-role', 'user__email')


def add_team_admin(event, acting_user, user_id):
    """Only the creator can hand out ADMIN; one team row per user."""
    _require_creator(event, acting_user, 'Only the creator can add admins')
    try:
        user = User.objects.get(pk=user_id)
    except User.DoesNotExist:
        raise UserNotFound()

    with transaction.atomic():
        if EventTeam.objects.filter(event=event, user=user).exists():
            raise AlreadyOnTeam()
        member = EventTeam.objects.create(event=event, user=user, role=TeamRole.ADMIN)

    logger.info(f"{user.email} added as admin of event {event.event_id} by {acting_user.email}")
    return member


def remove_team_admin(event, acting_user, user_id):
    _require_creator(event, acting_user, 'Only the creator can remove admins')
    removed, _ = EventTeam.objects.filter(event=event, user_id=user_id, role=TeamRole.ADMIN).delete()
    if not removed:
        raise AdminNotFound()
    logger.info(f"Admin {user_id} removed from event {event.event_id} by {acting_user.email}")


def apply_event_changes(event, was_venue, required_approval):
    """
    Bring attendees in line with an edited event.

    Switching to a venue issues tickets to everyone already approved, and
    dropping the approval requirement approves whoever was still waiting.
    """
    approval_dropped = required_approval and not event.require_approval
    if approval_dropped:
        approved = Attendee.objects.filter(event=event, is_approved=False).update(is_approved=True)
        if approved:
            logger.info(f"Approved {approved} pending attendee(s) of event {event.event_id} after approval was turned off")

    if event.is_venue and (not was_venue or approval_dropped):
        for attendee in Attendee.objects.filter(event=event, is_approved=True):
            issue_ticket(attendee)
