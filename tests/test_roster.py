import pytest

from events import roster
from events.exceptions import (
    AdminNotFound,
    AlreadyOnTeam,
    AlreadyRegistered,
    AttendeeNotFound,
    EventFull,
    NotEventTeamMember,
    UserNotFound,
)
from events.models import Attendee, CheckInRecord, Event, EventTeam, Location, LocationType, TeamRole, Ticket
from events import services

pytestmark = pytest.mark.django_db


class TestRegister:
    def test_open_venue_event_issues_ticket(self, event, make_user):
        attendee = roster.register(event, make_user('guest@example.com'))

        assert attendee.is_approved is True
        ticket = Ticket.objects.get(attendee=attendee)
        assert ticket.event_id == event.event_id
        assert len(ticket.code) == 18
        assert ticket.checked_in is False

    def test_approval_required_waits_without_ticket(self, make_event, make_user):
        event = make_event(require_approval=True)
        attendee = roster.register(event, make_user('guest@example.com'))

        assert attendee.is_approved is False
        assert not Ticket.objects.filter(attendee=attendee).exists()

    def test_online_event_gets_no_ticket(self, make_event, make_user):
        event = make_event(location_type=LocationType.ONLINE, meeting_link='https://meet.example.com/x')
        attendee = roster.register(event, make_user('viewer@example.com'))

        assert attendee.is_approved is True
        assert not Ticket.objects.filter(attendee=attendee).exists()

    def test_twice_is_rejected(self, event, make_user):
        user = make_user('guest@example.com')
        roster.register(event, user)
        with pytest.raises(AlreadyRegistered):
            roster.register(event, user)

    def test_capacity_counts_everyone_without_approval(self, make_event, make_user):
        event = make_event(capacity=1)
        roster.register(event, make_user('one@example.com'))
        with pytest.raises(EventFull):
            roster.register(event, make_user('two@example.com'))

    def test_capacity_counts_only_approved_with_approval(self, make_event, make_user):
        event = make_event(capacity=1, require_approval=True)
        roster.register(event, make_user('one@example.com'))
        # Nobody approved yet, so a second request still fits.
        roster.register(event, make_user('two@example.com'))
        assert Attendee.objects.filter(event=event).count() == 2

    def test_registration_status(self, event, make_user):
        user = make_user('guest@example.com')
        assert roster.registration_status(event, user)['isRegistered'] is False

        attendee = roster.register(event, user)
        status = roster.registration_status(event, user)
        assert status['isRegistered'] is True
        assert status['attendeeId'] == attendee.id
        assert status['ticketId'] == attendee.ticket.ticket_id


class TestApproval:
    def test_approve_issues_tickets(self, make_event, make_user):
        event = make_event(require_approval=True)
        a = roster.register(event, make_user('a@example.com'))
        b = roster.register(event, make_user('b@example.com'))

        roster.approve_attendees(event, [a.id, b.id])

        assert Attendee.objects.filter(event=event, is_approved=True).count() == 2
        assert Ticket.objects.filter(event=event).count() == 2

    def test_approving_twice_keeps_the_same_ticket(self, make_event, make_user):
        event = make_event(require_approval=True)
        a = roster.register(event, make_user('a@example.com'))
        roster.approve_attendees(event, [a.id])
        code = Ticket.objects.get(attendee=a).code

        roster.approve_attendees(event, [a.id])
        assert Ticket.objects.get(attendee=a).code == code

    def test_approval_respects_capacity(self, make_event, make_user):
        event = make_event(require_approval=True, capacity=1)
        a = roster.register(event, make_user('a@example.com'))
        b = roster.register(event, make_user('b@example.com'))

        with pytest.raises(EventFull):
            roster.approve_attendees(event, [a.id, b.id])
        assert not Attendee.objects.filter(event=event, is_approved=True).exists()

    def test_unknown_attendee(self, event, other_event, make_user):
        foreign = roster.register(other_event, make_user('a@example.com'))
        with pytest.raises(AttendeeNotFound):
            roster.approve_attendees(event, [foreign.id])


class TestManageAttendees:
    def test_add_attendee(self, event, make_user):
        user = make_user('vip@example.com')
        attendee = roster.add_attendee(event, user.pk)

        assert attendee.is_approved is True
        assert Ticket.objects.filter(attendee=attendee).exists()

    def test_add_unknown_user(self, event):
        with pytest.raises(UserNotFound):
            roster.add_attendee(event, '00000000-0000-0000-0000-000000000000')

    def test_add_existing_attendee(self, event, ticket):
        with pytest.raises(AlreadyRegistered):
            roster.add_attendee(event, ticket.attendee.user_id)

    def test_remove_cascades_ticket_and_history(self, event, ticket):
        services.apply_check_in(event, ticket.code)

        assert roster.remove_attendees(event, [ticket.attendee_id]) == 1
        assert not Ticket.objects.filter(pk=ticket.pk).exists()
        assert not CheckInRecord.objects.exists()
        assert services.get_counts(event).checked_in_count == 0

    def test_revoke(self, event, ticket):
        assert roster.revoke_tickets([ticket]) == 1
        ticket.refresh_from_db()
        assert ticket.is_revoked is True


class TestTeam:
    def test_user_role(self, event, organizer, door_staff, outsider):
        assert roster.get_user_role(event, organizer) == TeamRole.CREATOR
        assert roster.get_user_role(event, door_staff) == TeamRole.ADMIN
        assert roster.get_user_role(event, outsider) is None

    def test_delete_event_by_creator(self, event, ticket, organizer):
        location_id = event.location_id
        roster.delete_event(event, organizer)

        assert not Event.objects.filter(pk=event.pk).exists()
        assert not Location.objects.filter(pk=location_id).exists()
        assert not Ticket.objects.exists()
        assert not EventTeam.objects.exists()

    def test_admin_cannot_delete_event(self, event, door_staff):
        with pytest.raises(NotEventTeamMember):
            roster.delete_event(event, door_staff)
        assert Event.objects.filter(pk=event.pk).exists()

    def test_creator_adds_admin(self, event, organizer, outsider):
        member = roster.add_team_admin(event, organizer, outsider.pk)

        assert member.role == TeamRole.ADMIN
        assert roster.get_user_role(event, outsider) == TeamRole.ADMIN

    def test_admin_cannot_add_admin(self, event, door_staff, outsider):
        with pytest.raises(NotEventTeamMember) as excinfo:
            roster.add_team_admin(event, door_staff, outsider.pk)

        assert excinfo.value.message == 'Only the creator can add admins'
        assert roster.get_user_role(event, outsider) is None

    def test_add_team_member_twice(self, event, organizer, door_staff):
        with pytest.raises(AlreadyOnTeam):
            roster.add_team_admin(event, organizer, door_staff.pk)
        with pytest.raises(AlreadyOnTeam):
            roster.add_team_admin(event, organizer, organizer.pk)

    def test_add_unknown_user_to_team(self, event, organizer):
        with pytest.raises(UserNotFound):
            roster.add_team_admin(event, organizer, '00000000-0000-0000-0000-000000000000')

    def test_remove_admin(self, event, organizer, door_staff):
        roster.remove_team_admin(event, organizer, door_staff.pk)
        assert roster.get_user_role(event, door_staff) is None

    def test_creator_cannot_be_removed_as_admin(self, event, organizer):
        with pytest.raises(AdminNotFound):
            roster.remove_team_admin(event, organizer, organizer.pk)
        assert roster.get_user_role(event, organizer) == TeamRole.CREATOR

    def test_remove_non_admin(self, event, organizer, outsider):
        with pytest.raises(AdminNotFound):
            roster.remove_team_admin(event, organizer, outsider.pk)

    def test_admin_cannot_remove_admin(self, event, door_staff, make_user, organizer):
        other = make_user('second@example.com')
        roster.add_team_admin(event, organizer, other.pk)

        with pytest.raises(NotEventTeamMember):
            roster.remove_team_admin(event, door_staff, other.pk)

    def test_list_team_puts_creator_first(self, event, organizer, door_staff):
        assert [m.user for m in roster.list_team(event)] == [organizer, door_staff]


class TestEventChanges:
    def test_switch_to_venue_issues_tickets(self, make_event, make_user):
        event = make_event(location_type=LocationType.ONLINE, meeting_link='https://meet.example.com/x')
        attendee = roster.register(event, make_user('viewer@example.com'))
        assert not Ticket.objects.filter(attendee=attendee).exists()

        event.location_type = LocationType.VENUE
        event.location = Location.objects.create(description='Pier 4')
        event.save()
        roster.apply_event_changes(event, was_venue=False, required_approval=False)

        assert Ticket.objects.filter(attendee=attendee, event=event).exists()

    def test_dropping_approval_approves_and_tickets(self, make_event, make_user):
        event = make_event(require_approval=True)
        waiting = roster.register(event, make_user('waiting@example.com'))

        event.require_approval = False
        event.save()
        roster.apply_event_changes(event, was_venue=True, required_approval=True)

        waiting.refresh_from_db()
        assert waiting.is_approved is True
        assert Ticket.objects.filter(attendee=waiting).exists()

    def test_unrelated_edit_leaves_pending_alone(self, make_event, make_user):
        event = make_event(require_approval=True)
        waiting = roster.register(event, make_user('waiting@example.com'))

        event.name = 'Renamed'
        event.save()
        roster.apply_event_changes(event, was_venue=True, required_approval=True)

        waiting.refresh_from_db()
        assert waiting.is_approved is False
        assert not Ticket.objects.filter(attendee=waiting).exists()
