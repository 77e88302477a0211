import threading
from unittest import mock

import pytest
from django.db import connection

from events import services
from events.exceptions import (
    AlreadyCheckedIn,
    AttendeeNotApproved,
    AttendeeNotFound,
    CheckInUnavailable,
    EventMismatch,
    InvalidTicketCode,
    NotCheckedIn,
    TicketNotFound,
)
from events.models import Attendee, CheckInRecord, LocationType, Ticket, TicketState

pytestmark = pytest.mark.django_db


def live_records(ticket):
    return CheckInRecord.objects.filter(ticket=ticket, voided_at__isnull=True)


class TestVerify:
    def test_reports_fresh_ticket(self, event, ticket):
        status = services.verify_ticket(ticket.code, event)

        assert status.event_id == event.event_id
        assert status.attendee_name == 'Alice Attendee'
        assert status.attendee_email == 'alice@example.com'
        assert status.is_checked_in is False
        assert status.checked_in_at is None

    def test_without_event_returns_owning_event(self, event, ticket):
        assert services.verify_ticket(ticket.code).event_id == event.event_id

    def test_unknown_code(self, event):
        with pytest.raises(TicketNotFound):
            services.verify_ticket('A' * 18, event)

    def test_malformed_code_rejected_before_lookup(self, event):
        with pytest.raises(InvalidTicketCode):
            services.verify_ticket('not a code!', event)

    def test_other_event_is_mismatch(self, other_event, ticket):
        with pytest.raises(EventMismatch):
            services.verify_ticket(ticket.code, other_event)

    def test_revoked_ticket_does_not_verify(self, event, ticket):
        Ticket.objects.filter(pk=ticket.pk).update(is_revoked=True)
        with pytest.raises(TicketNotFound):
            services.verify_ticket(ticket.code, event)

    def test_does_not_change_state(self, event, ticket):
        services.verify_ticket(ticket.code, event)
        ticket.refresh_from_db()
        assert ticket.state == TicketState.ISSUED_NOT_CHECKED_IN
        assert not CheckInRecord.objects.exists()

    def test_after_check_in_reports_same_timestamp(self, event, ticket):
        result = services.apply_check_in(event, ticket.code)
        status = services.verify_ticket(ticket.code, event)

        assert status.is_checked_in is True
        assert status.checked_in_at == result.checked_in_at


class TestVerifyAttendee:
    def test_finds_ticket_by_attendee(self, event, ticket):
        status = services.verify_attendee(event, ticket.attendee_id)
        assert status.ticket_code == ticket.code

    def test_unknown_attendee(self, event):
        with pytest.raises(AttendeeNotFound):
            services.verify_attendee(event, '00000000-0000-0000-0000-000000000000')

    def test_attendee_of_other_event(self, other_event, ticket):
        with pytest.raises(AttendeeNotFound):
            services.verify_attendee(other_event, ticket.attendee_id)

    def test_unapproved_attendee(self, event, make_user):
        attendee = Attendee.objects.create(event=event, user=make_user('pending@example.com'), is_approved=False)
        with pytest.raises(AttendeeNotApproved):
            services.verify_attendee(event, attendee.id)


class TestCheckIn:
    def test_check_in(self, event, ticket, door_staff):
        result = services.apply_check_in(event, ticket.code, operator=door_staff)

        ticket.refresh_from_db()
        assert ticket.checked_in is True
        assert ticket.checked_in_at == result.checked_in_at
        assert ticket.state == TicketState.CHECKED_IN
        assert result.attendee_name == 'Alice Attendee'

        record = live_records(ticket).get()
        assert record.checked_in_at == result.checked_in_at
        assert record.checked_in_by == door_staff

    def test_second_check_in_conflicts_with_first_timestamp(self, event, ticket):
        first = services.apply_check_in(event, ticket.code)

        with pytest.raises(AlreadyCheckedIn) as excinfo:
            services.apply_check_in(event, ticket.code)

        assert excinfo.value.checked_in_at == first.checked_in_at
        assert live_records(ticket).count() == 1

    def test_mismatch_leaves_state_unchanged(self, other_event, ticket):
        with pytest.raises(EventMismatch):
            services.apply_check_in(other_event, ticket.code)

        ticket.refresh_from_db()
        assert ticket.checked_in is False
        assert services.get_counts(other_event).checked_in_count == 0

    def test_online_event_has_no_check_in(self, make_event, make_ticket):
        online = make_event(name='Webinar', location_type=LocationType.ONLINE)
        ticket = make_ticket(online, 'viewer@example.com')

        with pytest.raises(CheckInUnavailable):
            services.apply_check_in(online, ticket.code)

    def test_stale_read_loses_to_committed_check_in(self, event, ticket):
        # Two operators read the ticket before either commits.
        stale = Ticket.objects.select_related('attendee__user').get(pk=ticket.pk)
        services.apply_check_in(event, ticket.code)

        with mock.patch('events.services._resolve_ticket', return_value=stale):
            with pytest.raises(AlreadyCheckedIn):
                services.apply_check_in(event, ticket.code)

        assert services.get_counts(event).checked_in_count == 1
        assert live_records(ticket).count() == 1

    def test_ticket_revoked_between_read_and_write(self, event, ticket):
        stale = Ticket.objects.select_related('attendee__user').get(pk=ticket.pk)
        Ticket.objects.filter(pk=ticket.pk).update(is_revoked=True)

        with mock.patch('events.services._resolve_ticket', return_value=stale):
            with pytest.raises(TicketNotFound):
                services.apply_check_in(event, ticket.code)

        assert not live_records(ticket).exists()


class TestUncheckIn:
    def test_restores_pre_check_in_state(self, event, ticket, door_staff):
        before = services.verify_ticket(ticket.code, event)
        services.apply_check_in(event, ticket.code)

        result = services.apply_uncheck_in(event, ticket.code, operator=door_staff)

        assert result.attendee_name == 'Alice Attendee'
        assert services.verify_ticket(ticket.code, event) == before
        assert not live_records(ticket).exists()

    def test_history_is_voided_not_deleted(self, event, ticket, door_staff):
        services.apply_check_in(event, ticket.code)
        services.apply_uncheck_in(event, ticket.code, operator=door_staff)

        record = CheckInRecord.objects.get(ticket=ticket)
        assert record.voided_at is not None
        assert record.voided_by == door_staff
        assert list(services.list_check_ins(event)) == []

    def test_not_checked_in(self, event, ticket):
        with pytest.raises(NotCheckedIn):
            services.apply_uncheck_in(event, ticket.code)

    def test_check_in_again_after_uncheck(self, event, ticket):
        services.apply_check_in(event, ticket.code)
        services.apply_uncheck_in(event, ticket.code)
        services.apply_check_in(event, ticket.code)

        assert live_records(ticket).count() == 1
        assert CheckInRecord.objects.filter(ticket=ticket).count() == 2

    def test_mismatch(self, event, other_event, ticket):
        services.apply_check_in(event, ticket.code)
        with pytest.raises(EventMismatch):
            services.apply_uncheck_in(other_event, ticket.code)

        ticket.refresh_from_db()
        assert ticket.checked_in is True


class TestCounts:
    def test_three_attendee_scenario(self, event, make_ticket):
        a = make_ticket(event, 'a@example.com', 'A')
        b = make_ticket(event, 'b@example.com', 'B')
        make_ticket(event, 'c@example.com', 'C')

        services.apply_check_in(event, a.code)
        services.apply_check_in(event, b.code)
        counts = services.get_counts(event)
        assert (counts.total_attendees, counts.checked_in_count) == (3, 2)

        services.apply_uncheck_in(event, a.code)
        counts = services.get_counts(event)
        assert (counts.total_attendees, counts.checked_in_count) == (3, 1)

        records = list(services.list_check_ins(event))
        assert [r.ticket_id for r in records] == [b.pk]

    def test_unapproved_attendees_not_counted(self, event, ticket, make_user):
        Attendee.objects.create(event=event, user=make_user('waiting@example.com'), is_approved=False)
        counts = services.get_counts(event)

        assert counts.total_attendees == 1
        assert counts.event_name == event.name
        assert counts.location_type == LocationType.VENUE

    def test_checked_in_flag_matches_live_record(self, event, make_ticket):
        tickets = [make_ticket(event, f'guest{i}@example.com') for i in range(4)]
        services.apply_check_in(event, tickets[0].code)
        services.apply_check_in(event, tickets[1].code)
        services.apply_uncheck_in(event, tickets[1].code)
        services.apply_check_in(event, tickets[2].code)

        for t in Ticket.objects.filter(event=event):
            assert t.checked_in == live_records(t).exists()

    def test_check_ins_newest_first(self, event, make_ticket):
        first = make_ticket(event, 'first@example.com')
        second = make_ticket(event, 'second@example.com')
        services.apply_check_in(event, first.code)
        services.apply_check_in(event, second.code)

        records = list(services.list_check_ins(event))
        assert [r.ticket_id for r in records] == [second.pk, first.pk]


@pytest.mark.django_db(transaction=True)
class TestConcurrentOperators:
    """Several door operators hitting the same ticket at once, on real threads."""

    def run_together(self, workers, action):
        barrier = threading.Barrier(workers)
        outcomes, errors = [], []

        def attempt():
            try:
                barrier.wait(timeout=10)
                action()
                outcomes.append('ok')
            except (AlreadyCheckedIn, NotCheckedIn):
                outcomes.append('conflict')
            except Exception as exc:
                errors.append(exc)
            finally:
                connection.close()

        threads = [threading.Thread(target=attempt) for _ in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert errors == []
        return outcomes

    def test_only_one_check_in_wins(self, event, ticket):
        outcomes = self.run_together(6, lambda: services.apply_check_in(event, ticket.code))

        assert sorted(outcomes) == ['conflict'] * 5 + ['ok']
        assert services.get_counts(event).checked_in_count == 1
        assert live_records(ticket).count() == 1

    def test_only_one_uncheck_in_wins(self, event, ticket):
        services.apply_check_in(event, ticket.code)

        outcomes = self.run_together(4, lambda: services.apply_uncheck_in(event, ticket.code))

        assert sorted(outcomes) == ['conflict'] * 3 + ['ok']
        assert not live_records(ticket).exists()
        assert CheckInRecord.objects.filter(ticket=ticket, voided_at__isnull=False).count() == 1
