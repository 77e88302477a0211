from datetime import timedelta

import pytest
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APIClient

from events import roster
from events.models import Attendee, Event, EventTeam, Location, LocationType, TeamRole

User = get_user_model()


@pytest.fixture
def make_user(db):
    def _make_user(email, full_name='', password='s3cure-Passw0rd'):
        return User.objects.create_user(email=email, password=password, full_name=full_name)
    return _make_user


@pytest.fixture
def organizer(make_user):
    return make_user('organizer@example.com', 'Olivia Organizer')


@pytest.fixture
def door_staff(make_user):
    return make_user('door@example.com', 'Dana Door')


@pytest.fixture
def outsider(make_user):
    return make_user('outsider@example.com', 'Oscar Outsider')


@pytest.fixture
def make_event(db, organizer):
    def _make_event(name='Launch Party', location_type=LocationType.VENUE, creator=None, **extra):
        creator = creator or organizer
        start = timezone.now() + timedelta(days=1)
        location = None
        if location_type == LocationType.VENUE:
            location = Location.objects.create(description='Main Hall, 1 Market St', main_text='Main Hall')
        event = Event.objects.create(
            name=name,
            start_date=start,
            end_date=start + timedelta(hours=3),
            location_type=location_type,
            location=location,
            created_by=creator,
            **extra,
        )
        EventTeam.objects.create(event=event, user=creator, role=TeamRole.CREATOR)
        return event
    return _make_event


@pytest.fixture
def event(make_event, door_staff):
    event = make_event()
    EventTeam.objects.create(event=event, user=door_staff, role=TeamRole.ADMIN)
    return event


@pytest.fixture
def other_event(make_event):
    return make_event(name='Other Gathering')


@pytest.fixture
def make_ticket(make_user):
    """Approved attendee with an issued ticket."""
    def _make_ticket(event, email, full_name=''):
        user = make_user(email, full_name)
        attendee = Attendee.objects.create(event=event, user=user, is_approved=True)
        return roster.issue_ticket(attendee)
    return _make_ticket


@pytest.fixture
def ticket(event, make_ticket):
    return make_ticket(event, 'alice@example.com', 'Alice Attendee')


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def staff_client(door_staff):
    client = APIClient()
    client.force_authenticate(user=door_staff)
    return client


@pytest.fixture
def outsider_client(outsider):
    client = APIClient()
    client.force_authenticate(user=outsider)
    return client
