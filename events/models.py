from django.conf import settings
from django.db import models
from django.db.models import F, Q
import uuid

from .utils import generate_ticket_code


class LocationType(models.TextChoices):
    VENUE = 'VENUE', 'Venue'
    ONLINE = 'ONLINE', 'Online'


class Visibility(models.TextChoices):
    PUBLIC = 'PUBLIC', 'Public'
    PRIVATE = 'PRIVATE', 'Private'


class TeamRole(models.TextChoices):
    CREATOR = 'CREATOR', 'Creator'
    ADMIN = 'ADMIN', 'Admin'


class TicketState(models.TextChoices):
    ISSUED_NOT_CHECKED_IN = 'ISSUED_NOT_CHECKED_IN', 'Not checked in'
    CHECKED_IN = 'CHECKED_IN', 'Checked in'


class Location(models.Model):
    description = models.CharField(max_length=255)
    main_text = models.CharField(max_length=255, blank=True, null=True)
    secondary_text = models.CharField(max_length=255, blank=True, null=True)
    additional_details = models.TextField(blank=True, null=True)
    latitude = models.FloatField(blank=True, null=True)
    longitude = models.FloatField(blank=True, null=True)

    def __str__(self):
        return self.main_text or self.description


class Event(models.Model):
    event_id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name="created_events")
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    start_date = models.DateTimeField()
    end_date = models.DateTimeField()
    location_type = models.CharField(max_length=10, choices=LocationType.choices, default=LocationType.VENUE)
    location = models.OneToOneField(Location, on_delete=models.SET_NULL, null=True, blank=True, related_name="event")
    meeting_link = models.URLField(blank=True, null=True)
    capacity = models.PositiveIntegerField(blank=True, null=True, help_text="Upper bound on approved attendees")
    visibility = models.CharField(max_length=10, choices=Visibility.choices, default=Visibility.PUBLIC)
    require_approval = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-start_date']
        constraints = [
            models.CheckConstraint(condition=Q(end_date__gte=F('start_date')), name='event_ends_after_start'),
            models.CheckConstraint(condition=Q(capacity__isnull=True) | Q(capacity__gt=0), name='event_capacity_positive'),
        ]

    def __str__(self):
        return self.name

    @property
    def is_venue(self):
        return self.location_type == LocationType.VENUE


class EventTeam(models.Model):
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="team")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="event_roles")
    role = models.CharField(max_length=10, choices=TeamRole.choices)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['event', 'user'], name='unique_team_member_per_event'),
        ]

    def __str__(self):
        return f"{self.user} - {self.role} of {self.event}"


class Attendee(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="attendees")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="registrations")
    is_approved = models.BooleanField(default=False)
    registration_date = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-registration_date']
        constraints = [
            models.UniqueConstraint(fields=['event', 'user'], name='unique_attendee_per_event'),
        ]

    def __str__(self):
        return f"{self.user} @ {self.event}"


class Ticket(models.Model):
    """
    Entry ticket bound one-to-one to an approved attendee.

    `code` is what the QR code carries. It never changes once issued; the
    check-in flag and timestamp are only written by the check-in services.
    """
    ticket_id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    attendee = models.OneToOneField(Attendee, on_delete=models.CASCADE, related_name="ticket")
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="tickets")
    code = models.CharField(max_length=64, unique=True, default=generate_ticket_code, editable=False)
    checked_in = models.BooleanField(default=False)
    checked_in_at = models.DateTimeField(blank=True, null=True)
    is_revoked = models.BooleanField(default=False)
    issued_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['event', 'checked_in'], name='ticket_event_checked_in_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(checked_in=True, checked_in_at__isnull=False)
                    | Q(checked_in=False, checked_in_at__isnull=True)
                ),
                name='ticket_check_in_timestamp_matches_flag',
            ),
        ]

    def __str__(self):
        return f"Ticket {self.code} ({self.get_state_display()})"

    @property
    def state(self):
        if self.checked_in:
            return TicketState.CHECKED_IN
        return TicketState.ISSUED_NOT_CHECKED_IN

    def get_state_display(self):
        return TicketState(self.state).label

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._issued_code = instance.__dict__.get('code')
        return instance

    def save(self, *args, **kwargs):
        issued_code = getattr(self, '_issued_code', None)
        if issued_code is not None and issued_code != self.code:
            raise ValueError("Ticket codes are immutable once issued")
        super().save(*args, **kwargs)
        self._issued_code = self.code


class CheckInRecord(models.Model):
    """History of check-ins. Uncheck-in voids the live row instead of deleting it."""
    ticket = models.ForeignKey(Ticket, on_delete=models.CASCADE, related_name="check_ins")
    checked_in_at = models.DateTimeField()
    checked_in_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    voided_at = models.DateTimeField(blank=True, null=True)
    voided_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")

    class Meta:
        ordering = ['-checked_in_at']
        constraints = [
            models.UniqueConstraint(
                fields=['ticket'],
                condition=Q(voided_at__isnull=True),
                name='one_live_check_in_per_ticket',
            ),
        ]

    def __str__(self):
        return f"{self.ticket.code} at {self.checked_in_at:%Y-%m-%d %H:%M}"

    @property
    def is_live(self):
        return self.voided_at is None
