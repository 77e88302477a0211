from django.db import transaction
from rest_framework import serializers

from . import roster
from .models import Attendee, CheckInRecord, Event, EventTeam, Location, LocationType, TeamRole, Ticket
from .utils import is_well_formed_code


class StrictFieldsMixin:
    """Rejects keys the serializer does not declare."""

    def to_internal_value(self, data):
        if hasattr(data, 'keys'):
            unknown = set(data.keys()) - set(self.fields)
            if unknown:
                raise serializers.ValidationError({key: ['Unknown field.'] for key in sorted(unknown)})
        return super().to_internal_value(data)


class StrictSerializer(StrictFieldsMixin, serializers.Serializer):
    pass


class TicketCodeSerializer(StrictSerializer):
    ticketCode = serializers.CharField(max_length=64)

    def validate_ticketCode(self, value):
        if not is_well_formed_code(value):
            raise serializers.ValidationError("Malformed ticket code.")
        return value


class AttendeeIdsSerializer(StrictSerializer):
    attendeeIds = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)


class UserIdSerializer(StrictSerializer):
    userId = serializers.UUIDField()


class TeamMemberSerializer(serializers.ModelSerializer):
    id = serializers.UUIDField(source='user.user_id', read_only=True)
    name = serializers.CharField(source='user.display_name', read_only=True)
    email = serializers.EmailField(source='user.email', read_only=True)

    class Meta:
        model = EventTeam
        fields = ['id', 'name', 'email', 'role']


class LocationSerializer(serializers.ModelSerializer):
    mainText = serializers.CharField(source='main_text', required=False, allow_null=True, allow_blank=True)
    secondaryText = serializers.CharField(source='secondary_text', required=False, allow_null=True, allow_blank=True)
    additionalDetails = serializers.CharField(source='additional_details', required=False, allow_null=True, allow_blank=True)

    class Meta:
        model = Location
        fields = ['description', 'mainText', 'secondaryText', 'additionalDetails', 'latitude', 'longitude']


class EventSerializer(StrictFieldsMixin, serializers.ModelSerializer):
    eventId = serializers.UUIDField(source='event_id', read_only=True)
    startDate = serializers.DateTimeField(source='start_date')
    endDate = serializers.DateTimeField(source='end_date')
    locationType = serializers.ChoiceField(source='location_type', choices=LocationType.choices, default=LocationType.VENUE)
    location = LocationSerializer(required=False, allow_null=True)
    meetingLink = serializers.URLField(source='meeting_link', required=False, allow_null=True, allow_blank=True)
    requireApproval = serializers.BooleanField(source='require_approval', required=False, default=False)
    capacity = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = Event
        fields = [
            'eventId', 'name', 'description', 'startDate', 'endDate', 'locationType',
            'location', 'meetingLink', 'capacity', 'visibility', 'requireApproval', 'createdAt',
        ]

    def _current(self, attrs, name):
        if name in attrs:
            return attrs[name]
        return getattr(self.instance, name, None)

    def validate(self, attrs):
        # Partial updates are checked against the values already stored.
        start_date = self._current(attrs, 'start_date')
        end_date = self._current(attrs, 'end_date')
        if end_date < start_date:
            raise serializers.ValidationError({'endDate': 'End date must be after the start date.'})

        location_type = self._current(attrs, 'location_type') or LocationType.VENUE
        if location_type == LocationType.VENUE and not self._current(attrs, 'location'):
            raise serializers.ValidationError({'location': 'Venue events need a location.'})

        new_location = attrs.get('location')
        if new_location and getattr(self.instance, 'location', None) is None and not new_location.get('description'):
            raise serializers.ValidationError({'location': {'description': ['This field is required.']}})

        capacity = attrs.get('capacity')
        if self.instance is not None and capacity is not None:
            approved = Attendee.objects.filter(event=self.instance, is_approved=True).count()
            if capacity < approved:
                raise serializers.ValidationError({'capacity': f'{approved} attendees are already approved.'})
        return attrs

    def create(self, validated_data):
        location_data = validated_data.pop('location', None)
        creator = self.context['request'].user

        with transaction.atomic():
            location = Location.objects.create(**location_data) if location_data else None
            event = Event.objects.create(location=location, created_by=creator, **validated_data)
            EventTeam.objects.create(event=event, user=creator, role=TeamRole.CREATOR)
        return event

    def update(self, instance, validated_data):
        was_venue = instance.is_venue
        required_approval = instance.require_approval
        location_given = 'location' in validated_data
        location_data = validated_data.pop('location', None)
        stale_location = None

        with transaction.atomic():
            if location_given:
                if location_data is None:
                    stale_location, instance.location = instance.location, None
                elif instance.location is None:
                    instance.location = Location.objects.create(**location_data)
                else:
                    for attr, value in location_data.items():
                        setattr(instance.location, attr, value)
                    instance.location.save()

            for attr, value in validated_data.items():
                setattr(instance, attr, value)
            instance.save()

            if stale_location is not None:
                stale_location.delete()
            roster.apply_event_changes(instance, was_venue, required_approval)
        return instance


class CheckInRecordSerializer(serializers.ModelSerializer):
    attendeeId = serializers.UUIDField(source='ticket.attendee_id', read_only=True)
    user = serializers.SerializerMethodField()
    checkInDate = serializers.DateTimeField(source='checked_in_at', read_only=True)

    class Meta:
        model = CheckInRecord
        fields = ['id', 'attendeeId', 'user', 'checkInDate']

    def get_user(self, obj):
        user = obj.ticket.attendee.user
        return {'fullName': user.display_name, 'email': user.email}


class AttendeeListSerializer(serializers.ModelSerializer):
    name = serializers.CharField(source='user.display_name', read_only=True)
    email = serializers.EmailField(source='user.email', read_only=True)
    phone = serializers.CharField(source='user.phone_number', read_only=True, allow_null=True)
    isApproved = serializers.BooleanField(source='is_approved', read_only=True)
    registrationDate = serializers.DateTimeField(source='registration_date', read_only=True)
    checkInDate = serializers.SerializerMethodField()

    class Meta:
        model = Attendee
        fields = ['id', 'name', 'email', 'phone', 'isApproved', 'registrationDate', 'checkInDate']

    def get_checkInDate(self, obj):
        ticket = getattr(obj, 'ticket', None)
        if ticket is None or ticket.checked_in_at is None:
            return None
        return serializers.DateTimeField().to_representation(ticket.checked_in_at)


class TicketDetailSerializer(serializers.ModelSerializer):
    ticketId = serializers.UUIDField(source='ticket_id', read_only=True)
    ticketCode = serializers.CharField(source='code', read_only=True)
    isCheckedIn = serializers.BooleanField(source='checked_in', read_only=True)
    event = serializers.SerializerMethodField()
    user = serializers.SerializerMethodField()

    class Meta:
        model = Ticket
        fields = ['ticketId', 'ticketCode', 'isCheckedIn', 'event', 'user']

    def get_event(self, obj):
        event = obj.event
        return {
            'eventId': str(event.event_id),
            'name': event.name,
            'startDate': serializers.DateTimeField().to_representation(event.start_date),
            'endDate': serializers.DateTimeField().to_representation(event.end_date),
            'location': {'mainText': event.location.main_text} if event.location else None,
        }

    def get_user(self, obj):
        user = obj.attendee.user
        return {'fullName': user.display_name, 'email': user.email}
