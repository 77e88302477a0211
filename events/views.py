import logging

from django.core.exceptions import ValidationError
from django.db.models import Q
from django.http import HttpResponse
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from . import roster, services
from .exceptions import CheckInError, EventNotFound, TicketNotFound
from .models import Event, Ticket, Visibility
from .permissions import IsEventTeamMember, has_any_team_role
from .serializers import (
    AttendeeIdsSerializer,
    AttendeeListSerializer,
    CheckInRecordSerializer,
    EventSerializer,
    TeamMemberSerializer,
    TicketCodeSerializer,
    TicketDetailSerializer,
    UserIdSerializer,
)
from .utils import render_ticket_qr

logger = logging.getLogger(__name__)


def _load_event(event_id):
    try:
        return Event.objects.select_related('location').get(event_id=event_id)
    except (Event.DoesNotExist, ValidationError):
        raise EventNotFound()


def _check_team(view, request, event):
    if not IsEventTeamMember().has_object_permission(request, view, event):
        view.permission_denied(request, message=IsEventTeamMember.message)


class EventTeamAPIView(APIView):
    """Base for endpoints restricted to the event's CREATOR/ADMIN team."""
    permission_classes = [IsAuthenticated, IsEventTeamMember]

    def get_event(self, event_id):
        event = _load_event(event_id)
        self.check_object_permissions(self.request, event)
        return event


# ---------------------------------------------------------------------------
# Events and registration
# ---------------------------------------------------------------------------

class EventCreateAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = EventSerializer(data=request.data, context={'request': request})
        serializer.is_valid(raise_exception=True)
        event = serializer.save()
        logger.info(f"Event {event.event_id} created by {request.user.email}")
        return Response({'eventId': event.event_id}, status=status.HTTP_201_CREATED)


class EventDetailAPIView(APIView):
    """
    Public events are visible to every signed-in user, private ones to the
    team and attendees. Only the team can edit.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, event_id):
        event = _load_event(event_id)
        if event.visibility == Visibility.PRIVATE:
            allowed = Event.objects.filter(
                Q(team__user=request.user) | Q(attendees__user=request.user),
                pk=event.pk,
            ).exists()
            if not allowed:
                raise EventNotFound()
        return Response(EventSerializer(event).data)

    def patch(self, request, event_id):
        event = _load_event(event_id)
        _check_team(self, request, event)

        serializer = EventSerializer(event, data=request.data, partial=True, context={'request': request})
        serializer.is_valid(raise_exception=True)
        event = serializer.save()
        logger.info(f"Event {event.event_id} edited by {request.user.email}: {sorted(request.data)}")
        return Response(EventSerializer(event).data)


class UserRoleAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, event_id):
        event = _load_event(event_id)
        return Response({'role': roster.get_user_role(event, request.user)})


class RegisterForEventAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, event_id):
        event = _load_event(event_id)
        attendee = roster.register(event, request.user)
        ticket = getattr(attendee, 'ticket', None) if attendee.is_approved else None
        return Response({
            'attendeeId': attendee.id,
            'isApproved': attendee.is_approved,
            'ticketId': ticket.ticket_id if ticket else None,
        }, status=status.HTTP_201_CREATED)


class RegistrationStatusAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, event_id):
        event = _load_event(event_id)
        return Response(roster.registration_status(event, request.user))


class DeleteEventAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, event_id):
        event = _load_event(event_id)
        roster.delete_event(event, request.user)
        return Response({'message': 'Event deleted successfully'})


# ---------------------------------------------------------------------------
# Ticket verification and check-in
# ---------------------------------------------------------------------------

class VerifyTicketAPIView(APIView):
    """
    Look up a scanned ticket code without changing anything.

    With `?eventId=` the ticket must belong to that event. Without it, callers
    who run no event at all are refused outright, and a ticket of an event the
    caller does not run reads the same as an unknown code.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, ticket_code):
        event_id = request.query_params.get('eventId')
        logger.info(f"Verify request - code: {ticket_code[:6]}..., event: {event_id}")

        try:
            if event_id:
                event = _load_event(event_id)
                _check_team(self, request, event)
                ticket_status = services.verify_ticket(ticket_code, event)
            else:
                if not has_any_team_role(request.user):
                    self.permission_denied(request, message=IsEventTeamMember.message)
                ticket_status = services.verify_ticket(ticket_code)
                if not IsEventTeamMember().has_object_permission(request, self, _load_event(ticket_status.event_id)):
                    raise TicketNotFound()
        except CheckInError as exc:
            return Response({'valid': False, **exc.as_payload()}, status=exc.status_code)

        payload = {
            'valid': True,
            'eventId': ticket_status.event_id,
            'attendeeId': ticket_status.attendee_id,
            'user': {
                'fullName': ticket_status.attendee_name,
                'email': ticket_status.attendee_email,
            },
            'isCheckedIn': ticket_status.is_checked_in,
        }
        if ticket_status.checked_in_at:
            payload['checkInDate'] = ticket_status.checked_in_at
        return Response(payload)


class AttendeeTicketAPIView(EventTeamAPIView):
    def get(self, request, event_id, attendee_id):
        event = self.get_event(event_id)
        ticket_status = services.verify_attendee(event, attendee_id)
        payload = {
            'ticketCode': ticket_status.ticket_code,
            'isCheckedIn': ticket_status.is_checked_in,
        }
        if ticket_status.checked_in_at:
            payload['checkInDate'] = ticket_status.checked_in_at
        return Response(payload)


class CheckInAPIView(EventTeamAPIView):
    def post(self, request, event_id):
        event = self.get_event(event_id)
        serializer = TicketCodeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = services.apply_check_in(event, serializer.validated_data['ticketCode'], operator=request.user)
        return Response({
            'message': f'{result.attendee_name} has been successfully checked in',
            'user': {'fullName': result.attendee_name},
            'checkInDate': result.checked_in_at,
        }, status=status.HTTP_200_OK)


class UncheckInAPIView(EventTeamAPIView):
    def post(self, request, event_id):
        event = self.get_event(event_id)
        serializer = TicketCodeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = services.apply_uncheck_in(event, serializer.validated_data['ticketCode'], operator=request.user)
        return Response({
            'message': f'Check-in reverted for {result.attendee_name}',
            'user': {'fullName': result.attendee_name},
        }, status=status.HTTP_200_OK)


class CheckInListAPIView(EventTeamAPIView):
    def get(self, request, event_id):
        event = self.get_event(event_id)
        records = services.list_check_ins(event)
        return Response(CheckInRecordSerializer(records, many=True).data)


class EventCountsAPIView(EventTeamAPIView):
    def get(self, request, event_id):
        event = self.get_event(event_id)
        counts = services.get_counts(event)
        return Response({
            'eventName': counts.event_name,
            'eventId': counts.event_id,
            'totalAttendees': counts.total_attendees,
            'checkedInCount': counts.checked_in_count,
            'locationType': counts.location_type,
        })


# ---------------------------------------------------------------------------
# Attendee management
# ---------------------------------------------------------------------------

class AttendeeListAPIView(EventTeamAPIView):
    def get(self, request, event_id):
        event = self.get_event(event_id)
        return Response(AttendeeListSerializer(services.list_attendees(event), many=True).data)


class ApproveAttendeesAPIView(EventTeamAPIView):
    def post(self, request, event_id):
        event = self.get_event(event_id)
        serializer = AttendeeIdsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        attendees = roster.approve_attendees(event, serializer.validated_data['attendeeIds'])
        return Response({
            'message': f'{len(attendees)} attendee(s) approved',
            'attendeeIds': [a.id for a in attendees],
        })


class AddAttendeeAPIView(EventTeamAPIView):
    def post(self, request, event_id):
        event = self.get_event(event_id)
        serializer = UserIdSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        attendee = roster.add_attendee(event, serializer.validated_data['userId'])
        return Response({'attendeeId': attendee.id}, status=status.HTTP_201_CREATED)


class RemoveAttendeesAPIView(EventTeamAPIView):
    def post(self, request, event_id):
        event = self.get_event(event_id)
        serializer = AttendeeIdsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        removed = roster.remove_attendees(event, serializer.validated_data['attendeeIds'])
        return Response({'message': f'{removed} attendee(s) removed', 'removed': removed})


# ---------------------------------------------------------------------------
# Ticket page
# ---------------------------------------------------------------------------

class TicketOwnerMixin:
    """Tickets are visible to their holder and to the event team."""

    def get_ticket(self, request, ticket_id):
        try:
            ticket = Ticket.objects.select_related('event__location', 'attendee__user').get(
                ticket_id=ticket_id,
                is_revoked=False,
            )
        except Ticket.DoesNotExist:
            raise TicketNotFound('Ticket not found')

        if ticket.attendee.user_id != request.user.pk and not IsEventTeamMember().has_object_permission(request, self, ticket.event):
            raise TicketNotFound('Ticket not found')
        return ticket


class TicketDetailAPIView(TicketOwnerMixin, APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, ticket_id):
        ticket = self.get_ticket(request, ticket_id)
        return Response(TicketDetailSerializer(ticket).data)


class TicketQRCodeAPIView(TicketOwnerMixin, APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, ticket_id):
        ticket = self.get_ticket(request, ticket_id)
        buffer = render_ticket_qr(ticket)

        response = HttpResponse(content=buffer.getvalue(), content_type='image/png')
        response['Content-Disposition'] = f'inline; filename="ticket_{ticket.ticket_id}.png"'
        response['Cache-Control'] = 'no-cache, no-store, must-revalidate'
        return response


# ---------------------------------------------------------------------------
# Event team
# ---------------------------------------------------------------------------

class TeamListAPIView(EventTeamAPIView):
    def get(self, request, event_id):
        event = self.get_event(event_id)
        return Response(TeamMemberSerializer(roster.list_team(event), many=True).data)


class AddTeamAdminAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, event_id):
        event = _load_event(event_id)
        serializer = UserIdSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        member = roster.add_team_admin(event, request.user, serializer.validated_data['userId'])
        return Response(TeamMemberSerializer(member).data, status=status.HTTP_201_CREATED)


class RemoveTeamAdminAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, event_id):
        event = _load_event(event_id)
        serializer = UserIdSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        roster.remove_team_admin(event, request.user, serializer.validated_data['userId'])
        return Response({'message': 'Admin removed successfully'})
