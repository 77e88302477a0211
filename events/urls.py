from django.urls import path

from .views import (
    AddAttendeeAPIView,
    AddTeamAdminAPIView,
    ApproveAttendeesAPIView,
    AttendeeListAPIView,
    AttendeeTicketAPIView,
    CheckInAPIView,
    CheckInListAPIView,
    DeleteEventAPIView,
    EventCountsAPIView,
    EventCreateAPIView,
    EventDetailAPIView,
    RegisterForEventAPIView,
    RegistrationStatusAPIView,
    RemoveAttendeesAPIView,
    RemoveTeamAdminAPIView,
    TeamListAPIView,
    TicketDetailAPIView,
    TicketQRCodeAPIView,
    UncheckInAPIView,
    UserRoleAPIView,
    VerifyTicketAPIView,
)

urlpatterns = [
    # events
    path('event/create', EventCreateAPIView.as_view(), name='event-create'),
    path('event/<uuid:event_id>', EventDetailAPIView.as_view(), name='event-detail'),
    path('event/<uuid:event_id>/userRole', UserRoleAPIView.as_view(), name='event-user-role'),
    path('event/<uuid:event_id>/register', RegisterForEventAPIView.as_view(), name='event-register'),
    path('event/<uuid:event_id>/registration-status', RegistrationStatusAPIView.as_view(), name='event-registration-status'),
    path('settings/<uuid:event_id>/delete', DeleteEventAPIView.as_view(), name='event-delete'),
    path('settings/<uuid:event_id>/team', TeamListAPIView.as_view(), name='event-team'),
    path('settings/<uuid:event_id>/admins/add', AddTeamAdminAPIView.as_view(), name='event-admin-add'),
    path('settings/<uuid:event_id>/admins/remove', RemoveTeamAdminAPIView.as_view(), name='event-admin-remove'),

    # check-in
    path('ticket/verify/<str:ticket_code>', VerifyTicketAPIView.as_view(), name='ticket-verify'),
    path('event/<uuid:event_id>/attendee/<uuid:attendee_id>/ticket', AttendeeTicketAPIView.as_view(), name='attendee-ticket'),
    path('event/<uuid:event_id>/check-in', CheckInAPIView.as_view(), name='event-check-in'),
    path('event/<uuid:event_id>/uncheck-in', UncheckInAPIView.as_view(), name='event-uncheck-in'),
    path('event/<uuid:event_id>/check-ins', CheckInListAPIView.as_view(), name='event-check-ins'),
    path('event/<uuid:event_id>/counts', EventCountsAPIView.as_view(), name='event-counts'),

    # attendees
    path('event/<uuid:event_id>/attendees', AttendeeListAPIView.as_view(), name='event-attendees'),
    path('event/<uuid:event_id>/attendees/add', AddAttendeeAPIView.as_view(), name='event-attendee-add'),
    path('event/<uuid:event_id>/approve-attendees', ApproveAttendeesAPIView.as_view(), name='event-approve-attendees'),
    path('event/<uuid:event_id>/remove-attendees', RemoveAttendeesAPIView.as_view(), name='event-remove-attendees'),

    # tickets
    path('ticket/<uuid:ticket_id>', TicketDetailAPIView.as_view(), name='ticket-detail'),
    path('ticket/<uuid:ticket_id>/qr.png', TicketQRCodeAPIView.as_view(), name='ticket-qr'),
]
