from collections import defaultdict

from django.contrib import admin, messages
from django.urls import reverse
from django.utils.html import format_html

from . import roster, services
from .exceptions import CheckInError
from .models import Attendee, CheckInRecord, Event, EventTeam, Location, Ticket


class EventTeamInline(admin.TabularInline):
    model = EventTeam
    extra = 0
    fields = ('user', 'role')
    autocomplete_fields = ('user',)


class AttendeeInline(admin.TabularInline):
    model = Attendee
    extra = 0
    readonly_fields = ('id', 'registration_date', 'is_approved')
    fields = ('user', 'is_approved', 'registration_date')
    show_change_link = True

    def has_delete_permission(self, request, obj=None):
        return False

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related('user')


@admin.register(Location)
class LocationAdmin(admin.ModelAdmin):
    list_display = ('description', 'main_text', 'latitude', 'longitude')
    search_fields = ('description', 'main_text', 'secondary_text')


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ('name', 'event_date', 'location_type', 'visibility', 'attendance_display', 'created_by')
    list_filter = ('location_type', 'visibility', 'require_approval', 'start_date')
    search_fields = ('name', 'description', 'location__main_text')
    readonly_fields = ('event_id', 'created_at', 'attendance_detail')

    fieldsets = (
        ('Event Details', {
            'fields': ('event_id', 'name', 'description', 'location_type', 'location', 'meeting_link')
        }),
        ('Timing', {
            'fields': ('start_date', 'end_date')
        }),
        ('Registration', {
            'fields': ('capacity', 'visibility', 'require_approval')
        }),
        ('Status', {
            'fields': ('created_by', 'created_at', 'attendance_detail')
        }),
    )

    inlines = [EventTeamInline, AttendeeInline]

    def event_date(self, obj):
        return obj.start_date.strftime('%d %b %Y %I:%M %p')
    event_date.short_description = 'Starts'

    def attendance_display(self, obj):
        counts = services.get_counts(obj)
        return f"{counts.checked_in_count} / {counts.total_attendees}"
    attendance_display.short_description = 'Checked in'

    def attendance_detail(self, obj):
        if obj.pk is None:
            return "-"
        counts = services.get_counts(obj)
        return format_html(
            '<div style="margin-top:5px;">'
            '<span style="font-weight:bold;">Approved attendees:</span> {}<br>'
            '<span style="font-weight:bold;">Checked in:</span> {}'
            '</div>',
            counts.total_attendees, counts.checked_in_count
        )
    attendance_detail.short_description = 'Attendance'

    def save_model(self, request, obj, form, change):
        if not change:
            obj.created_by = request.user
        super().save_model(request, obj, form, change)


@admin.register(Attendee)
class AttendeeAdmin(admin.ModelAdmin):
    list_display = ('display_id', 'event_link', 'user', 'is_approved', 'registration_date', 'ticket_status')
    list_filter = ('is_approved', 'registration_date', 'event__name')
    search_fields = ('user__email', 'user__full_name', 'event__name')
    readonly_fields = ('id', 'registration_date', 'is_approved')

    actions = ['approve_selected']

    def display_id(self, obj):
        return str(obj.id)[:8] + '...'
    display_id.short_description = 'Attendee ID'

    def event_link(self, obj):
        url = reverse('admin:events_event_change', args=[obj.event.pk])
        return format_html('<a href="{}">{}</a>', url, obj.event.name)
    event_link.short_description = 'Event'

    def ticket_status(self, obj):
        ticket = getattr(obj, 'ticket', None)
        if ticket is None:
            return "No ticket"
        if ticket.checked_in:
            return format_html('<span style="color:green">Checked in</span>')
        return format_html('<span style="color:orange">Not checked in</span>')
    ticket_status.short_description = 'Ticket'

    def approve_selected(self, request, queryset):
        by_event = defaultdict(list)
        for attendee in queryset.select_related('event'):
            by_event[attendee.event].append(attendee.id)

        approved = 0
        for event, attendee_ids in by_event.items():
            try:
                approved += len(roster.approve_attendees(event, attendee_ids))
            except CheckInError as exc:
                self.message_user(request, f"{event.name}: {exc.message}", level=messages.ERROR)
        self.message_user(request, f"{approved} attendees have been approved.")
    approve_selected.short_description = "Approve selected attendees"

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('event', 'user', 'ticket')


@admin.register(Ticket)
class TicketAdmin(admin.ModelAdmin):
    list_display = ('code', 'event', 'holder', 'state_display', 'checked_in_at', 'is_revoked')
    list_filter = ('checked_in', 'is_revoked', 'event__name')
    search_fields = ('code', 'attendee__user__email', 'attendee__user__full_name')
    # Check-in fields are only written through the check-in services.
    readonly_fields = ('ticket_id', 'code', 'attendee', 'event', 'checked_in', 'checked_in_at', 'is_revoked', 'issued_at')

    actions = ['revoke_tickets', 'undo_check_in']

    def holder(self, obj):
        return obj.attendee.user.display_name
    holder.short_description = 'Holder'

    def state_display(self, obj):
        color = 'green' if obj.checked_in else 'gray'
        return format_html('<span style="color:{}">{}</span>', color, obj.get_state_display())
    state_display.short_description = 'State'

    def revoke_tickets(self, request, queryset):
        count = roster.revoke_tickets(queryset)
        self.message_user(request, f"{count} tickets have been revoked.")
    revoke_tickets.short_description = "Revoke selected tickets"

    def undo_check_in(self, request, queryset):
        reverted = 0
        for ticket in queryset.filter(checked_in=True).select_related('event'):
            try:
                services.apply_uncheck_in(ticket.event, ticket.code, operator=request.user)
                reverted += 1
            except CheckInError as exc:
                self.message_user(request, f"{ticket.code}: {exc.message}", level=messages.WARNING)
        self.message_user(request, f"Check-in reverted for {reverted} tickets.")
    undo_check_in.short_description = "Undo check-in for selected tickets"

    def has_add_permission(self, request):
        return False

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('event', 'attendee__user')


@admin.register(CheckInRecord)
class CheckInRecordAdmin(admin.ModelAdmin):
    list_display = ('ticket', 'checked_in_at', 'checked_in_by', 'voided_at', 'voided_by')
    list_filter = ('checked_in_at', 'voided_at')
    search_fields = ('ticket__code', 'ticket__attendee__user__email')

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('ticket', 'checked_in_by', 'voided_by')
