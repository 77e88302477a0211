from rest_framework.permissions import BasePermission

from .models import Event, EventTeam, TeamRole


class IsEventTeamMember(BasePermission):
    """Object permission: caller holds one of `allowed_roles` on the event."""
    message = 'Unauthorized access to event'
    allowed_roles = (TeamRole.CREATOR, TeamRole.ADMIN)

    def has_object_permission(self, request, view, obj):
        event = obj if isinstance(obj, Event) else getattr(obj, 'event', None)
        if event is None or not request.user or not request.user.is_authenticated:
            return False
        return EventTeam.objects.filter(
            event=event,
            user=request.user,
            role__in=self.allowed_roles,
        ).exists()


def has_any_team_role(user):
    """True when the user runs at least one event."""
    return EventTeam.objects.filter(user=user, role__in=IsEventTeamMember.allowed_roles).exists()
