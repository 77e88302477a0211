"""
URL configuration for checkin_api project.

API routes live under /api/; the Swagger UI is at /swagger/.
"""
from django.contrib import admin

from django.conf import settings
from rest_framework import permissions
from drf_yasg.views import get_schema_view
from drf_yasg import openapi
from django.urls import path, include
from django.http import HttpResponse

# Customize admin site
admin.site.site_header = settings.ADMIN_SITE_HEADER
admin.site.site_title = settings.ADMIN_SITE_TITLE
admin.site.index_title = settings.ADMIN_INDEX_TITLE

# Define the schema view
schema_view = get_schema_view(
   openapi.Info(
      title="Event Check-in API",
      default_version='v1',
      description="Ticket verification, check-in and attendance counts",
   ),
   public=True,
   permission_classes=(permissions.AllowAny,),
)


def home(request):
    return HttpResponse("Event Check-in API")


urlpatterns = [
    path('admin/', admin.site.urls),
    path('', home),
    path('swagger/', schema_view.with_ui('swagger', cache_timeout=0), name='schema-swagger-ui'),
    path('api/auth/', include('accounts.urls')),
    path('api/', include('events.urls')),
]
