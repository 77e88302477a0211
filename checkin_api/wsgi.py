"""
WSGI config for checkin_api project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'checkin_api.settings')

application = get_wsgi_application()
