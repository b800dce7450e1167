"""
WSGI config for involuck project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'involuck.settings')

application = get_wsgi_application()
