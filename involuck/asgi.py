"""
ASGI config for involuck project.
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'involuck.settings')

application = get_asgi_application()
