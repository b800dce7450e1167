import time

from django.conf import settings
from django.db import connection, DatabaseError
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, authentication_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from core.logging_config import get_logger

logger = get_logger(__name__)

VERSION = '1.0.0'


def _database_is_healthy():
    try:
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1')
            cursor.fetchone()
    except DatabaseError:
        logger.error("Database health check failed", exc_info=True)
        return False
    return True


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def health(request):
    """Basic liveness check."""
    return Response({
        'status': 'ok',
        'timestamp': timezone.now().isoformat(),
        'environment': getattr(settings, 'ENVIRONMENT', 'development'),
        'version': VERSION,
    })


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def health_detailed(request):
    """Health check including the database connection."""
    started = time.monotonic()
    database_ok = _database_is_healthy()
    response_time_ms = round((time.monotonic() - started) * 1000, 2)

    return Response(
        {
            'status': 'ok' if database_ok else 'degraded',
            'timestamp': timezone.now().isoformat(),
            'environment': getattr(settings, 'ENVIRONMENT', 'development'),
            'version': VERSION,
            'response_time_ms': response_time_ms,
            'services': {
                'database': {'status': 'ok' if database_ok else 'error'},
            },
        },
        status=status.HTTP_200_OK if database_ok else status.HTTP_503_SERVICE_UNAVAILABLE,
    )
