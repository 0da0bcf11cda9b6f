"""Health check endpoint for container orchestration."""

from django.http import JsonResponse
from django.db import DatabaseError, connection

from .. import conf


def health_check(request):
    """
    Return 200 if the app is running and the database is reachable, 503
    otherwise. Also reports the configured learning modes.
    """
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
    except DatabaseError as e:
        return JsonResponse({"status": "unhealthy", "error": str(e)}, status=503)
    return JsonResponse({"status": "healthy", "modes": list(conf.learning_modes())})
