from django.db import DatabaseError, connection
from django.http import HttpResponse


def _database_answers() -> bool:
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
    except DatabaseError:
        return False
    return True


def healthz(request):
    return HttpResponse("ok", content_type="text/plain")


def readyz(request):
    # Fenix outages only fail individual requests, so readiness tracks the database alone.
    if not _database_answers():
        return HttpResponse("db unavailable", status=503, content_type="text/plain")
    return HttpResponse("ok", content_type="text/plain")
