from __future__ import annotations

import logging

from django.http import HttpRequest, HttpResponse, JsonResponse
from django.views.decorators.csrf import ensure_csrf_cookie
from django.views.decorators.http import require_GET, require_POST

from core.admins import is_admin, is_setup
from core.apps import core_config
from core.eligibility import ElectionUser, effective_degree_entries
from core.errors import BadInputError
from core.nominations import revalidate_pending_nominations
from core.views_utils import api_view, parse_json_body, session_user, store_session_user

logger = logging.getLogger(__name__)


def _whoami_payload(user: ElectionUser) -> dict[str, object]:
    return {
        **user.to_session(),
        "is_admin": is_admin(user.username),
    }


# The frontend loads this first; it carries the csrftoken cookie for the X-CSRFToken header.
@ensure_csrf_cookie
@require_GET
@api_view
def app_config(request: HttpRequest) -> HttpResponse:
    return JsonResponse(
        {
            "fenix": core_config().fenix_service.config.to_public_dict(),
            "is_setup": is_setup(),
        }
    )


@require_POST
@api_view
def login(request: HttpRequest) -> HttpResponse:
    data = parse_json_body(request)
    code = str(data.get("code") or "").strip()
    if not code:
        raise BadInputError("error.login.code.empty")

    fenix = core_config().fenix_service
    result = fenix.authenticate_from_code(code)
    academic_year = fenix.get_active_year()

    user = result.user.with_degree_entries(
        effective_degree_entries(
            username=result.user.username,
            entries=result.user.degree_entries,
            academic_year=academic_year,
        )
    )
    store_session_user(request, user=user, access_token=result.access_token)
    revalidate_pending_nominations(user=user, academic_year=academic_year)

    logger.info("Login username=%s", user.username)
    return JsonResponse(_whoami_payload(user))


@ensure_csrf_cookie
@require_GET
@api_view
def whoami(request: HttpRequest) -> HttpResponse:
    return JsonResponse(_whoami_payload(session_user(request)))


@require_POST
@api_view
def logout(request: HttpRequest) -> HttpResponse:
    request.session.flush()
    return HttpResponse(status=204)
