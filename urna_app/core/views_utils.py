from __future__ import annotations

import datetime
import functools
import json
import logging
from collections.abc import Callable
from typing import Any

from django.http import HttpRequest, HttpResponse, JsonResponse

from core.admins import is_admin
from core.election_phase import compute_phase
from core.eligibility import ElectionUser
from core.errors import AppError, BadInputError, UnauthorizedError
from core.fenix import Degree
from core.models import Election

logger = logging.getLogger(__name__)

SESSION_USER_KEY = "_fenix_user"
SESSION_ACCESS_TOKEN_KEY = "_fenix_access_token"


def api_view(view: Callable[..., HttpResponse]) -> Callable[..., HttpResponse]:
    """Render AppError as `{"key": ...}` with the error's HTTP status."""

    @functools.wraps(view)
    def wrapper(request: HttpRequest, *args, **kwargs) -> HttpResponse:
        try:
            return view(request, *args, **kwargs)
        except AppError as exc:
            if exc.status >= 500:
                logger.warning("API error path=%s key=%s", request.path, exc.key)
            else:
                logger.debug("API request rejected path=%s key=%s detail=%s", request.path, exc.key, exc)
            return JsonResponse({"key": exc.key, "retryable": exc.retryable}, status=exc.status)

    return wrapper


def no_content() -> HttpResponse:
    return HttpResponse(status=204)


def parse_json_body(request: HttpRequest) -> dict[str, Any]:
    raw = request.body.decode("utf-8") if request.body else "{}"
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise BadInputError("error.body.invalid") from exc
    if not isinstance(data, dict):
        raise BadInputError("error.body.invalid")
    return data


def store_session_user(request: HttpRequest, *, user: ElectionUser, access_token: str) -> None:
    request.session.cycle_key()
    request.session[SESSION_USER_KEY] = user.to_session()
    request.session[SESSION_ACCESS_TOKEN_KEY] = access_token


def session_user(request: HttpRequest) -> ElectionUser:
    data = request.session.get(SESSION_USER_KEY)
    if not data:
        raise UnauthorizedError("not logged in")
    return ElectionUser.from_session(data)


def session_access_token(request: HttpRequest) -> str:
    token = str(request.session.get(SESSION_ACCESS_TOKEN_KEY) or "")
    if not token:
        raise UnauthorizedError("no Fenix access token in session")
    return token


def session_admin(request: HttpRequest) -> ElectionUser:
    user = session_user(request)
    if not is_admin(user.username):
        raise UnauthorizedError(f"{user.username} is not an administrator")
    return user


def _isoformat(value: datetime.datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def election_to_dict(
    election: Election,
    *,
    degree: Degree | None = None,
    now: datetime.datetime | None = None,
) -> dict[str, object]:
    candidacy: dict[str, object] | None = None
    if election.has_candidacy_period:
        candidacy = {
            "start": _isoformat(election.candidacy_period_start),
            "end": _isoformat(election.candidacy_period_end),
        }
    return {
        "id": election.pk,
        "academic_year": election.academic_year,
        "degree_id": election.degree_id,
        "degree": degree.to_dict() if degree is not None else None,
        "curricular_year": election.curricular_year,
        "round": election.round,
        "candidacy_period": candidacy,
        "voting_period": {
            "start": _isoformat(election.voting_period_start),
            "end": _isoformat(election.voting_period_end),
        },
        "status": str(compute_phase(election, now=now)),
    }
