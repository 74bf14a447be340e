from __future__ import annotations

import io

from django.http import HttpRequest, HttpResponse, JsonResponse
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from core import admins, degree_overrides, elections_services, nominations
from core.apps import core_config
from core.elections_provisioning import BulkCreateElectionsRequest, bulk_create_elections
from core.errors import BadInputError
from core.models import Election, Nomination
from core.results_csv import write_results_csv
from core.views_utils import (
    api_view,
    election_to_dict,
    no_content,
    parse_json_body,
    session_admin,
    session_user,
)


def _nomination_to_dict(nomination: Nomination) -> dict[str, object]:
    return {
        "election": nomination.election_id,
        "username": nomination.username,
        "display_name": nomination.display_name,
        "validity": nomination.validity,
    }


def _usernames(data: dict[str, object]) -> list[str]:
    usernames = data.get("usernames")
    if not isinstance(usernames, list):
        raise BadInputError("error.username.empty")
    return [str(u) for u in usernames]


@require_http_methods(["GET", "POST"])
@api_view
def admin_list(request: HttpRequest) -> HttpResponse:
    actor = session_admin(request)

    if request.method == "POST":
        data = parse_json_body(request)
        admins.add_admin(username=str(data.get("username") or ""), actor_username=actor.username)
        return no_content()

    return JsonResponse(
        [
            {"username": admin.username, "date_added": admin.date_added.isoformat()}
            for admin in admins.list_admins()
        ],
        safe=False,
    )


@require_http_methods(["DELETE"])
@api_view
def admin_remove(request: HttpRequest, username: str) -> HttpResponse:
    actor = session_admin(request)
    admins.remove_admin(username=username, actor_username=actor.username)
    return no_content()


@require_POST
@api_view
def setup_first_admin(request: HttpRequest) -> HttpResponse:
    user = session_user(request)
    admins.setup_first_admin(username=user.username)
    return no_content()


@require_GET
@api_view
def degrees(request: HttpRequest) -> HttpResponse:
    session_admin(request)
    fenix = core_config().fenix_service
    academic_year = fenix.get_active_year()

    elections_by_degree: dict[str, list[Election]] = {}
    for election in Election.objects.filter(academic_year=academic_year):
        elections_by_degree.setdefault(election.degree_id, []).append(election)

    return JsonResponse(
        [
            {
                "degree": degree.to_dict(),
                "elections": [election_to_dict(e) for e in elections_by_degree.get(degree.id, [])],
            }
            for degree in fenix.get_degrees()
        ],
        safe=False,
    )


@require_POST
@api_view
def elections_bulk_create(request: HttpRequest) -> HttpResponse:
    session_admin(request)
    bulk_request = BulkCreateElectionsRequest.from_dict(parse_json_body(request))
    created = bulk_create_elections(request=bulk_request, fenix=core_config().fenix_service)
    return JsonResponse({"created": [election.pk for election in created]}, status=201)


@require_GET
@api_view
def election_nominations(request: HttpRequest, election_id: int) -> HttpResponse:
    session_admin(request)
    return JsonResponse(
        [_nomination_to_dict(n) for n in nominations.list_nominations(election_id=election_id)],
        safe=False,
    )


@require_http_methods(["PATCH", "POST"])
@api_view
def nomination_verify(request: HttpRequest, election_id: int, username: str) -> HttpResponse:
    actor = session_admin(request)
    data = parse_json_body(request)

    display_name = data.get("display_name")
    validity = data.get("validity")
    nomination = nominations.verify_nomination(
        election_id=election_id,
        username=username,
        display_name=str(display_name) if display_name is not None else None,
        validity=str(validity) if validity is not None else None,
        actor_username=actor.username,
    )
    return JsonResponse(_nomination_to_dict(nomination))


@require_GET
@api_view
def unverified_nominations_count(request: HttpRequest) -> HttpResponse:
    session_admin(request)
    academic_year = core_config().fenix_service.get_active_year()
    return JsonResponse({"count": nominations.count_unverified_nominations(academic_year=academic_year)})


@require_GET
@api_view
def unverified_nominations(request: HttpRequest) -> HttpResponse:
    session_admin(request)
    academic_year = core_config().fenix_service.get_active_year()
    return JsonResponse(
        [
            {"election": election_to_dict(item.election), "pending": item.pending}
            for item in nominations.elections_with_unverified_nominations(academic_year=academic_year)
        ],
        safe=False,
    )


@require_GET
@api_view
def election_results(request: HttpRequest, election_id: int) -> HttpResponse:
    session_admin(request)
    rows = elections_services.election_results(election_id=election_id)
    return JsonResponse(
        {
            "election": election_id,
            "results": [
                {"username": row.candidate_username, "display_name": row.display_name, "votes": row.votes}
                for row in rows
            ],
            "stats": elections_services.election_stats(election_id=election_id),
        }
    )


@require_GET
@api_view
def results_export_csv(request: HttpRequest) -> HttpResponse:
    session_admin(request)
    fenix = core_config().fenix_service
    academic_year = str(request.GET.get("academic_year") or "").strip() or fenix.get_active_year()

    def _acronym(degree_id: str) -> str:
        degree = fenix.get_degree(degree_id)
        return degree.acronym if degree is not None else ""

    buffer = io.StringIO()
    write_results_csv(
        elections_services.build_results_export(academic_year=academic_year),
        buffer,
        degree_acronym=_acronym,
    )
    response = HttpResponse(buffer.getvalue(), content_type="text/csv; charset=utf-8")
    response["Content-Disposition"] = f'attachment; filename="results-{academic_year.replace("/", "-")}.csv"'
    return response


@require_http_methods(["GET", "POST", "DELETE"])
@api_view
def user_degree_overrides(request: HttpRequest) -> HttpResponse:
    session_admin(request)
    fenix = core_config().fenix_service

    if request.method == "GET":
        return JsonResponse(
            [
                {
                    "degree_id": group.degree_id,
                    "degree": group.degree.to_dict() if group.degree is not None else None,
                    "users": [
                        {"username": u.username, "curricular_year": u.curricular_year} for u in group.users
                    ],
                }
                for group in degree_overrides.list_overrides(fenix=fenix)
            ],
            safe=False,
        )

    data = parse_json_body(request)
    degree_id = str(data.get("degree_id") or "").strip()
    if not degree_id:
        raise BadInputError("error.degrees.invalid")

    if request.method == "POST":
        try:
            curricular_year = int(data.get("curricular_year"))
        except (TypeError, ValueError) as exc:
            raise BadInputError("error.curricular-year.invalid") from exc
        degree_overrides.bulk_add_overrides(
            degree_id=degree_id,
            curricular_year=curricular_year,
            usernames=_usernames(data),
            fenix=fenix,
        )
        return no_content()

    degree_overrides.bulk_delete_overrides(degree_id=degree_id, usernames=_usernames(data), fenix=fenix)
    return no_content()
