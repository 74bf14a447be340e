from __future__ import annotations

from django.http import HttpRequest, HttpResponse, JsonResponse
from django.views.decorators.http import require_GET, require_POST

from core import elections_services, nominations
from core.admins import is_admin
from core.apps import core_config
from core.eligibility import can_participate
from core.errors import BadInputError, UnauthorizedError
from core.tokens import SignedPersonSearchResult
from core.views_utils import (
    api_view,
    election_to_dict,
    no_content,
    parse_json_body,
    session_access_token,
    session_user,
)


@require_GET
@api_view
def user_elections(request: HttpRequest) -> HttpResponse:
    user = session_user(request)
    fenix = core_config().fenix_service

    results = []
    for item in elections_services.user_elections(user=user, academic_year=fenix.get_active_year()):
        results.append(
            {
                **election_to_dict(item.election, degree=fenix.get_degree(item.election.degree_id)),
                "has_nominated": item.has_nominated,
                "has_voted": item.has_voted,
            }
        )
    return JsonResponse(results, safe=False)


@require_GET
@api_view
def election_detail(request: HttpRequest, election_id: int) -> HttpResponse:
    user = session_user(request)
    election = elections_services.get_election(election_id)
    if not can_participate(user.degree_entries, election) and not is_admin(user.username):
        raise UnauthorizedError(f"{user.username} cannot see election {election_id}")

    degree = core_config().fenix_service.get_degree(election.degree_id)
    return JsonResponse(election_to_dict(election, degree=degree))


@require_POST
@api_view
def search_user(request: HttpRequest) -> HttpResponse:
    user = session_user(request)
    access_token = session_access_token(request)
    data = parse_json_body(request)

    query = str(data.get("query") or "").strip()
    if not query:
        raise BadInputError("error.search.query.empty")

    election = elections_services.get_election(data.get("election"))
    if not can_participate(user.degree_entries, election) and not is_admin(user.username):
        raise UnauthorizedError(f"{user.username} cannot search candidates for election {election.pk}")

    config = core_config()
    people = config.fenix_service.search_user_in_degree(
        access_token=access_token,
        query=query,
        degree_id=election.degree_id,
    )
    signed = [
        config.person_search_signer.sign(
            election_id=election.pk,
            username=person.username,
            display_name=person.display_name,
        ).to_dict()
        for person in people
    ]
    return JsonResponse(signed, safe=False)


@require_POST
@api_view
def self_nominate(request: HttpRequest, election_id: int) -> HttpResponse:
    nominations.self_nominate(election_id=election_id, user=session_user(request))
    return no_content()


@require_POST
@api_view
def nominate(request: HttpRequest, election_id: int) -> HttpResponse:
    user = session_user(request)
    candidate = SignedPersonSearchResult.from_dict(parse_json_body(request))
    if not candidate.username:
        raise BadInputError("error.username.empty")

    nominations.nominate_other(
        election_id=election_id,
        nominator=user,
        candidate=candidate,
        signer=core_config().person_search_signer,
    )
    return no_content()


@require_GET
@api_view
def vote_options(request: HttpRequest, election_id: int) -> HttpResponse:
    options = elections_services.get_vote_options(election_id=election_id, user=session_user(request))
    return JsonResponse(
        [{"username": option.username, "display_name": option.display_name} for option in options],
        safe=False,
    )


@require_POST
@api_view
def cast_vote(request: HttpRequest, election_id: int) -> HttpResponse:
    user = session_user(request)
    data = parse_json_body(request)

    candidate = data.get("username")
    if candidate is not None and not isinstance(candidate, str):
        raise BadInputError("error.vote.username.invalid")

    elections_services.cast_vote(election_id=election_id, user=user, candidate_username=candidate)
    return no_content()
