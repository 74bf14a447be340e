from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from django.db import transaction

from core.eligibility import DegreeEntry, ElectionUser
from core.errors import BadInputError, InvalidDegreeError, translate_db_errors
from core.fenix import Degree, FenixService
from core.models import UserDegreeOverride
from core.nominations import revalidate_pending_nominations

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OverrideUser:
    username: str
    curricular_year: int


@dataclass(frozen=True)
class DegreeOverrides:
    degree_id: str
    degree: Degree | None
    users: list[OverrideUser] = field(default_factory=list)


def _clean_usernames(usernames: Iterable[str]) -> list[str]:
    cleaned: list[str] = []
    for username in usernames:
        username = str(username or "").strip()
        if username and username not in cleaned:
            cleaned.append(username)
    if not cleaned:
        raise BadInputError("error.username.empty")
    return cleaned


@translate_db_errors
def bulk_add_overrides(
    *,
    degree_id: str,
    curricular_year: int,
    usernames: Iterable[str],
    fenix: FenixService,
) -> int:
    """Enroll `usernames` in `degree_id` for the active academic year.

    Existing overrides for the same degree get their curricular year updated.
    Pending nominations the new enrollment makes eligible are confirmed.
    """

    if curricular_year < 1:
        raise BadInputError("error.curricular-year.invalid")
    cleaned = _clean_usernames(usernames)
    if fenix.get_degree(degree_id) is None:
        raise InvalidDegreeError(f"unknown degree {degree_id!r}")
    academic_year = fenix.get_active_year()

    revalidated = 0
    with transaction.atomic():
        for username in cleaned:
            UserDegreeOverride.objects.update_or_create(
                username=username,
                academic_year=academic_year,
                degree_id=degree_id,
                defaults={"curricular_year": curricular_year},
            )

        entry = DegreeEntry(degree_id=degree_id, curricular_year=curricular_year)
        for username in cleaned:
            revalidated += revalidate_pending_nominations(
                user=ElectionUser(username=username, display_name=username, degree_entries=(entry,)),
                academic_year=academic_year,
            )

    logger.info(
        "Added degree overrides degree=%s year=%s academic_year=%s users=%s revalidated=%s",
        degree_id,
        curricular_year,
        academic_year,
        len(cleaned),
        revalidated,
    )
    return len(cleaned)


@translate_db_errors
def bulk_delete_overrides(*, degree_id: str, usernames: Iterable[str], fenix: FenixService) -> int:
    cleaned = _clean_usernames(usernames)
    academic_year = fenix.get_active_year()

    deleted, _ = UserDegreeOverride.objects.filter(
        academic_year=academic_year,
        degree_id=degree_id,
        username__in=cleaned,
    ).delete()

    logger.info(
        "Removed degree overrides degree=%s academic_year=%s count=%s",
        degree_id,
        academic_year,
        deleted,
    )
    return deleted


@translate_db_errors
def list_overrides(*, fenix: FenixService) -> list[DegreeOverrides]:
    academic_year = fenix.get_active_year()

    grouped: dict[str, DegreeOverrides] = {}
    for override in UserDegreeOverride.objects.filter(academic_year=academic_year).order_by("degree_id", "username"):
        group = grouped.get(override.degree_id)
        if group is None:
            group = DegreeOverrides(degree_id=override.degree_id, degree=fenix.get_degree(override.degree_id))
            grouped[override.degree_id] = group
        group.users.append(OverrideUser(username=override.username, curricular_year=override.curricular_year))

    return list(grouped.values())
