from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass

from django.db import IntegrityError, transaction
from django.db.models import Count
from django.utils import timezone

from core.election_phase import require_candidacy_open
from core.elections_services import get_election, read_only_atomic
from core.eligibility import ElectionUser, require_eligible, visible_elections_q
from core.errors import (
    BadInputError,
    DuplicateNominationError,
    UnknownNominationError,
    translate_db_errors,
)
from core.models import Election, Nomination, NominationLog
from core.tokens import PersonSearchSigner, SignedPersonSearchResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingNominationCount:
    election: Election
    pending: int


def _record_nomination_action(*, election: Election, nominator_username: str) -> None:
    # One nomination action per user per election, whoever they nominate.
    try:
        with transaction.atomic():
            NominationLog.objects.create(election=election, nominator_username=nominator_username)
    except IntegrityError as exc:
        raise DuplicateNominationError(f"{nominator_username} already nominated in election {election.pk}") from exc


def _upsert_nomination(
    *,
    election: Election,
    username: str,
    display_name: str,
    validity: Nomination.Validity,
) -> Nomination:
    """Insert a nomination, or resolve an existing one that is still pending.

    A row an administrator already decided is returned untouched, whatever
    `validity` asks for.
    """

    existing = Nomination.objects.select_for_update().filter(election=election, username=username).first()
    if existing is None:
        try:
            with transaction.atomic():
                return Nomination.objects.create(
                    election=election,
                    username=username,
                    display_name=display_name,
                    validity=validity,
                )
        except IntegrityError:
            # Lost the insert race; fall through to the update branch.
            existing = Nomination.objects.select_for_update().get(election=election, username=username)

    if existing.validity == Nomination.Validity.pending and validity != Nomination.Validity.pending:
        existing.validity = validity
        existing.save(update_fields=["validity", "updated_at"])

    return existing


@translate_db_errors
@transaction.atomic
def self_nominate(
    *,
    election_id: int,
    user: ElectionUser,
    now: datetime.datetime | None = None,
) -> Nomination:
    election = get_election(election_id)
    require_eligible(user, election)
    require_candidacy_open(election, now=now)

    _record_nomination_action(election=election, nominator_username=user.username)
    nomination = _upsert_nomination(
        election=election,
        username=user.username,
        display_name=user.display_name,
        validity=Nomination.Validity.valid,
    )

    logger.info("Self-nomination election=%s username=%s", election.pk, user.username)
    return nomination


@translate_db_errors
@transaction.atomic
def nominate_other(
    *,
    election_id: int,
    nominator: ElectionUser,
    candidate: SignedPersonSearchResult,
    signer: PersonSearchSigner,
    now: datetime.datetime | None = None,
) -> Nomination:
    election = get_election(election_id)
    require_eligible(nominator, election)
    require_candidacy_open(election, now=now)

    # Verified against this election's id, so a token issued for another election is rejected.
    signer.validate(election_id=election.pk, result=candidate)

    _record_nomination_action(election=election, nominator_username=nominator.username)

    if candidate.username == nominator.username:
        validity = Nomination.Validity.valid
    else:
        validity = Nomination.Validity.pending

    nomination = _upsert_nomination(
        election=election,
        username=candidate.username,
        display_name=candidate.display_name,
        validity=validity,
    )

    logger.info(
        "Nomination election=%s nominator=%s candidate=%s validity=%s",
        election.pk,
        nominator.username,
        candidate.username,
        nomination.validity,
    )
    return nomination


@translate_db_errors
@transaction.atomic
def verify_nomination(
    *,
    election_id: int,
    username: str,
    display_name: str | None = None,
    validity: str | None = None,
    actor_username: str = "",
) -> Nomination:
    """Administrative decision on a nomination; only the supplied fields change."""

    if validity is not None:
        if validity not in Nomination.Validity.values:
            raise BadInputError("error.nomination.validity.invalid")
        if validity == Nomination.Validity.pending:
            # Decided nominations never go back to pending.
            raise BadInputError("error.nomination.validity.pending")

    if display_name is not None:
        display_name = display_name.strip()
        if not display_name:
            raise BadInputError("error.nomination.display-name.empty")

    election = get_election(election_id)
    try:
        nomination = Nomination.objects.select_for_update().get(election=election, username=username)
    except Nomination.DoesNotExist as exc:
        raise UnknownNominationError(f"no nomination for {username!r} in election {election.pk}") from exc

    update_fields: list[str] = []
    if display_name is not None:
        nomination.display_name = display_name
        update_fields.append("display_name")
    if validity is not None:
        nomination.validity = validity
        update_fields.append("validity")

    if update_fields:
        nomination.save(update_fields=[*update_fields, "updated_at"])
        logger.info(
            "Nomination verified election=%s username=%s fields=%s actor=%s",
            election.pk,
            username,
            ",".join(update_fields),
            actor_username,
        )

    return nomination


@translate_db_errors
@transaction.atomic
def revalidate_pending_nominations(*, user: ElectionUser, academic_year: str) -> int:
    """Confirm the user's own pending nominations they are now known to be eligible for.

    Those rows were pending only because the enrollment data used at
    nomination time did not show the user as eligible.
    """

    eligible_elections = Election.objects.filter(visible_elections_q(user.degree_entries)).filter(
        academic_year=academic_year
    )
    pending_ids = list(
        Nomination.objects.select_for_update()
        .filter(
            username=user.username,
            validity=Nomination.Validity.pending,
            election__in=eligible_elections,
        )
        .values_list("id", flat=True)
    )
    if not pending_ids:
        return 0

    updated = Nomination.objects.filter(pk__in=pending_ids, validity=Nomination.Validity.pending).update(
        validity=Nomination.Validity.valid,
        updated_at=timezone.now(),
    )
    logger.info("Revalidated pending nominations username=%s count=%s", user.username, updated)
    return updated


@translate_db_errors
def list_nominations(*, election_id: int) -> list[Nomination]:
    with read_only_atomic():
        election = get_election(election_id)
        return list(Nomination.objects.filter(election=election).order_by("display_name", "username"))


@translate_db_errors
def count_unverified_nominations(*, academic_year: str | None = None) -> int:
    with read_only_atomic():
        pending = Nomination.objects.filter(validity=Nomination.Validity.pending)
        if academic_year:
            pending = pending.filter(election__academic_year=academic_year)
        return pending.count()


@translate_db_errors
def elections_with_unverified_nominations(*, academic_year: str | None = None) -> list[PendingNominationCount]:
    with read_only_atomic():
        elections = Election.objects.filter(nominations__validity=Nomination.Validity.pending)
        if academic_year:
            elections = elections.filter(academic_year=academic_year)
        elections = elections.annotate(pending=Count("nominations")).order_by(
            "round", "degree_id", "curricular_year", "id"
        )
        return [PendingNominationCount(election=election, pending=election.pending) for election in elections]
