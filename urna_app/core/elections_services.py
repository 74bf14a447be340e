from __future__ import annotations

import datetime
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from django.db import IntegrityError, transaction
from django.db.models import Count, F, Q, Sum
from django.utils import timezone

from core.election_phase import ElectionPhase, compute_phase, require_voting_open
from core.eligibility import ElectionUser, require_eligible, visible_elections_q
from core.errors import (
    DuplicateVoteError,
    ElectionNotEndedError,
    ElectionWithUnverifiedNominationError,
    UnknownElectionError,
    UnknownVoteOptionError,
    translate_db_errors,
)
from core.models import Election, ElectionVote, Nomination, NominationLog, VoteLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VoteOption:
    username: str
    display_name: str


@dataclass(frozen=True)
class UserElection:
    election: Election
    phase: ElectionPhase
    has_nominated: bool
    has_voted: bool


@dataclass(frozen=True)
class ResultRow:
    election_id: int
    academic_year: str
    degree_id: str
    curricular_year: int | None
    round: int
    # None marks the synthetic blank-vote row.
    candidate_username: str | None
    display_name: str
    votes: int

    @property
    def is_blank(self) -> bool:
        return self.candidate_username is None


@contextmanager
def read_only_atomic() -> Iterator[None]:
    """Transaction for aggregate reads that should never block writers.

    On PostgreSQL the outermost block is marked READ ONLY; nested blocks and
    other backends get a plain atomic block.
    """

    connection = transaction.get_connection()
    outermost = not connection.in_atomic_block
    with transaction.atomic():
        if outermost and connection.vendor == "postgresql":
            with connection.cursor() as cursor:
                cursor.execute("SET TRANSACTION READ ONLY")
        yield


def get_election(election_id: int) -> Election:
    try:
        return Election.objects.get(pk=election_id)
    except (Election.DoesNotExist, ValueError, TypeError) as exc:
        raise UnknownElectionError(f"election {election_id!r} does not exist") from exc


def has_pending_nominations(election: Election) -> bool:
    return Nomination.objects.filter(election=election, validity=Nomination.Validity.pending).exists()


@translate_db_errors
def get_vote_options(
    *,
    election_id: int,
    user: ElectionUser,
    now: datetime.datetime | None = None,
) -> list[VoteOption]:
    with read_only_atomic():
        election = get_election(election_id)
        require_eligible(user, election)
        require_voting_open(election, now=now)

        # Options are withheld until every nomination has been decided.
        if has_pending_nominations(election):
            raise ElectionWithUnverifiedNominationError(f"election {election.pk} has pending nominations")

        return [
            VoteOption(username=username, display_name=display_name)
            for username, display_name in Nomination.objects.filter(
                election=election,
                validity=Nomination.Validity.valid,
            )
            .order_by("display_name", "username")
            .values_list("username", "display_name")
        ]


@translate_db_errors
@transaction.atomic
def cast_vote(
    *,
    election_id: int,
    user: ElectionUser,
    candidate_username: str | None,
    now: datetime.datetime | None = None,
) -> None:
    election = get_election(election_id)
    require_eligible(user, election)
    require_voting_open(election, now=now)

    # A late "invalid" verdict would void ballots already cast, so voting waits.
    if has_pending_nominations(election):
        raise ElectionWithUnverifiedNominationError(f"election {election.pk} has pending nominations")

    try:
        with transaction.atomic():
            VoteLog.objects.create(election=election, voter_username=user.username)
    except IntegrityError as exc:
        raise DuplicateVoteError(f"{user.username} already voted in election {election.pk}") from exc

    candidate_username = (candidate_username or "").strip() or None
    if candidate_username is None:
        logger.info("Blank vote cast election=%s", election.pk)
        return

    is_option = Nomination.objects.filter(
        election=election,
        username=candidate_username,
        validity=Nomination.Validity.valid,
    ).exists()
    if not is_option:
        # Raising here rolls back the VoteLog row inserted above.
        raise UnknownVoteOptionError(f"{candidate_username!r} is not a vote option in election {election.pk}")

    tally, created = ElectionVote.objects.get_or_create(
        election=election,
        candidate_username=candidate_username,
        defaults={"count": 1},
    )
    if not created:
        ElectionVote.objects.filter(pk=tally.pk).update(count=F("count") + 1)

    logger.info("Vote cast election=%s", election.pk)


def _results_for(elections: list[Election]) -> list[ResultRow]:
    election_ids = [e.pk for e in elections]

    ballots_by_election = dict(
        VoteLog.objects.filter(election_id__in=election_ids)
        .order_by()
        .values("election_id")
        .annotate(total=Count("id"))
        .values_list("election_id", "total")
    )
    display_names = {
        (election_id, username): display_name
        for election_id, username, display_name in Nomination.objects.filter(
            election_id__in=election_ids
        ).values_list("election_id", "username", "display_name")
    }
    tallies_by_election: dict[int, list[ElectionVote]] = {}
    for tally in ElectionVote.objects.filter(election_id__in=election_ids).order_by("count", "candidate_username"):
        tallies_by_election.setdefault(tally.election_id, []).append(tally)

    def _block_key(election: Election) -> tuple[object, ...]:
        year = election.curricular_year
        return (election.round, election.degree_id, year is not None, year or 0, election.pk)

    rows: list[ResultRow] = []
    for election in sorted(elections, key=_block_key):
        tallies = tallies_by_election.get(election.pk, [])
        for tally in tallies:
            rows.append(
                ResultRow(
                    election_id=election.pk,
                    academic_year=election.academic_year,
                    degree_id=election.degree_id,
                    curricular_year=election.curricular_year,
                    round=election.round,
                    candidate_username=tally.candidate_username,
                    display_name=display_names.get((election.pk, tally.candidate_username), tally.candidate_username),
                    votes=tally.count,
                )
            )

        # Blank ballots are never stored; they are ballots without a tally increment.
        counted = sum(t.count for t in tallies)
        rows.append(
            ResultRow(
                election_id=election.pk,
                academic_year=election.academic_year,
                degree_id=election.degree_id,
                curricular_year=election.curricular_year,
                round=election.round,
                candidate_username=None,
                display_name="",
                votes=int(ballots_by_election.get(election.pk, 0)) - counted,
            )
        )

    return rows


@translate_db_errors
def election_results(*, election_id: int, now: datetime.datetime | None = None) -> list[ResultRow]:
    with read_only_atomic():
        election = get_election(election_id)
        if compute_phase(election, now=now) != ElectionPhase.ended:
            raise ElectionNotEndedError(f"election {election.pk} has not ended")
        return _results_for([election])


@translate_db_errors
def build_results_export(
    *,
    academic_year: str | None = None,
    now: datetime.datetime | None = None,
) -> list[ResultRow]:
    """Tally rows for every ended election, one block per election with its blank row last."""

    now = now or timezone.now()
    with read_only_atomic():
        elections = Election.objects.filter(voting_period_end__lt=now)
        if academic_year:
            elections = elections.filter(academic_year=academic_year)
        return _results_for(list(elections))


@translate_db_errors
def user_elections(*, user: ElectionUser, academic_year: str | None = None) -> list[UserElection]:
    now = timezone.now()
    with read_only_atomic():
        elections = Election.objects.filter(visible_elections_q(user.degree_entries))
        if academic_year:
            elections = elections.filter(academic_year=academic_year)
        elections = list(elections.order_by("voting_period_start", "degree_id", "curricular_year", "id"))

        election_ids = [e.pk for e in elections]
        nominated = set(
            NominationLog.objects.filter(
                election_id__in=election_ids,
                nominator_username=user.username,
            ).values_list("election_id", flat=True)
        )
        voted = set(
            VoteLog.objects.filter(
                election_id__in=election_ids,
                voter_username=user.username,
            ).values_list("election_id", flat=True)
        )

    return [
        UserElection(
            election=election,
            phase=compute_phase(election, now=now),
            has_nominated=election.pk in nominated,
            has_voted=election.pk in voted,
        )
        for election in elections
    ]


@translate_db_errors
def election_stats(*, election_id: int) -> dict[str, int]:
    with read_only_atomic():
        election = get_election(election_id)
        nominations = Nomination.objects.filter(election=election).aggregate(
            pending=Count("id", filter=Q(validity=Nomination.Validity.pending)),
            valid=Count("id", filter=Q(validity=Nomination.Validity.valid)),
            invalid=Count("id", filter=Q(validity=Nomination.Validity.invalid)),
        )
        ballots = VoteLog.objects.filter(election=election).count()
        counted = ElectionVote.objects.filter(election=election).aggregate(total=Sum("count"))["total"] or 0

    return {
        "pending_nominations": int(nominations["pending"] or 0),
        "valid_nominations": int(nominations["valid"] or 0),
        "invalid_nominations": int(nominations["invalid"] or 0),
        "ballots_cast": ballots,
        "blank_votes": ballots - int(counted),
    }
