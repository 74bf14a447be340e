from __future__ import annotations

import datetime
import enum

from django.utils import timezone

from core.errors import OutsideCandidacyPeriodError, OutsideVotingPeriodError
from core.models import Election


class ElectionPhase(enum.StrEnum):
    not_started = "not_started"
    candidacy = "candidacy"
    processing = "processing"
    voting = "voting"
    ended = "ended"


def compute_phase(election: Election, *, now: datetime.datetime | None = None) -> ElectionPhase:
    """Return the lifecycle phase of `election` at `now`.

    Checks run from the latest window backwards, so the voting window always
    wins over a candidacy window that overlaps it or is missing.
    """

    now = now or timezone.now()

    if now > election.voting_period_end:
        return ElectionPhase.ended
    if now >= election.voting_period_start:
        return ElectionPhase.voting
    if election.candidacy_period_end is not None and now > election.candidacy_period_end:
        return ElectionPhase.processing
    if election.candidacy_period_start is not None and now >= election.candidacy_period_start:
        return ElectionPhase.candidacy
    return ElectionPhase.not_started


def is_in_candidacy_period(election: Election, *, now: datetime.datetime | None = None) -> bool:
    if not election.has_candidacy_period:
        return False
    now = now or timezone.now()
    return election.candidacy_period_start <= now <= election.candidacy_period_end


def is_in_voting_period(election: Election, *, now: datetime.datetime | None = None) -> bool:
    now = now or timezone.now()
    return election.voting_period_start <= now <= election.voting_period_end


def require_candidacy_open(election: Election, *, now: datetime.datetime | None = None) -> None:
    if not is_in_candidacy_period(election, now=now):
        raise OutsideCandidacyPeriodError(f"election {election.pk} is not accepting nominations")


def require_voting_open(election: Election, *, now: datetime.datetime | None = None) -> None:
    if not is_in_voting_period(election, now=now):
        raise OutsideVotingPeriodError(f"election {election.pk} is not accepting votes")
