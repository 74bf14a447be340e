from __future__ import annotations

import datetime
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from django.db import IntegrityError, transaction
from django.utils.dateparse import parse_datetime

from core.errors import (
    BadInputError,
    DuplicateElectionError,
    ElectionCandidacyAfterVotingError,
    InvalidDateRangeError,
    InvalidDegreeError,
    InvalidRoundError,
    translate_db_errors,
)
from core.fenix import FenixService
from core.models import Election

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DateRange:
    start: datetime.datetime
    end: datetime.datetime


@dataclass(frozen=True)
class DegreeTarget:
    degree_id: str
    curricular_year: int | None = None


@dataclass(frozen=True)
class BulkCreateElectionsRequest:
    degrees: tuple[DegreeTarget, ...]
    round: int
    voting_period: DateRange
    candidacy_period: DateRange | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> BulkCreateElectionsRequest:
        """Parse the JSON body of the bulk-create endpoint.

        Shape errors become BadInputError; range and ordering rules are left to
        `validate_bulk_request`.
        """

        raw_degrees = data.get("degrees")
        if not isinstance(raw_degrees, list) or not raw_degrees:
            raise BadInputError("error.degrees.empty")

        degrees: list[DegreeTarget] = []
        for raw in raw_degrees:
            if not isinstance(raw, Mapping):
                raise BadInputError("error.degrees.invalid")
            degree_id = str(raw.get("degree_id") or "").strip()
            if not degree_id:
                raise BadInputError("error.degrees.invalid")
            year = raw.get("curricular_year")
            degrees.append(DegreeTarget(degree_id=degree_id, curricular_year=_parse_year(year)))

        try:
            round_number = int(data.get("round"))
        except (TypeError, ValueError) as exc:
            raise BadInputError("error.round.invalid") from exc

        candidacy_raw = data.get("candidacy_period")
        return cls(
            degrees=tuple(degrees),
            round=round_number,
            voting_period=_parse_range(data.get("voting_period")),
            candidacy_period=_parse_range(candidacy_raw) if candidacy_raw else None,
        )


def _parse_year(value: object) -> int | None:
    if value is None or value == "":
        return None
    try:
        year = int(value)
    except (TypeError, ValueError) as exc:
        raise BadInputError("error.curricular-year.invalid") from exc
    if year < 1:
        raise BadInputError("error.curricular-year.invalid")
    return year


def _parse_timestamp(value: object) -> datetime.datetime:
    try:
        parsed = parse_datetime(str(value or ""))
    except ValueError as exc:
        # Well-formed but impossible dates, e.g. February 30th.
        raise BadInputError("error.daterange.invalid") from exc
    if parsed is None or parsed.tzinfo is None:
        raise BadInputError("error.daterange.invalid")
    return parsed


def _parse_range(value: object) -> DateRange:
    if not isinstance(value, Mapping):
        raise BadInputError("error.daterange.invalid")
    return DateRange(start=_parse_timestamp(value.get("start")), end=_parse_timestamp(value.get("end")))


def validate_bulk_request(request: BulkCreateElectionsRequest) -> None:
    if request.round < 1:
        raise InvalidRoundError(f"round must be at least 1, got {request.round}")
    if request.voting_period.start >= request.voting_period.end:
        raise InvalidDateRangeError("voting period must start before it ends")
    if request.candidacy_period is not None:
        if request.candidacy_period.start >= request.candidacy_period.end:
            raise InvalidDateRangeError("candidacy period must start before it ends")
        if request.candidacy_period.end >= request.voting_period.start:
            raise ElectionCandidacyAfterVotingError("candidacy period must end before voting starts")


@translate_db_errors
def bulk_create_elections(*, request: BulkCreateElectionsRequest, fenix: FenixService) -> list[Election]:
    """Create one election per degree target, all or nothing."""

    validate_bulk_request(request)

    for target in request.degrees:
        if fenix.get_degree(target.degree_id) is None:
            raise InvalidDegreeError(f"unknown degree {target.degree_id!r}")

    academic_year = fenix.get_active_year()
    candidacy = request.candidacy_period

    elections = [
        Election(
            academic_year=academic_year,
            degree_id=target.degree_id,
            curricular_year=target.curricular_year,
            candidacy_period_start=candidacy.start if candidacy else None,
            candidacy_period_end=candidacy.end if candidacy else None,
            voting_period_start=request.voting_period.start,
            voting_period_end=request.voting_period.end,
            round=request.round,
        )
        for target in request.degrees
    ]

    try:
        with transaction.atomic():
            created = Election.objects.bulk_create(elections)
    except IntegrityError as exc:
        raise DuplicateElectionError("an election in the batch already exists") from exc

    logger.info(
        "Created elections academic_year=%s round=%s count=%s",
        academic_year,
        request.round,
        len(created),
    )
    return created
