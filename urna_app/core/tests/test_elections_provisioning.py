from __future__ import annotations

import datetime
from unittest.mock import Mock

from django.test import TestCase

from core.elections_provisioning import (
    BulkCreateElectionsRequest,
    DateRange,
    DegreeTarget,
    bulk_create_elections,
)
from core.errors import (
    BadInputError,
    DuplicateElectionError,
    ElectionCandidacyAfterVotingError,
    InvalidDateRangeError,
    InvalidDegreeError,
    InvalidRoundError,
)
from core.fenix import Degree, FenixService
from core.models import Election

T0 = datetime.datetime(2024, 3, 1, 9, 0, tzinfo=datetime.UTC)
DAY = datetime.timedelta(days=1)


def _fenix(*degree_ids: str, active_year: str = "2023/2024") -> Mock:
    fenix = Mock(spec=FenixService)
    catalog = {
        degree_id: Degree(id=degree_id, acronym=f"D{degree_id}", name=f"Degree {degree_id}", degree_type="Bachelor")
        for degree_id in degree_ids
    }
    fenix.get_degree.side_effect = catalog.get
    fenix.get_active_year.return_value = active_year
    return fenix


def _request(
    *targets: DegreeTarget,
    round: int = 1,
    voting: DateRange | None = None,
    candidacy: DateRange | None = None,
) -> BulkCreateElectionsRequest:
    return BulkCreateElectionsRequest(
        degrees=targets,
        round=round,
        voting_period=voting or DateRange(start=T0 + 3 * DAY, end=T0 + 4 * DAY),
        candidacy_period=candidacy,
    )


class BulkCreateElectionsTests(TestCase):
    def test_creates_one_election_per_target(self) -> None:
        fenix = _fenix("123456", "654321")
        request = _request(
            DegreeTarget("123456", None),
            DegreeTarget("123456", 1),
            DegreeTarget("654321", 2),
            candidacy=DateRange(start=T0, end=T0 + DAY),
        )

        created = bulk_create_elections(request=request, fenix=fenix)

        self.assertEqual(len(created), 3)
        self.assertEqual(
            set(Election.objects.values_list("academic_year", "degree_id", "curricular_year", "round")),
            {
                ("2023/2024", "123456", None, 1),
                ("2023/2024", "123456", 1, 1),
                ("2023/2024", "654321", 2, 1),
            },
        )
        election = Election.objects.get(degree_id="654321")
        self.assertEqual(election.candidacy_period_start, T0)
        self.assertEqual(election.voting_period_end, T0 + 4 * DAY)

    def test_elections_without_candidacy_period(self) -> None:
        bulk_create_elections(request=_request(DegreeTarget("123456")), fenix=_fenix("123456"))

        election = Election.objects.get()
        self.assertFalse(election.has_candidacy_period)

    def test_repeating_a_batch_is_a_duplicate_and_creates_nothing(self) -> None:
        fenix = _fenix("123456")
        request = _request(DegreeTarget("123456", None), DegreeTarget("123456", 1))
        bulk_create_elections(request=request, fenix=fenix)

        with self.assertRaises(DuplicateElectionError):
            bulk_create_elections(request=request, fenix=fenix)
        with self.assertRaises(DuplicateElectionError):
            bulk_create_elections(request=_request(DegreeTarget("123456", 2), DegreeTarget("123456", 1)), fenix=fenix)

        self.assertEqual(Election.objects.count(), 2)

    def test_duplicate_inside_one_batch_creates_nothing(self) -> None:
        with self.assertRaises(DuplicateElectionError):
            bulk_create_elections(
                request=_request(DegreeTarget("123456", None), DegreeTarget("123456", None)),
                fenix=_fenix("123456"),
            )

        self.assertFalse(Election.objects.exists())

    def test_next_round_is_a_new_election(self) -> None:
        fenix = _fenix("123456")
        bulk_create_elections(request=_request(DegreeTarget("123456")), fenix=fenix)
        bulk_create_elections(request=_request(DegreeTarget("123456"), round=2), fenix=fenix)

        self.assertEqual(sorted(Election.objects.values_list("round", flat=True)), [1, 2])

    def test_unknown_degree_creates_nothing(self) -> None:
        with self.assertRaises(InvalidDegreeError):
            bulk_create_elections(
                request=_request(DegreeTarget("123456"), DegreeTarget("999999")),
                fenix=_fenix("123456"),
            )

        self.assertFalse(Election.objects.exists())

    def test_validation_runs_before_degree_lookup(self) -> None:
        fenix = _fenix()
        cases = [
            (_request(DegreeTarget("999999"), round=0), InvalidRoundError),
            (_request(DegreeTarget("999999"), voting=DateRange(start=T0, end=T0)), InvalidDateRangeError),
            (
                _request(DegreeTarget("999999"), candidacy=DateRange(start=T0 + DAY, end=T0)),
                InvalidDateRangeError,
            ),
            (
                _request(DegreeTarget("999999"), candidacy=DateRange(start=T0, end=T0 + 3 * DAY)),
                ElectionCandidacyAfterVotingError,
            ),
        ]
        for request, error in cases:
            with self.subTest(error=error.__name__):
                with self.assertRaises(error):
                    bulk_create_elections(request=request, fenix=fenix)

        fenix.get_degree.assert_not_called()
        self.assertFalse(Election.objects.exists())


def test_request_from_dict():
    request = BulkCreateElectionsRequest.from_dict(
        {
            "degrees": [{"degree_id": "123456"}, {"degree_id": "123456", "curricular_year": 2}],
            "round": "1",
            "voting_period": {"start": "2024-03-04T09:00:00+00:00", "end": "2024-03-05T09:00:00Z"},
            "candidacy_period": {"start": "2024-03-01T09:00:00+00:00", "end": "2024-03-02T09:00:00+00:00"},
        }
    )

    assert request.degrees == (DegreeTarget("123456", None), DegreeTarget("123456", 2))
    assert request.round == 1
    assert request.voting_period.start == T0 + 3 * DAY
    assert request.candidacy_period == DateRange(start=T0, end=T0 + DAY)


def test_request_from_dict_rejects_malformed_bodies():
    valid_range = {"start": "2024-03-04T09:00:00+00:00", "end": "2024-03-05T09:00:00+00:00"}
    cases = [
        ({"degrees": [], "round": 1, "voting_period": valid_range}, "error.degrees.empty"),
        ({"degrees": ["123456"], "round": 1, "voting_period": valid_range}, "error.degrees.invalid"),
        ({"degrees": [{"degree_id": "1"}], "round": "x", "voting_period": valid_range}, "error.round.invalid"),
        (
            {"degrees": [{"degree_id": "1", "curricular_year": 0}], "round": 1, "voting_period": valid_range},
            "error.curricular-year.invalid",
        ),
        (
            {"degrees": [{"degree_id": "1"}], "round": 1, "voting_period": {"start": "2024-03-04T09:00:00", "end": "x"}},
            "error.daterange.invalid",
        ),
        (
            {
                "degrees": [{"degree_id": "1"}],
                "round": 1,
                "voting_period": {"start": "2024-02-30T10:00:00+00:00", "end": "2024-03-05T09:00:00+00:00"},
            },
            "error.daterange.invalid",
        ),
    ]
    for body, key in cases:
        try:
            BulkCreateElectionsRequest.from_dict(body)
        except BadInputError as exc:
            assert exc.key == key
        else:
            raise AssertionError(f"{body!r} was accepted")
