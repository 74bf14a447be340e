from __future__ import annotations

import csv
import datetime
import io
from pathlib import Path
from tempfile import TemporaryDirectory

from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone

from core.elections_services import build_results_export, election_results
from core.errors import ElectionNotEndedError
from core.models import Election, ElectionVote, Nomination, VoteLog
from core.results_csv import BLANK_VOTES_LABEL, RESULTS_CSV_HEADER, write_results_csv


class ResultsExportTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.now = timezone.now()

    def _ended_election(self, *, degree_id: str, curricular_year: int | None, round: int = 1) -> Election:
        return Election.objects.create(
            academic_year="2023/2024",
            degree_id=degree_id,
            curricular_year=curricular_year,
            voting_period_start=self.now - datetime.timedelta(days=2),
            voting_period_end=self.now - datetime.timedelta(days=1),
            round=round,
        )

    def _ballots(self, election: Election, tallies: dict[str, int], *, blank: int = 0) -> None:
        voter = 0
        for username, count in tallies.items():
            Nomination.objects.create(
                election=election,
                username=username,
                display_name=username.title(),
                validity=Nomination.Validity.valid,
            )
            ElectionVote.objects.create(election=election, candidate_username=username, count=count)
            for _ in range(count):
                VoteLog.objects.create(election=election, voter_username=f"voter{voter}")
                voter += 1
        for _ in range(blank):
            VoteLog.objects.create(election=election, voter_username=f"voter{voter}")
            voter += 1

    def test_election_results_put_blank_row_last(self) -> None:
        election = self._ended_election(degree_id="123456", curricular_year=None)
        self._ballots(election, {"alice": 5, "bob": 2}, blank=3)

        rows = election_results(election_id=election.pk, now=self.now)

        self.assertEqual(
            [(r.candidate_username, r.display_name, r.votes) for r in rows],
            [("bob", "Bob", 2), ("alice", "Alice", 5), (None, "", 3)],
        )
        self.assertTrue(rows[-1].is_blank)

    def test_results_wait_for_the_election_to_end(self) -> None:
        election = Election.objects.create(
            academic_year="2023/2024",
            degree_id="123456",
            curricular_year=None,
            voting_period_start=self.now - datetime.timedelta(hours=1),
            voting_period_end=self.now + datetime.timedelta(hours=1),
            round=1,
        )

        with self.assertRaises(ElectionNotEndedError):
            election_results(election_id=election.pk, now=self.now)

    def test_export_orders_elections_by_round_degree_and_year(self) -> None:
        second_round = self._ended_election(degree_id="111111", curricular_year=None, round=2)
        year_two = self._ended_election(degree_id="222222", curricular_year=2)
        all_years = self._ended_election(degree_id="222222", curricular_year=None)
        year_one = self._ended_election(degree_id="222222", curricular_year=1)
        other_degree = self._ended_election(degree_id="111111", curricular_year=3)
        Election.objects.create(
            academic_year="2023/2024",
            degree_id="111111",
            curricular_year=1,
            voting_period_start=self.now - datetime.timedelta(hours=1),
            voting_period_end=self.now + datetime.timedelta(hours=1),
            round=1,
        )
        self._ballots(year_one, {"carol": 1}, blank=1)

        rows = build_results_export(academic_year="2023/2024", now=self.now)

        ordered_ids = []
        for row in rows:
            if not ordered_ids or ordered_ids[-1] != row.election_id:
                ordered_ids.append(row.election_id)
        self.assertEqual(ordered_ids, [other_degree.pk, all_years.pk, year_one.pk, year_two.pk, second_round.pk])

        year_one_rows = [r for r in rows if r.election_id == year_one.pk]
        self.assertEqual([(r.candidate_username, r.votes) for r in year_one_rows], [("carol", 1), (None, 1)])
        self.assertEqual(build_results_export(academic_year="2022/2023", now=self.now), [])

    def test_write_results_csv_labels_blank_votes(self) -> None:
        election = self._ended_election(degree_id="123456", curricular_year=1)
        self._ballots(election, {"alice": 2}, blank=1)

        out = io.StringIO()
        written = write_results_csv(
            build_results_export(now=self.now),
            out,
            degree_acronym=lambda degree_id: "LEIC" if degree_id == "123456" else "",
        )

        lines = list(csv.reader(io.StringIO(out.getvalue())))
        self.assertEqual(written, 2)
        self.assertEqual(lines[0], RESULTS_CSV_HEADER)
        self.assertEqual(
            lines[1:],
            [
                [str(election.pk), "2023/2024", "1", "123456", "LEIC", "1", "alice", "Alice", "2"],
                [str(election.pk), "2023/2024", "1", "123456", "LEIC", "1", "", BLANK_VOTES_LABEL, "1"],
            ],
        )

    def test_export_command_writes_csv(self) -> None:
        election = self._ended_election(degree_id="123456", curricular_year=None)
        self._ballots(election, {"alice": 1})

        out = io.StringIO()
        call_command("export_election_results", "--academic-year", "2023/2024", stdout=out)

        lines = list(csv.reader(io.StringIO(out.getvalue())))
        self.assertEqual(lines[0], RESULTS_CSV_HEADER)
        self.assertEqual([line[6] for line in lines[1:]], ["alice", ""])

    def test_export_command_writes_to_file(self) -> None:
        election = self._ended_election(degree_id="123456", curricular_year=None)
        self._ballots(election, {"alice": 1}, blank=2)

        with TemporaryDirectory() as tmp:
            path = Path(tmp) / "results.csv"
            call_command("export_election_results", "--output", str(path), stderr=io.StringIO())

            with path.open(newline="", encoding="utf-8") as fh:
                lines = list(csv.reader(fh))

        self.assertEqual(lines[-1][7], BLANK_VOTES_LABEL)
        self.assertEqual(lines[-1][8], "2")
