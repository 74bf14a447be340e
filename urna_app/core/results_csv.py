from __future__ import annotations

import csv
from collections.abc import Callable, Iterable
from typing import TextIO

from core.elections_services import ResultRow

RESULTS_CSV_HEADER = [
    "election_id",
    "academic_year",
    "round",
    "degree_id",
    "degree_acronym",
    "curricular_year",
    "candidate_username",
    "candidate_name",
    "votes",
]

BLANK_VOTES_LABEL = "Blank"


def write_results_csv(
    rows: Iterable[ResultRow],
    out: TextIO,
    *,
    degree_acronym: Callable[[str], str] | None = None,
) -> int:
    writer = csv.writer(out)
    writer.writerow(RESULTS_CSV_HEADER)

    written = 0
    for row in rows:
        writer.writerow(
            [
                row.election_id,
                row.academic_year,
                row.round,
                row.degree_id,
                degree_acronym(row.degree_id) if degree_acronym is not None else "",
                "" if row.curricular_year is None else row.curricular_year,
                row.candidate_username or "",
                BLANK_VOTES_LABEL if row.is_blank else row.display_name,
                row.votes,
            ]
        )
        written += 1
    return written
