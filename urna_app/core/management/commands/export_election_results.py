from __future__ import annotations

from typing import override

from django.core.management.base import BaseCommand, CommandError

from core.elections_services import build_results_export
from core.errors import AppError
from core.results_csv import write_results_csv


class Command(BaseCommand):
    help = "Write the tally of every ended election as CSV, blank votes last in each election."

    def add_arguments(self, parser) -> None:
        parser.add_argument(
            "--academic-year",
            default="",
            help="Only export elections of this academic year (e.g. 2023/2024).",
        )
        parser.add_argument(
            "--output",
            default="",
            help="Write to this file instead of stdout.",
        )

    @override
    def handle(self, *args, **options) -> None:
        academic_year = str(options.get("academic_year") or "").strip() or None
        output = str(options.get("output") or "").strip()

        try:
            rows = build_results_export(academic_year=academic_year)
        except AppError as exc:
            raise CommandError(f"Failed to export results: {exc.key}") from exc

        if output:
            with open(output, "w", newline="", encoding="utf-8") as fh:
                written = write_results_csv(rows, fh)
            self.stderr.write(f"Wrote {written} row(s) to {output}.")
            return

        write_results_csv(rows, self.stdout)
