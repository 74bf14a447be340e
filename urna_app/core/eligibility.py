from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from django.db.models import Q

from core.errors import ElectionUnauthorizedError
from core.models import Election, UserDegreeOverride


@dataclass(frozen=True)
class DegreeEntry:
    degree_id: str
    curricular_year: int

    def to_dict(self) -> dict[str, object]:
        return {"degree_id": self.degree_id, "curricular_year": self.curricular_year}


@dataclass(frozen=True)
class ElectionUser:
    """Eligibility snapshot of a logged-in student, kept in the session."""

    username: str
    display_name: str
    degree_entries: tuple[DegreeEntry, ...] = field(default_factory=tuple)

    def to_session(self) -> dict[str, object]:
        return {
            "username": self.username,
            "display_name": self.display_name,
            "degree_entries": [entry.to_dict() for entry in self.degree_entries],
        }

    @classmethod
    def from_session(cls, data: Mapping[str, Any]) -> ElectionUser:
        entries = tuple(
            DegreeEntry(degree_id=str(raw["degree_id"]), curricular_year=int(raw["curricular_year"]))
            for raw in data.get("degree_entries") or []
        )
        return cls(
            username=str(data["username"]),
            display_name=str(data.get("display_name") or data["username"]),
            degree_entries=entries,
        )

    def with_degree_entries(self, entries: Iterable[DegreeEntry]) -> ElectionUser:
        return ElectionUser(username=self.username, display_name=self.display_name, degree_entries=tuple(entries))


def can_participate(entries: Iterable[DegreeEntry], election: Election) -> bool:
    for entry in entries:
        if entry.degree_id != election.degree_id:
            continue
        if election.curricular_year is None or entry.curricular_year == election.curricular_year:
            return True
    return False


def require_eligible(user: ElectionUser, election: Election) -> None:
    if not can_participate(user.degree_entries, election):
        raise ElectionUnauthorizedError(f"{user.username} cannot participate in election {election.pk}")


def visible_elections_q(entries: Iterable[DegreeEntry]) -> Q:
    """Queryset filter matching every election `can_participate` would allow."""

    condition = Q()
    matched_any = False
    for entry in entries:
        matched_any = True
        condition |= Q(degree_id=entry.degree_id) & (
            Q(curricular_year__isnull=True) | Q(curricular_year=entry.curricular_year)
        )
    if not matched_any:
        return Q(pk__in=[])
    return condition


def apply_degree_overrides(
    entries: Iterable[DegreeEntry],
    overrides: Iterable[UserDegreeOverride],
) -> tuple[DegreeEntry, ...]:
    # An override replaces the curricular year of the same degree, or adds the degree.
    merged = list(entries)

    for override in overrides:
        replacement = DegreeEntry(degree_id=override.degree_id, curricular_year=int(override.curricular_year))
        if any(e.degree_id == override.degree_id for e in merged):
            merged = [replacement if e.degree_id == override.degree_id else e for e in merged]
        else:
            merged.append(replacement)

    return tuple(merged)


def effective_degree_entries(
    *, username: str, entries: Iterable[DegreeEntry], academic_year: str
) -> tuple[DegreeEntry, ...]:
    overrides = UserDegreeOverride.objects.filter(username=username, academic_year=academic_year).order_by("id")
    return apply_degree_overrides(entries, overrides)
