from __future__ import annotations

from typing import override

from django.db import DatabaseError, models
from django.db.models import F, Q


class Election(models.Model):
    # Elections are immutable once provisioned; there is no edit flow.
    academic_year = models.CharField(max_length=16)
    degree_id = models.CharField(max_length=32)
    # NULL means the election is open to every curricular year of the degree.
    curricular_year = models.PositiveSmallIntegerField(blank=True, null=True)
    candidacy_period_start = models.DateTimeField(blank=True, null=True)
    candidacy_period_end = models.DateTimeField(blank=True, null=True)
    voting_period_start = models.DateTimeField()
    voting_period_end = models.DateTimeField()
    round = models.PositiveSmallIntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["academic_year", "degree_id", "curricular_year", "round"],
                condition=Q(curricular_year__isnull=False),
                name="uniq_election_year_degree_curricular_round",
            ),
            models.UniqueConstraint(
                fields=["academic_year", "degree_id", "round"],
                condition=Q(curricular_year__isnull=True),
                name="uniq_election_year_degree_all_years_round",
            ),
            models.CheckConstraint(
                condition=Q(voting_period_start__lt=F("voting_period_end")),
                name="chk_election_voting_period_order",
            ),
            models.CheckConstraint(
                condition=(
                    Q(candidacy_period_start__isnull=True, candidacy_period_end__isnull=True)
                    | Q(
                        candidacy_period_start__isnull=False,
                        candidacy_period_end__isnull=False,
                        candidacy_period_start__lt=F("candidacy_period_end"),
                    )
                ),
                name="chk_election_candidacy_period_pair",
            ),
            models.CheckConstraint(
                condition=Q(round__gte=1),
                name="chk_election_round_positive",
            ),
        ]
        indexes = [
            models.Index(fields=["degree_id", "curricular_year"], name="e_degree_year"),
            models.Index(fields=["academic_year"], name="e_acad_year"),
        ]
        ordering = ("round", "degree_id", "curricular_year", "id")

    def __str__(self) -> str:
        year = self.curricular_year if self.curricular_year is not None else "all"
        return f"{self.academic_year} {self.degree_id} year={year} round={self.round}"

    @property
    def has_candidacy_period(self) -> bool:
        return self.candidacy_period_start is not None and self.candidacy_period_end is not None


class Nomination(models.Model):
    class Validity(models.TextChoices):
        pending = "pending", "Pending"
        valid = "valid", "Valid"
        invalid = "invalid", "Invalid"

    election = models.ForeignKey(Election, on_delete=models.PROTECT, related_name="nominations")
    username = models.CharField(max_length=255)
    display_name = models.CharField(max_length=255)
    validity = models.CharField(
        max_length=16,
        choices=Validity.choices,
        default=Validity.pending,
        db_index=True,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["election", "username"],
                name="uniq_nomination_election_username",
            ),
        ]
        indexes = [
            models.Index(fields=["election", "validity"], name="n_election_validity"),
            models.Index(fields=["username", "validity"], name="n_username_validity"),
        ]
        ordering = ("election_id", "display_name", "username")

    def __str__(self) -> str:
        return f"{self.username} @ election {self.election_id} ({self.validity})"


class AppendOnlyQuerySet(models.QuerySet):
    @override
    def update(self, **kwargs):
        raise DatabaseError(f"{self.model._meta.db_table} rows are append-only (UPDATE is not allowed)")

    @override
    def delete(self):
        raise DatabaseError(f"{self.model._meta.db_table} rows are append-only (DELETE is not allowed)")


class AppendOnlyModel(models.Model):
    """Rows that prove an action was taken; they are inserted once and never touched again.

    PostgreSQL deployments additionally get BEFORE UPDATE/DELETE triggers
    (see migration 0002), so raw SQL cannot bypass the guard either.
    """

    objects = AppendOnlyQuerySet.as_manager()

    class Meta:
        abstract = True

    @override
    def save(self, *args, **kwargs) -> None:
        if not self._state.adding:
            raise DatabaseError(f"{self._meta.db_table} rows are append-only (UPDATE is not allowed)")
        super().save(*args, **kwargs)

    @override
    def delete(self, *args, **kwargs):
        raise DatabaseError(f"{self._meta.db_table} rows are append-only (DELETE is not allowed)")


class NominationLog(AppendOnlyModel):
    election = models.ForeignKey(Election, on_delete=models.PROTECT, related_name="nomination_logs")
    nominator_username = models.CharField(max_length=255)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["election", "nominator_username"],
                name="uniq_nominationlog_election_nominator",
            ),
        ]
        indexes = [
            models.Index(fields=["nominator_username"], name="nl_nominator"),
        ]
        ordering = ("election_id", "created_at")

    def __str__(self) -> str:
        return f"{self.nominator_username} nominated in election {self.election_id}"


class VoteLog(AppendOnlyModel):
    # Records that a ballot was cast, never which choice it carried.
    election = models.ForeignKey(Election, on_delete=models.PROTECT, related_name="vote_logs")
    voter_username = models.CharField(max_length=255)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["election", "voter_username"],
                name="uniq_votelog_election_voter",
            ),
        ]
        indexes = [
            models.Index(fields=["voter_username"], name="vl_voter"),
        ]
        ordering = ("election_id", "created_at")

    def __str__(self) -> str:
        return f"{self.voter_username} voted in election {self.election_id}"


class ElectionVote(models.Model):
    # Blank votes never get a row here; they are VoteLog rows minus the sum of counts.
    election = models.ForeignKey(Election, on_delete=models.PROTECT, related_name="tallies")
    candidate_username = models.CharField(max_length=255)
    count = models.PositiveIntegerField(default=0)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["election", "candidate_username"],
                name="uniq_electionvote_election_candidate",
            ),
        ]
        ordering = ("election_id", "count", "candidate_username")

    def __str__(self) -> str:
        return f"{self.candidate_username}: {self.count} vote(s) in election {self.election_id}"


class Administrator(models.Model):
    username = models.CharField(max_length=255, unique=True)
    date_added = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("date_added", "username")

    def __str__(self) -> str:
        return self.username


class UserDegreeOverride(models.Model):
    """Administrative correction of a student's enrollment for one academic year.

    Applied on top of the identity provider's data when the eligibility
    snapshot is built: it replaces the curricular year of a matching degree
    entry, or adds the degree when the provider does not list it.
    """

    username = models.CharField(max_length=255)
    academic_year = models.CharField(max_length=16)
    degree_id = models.CharField(max_length=32)
    curricular_year = models.PositiveSmallIntegerField()
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["username", "academic_year", "degree_id"],
                name="uniq_userdegreeoverride_user_year_degree",
            ),
        ]
        indexes = [
            models.Index(fields=["academic_year", "degree_id"], name="udo_year_degree"),
        ]
        ordering = ("degree_id", "curricular_year", "username")

    def __str__(self) -> str:
        return f"{self.username} → {self.degree_id} year {self.curricular_year} ({self.academic_year})"
