from __future__ import annotations

import django.db.models.deletion
from django.db import migrations, models
from django.db.models import F, Q


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Administrator",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("username", models.CharField(max_length=255, unique=True)),
                ("date_added", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ("date_added", "username"),
            },
        ),
        migrations.CreateModel(
            name="Election",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("academic_year", models.CharField(max_length=16)),
                ("degree_id", models.CharField(max_length=32)),
                ("curricular_year", models.PositiveSmallIntegerField(blank=True, null=True)),
                ("candidacy_period_start", models.DateTimeField(blank=True, null=True)),
                ("candidacy_period_end", models.DateTimeField(blank=True, null=True)),
                ("voting_period_start", models.DateTimeField()),
                ("voting_period_end", models.DateTimeField()),
                ("round", models.PositiveSmallIntegerField(default=1)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ("round", "degree_id", "curricular_year", "id"),
                "indexes": [
                    models.Index(fields=["degree_id", "curricular_year"], name="e_degree_year"),
                    models.Index(fields=["academic_year"], name="e_acad_year"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=Q(curricular_year__isnull=False),
                        fields=("academic_year", "degree_id", "curricular_year", "round"),
                        name="uniq_election_year_degree_curricular_round",
                    ),
                    models.UniqueConstraint(
                        condition=Q(curricular_year__isnull=True),
                        fields=("academic_year", "degree_id", "round"),
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
                ],
            },
        ),
        migrations.CreateModel(
            name="UserDegreeOverride",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("username", models.CharField(max_length=255)),
                ("academic_year", models.CharField(max_length=16)),
                ("degree_id", models.CharField(max_length=32)),
                ("curricular_year", models.PositiveSmallIntegerField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ("degree_id", "curricular_year", "username"),
                "indexes": [
                    models.Index(fields=["academic_year", "degree_id"], name="udo_year_degree"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("username", "academic_year", "degree_id"),
                        name="uniq_userdegreeoverride_user_year_degree",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ElectionVote",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("candidate_username", models.CharField(max_length=255)),
                ("count", models.PositiveIntegerField(default=0)),
                (
                    "election",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="tallies",
                        to="core.election",
                    ),
                ),
            ],
            options={
                "ordering": ("election_id", "count", "candidate_username"),
                "constraints": [
                    models.UniqueConstraint(
                        fields=("election", "candidate_username"),
                        name="uniq_electionvote_election_candidate",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Nomination",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("username", models.CharField(max_length=255)),
                ("display_name", models.CharField(max_length=255)),
                (
                    "validity",
                    models.CharField(
                        choices=[("pending", "Pending"), ("valid", "Valid"), ("invalid", "Invalid")],
                        db_index=True,
                        default="pending",
                        max_length=16,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "election",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="nominations",
                        to="core.election",
                    ),
                ),
            ],
            options={
                "ordering": ("election_id", "display_name", "username"),
                "indexes": [
                    models.Index(fields=["election", "validity"], name="n_election_validity"),
                    models.Index(fields=["username", "validity"], name="n_username_validity"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("election", "username"),
                        name="uniq_nomination_election_username",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="NominationLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("nominator_username", models.CharField(max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "election",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="nomination_logs",
                        to="core.election",
                    ),
                ),
            ],
            options={
                "ordering": ("election_id", "created_at"),
                "indexes": [
                    models.Index(fields=["nominator_username"], name="nl_nominator"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("election", "nominator_username"),
                        name="uniq_nominationlog_election_nominator",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="VoteLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("voter_username", models.CharField(max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "election",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="vote_logs",
                        to="core.election",
                    ),
                ),
            ],
            options={
                "ordering": ("election_id", "created_at"),
                "indexes": [
                    models.Index(fields=["voter_username"], name="vl_voter"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("election", "voter_username"),
                        name="uniq_votelog_election_voter",
                    ),
                ],
            },
        ),
    ]
