from __future__ import annotations

from typing import override

from django.contrib import admin

from .models import Administrator, Election, ElectionVote, Nomination, NominationLog, UserDegreeOverride, VoteLog


class ReadOnlyModelAdmin(admin.ModelAdmin):
    """Inspection-only admin for rows the election services own."""

    @override
    def has_add_permission(self, request):
        return False

    @override
    def has_change_permission(self, request, obj=None):
        return False

    @override
    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Election)
class ElectionAdmin(ReadOnlyModelAdmin):
    list_display = (
        "id",
        "academic_year",
        "degree_id",
        "curricular_year",
        "round",
        "candidacy_period_start",
        "candidacy_period_end",
        "voting_period_start",
        "voting_period_end",
    )
    list_filter = ("academic_year", "round")
    search_fields = ("degree_id",)


@admin.register(Nomination)
class NominationAdmin(ReadOnlyModelAdmin):
    list_display = ("election", "username", "display_name", "validity", "updated_at")
    list_filter = ("validity",)
    search_fields = ("username", "display_name")


@admin.register(NominationLog)
class NominationLogAdmin(ReadOnlyModelAdmin):
    list_display = ("election", "nominator_username", "created_at")
    search_fields = ("nominator_username",)


@admin.register(VoteLog)
class VoteLogAdmin(ReadOnlyModelAdmin):
    list_display = ("election", "voter_username", "created_at")
    search_fields = ("voter_username",)


@admin.register(ElectionVote)
class ElectionVoteAdmin(ReadOnlyModelAdmin):
    list_display = ("election", "candidate_username", "count")


@admin.register(Administrator)
class AdministratorAdmin(admin.ModelAdmin):
    list_display = ("username", "date_added")
    search_fields = ("username",)


@admin.register(UserDegreeOverride)
class UserDegreeOverrideAdmin(admin.ModelAdmin):
    list_display = ("username", "academic_year", "degree_id", "curricular_year")
    list_filter = ("academic_year", "degree_id")
    search_fields = ("username",)
