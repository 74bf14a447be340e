from __future__ import annotations

import logging

from django.db import IntegrityError, transaction

from core.errors import (
    BadInputError,
    DuplicateAdminError,
    ForbiddenError,
    NotEnoughAdminsError,
    UnknownAdminError,
    translate_db_errors,
)
from core.models import Administrator

logger = logging.getLogger(__name__)


def is_admin(username: str) -> bool:
    return bool(username) and Administrator.objects.filter(username=username).exists()


def is_setup() -> bool:
    return Administrator.objects.exists()


def list_admins() -> list[Administrator]:
    return list(Administrator.objects.order_by("date_added", "username"))


@translate_db_errors
def add_admin(*, username: str, actor_username: str = "") -> Administrator:
    username = str(username or "").strip()
    if not username:
        raise BadInputError("error.username.empty")

    try:
        with transaction.atomic():
            admin = Administrator.objects.create(username=username)
    except IntegrityError as exc:
        raise DuplicateAdminError(f"{username} is already an administrator") from exc

    logger.info("Administrator added username=%s actor=%s", username, actor_username)
    return admin


@translate_db_errors
@transaction.atomic
def remove_admin(*, username: str, actor_username: str = "") -> None:
    username = str(username or "").strip()
    if not username:
        raise BadInputError("error.username.empty")

    # Lock every admin row so two concurrent removals cannot leave zero admins.
    admins = list(Administrator.objects.select_for_update().values_list("username", flat=True))
    if username not in admins:
        raise UnknownAdminError(f"{username} is not an administrator")
    if len(admins) <= 1:
        raise NotEnoughAdminsError("at least one administrator must remain")

    Administrator.objects.filter(username=username).delete()
    logger.info("Administrator removed username=%s actor=%s", username, actor_username)


@translate_db_errors
@transaction.atomic
def setup_first_admin(*, username: str) -> Administrator:
    """Make the first user to claim it the administrator of a fresh install."""

    if Administrator.objects.select_for_update().exists():
        raise ForbiddenError("administrators already configured")

    admin = Administrator.objects.create(username=username)
    logger.info("First administrator configured username=%s", username)
    return admin
