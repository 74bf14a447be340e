from __future__ import annotations

import functools
import logging
from collections.abc import Callable

from django.db import DatabaseError

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for errors that terminate a user action.

    `key` is the stable identifier clients translate; `status` is the HTTP
    status the API layer answers with. `retryable` separates "try again later"
    from "this request will never succeed".
    """

    key = "error.internal"
    status = 500
    retryable = False

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.key)


class UnauthorizedError(AppError):
    key = "error.unauthorized"
    status = 401


class ForbiddenError(AppError):
    key = "error.forbidden"
    status = 403


class BadInputError(AppError):
    status = 400

    def __init__(self, key: str, message: str | None = None) -> None:
        self.key = key
        super().__init__(message or key)


class UnknownElectionError(AppError):
    key = "error.unknown.election"
    status = 404


class UnknownNominationError(AppError):
    key = "error.unknown.nomination"
    status = 404


class UnknownVoteOptionError(AppError):
    key = "error.election.unknown-vote-option"
    status = 400


class OutsideCandidacyPeriodError(AppError):
    key = "error.election.candidacy.outside-period"
    status = 403


class OutsideVotingPeriodError(AppError):
    key = "error.election.voting.outside-period"
    status = 403


class ElectionUnauthorizedError(AppError):
    key = "error.election.unauthorized"
    status = 403


class InvalidPersonSignatureError(AppError):
    key = "error.person-signature.invalid"
    status = 401


class DuplicateNominationError(AppError):
    key = "error.election.duplicate-nomination"
    status = 403


class DuplicateVoteError(AppError):
    key = "error.election.duplicate-vote"
    status = 403


class ElectionWithUnverifiedNominationError(AppError):
    key = "error.election.unverified-nomination"
    status = 409


class ElectionNotEndedError(AppError):
    key = "error.election.not-ended"
    status = 409


class InvalidDegreeError(AppError):
    key = "error.degree.invalid"
    status = 409


class InvalidRoundError(AppError):
    key = "error.round.invalid"
    status = 409


class InvalidDateRangeError(AppError):
    key = "error.daterange.invalid"
    status = 400


class ElectionCandidacyAfterVotingError(AppError):
    key = "error.election.candidacy-after-voting"
    status = 400


class DuplicateElectionError(AppError):
    key = "error.duplicate.election"
    status = 409


class DuplicateAdminError(AppError):
    key = "error.duplicate.admin"
    status = 409


class UnknownAdminError(AppError):
    key = "error.unknown.admin"
    status = 404


class NotEnoughAdminsError(AppError):
    key = "error.not.enough.admins"
    status = 404


class FenixError(AppError):
    key = "error.fenix"
    status = 502
    retryable = True


class DbError(AppError):
    key = "error.internal"
    status = 500
    retryable = True


def translate_db_errors[**P, R](func: Callable[P, R]) -> Callable[P, R]:
    """Report storage failures that escape a service call as a transient DbError.

    Must wrap the outermost `transaction.atomic` so the failed transaction is
    already rolled back when the DbError is raised.
    """

    @functools.wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        try:
            return func(*args, **kwargs)
        except DatabaseError as exc:
            logger.exception("Storage failure in %s", func.__qualname__)
            raise DbError() from exc

    return wrapper
