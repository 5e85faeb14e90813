"""Raid error taxonomy.

Every gate failure maps 1:1 to an HTTP status and a stable ``code`` that
the client shows verbatim. Only ``StorageFailure`` is worth a manual
retry; nothing here is retried automatically.
"""

from __future__ import annotations


class RaidError(Exception):
    """Base class for raid failures surfaced to the caller."""

    status_code: int = 400
    code: str = "raid_error"
    default_message: str = "Raid failed"
    retryable: bool = False

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationRequired(RaidError):
    status_code = 401
    code = "authentication_required"
    default_message = "Not authenticated"


class ProfileNotClaimed(RaidError):
    status_code = 403
    code = "profile_not_claimed"
    default_message = "Must claim building first"


class TargetNotFound(RaidError):
    status_code = 404
    code = "target_not_found"
    default_message = "Target not found"


class SelfTargetForbidden(RaidError):
    status_code = 409
    code = "self_target_forbidden"
    default_message = "Cannot raid yourself"


class DailyLimitExceeded(RaidError):
    status_code = 429
    code = "daily_limit_exceeded"
    default_message = "Daily raid limit reached"


class WeeklyCooldownActive(RaidError):
    status_code = 429
    code = "weekly_cooldown_active"
    default_message = "Already raided this target this week"


class RateLimited(RaidError):
    status_code = 429
    code = "rate_limited"
    default_message = "Too fast"

    def __init__(self, message: str | None = None, retry_after: int = 10) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class ValidationError(RaidError):
    status_code = 400
    code = "validation_error"
    default_message = "Invalid request"


class StorageFailure(RaidError):
    status_code = 500
    code = "storage_failure"
    default_message = "Raid could not be saved, please try again"
    retryable = True
