"""Error taxonomy for the aura engine.

Input and upstream errors propagate to the immediate caller. Batch jobs
catch ``AuraError`` and log it; the next scheduled run recovers.
"""


class AuraError(Exception):
    """Base class for engine errors."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInputError(AuraError):
    """Missing user id or malformed contribution series."""

    status_code = 400


class UserNotFoundError(AuraError):
    status_code = 404

    def __init__(self, user_id: int) -> None:
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


class UpstreamFetchError(AuraError):
    """Contribution or profile source unavailable or rate limited."""

    status_code = 502


class BanOperationError(AuraError):
    """Leaderboard removal did not complete; the ban action is retriable."""

    status_code = 503
