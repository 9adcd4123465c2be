"""Exception taxonomy for the scheduling engine."""


class CareNudgeError(Exception):
    """Base class for engine errors."""


class ValidationError(CareNudgeError, ValueError):
    """Malformed time-of-day, unknown anchor name or invalid tier id."""


class NotFoundError(CareNudgeError, LookupError):
    """A reminder or platform notification does not exist."""


class TransientIOError(CareNudgeError):
    """A store or notification API call failed."""
