from typing import Optional

from botocore.exceptions import ClientError

GROUP_NOT_FOUND = "ResourceNotFoundException"
THROTTLED = "ThrottlingException"


class TailError(Exception):
    """Base class for errors raised while tailing a log group."""


class ResolutionError(TailError):
    """Stream discovery failed before any event was produced."""

    def __init__(self, group: str, cause: BaseException):
        super().__init__(f"cannot resolve streams for {group}: {cause}")
        self.group = group
        self.cause = cause


class DiscoveryTimeout(TailError):
    """A single discovery attempt ran past its time bound."""


class PageFetchError(TailError):
    """A page of events could not be fetched, even after retrying."""

    def __init__(self, group: str, attempts: int, cause: BaseException):
        super().__init__(f"fetching events for {group} failed after {attempts} attempt(s): {cause}")
        self.group = group
        self.attempts = attempts
        self.cause = cause


class Cancelled(TailError):
    """Raised when a wait is interrupted by the stop signal."""


def error_code(exc: BaseException) -> Optional[str]:
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code")
    return None


def is_group_not_found(exc: BaseException) -> bool:
    return error_code(exc) == GROUP_NOT_FOUND


def is_throttled(exc: BaseException) -> bool:
    return error_code(exc) == THROTTLED
