"""
Exception hierarchy shared by the sync pipeline, job runner and API layer.

Transport and parse failures raised inside orchestrators propagate to the
job runner, which decides whether to retry and when to alert.
"""
from typing import Dict, List, Optional


class ScoutApiError(Exception):
    """Base class for application errors."""


class ConfigurationError(ScoutApiError):
    """A required setting (usually a provider credential) is missing."""


class ProviderError(ScoutApiError):
    """An external provider returned an error or could not be reached."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status_code = status_code


class SuspiciousEmptyResult(ScoutApiError):
    """A provider returned nothing on a day that should have games."""


class PollError(ScoutApiError):
    """Base class for background-request polling failures."""


class PollFailedError(PollError):
    """The provider reported the background request as failed."""


class PollTimeoutError(PollError):
    """The poll budget ran out before the request completed."""


class PollCancelledError(PollError):
    """Polling was cancelled (usually on shutdown)."""


class JobLockedError(ScoutApiError):
    """Another instance of the job already holds the single-flight lock."""


class JobTimeoutError(ScoutApiError):
    """One attempt of a job ran past its time budget."""


class NotFoundError(ScoutApiError):
    """A requested row does not exist (or is soft-deleted)."""


class AuthorizationError(ScoutApiError):
    """The caller may not act on this resource."""


class ValidationFailed(ScoutApiError):
    """Request data failed validation; errors maps field paths to messages."""

    def __init__(self, errors: Dict[str, List[str]]):
        super().__init__("; ".join(f"{k}: {', '.join(v)}" for k, v in errors.items()))
        self.errors = errors
