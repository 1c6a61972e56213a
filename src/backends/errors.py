"""Classified failures raised by backend adapters and the job poller."""

from generation_models import BackendFailure, BackendId, Quality


class GenerationError(Exception):
    """Base class for classified backend failures."""

    kind = "generation"

    def __init__(self, message: str, backend: BackendId | None = None):
        super().__init__(message)
        self.message = message
        self.backend = backend

    @property
    def remediation(self) -> str | None:
        return None

    def to_failure(self, quality: Quality, backend: BackendId | None = None) -> BackendFailure:
        """Record this error as an absorbed failure for the given quality."""
        return BackendFailure(
            backend=backend or self.backend,
            quality=quality,
            kind=self.kind,
            message=self.message,
            remediation=self.remediation,
        )


class ConfigurationError(GenerationError):
    """Missing or placeholder credentials. Never retried."""

    kind = "configuration"


class RejectedContentError(GenerationError):
    """The backend refused the prompt on policy grounds."""

    kind = "rejected"


class TransientServiceError(GenerationError):
    """Network failure, 5xx, malformed success, timeout or stalled job."""

    kind = "transient"


class RateLimitedError(TransientServiceError):
    """The backend is throttling requests."""

    kind = "rate_limited"

    @property
    def remediation(self) -> str | None:
        return (
            "Rate limit exceeded. Wait a few minutes before trying again, "
            "slow down the request rate and check the account usage limits."
        )


class QuotaExceededError(TransientServiceError):
    """The account has run out of credit or quota."""

    kind = "quota_exceeded"

    @property
    def remediation(self) -> str | None:
        return (
            "Quota exceeded. Check the account balance, usage limits and "
            "billing settings, or upgrade the plan."
        )
