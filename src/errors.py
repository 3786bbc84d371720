# src/errors.py

"""Error taxonomy shared by the store, ledger, moderation and scoring layers.

Each error carries the status code the boundary service reports and a
message that is safe to show to the caller.
"""


class TrustMartError(Exception):
    """Base class for every error raised deliberately by trustmart."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(TrustMartError):
    """A required field is missing or out of range."""

    status_code = 400


class NotFoundError(TrustMartError):
    """An identity lookup missed."""

    status_code = 404

    def __init__(self, kind: str, entity_id: str) -> None:
        super().__init__(f"{kind.capitalize()} not found: {entity_id}")
        self.kind = kind
        self.entity_id = entity_id


class ConflictError(TrustMartError):
    """A uniqueness rule was violated (e.g. a second review by one user)."""

    status_code = 409


class ConsistencyError(TrustMartError):
    """A multi-step operation completed only partially.

    Always surfaced to the caller; it marks a genuine data-integrity gap.
    """

    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        completed_steps: list[str] | None = None,
        rolled_back: bool = False,
    ) -> None:
        super().__init__(message)
        self.completed_steps = completed_steps or []
        self.rolled_back = rolled_back


class ExternalServiceError(TrustMartError):
    """The web-search or inference capability failed."""

    status_code = 502
    kind: str = "error"

    def __init__(self, service: str, message: str) -> None:
        super().__init__(f"{service}: {message}")
        self.service = service


class QuotaExceededError(ExternalServiceError):
    """The provider refused the call because the plan quota is used up."""

    status_code = 429
    kind = "quota"


class TransientServiceError(ExternalServiceError):
    """Network failure, timeout, 5xx, or an open circuit breaker."""

    kind = "transient"


class MalformedResponseError(ExternalServiceError):
    """The provider answered with something that could not be parsed."""

    kind = "malformed"
