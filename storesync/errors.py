"""Error taxonomy shared by the store, the model boundary, and the orchestrator."""

from __future__ import annotations


class AssistantError(Exception):
    """Base class for all assistant errors."""


class RequestRejected(AssistantError):
    """Client-visible rejection that never creates or mutates a run."""

    status_code = 400
    code = "REQUEST_REJECTED"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
        run_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.run_id = run_id
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code


class PromptRejected(RequestRejected):
    code = "INVALID_PROMPT"


class RateLimited(RequestRejected):
    status_code = 429
    code = "RATE_LIMITED"


class RunNotFound(RequestRejected):
    status_code = 404
    code = "RUN_NOT_FOUND"


class RunNotExecutable(RequestRejected):
    code = "RUN_NOT_EXECUTABLE"


class RunInProgress(RequestRejected):
    status_code = 409
    code = "RUN_IN_PROGRESS"


class IdentityMissing(RequestRejected):
    status_code = 401
    code = "AUTH_USER_UNRESOLVED"


class CatalogUnavailable(AssistantError):
    """Catalog query failed; no partial catalog is ever used."""


class ModelRequestError(AssistantError):
    """Completion call failed in transport or returned nothing usable."""


class ModelResponseParseError(AssistantError):
    """No JSON object could be recovered from the model output."""


class StoreError(AssistantError):
    """Store-layer failure with a message safe to show to the operator."""


class AlreadyExistsError(StoreError):
    """Insert hit a uniqueness constraint."""


class RecordNotFoundError(StoreError):
    pass


class InsufficientStockError(StoreError):
    pass


class RunTransitionError(AssistantError):
    """Run status update was not allowed or matched zero rows."""
