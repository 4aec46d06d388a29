"""
Error types raised by the fetch, mutation and response layers.

    ValidationError          local precondition failed, nothing was sent
    ApiError                 the backend answered non-2xx or could not be reached
    MissingContractIdError   generate succeeded but returned no usable contract id
    BulkResponseError        some or all of a bulk accept/reject batch failed
"""


class GigCrmError(Exception):
    """Base class for all gigcrm errors."""


class ValidationError(GigCrmError, ValueError):
    """A local precondition was not met. Raised before any network call."""


class InvalidTransitionError(ValidationError):
    """A status change that the contract lifecycle does not allow."""

    def __init__(self, entity: str, current: str, target: str):
        self.entity = entity
        self.current = current
        self.target = target
        super().__init__(f"Cannot move {entity} from '{current}' to '{target}'")


class ApiError(GigCrmError, RuntimeError):
    """Transport or HTTP failure. The backend's message is kept verbatim."""

    def __init__(self, status_code, body: str):
        self.status_code = status_code
        self.body = body
        prefix = status_code if status_code is not None else 'network error'
        super().__init__(f"{prefix}: {body}")


class MissingContractIdError(GigCrmError, RuntimeError):
    """The generate endpoint answered without an 'id' or 'contractId'."""

    def __init__(self, payload=None):
        self.payload = payload
        super().__init__(
            f"Generate response is missing contract id (expected 'id' or 'contractId'): {payload!r}"
        )


class BulkResponseError(GigCrmError, RuntimeError):
    """Base for bulk accept/reject failures. Carries the BulkResult."""

    def __init__(self, result, message: str):
        self.result = result
        super().__init__(message)


class PartialBulkFailureError(BulkResponseError):
    """Some dates were updated, others failed. Retry only the failed ones."""

    def __init__(self, result):
        super().__init__(
            result,
            f"{len(result.succeeded)} date(s) updated, {len(result.failed)} failed "
            f"(failed ids: {sorted(result.failed)}). Retry the remaining dates.",
        )


class TotalBulkFailureError(BulkResponseError):
    """Every date in the batch failed."""

    def __init__(self, result):
        super().__init__(result, f"All {len(result.failed)} date update(s) failed")
