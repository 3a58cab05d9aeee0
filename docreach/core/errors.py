"""
Error taxonomy for verification, matching, availability and dispatch.
Every rejected operation raises one of these with a machine-readable code and details;
main.py maps them to JSON responses using http_status.
"""
import math
from typing import Any, Dict, List, Optional


class DomainError(Exception):
    """Base error. Subclasses fix the HTTP status and a default error code."""

    http_status = 400
    default_code = "DOMAIN_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details or {}
        super().__init__(self.message)


# Validation: malformed input, never retried

class ValidationError(DomainError):
    http_status = 422
    default_code = "INVALID_INPUT"


def _coordinate_detail(value: Any) -> Any:
    # NaN and inf are not valid JSON
    if isinstance(value, float) and not math.isfinite(value):
        return str(value)
    return value


class InvalidLocationError(ValidationError):
    def __init__(self, latitude: Any, longitude: Any) -> None:
        super().__init__(
            f"Invalid location ({latitude}, {longitude}); latitude must be in [-90, 90] and longitude in [-180, 180]",
            "INVALID_LOCATION",
            {"latitude": _coordinate_detail(latitude), "longitude": _coordinate_detail(longitude)},
        )


class InvalidDocumentKindError(ValidationError):
    def __init__(self, kind: Any) -> None:
        super().__init__(f"Unknown document kind: {kind}", "INVALID_KIND", {"kind": kind})


class InvalidDocumentError(ValidationError):
    """Document store rejected the bytes (error_code INVALID_FORMAT or TOO_LARGE)."""


class InvalidContactMethodError(ValidationError):
    def __init__(self, method: Any) -> None:
        super().__init__(f"Invalid contact method: {method}", "INVALID_METHOD", {"method": method})


class MissingDocumentsError(ValidationError):
    def __init__(self, missing: List[str]) -> None:
        self.missing = list(missing)
        super().__init__(
            f"Missing required documents: {', '.join(self.missing)}",
            "MISSING_DOCUMENTS",
            {"missing_documents": self.missing},
        )


class VerificationFailedError(ValidationError):
    def __init__(self, check: str, reason: str) -> None:
        self.check = check
        self.reason = reason
        super().__init__(
            f"Verification check '{check}' failed: {reason}",
            "VALIDATION_FAILED",
            {"check": check, "reason": reason},
        )


# State conflicts: recoverable, caller may re-search or resubmit

class StateConflictError(DomainError):
    http_status = 409
    default_code = "STATE_CONFLICT"


class InvalidTransitionError(StateConflictError):
    def __init__(self, doctor_id: str, current: str, action: str) -> None:
        super().__init__(
            f"Cannot {action} doctor '{doctor_id}' while status is {current}",
            "INVALID_TRANSITION",
            {"doctor_id": doctor_id, "status": current, "action": action},
        )


class DoctorUnavailableError(StateConflictError):
    def __init__(self, doctor_id: str, reason: str = "Doctor not available") -> None:
        super().__init__(reason, "DOCTOR_UNAVAILABLE", {"doctor_id": doctor_id})


class ConcurrentUpdateError(StateConflictError):
    def __init__(self, doctor_id: str) -> None:
        super().__init__(
            f"Doctor '{doctor_id}' was modified concurrently; retry with fresh state",
            "CONCURRENT_UPDATE",
            {"doctor_id": doctor_id},
        )


# Not found

class NotFoundError(DomainError):
    http_status = 404
    default_code = "NOT_FOUND"


class DoctorNotFoundError(NotFoundError):
    def __init__(self, doctor_id: str) -> None:
        super().__init__(f"Doctor with ID '{doctor_id}' not found", "DOCTOR_NOT_FOUND", {"doctor_id": doctor_id})


class AccountNotFoundError(NotFoundError):
    def __init__(self, user_id: str) -> None:
        super().__init__(f"Account with ID '{user_id}' not found", "ACCOUNT_NOT_FOUND", {"user_id": user_id})


# Authorization, checked before any mutation

class ForbiddenError(DomainError):
    http_status = 403
    default_code = "FORBIDDEN"


class NotReviewerError(ForbiddenError):
    def __init__(self, caller_id: str) -> None:
        super().__init__(f"Caller '{caller_id}' does not hold the reviewer role", "NOT_REVIEWER", {"caller_id": caller_id})


class NotSelfError(ForbiddenError):
    def __init__(self, caller_id: str, doctor_id: str) -> None:
        super().__init__(
            "Doctors may only change their own availability",
            "NOT_SELF",
            {"caller_id": caller_id, "doctor_id": doctor_id},
        )


# Collaborator failures: logged, surfaced generically, not retried here

class DependencyError(DomainError):
    http_status = 502
    default_code = "DEPENDENCY_FAILURE"


class StorageFailureError(DependencyError):
    def __init__(self, reason: str) -> None:
        super().__init__("Document storage failed", "STORAGE_FAILURE", {"reason": reason})


class ValidatorUnavailableError(DependencyError):
    def __init__(self, check: str, reason: str) -> None:
        super().__init__(f"Verification service '{check}' unavailable", "VALIDATOR_UNAVAILABLE", {"check": check, "reason": reason})
