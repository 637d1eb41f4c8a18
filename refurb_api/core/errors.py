"""
Domain error taxonomy raised by services and mapped to HTTP responses by the app.

Every error carries a machine-readable `code`, a human-readable `message` and
optional structured `details`. The HTTP status is a class attribute so the
exception handler in refurb_api.api.main needs only one branch.
"""

from __future__ import annotations

from typing import Any, List, Optional


class WorkflowError(Exception):
    """Base class for all workflow rule violations."""

    status_code: int = 400
    code: str = "workflow_error"

    def __init__(self, message: str, details: Optional[Any] = None, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details
        if code:
            self.code = code


class NotFound(WorkflowError):
    status_code = 404
    code = "not_found"


class ValidationFailed(WorkflowError):
    status_code = 422
    code = "validation_failed"


class PermissionDenied(WorkflowError):
    status_code = 403
    code = "permission_denied"


class PreconditionFailed(WorkflowError):
    """The entity is not in a state that allows the requested operation."""

    status_code = 409
    code = "precondition_failed"


class InvalidTransition(PreconditionFailed):
    code = "invalid_transition"

    def __init__(self, current: str, target: str) -> None:
        super().__init__(
            f"Cannot move device from {current} to {target}",
            details={"from": current, "to": target},
        )
        self.current = current
        self.target = target


class NotClaimable(PreconditionFailed):
    code = "not_claimable"


class NotJobOwner(PreconditionFailed):
    code = "not_job_owner"


class IncompleteParallelWork(PreconditionFailed):
    code = "incomplete_parallel_work"

    def __init__(self, missing_tracks: List[str]) -> None:
        super().__init__(
            "Parallel work is not complete: " + "; ".join(missing_tracks),
            details={"missing": list(missing_tracks)},
        )
        self.missing_tracks = list(missing_tracks)


class NotReadyForQC(PreconditionFailed):
    code = "not_ready_for_qc"


class BatchLocked(PreconditionFailed):
    code = "batch_locked"


class SparesUnavailable(WorkflowError):
    """Spares could not be issued; `errors` lists every problem found."""

    status_code = 409
    code = "spares_unavailable"

    def __init__(self, errors: List[str]) -> None:
        super().__init__("; ".join(errors), details={"errors": list(errors)})
        self.errors = list(errors)


class PartNotFound(SparesUnavailable):
    code = "part_not_found"


class InsufficientStock(SparesUnavailable):
    code = "insufficient_stock"
