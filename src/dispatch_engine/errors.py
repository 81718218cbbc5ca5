"""Exception hierarchy shared by the dispatch services."""

from __future__ import annotations


class DispatchError(Exception):
    """Base class for dispatch engine errors."""


class InvalidInputError(DispatchError, ValueError):
    """Request input was rejected before any provider or store was touched."""


class OperationCancelled(DispatchError):
    """The caller cancelled an in-flight optimize or auto-connect call."""


class GeocodeError(DispatchError):
    reason = "provider_error"


class GeocodeNotFoundError(GeocodeError):
    reason = "not_found"


class GeocodeRateLimitedError(GeocodeError):
    reason = "rate_limited"


class GeocodeProviderError(GeocodeError):
    reason = "provider_error"


class DirectionsUnavailableError(DispatchError, ConnectionError):
    """The directions provider could not be reached or refused the request."""


class StoreUnavailableError(DispatchError):
    """The backing store failed; nothing beyond what it committed atomically is visible."""


class DuplicateActiveAssignmentError(DispatchError):
    """An active assignment already exists for the (user, project, date) tuple."""

    def __init__(self, user_id: str | None = None, project_id: str | None = None, assignment_date=None) -> None:
        self.user_id = user_id
        self.project_id = project_id
        self.assignment_date = assignment_date
        if user_id is None:
            super().__init__("An active assignment already exists for a (user, project, date) tuple in the batch")
        else:
            super().__init__(
                f"Active assignment already exists for user {user_id}, project {project_id} on {assignment_date}"
            )


class AssignmentNotFoundError(DispatchError, LookupError):
    pass
