"""Error kinds raised by the aggregation pipeline and the report query path.

Absence is never an error here: an empty roster yields ``None`` from
``average`` and a building without reports yields ``None`` from the store.
"""

from __future__ import annotations


class ServiceError(Exception):
    """Base class for pipeline failures."""

    retryable: bool = False


class UpstreamUnavailable(ServiceError):
    """A registry call failed: network error, timeout, non-2xx or bad body."""

    retryable = True


class PersistenceFailure(ServiceError):
    """The time-series store could not complete a read or write."""

    retryable = True


class BadRequest(ServiceError):
    """A report query carried inputs that cannot be served."""


class OperationCancelled(ServiceError):
    """The aggregation run was cancelled while this call was pending."""
