"""
Cloudsync exception hierarchy.

Every error raised by the synchronization core inherits from
:class:`CloudsyncError`. Provider failures keep the provider's error
code so callers can distinguish rejected requests from transient ones.
"""

from __future__ import annotations

from typing import Iterable


# ── Base ──────────────────────────────────────────────────────────────
class CloudsyncError(Exception):
    """Root exception for all Cloudsync errors."""


# ── Local (pre-flight) ────────────────────────────────────────────────
class ValidationError(CloudsyncError):
    """A resource config is not valid for the requested operation.

    Raised before any provider call is made.

    Attributes:
        errors: One message per failed check.
    """

    def __init__(self, errors: Iterable[str] | str) -> None:
        if isinstance(errors, str):
            errors = [errors]
        self.errors: list[str] = list(errors)
        super().__init__("; ".join(self.errors))


class ImmutableFieldError(CloudsyncError):
    """An update touched create-only fields; the resource must be replaced."""

    def __init__(self, kind: str, fields: Iterable[str]) -> None:
        self.kind = kind
        self.fields: list[str] = sorted(fields)
        super().__init__(
            f"Cannot update {', '.join(self.fields)} on {kind}; replacement required"
        )


# ── Provider ──────────────────────────────────────────────────────────
class ProviderError(CloudsyncError):
    """The provider API rejected or failed a request.

    Attributes:
        code: HTTP-style status code reported by the provider (``None`` if unknown).
        message: Provider error message.
    """

    def __init__(self, message: str, code: int | None = None) -> None:
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {message}" if code is not None else message)

    @property
    def transient(self) -> bool:
        """Whether the failure is worth retrying (5xx or throttling)."""
        return self.code is not None and (self.code >= 500 or self.code == 429)


class ResourceNotFoundError(ProviderError):
    """The provider has no entity with the requested identity."""

    def __init__(self, message: str, code: int | None = 404) -> None:
        super().__init__(message, code)


# ── Asynchronous operations ───────────────────────────────────────────
class OperationTimeoutError(CloudsyncError):
    """Polling an async provider operation exceeded its budget.

    The remote state is indeterminate; a later refresh can recover it.
    """

    def __init__(self, operation: str, timeout: float) -> None:
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"Operation '{operation}' did not finish within {timeout:g}s")


class Cancelled(CloudsyncError):
    """The caller aborted while waiting on a provider operation.

    Not a failure of the remote operation itself, which may still complete.
    """
