"""Exception roots shared by every bounded context.

Services raise subclasses of :class:`DomainError`; views translate them
into HTTP responses with :meth:`DomainError.to_dict`. Storage-layer
exceptions are wrapped before they leave a service.
"""

from __future__ import annotations

from typing import Any, Dict


class DomainError(Exception):
    """Base class for business-rule violations."""

    code = "domain_error"

    def context(self) -> Dict[str, Any]:
        """Structured fields a caller needs to build a specific message."""
        return {}

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "detail": str(self), **self.context()}


class NotFound(DomainError):
    """A referenced entity does not exist."""

    code = "not_found"


class DomainValidationError(DomainError):
    """Input data breaks an invariant of the domain."""

    code = "validation_error"


class ImmutableRecordError(DomainError):
    """An append-only record was updated or deleted."""

    code = "immutable_record"
