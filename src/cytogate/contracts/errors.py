# src/cytogate/contracts/errors.py
"""Exception taxonomy.

Every error propagates to the caller of the top-level build or dispatch call.
Nothing here is caught and recovered from internally.
"""

from __future__ import annotations

from typing import Any


class CytogateError(Exception):
    """Base class for all cytogate errors."""


class TemplateValidationError(CytogateError, ValueError):
    """Raised when a gating template is malformed.

    Fatal at graph-build time: illegal alias, unparsable collapse flag,
    invalid groupBy, refGate without dims, unresolved or ambiguous reference,
    duplicate population path, cycle, or an empty template.
    """


class ArgumentParseError(CytogateError, ValueError):
    """Raised when a gating/preprocessing argument string cannot be parsed.

    Attributes:
        text: The offending argument text
        detail: Diagnostic from the underlying parser, if any
    """

    def __init__(self, message: str, *, text: str = "", detail: str | None = None) -> None:
        super().__init__(message if detail is None else f"{message}:\n{detail}")
        self.text = text
        self.detail = detail


class RegistrationError(CytogateError, LookupError):
    """Raised when a method name is missing from (or duplicated in) the registry."""

    def __init__(self, message: str, *, method: str) -> None:
        super().__init__(message)
        self.method = method

    def __str__(self) -> str:
        # LookupError would otherwise render args with repr quoting
        return str(self.args[0])


class ConfigurationError(CytogateError):
    """Raised when dispatch is configured inconsistently.

    Raised before any work is dispatched, e.g. the cluster strategy without a
    worker-set handle, or a groupBy column the data source does not provide.
    """


class MethodExecutionError(CytogateError):
    """Raised when a registered method fails for one group.

    The original exception is chained via __cause__.

    Attributes:
        path: Population path being computed
        method: Registry key of the failing method
        group: Group key whose call failed
    """

    def __init__(self, message: str, *, path: str, method: str, group: str) -> None:
        super().__init__(message)
        self.path = path
        self.method = method
        self.group = group

    def to_dict(self) -> dict[str, Any]:
        """Structured form for logging."""
        cause = self.__cause__
        return {
            "path": self.path,
            "method": self.method,
            "group": self.group,
            "exception": str(cause) if cause is not None else str(self),
            "type": type(cause).__name__ if cause is not None else type(self).__name__,
        }
