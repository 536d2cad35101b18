"""Error taxonomy of the directory engine.

Every layer re-raises the failure of the layer beneath it with its own
operation name and target DN attached; nothing is retried here.
"""

from __future__ import annotations

from typing import Iterable


class DirectoryError(Exception):
    def __init__(self, message: str, *, operation: str = "", target: str = "") -> None:
        self.operation = operation
        self.target = target
        prefix = f"{operation} - " if operation else ""
        super().__init__(f"{prefix}{message}")


class NotFoundError(DirectoryError):
    """The targeted DN does not exist."""


class AlreadyExistsError(DirectoryError):
    """A create targeted an occupied DN."""


class HasChildrenError(DirectoryError):
    """Delete refused because the subtree is not empty."""


class UnresolvedMemberError(DirectoryError):
    def __init__(self, names: Iterable[str], *, operation: str = "", target: str = "") -> None:
        self.names = sorted(set(names), key=str.lower)
        super().__init__(
            f"not found members with sAMAccountName={self.names}",
            operation=operation,
            target=target,
        )


class TransportError(DirectoryError):
    """Any protocol or network failure not classified above."""

    def __init__(
        self,
        message: str,
        *,
        operation: str = "",
        target: str = "",
        result_code: int | None = None,
        description: str = "",
    ) -> None:
        self.result_code = result_code
        self.description = description
        super().__init__(message, operation=operation, target=target)


def with_context(exc: DirectoryError, operation: str, target: str = "") -> DirectoryError:
    """Copy of `exc` (same class) with the caller's operation prepended."""
    if isinstance(exc, UnresolvedMemberError):
        return UnresolvedMemberError(exc.names, operation=operation, target=target or exc.target)
    if isinstance(exc, TransportError):
        return TransportError(
            str(exc),
            operation=operation,
            target=target or exc.target,
            result_code=exc.result_code,
            description=exc.description,
        )
    return type(exc)(str(exc), operation=operation, target=target or exc.target)
