"""Custom exception hierarchy for pyfblist."""

from __future__ import annotations


class FBListError(Exception):
    """Base exception for all pyfblist errors."""


class FBListConfigError(FBListError):
    """Invalid or missing configuration.

    Raised from constructors: missing query or reference, missing decoder,
    out-of-range page sizes.
    """


class FBListFetchError(FBListError):
    """Backend failure while fetching a page (network, permissions, ...)."""

    def __init__(
        self,
        message: str,
        *,
        backend: str = "",
        is_continuation: bool = False,
    ) -> None:
        self.backend = backend
        self.is_continuation = is_continuation
        super().__init__(message)


class FBListDecodeError(FBListError):
    """A single record could not be converted into an item.

    Decode errors are never fatal: the record is skipped and the rest of
    the batch is still merged.
    """

    def __init__(self, message: str, *, key: str | None = None) -> None:
        self.key = key
        super().__init__(message)
