"""Exception taxonomy for aumai-bundlr."""

from __future__ import annotations

FUNDS_EXHAUSTED_MESSAGE = "Not enough funds to send data"


class UploadError(Exception):
    """Base class for every failure raised by this package."""


class InsufficientFunds(UploadError):
    """The node answered 402: the account cannot pay for the upload.

    This is the only condition that stops a whole batch.
    """

    def __init__(self, message: str = FUNDS_EXHAUSTED_MESSAGE) -> None:
        super().__init__(message)


class UploadRejected(UploadError):
    """The node answered with a 4xx/5xx status other than 402."""

    def __init__(self, status_code: int, reason: str = "") -> None:
        self.status_code = status_code
        self.reason = reason
        super().__init__(f"whilst uploading transaction: {status_code} {reason}".rstrip())


class MalformedReceipt(UploadError):
    """A receipt was requested but the response body could not be used as one."""

    def __init__(self, body: str, detail: str = "") -> None:
        self.body = body
        self.detail = detail
        message = f"Response body is not a valid upload receipt: {body!r}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class UnknownIndexTarget(UploadError, KeyError):
    """A manifest index path does not name one of the manifest's own paths."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Unable to access item: {path}")

    def __str__(self) -> str:
        return f"Unable to access item: {self.path}"


class ChunkingUnavailable(UploadError):
    """The chunked route was chosen but no chunked uploader is configured."""


def is_funds_exhausted(exc: BaseException) -> bool:
    """Return True if *exc* means the paying account is out of funds.

    Collaborator failures are matched on their message so that a chunked
    backend raising its own error type is still treated as fatal.
    """
    return isinstance(exc, InsufficientFunds) or str(exc) == FUNDS_EXHAUSTED_MESSAGE


__all__ = [
    "FUNDS_EXHAUSTED_MESSAGE",
    "ChunkingUnavailable",
    "InsufficientFunds",
    "MalformedReceipt",
    "UnknownIndexTarget",
    "UploadError",
    "UploadRejected",
    "is_funds_exhausted",
]
