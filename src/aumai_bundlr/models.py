"""Pydantic models for aumai-bundlr."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr


class PayloadKind(str, Enum):
    """Closed set of inputs accepted by the uploader."""

    raw_bytes = "raw_bytes"
    stream = "stream"
    signed_item = "signed_item"


class Tag(BaseModel):
    """A name/value pair attached to a data item."""

    model_config = ConfigDict(frozen=True)

    name: str
    value: str


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ApiConfig(BaseModel):
    """Location of the bundler node and transport-level defaults."""

    model_config = ConfigDict(frozen=True)

    protocol: str = "https"
    host: str
    port: int = Field(default=443, ge=1, le=65535)
    timeout: float = Field(default=30.0, gt=0)
    headers: dict[str, str] = Field(default_factory=dict)

    def url_for(self, currency: str) -> str:
        """Return the direct-upload endpoint for *currency*."""
        return f"{self.protocol}://{self.host}:{self.port}/tx/{currency}"


class UploadConfig(BaseModel):
    """Immutable upload behaviour, fixed at construction time."""

    model_config = ConfigDict(frozen=True)

    chunking_threshold: int = Field(default=50_000_000, ge=0)
    force_chunking: bool = False
    content_type: str | None = None  # not checked against a MIME table
    retry_attempts: int = Field(default=3, ge=1)
    min_backoff: float = Field(default=1.0, ge=0)
    max_backoff: float = Field(default=10.0, ge=0)
    concurrency: int = 5


class UploadOptions(BaseModel):
    """Per-call options for a single upload."""

    model_config = ConfigDict(frozen=True)

    receipt: bool = False
    headers: dict[str, str] = Field(default_factory=dict)


class CreateOptions(BaseModel):
    """Options for building a data item from raw data and uploading it."""

    model_config = ConfigDict(frozen=True)

    tags: list[Tag] = Field(default_factory=list)
    anchor: str | None = None
    upload: UploadOptions = Field(default_factory=UploadOptions)


# ---------------------------------------------------------------------------
# Upload results
# ---------------------------------------------------------------------------


class UploadResult(BaseModel):
    """Bare acknowledgement of an accepted upload."""

    id: str


class UploadReceipt(UploadResult):
    """Signed acknowledgement returned when a receipt was requested.

    :meth:`verify` is bound by the uploader after parsing.  It does no work
    until awaited and caches its answer, so repeated and concurrent calls
    share one check.
    """

    model_config = ConfigDict(populate_by_name=True)

    signature: str
    timestamp: int
    public: str | None = None
    version: str | None = None
    deadline_height: int | None = Field(default=None, alias="deadlineHeight")

    _verifier: Any = PrivateAttr(default=None)
    _verification: Any = PrivateAttr(default=None)

    def bind_verifier(
        self, verifier: Callable[[UploadReceipt], Awaitable[bool]]
    ) -> None:
        self._verifier = verifier
        self._verification = None

    async def verify(self) -> bool:
        """Check the receipt signature with the bound verification collaborator.

        Concurrent callers share a single in-flight check.  A check that
        raises is not cached, so the next call tries again.

        Raises:
            RuntimeError: if no verifier has been bound to this receipt.
        """
        if self._verification is None:
            if self._verifier is None:
                raise RuntimeError(f"No receipt verifier bound for item {self.id}")
            self._verification = asyncio.ensure_future(self._verifier(self))
        verification = self._verification
        try:
            return bool(await asyncio.shield(verification))
        except Exception:
            if self._verification is verification:
                self._verification = None
            raise


class Keypair(BaseModel):
    """A raw asymmetric keypair, both halves base64url-encoded."""

    model_config = ConfigDict(frozen=True)

    private_key: str
    public_key: str


class BundleUploadResult(BaseModel):
    """Outcome of uploading many items as one bundle."""

    result: UploadResult
    txs: list[str]
    ephemeral_key: Keypair
    ephemeral_address: str

    @property
    def id(self) -> str:
        return self.result.id


class ItemOutcome(BaseModel):
    """Default scheduler record for a successfully uploaded item."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    item: Any
    res: Any
    i: int


class BatchOutcome(BaseModel):
    """Errors and results of one scheduler run.

    ``errors`` keeps the order failures were raised; ``results`` keeps
    completion order, which need not match input order.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    errors: list[Exception] = Field(default_factory=list)
    results: list[Any] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Manifest
# ---------------------------------------------------------------------------


class ManifestPath(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str


class ManifestIndex(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str


class Manifest(BaseModel):
    """Static path → item-id index published alongside a batch."""

    model_config = ConfigDict(frozen=True)

    manifest: str = "arweave/paths"
    version: str = "0.1.0"
    index: ManifestIndex | None = None
    paths: dict[str, ManifestPath] = Field(default_factory=dict)


__all__ = [
    "ApiConfig",
    "BatchOutcome",
    "BundleUploadResult",
    "CreateOptions",
    "ItemOutcome",
    "Keypair",
    "Manifest",
    "ManifestIndex",
    "ManifestPath",
    "PayloadKind",
    "Tag",
    "UploadConfig",
    "UploadOptions",
    "UploadReceipt",
    "UploadResult",
]
