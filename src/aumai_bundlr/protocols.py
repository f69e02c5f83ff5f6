"""Capabilities consumed from collaborators outside this package.

Signing backends, the chunked-transfer client and the data-item codec are
owned elsewhere; the uploader only relies on the narrow surfaces below.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol

import httpx

from aumai_bundlr.models import Keypair, Tag, UploadReceipt


class Signer(Protocol):
    @property
    def public_key(self) -> bytes: ...

    def sign(self, data: bytes) -> bytes: ...

    def verify(self, public_key: bytes, data: bytes, signature: bytes) -> bool: ...


class DataItem(Protocol):
    """A signed, content-addressed unit of data."""

    @property
    def id(self) -> str: ...

    @property
    def raw(self) -> bytes: ...

    @property
    def owner(self) -> bytes: ...

    @property
    def tags(self) -> Sequence[Tag]: ...


class Bundle(Protocol):
    @property
    def raw(self) -> bytes: ...

    def get_ids(self) -> list[str]: ...


class Arbundles(Protocol):
    """Data-item codec: building, recognising and bundling signed items."""

    def create_item(
        self,
        data: bytes,
        signer: Signer,
        *,
        tags: Sequence[Tag] = (),
        anchor: str | None = None,
    ) -> DataItem: ...

    def is_data_item(self, value: Any) -> bool: ...

    def bundle(self, items: Sequence[DataItem], signer: Signer) -> Bundle: ...

    def generate_keypair(self) -> Keypair: ...

    def signer_for(self, keypair: Keypair) -> Signer: ...

    def digest(self, data: bytes) -> bytes: ...


class CurrencyConfig(Protocol):
    """The paying account: its network name and the signer that owns it."""

    @property
    def name(self) -> str: ...

    def get_signer(self) -> Signer: ...


class ChunkedUploader(Protocol):
    """Client for the chunked-transfer sub-protocol.

    Both methods return the node's final response so that the uploader can
    classify it exactly like a direct upload.
    """

    async def upload_transaction(
        self, data: Any, *, receipt: bool = False, headers: dict[str, str] | None = None
    ) -> httpx.Response: ...

    async def upload_data(
        self,
        data: Any,
        *,
        tags: Sequence[Tag] = (),
        anchor: str | None = None,
        receipt: bool = False,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response: ...


class ReceiptVerifier(Protocol):
    async def verify_receipt(self, receipt: UploadReceipt) -> bool: ...


__all__ = [
    "Arbundles",
    "Bundle",
    "ChunkedUploader",
    "CurrencyConfig",
    "DataItem",
    "ReceiptVerifier",
    "Signer",
]
