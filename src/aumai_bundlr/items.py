"""Turn raw payloads into signed data items."""

from __future__ import annotations

import base64
import os
from collections.abc import Sequence
from typing import Any

from aumai_bundlr.models import PayloadKind, Tag
from aumai_bundlr.protocols import Arbundles, DataItem, Signer

ANCHOR_LENGTH = 32


def generate_anchor() -> str:
    """Return a fresh 32-character anchor drawn from 32 random bytes."""
    return base64.b64encode(os.urandom(32)).decode("ascii")[:ANCHOR_LENGTH]


def classify_payload(value: Any, arbundles: Arbundles) -> PayloadKind:
    """Place *value* in the closed set of accepted upload inputs.

    Signed items are recognised through the codec's own capability check,
    never by class.  ``bytes``, ``bytearray``, ``memoryview`` and ``str``
    count as raw bytes; everything else (file objects, async byte
    iterators) is handed to the chunked path as a stream.
    """
    if arbundles.is_data_item(value):
        return PayloadKind.signed_item
    if isinstance(value, (bytes, bytearray, memoryview, str)):
        return PayloadKind.raw_bytes
    return PayloadKind.stream


def build_item(
    data: bytes | str | DataItem,
    signer: Signer,
    arbundles: Arbundles,
    *,
    tags: Sequence[Tag] = (),
    anchor: str | None = None,
) -> DataItem:
    """Sign *data* into a data item, or pass an existing item through.

    When *anchor* is omitted a random one is generated, so two builds of the
    same payload and tags still produce different ids.
    """
    if arbundles.is_data_item(data):
        return data  # type: ignore[return-value]
    if isinstance(data, str):
        data = data.encode("utf-8")
    return arbundles.create_item(
        bytes(data),
        signer,
        tags=tags,
        anchor=anchor if anchor is not None else generate_anchor(),
    )


__all__ = [
    "ANCHOR_LENGTH",
    "build_item",
    "classify_payload",
    "generate_anchor",
]
