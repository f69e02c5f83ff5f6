"""Binary envelope for signed data items and bundles of them.

Data item layout (integers little-endian)::

    sig type   2 bytes
    signature  64 bytes
    owner      32 bytes
    anchor     1 byte presence flag, then 32 bytes when present
    tags       8 bytes count, 8 bytes length, then compact JSON ``[[name, value], ...]``
    data       remaining bytes

An item id is the unpadded base64url SHA-256 of its signature.

Bundle layout::

    count      32 bytes
    headers    count x (32 bytes item size, 32 bytes raw item id)
    items      raw items, in header order
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Sequence
from typing import Any

from aumai_bundlr.models import Keypair, Tag
from aumai_bundlr.protocols import Signer
from aumai_bundlr.signing import (
    Ed25519Signer,
    KeyManager,
    b64url_encode,
    verify_ed25519,
)

SIGNATURE_TYPE_ED25519 = 2
_SIG_LEN = 64
_OWNER_LEN = 32
_ANCHOR_LEN = 32
_HEADER_WORD = 32

# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _encode_tags(tags: Sequence[Tag]) -> bytes:
    if not tags:
        return b""
    pairs = [[tag.name, tag.value] for tag in tags]
    return json.dumps(pairs, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _decode_tags(blob: bytes) -> list[Tag]:
    if not blob:
        return []
    return [Tag(name=name, value=value) for name, value in json.loads(blob)]


def _encode_anchor(anchor: str | None) -> bytes:
    if anchor is None:
        return b""
    encoded = anchor.encode("utf-8")
    if len(encoded) != _ANCHOR_LEN:
        raise ValueError(f"anchor must encode to {_ANCHOR_LEN} bytes, got {len(encoded)}")
    return encoded


def _signing_message(owner: bytes, anchor: bytes, tags: bytes, data: bytes) -> bytes:
    """Length-prefixed concatenation of every signed field."""
    hasher = hashlib.sha256()
    for part in (b"dataitem", b"1", str(SIGNATURE_TYPE_ED25519).encode(), owner, anchor, tags, data):
        hasher.update(len(part).to_bytes(8, "little"))
        hasher.update(part)
    return hasher.digest()


# ---------------------------------------------------------------------------
# DataItem
# ---------------------------------------------------------------------------


class DataItem:
    """An immutable signed data item backed by its raw bytes."""

    def __init__(self, raw: bytes) -> None:
        self._raw = bytes(raw)
        self._parse()

    def _parse(self) -> None:
        raw = self._raw
        minimum = 2 + _SIG_LEN + _OWNER_LEN + 1 + 16
        if len(raw) < minimum:
            raise ValueError(f"data item too short: {len(raw)} bytes")

        sig_type = int.from_bytes(raw[0:2], "little")
        if sig_type != SIGNATURE_TYPE_ED25519:
            raise ValueError(f"unsupported signature type: {sig_type}")
        offset = 2
        self._signature = raw[offset : offset + _SIG_LEN]
        offset += _SIG_LEN
        self._owner = raw[offset : offset + _OWNER_LEN]
        offset += _OWNER_LEN

        has_anchor = raw[offset]
        offset += 1
        self._anchor = b""
        if has_anchor:
            self._anchor = raw[offset : offset + _ANCHOR_LEN]
            offset += _ANCHOR_LEN

        tag_count = int.from_bytes(raw[offset : offset + 8], "little")
        tag_length = int.from_bytes(raw[offset + 8 : offset + 16], "little")
        offset += 16
        self._tag_bytes = raw[offset : offset + tag_length]
        offset += tag_length
        self._tags = _decode_tags(self._tag_bytes)
        if len(self._tags) != tag_count:
            raise ValueError(f"tag count mismatch: header {tag_count}, found {len(self._tags)}")
        self._data_offset = offset

    @classmethod
    def create(
        cls,
        data: bytes,
        signer: Signer,
        *,
        tags: Sequence[Tag] = (),
        anchor: str | None = None,
    ) -> DataItem:
        """Encode and sign *data* with *signer* in one step."""
        owner = signer.public_key
        if len(owner) != _OWNER_LEN:
            raise ValueError(f"signer public key must be {_OWNER_LEN} bytes")
        anchor_bytes = _encode_anchor(anchor)
        tag_bytes = _encode_tags(tags)
        signature = signer.sign(_signing_message(owner, anchor_bytes, tag_bytes, data))

        raw = b"".join(
            [
                SIGNATURE_TYPE_ED25519.to_bytes(2, "little"),
                signature,
                owner,
                b"\x01" + anchor_bytes if anchor_bytes else b"\x00",
                len(tags).to_bytes(8, "little"),
                len(tag_bytes).to_bytes(8, "little"),
                tag_bytes,
                data,
            ]
        )
        return cls(raw)

    @property
    def raw(self) -> bytes:
        return self._raw

    @property
    def raw_id(self) -> bytes:
        return hashlib.sha256(self._signature).digest()

    @property
    def id(self) -> str:
        return b64url_encode(self.raw_id)

    @property
    def signature(self) -> bytes:
        return self._signature

    @property
    def owner(self) -> bytes:
        return self._owner

    @property
    def anchor(self) -> str | None:
        return self._anchor.decode("utf-8") if self._anchor else None

    @property
    def tags(self) -> list[Tag]:
        return list(self._tags)

    @property
    def data(self) -> bytes:
        return self._raw[self._data_offset :]

    def __len__(self) -> int:
        return len(self._raw)

    def verify(self) -> bool:
        """Check the signature against the embedded owner key."""
        message = _signing_message(self._owner, self._anchor, self._tag_bytes, self.data)
        return verify_ed25519(self._owner, message, self._signature)

    def __repr__(self) -> str:
        return f"DataItem(id={self.id!r}, size={len(self._raw)})"


# ---------------------------------------------------------------------------
# Bundle
# ---------------------------------------------------------------------------


class Bundle:
    """An ordered collection of data items serialised as one blob."""

    def __init__(self, items: Sequence[DataItem]) -> None:
        self._items = list(items)

    @classmethod
    def from_raw(cls, raw: bytes) -> Bundle:
        count = int.from_bytes(raw[0:_HEADER_WORD], "little")
        offset = _HEADER_WORD + count * 2 * _HEADER_WORD
        items: list[DataItem] = []
        for n in range(count):
            header = _HEADER_WORD + n * 2 * _HEADER_WORD
            size = int.from_bytes(raw[header : header + _HEADER_WORD], "little")
            item = DataItem(raw[offset : offset + size])
            expected_id = raw[header + _HEADER_WORD : header + 2 * _HEADER_WORD]
            if item.raw_id != expected_id:
                raise ValueError(f"bundle header id mismatch for item {n}")
            items.append(item)
            offset += size
        return cls(items)

    @property
    def items(self) -> list[DataItem]:
        return list(self._items)

    @property
    def raw(self) -> bytes:
        headers = b"".join(
            len(item.raw).to_bytes(_HEADER_WORD, "little") + item.raw_id
            for item in self._items
        )
        bodies = b"".join(item.raw for item in self._items)
        return len(self._items).to_bytes(_HEADER_WORD, "little") + headers + bodies

    def get_ids(self) -> list[str]:
        return [item.id for item in self._items]


# ---------------------------------------------------------------------------
# LocalArbundles
# ---------------------------------------------------------------------------


class LocalArbundles:
    """Data-item codec over :class:`DataItem` and :class:`Bundle`."""

    def __init__(self, key_manager: KeyManager | None = None) -> None:
        self._key_manager = key_manager or KeyManager()

    def create_item(
        self,
        data: bytes,
        signer: Signer,
        *,
        tags: Sequence[Tag] = (),
        anchor: str | None = None,
    ) -> DataItem:
        return DataItem.create(data, signer, tags=tags, anchor=anchor)

    def is_data_item(self, value: Any) -> bool:
        return isinstance(value, DataItem)

    def bundle(self, items: Sequence[DataItem | bytes], signer: Signer) -> Bundle:
        """Bundle *items*, signing any raw ``bytes`` entries with *signer*."""
        signed = [
            item if self.is_data_item(item) else self.create_item(bytes(item), signer)
            for item in items
        ]
        return Bundle(signed)

    def generate_keypair(self) -> Keypair:
        return self._key_manager.generate_keypair()

    def signer_for(self, keypair: Keypair) -> Ed25519Signer:
        return Ed25519Signer.from_keypair(keypair)

    def digest(self, data: bytes) -> bytes:
        return hashlib.sha256(data).digest()


__all__ = [
    "SIGNATURE_TYPE_ED25519",
    "Bundle",
    "DataItem",
    "LocalArbundles",
]
