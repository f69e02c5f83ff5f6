"""Upload many items as one bundle signed under a single-use key."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from aumai_bundlr.models import BundleUploadResult, Keypair, Tag, UploadOptions
from aumai_bundlr.protocols import Arbundles, DataItem
from aumai_bundlr.signing import b64url_decode, b64url_encode

if TYPE_CHECKING:
    from aumai_bundlr.uploader import Uploader

logger = logging.getLogger(__name__)

BUNDLE_TAGS: tuple[Tag, ...] = (
    Tag(name="Bundle-Format", value="binary"),
    Tag(name="Bundle-Version", value="2.0.0"),
)


def ephemeral_address(public_key: str, arbundles: Arbundles) -> str:
    """Derive the address of a base64url *public_key*.

    The address is the base64url digest of the decoded key bytes, so it can
    be recomputed from the public key alone.
    """
    return b64url_encode(arbundles.digest(b64url_decode(public_key)))


async def upload_bundle(
    uploader: Uploader,
    items: Sequence[DataItem | bytes | str],
    options: UploadOptions | None = None,
    *,
    ephemeral_key: Keypair | None = None,
) -> BundleUploadResult:
    """Bundle *items* and upload the bundle as a single data item.

    Items that are not yet signed are signed with an ephemeral key, created
    here unless *ephemeral_key* is given.  The bundle itself is wrapped in an
    item signed by the uploader's real signer and tagged as a binary bundle,
    then uploaded through :meth:`Uploader.upload_item`, so large bundles are
    chunked like any other large item.

    Returns:
        The wrapping item's upload result, the member ids in order, the
        ephemeral keypair and its address.
    """
    arbundles = uploader.arbundles
    key = ephemeral_key or arbundles.generate_keypair()
    ephemeral_signer = arbundles.signer_for(key)

    members: list[DataItem] = []
    for item in items:
        if arbundles.is_data_item(item):
            members.append(item)  # type: ignore[arg-type]
            continue
        data = item.encode("utf-8") if isinstance(item, str) else bytes(item)  # type: ignore[arg-type]
        members.append(arbundles.create_item(data, ephemeral_signer))

    bundle = arbundles.bundle(members, ephemeral_signer)
    wrapper = arbundles.create_item(bundle.raw, uploader.signer, tags=BUNDLE_TAGS)
    logger.info("Uploading bundle %s with %d items", wrapper.id, len(members))

    result = await uploader.upload_item(wrapper, options)
    return BundleUploadResult(
        result=result,
        txs=bundle.get_ids(),
        ephemeral_key=key,
        ephemeral_address=ephemeral_address(key.public_key, arbundles),
    )


__all__ = ["BUNDLE_TAGS", "ephemeral_address", "upload_bundle"]
