"""aumai-bundlr quickstart — working demonstrations of all major features.

Run this file directly to verify your installation and see all features in action:

    python examples/quickstart.py

A fake bundler node built on ``httpx.MockTransport`` stands in for the network,
so every demo runs offline.
"""

from __future__ import annotations

import asyncio
import json
import tempfile
from pathlib import Path

import httpx

from aumai_bundlr import (
    ApiConfig,
    Bundle,
    CreateOptions,
    DataItem,
    KeyManager,
    LocalArbundles,
    LocalCurrency,
    Tag,
    UploadConfig,
    Uploader,
    build_item,
    build_manifest,
    ephemeral_address,
)
from aumai_bundlr.manifest import manifest_to_json

# ---------------------------------------------------------------------------
# Fake node
# ---------------------------------------------------------------------------


class FakeNode:
    """Accepts every item with 201 until its balance runs out, then answers 402."""

    def __init__(self, balance: int = 1_000_000) -> None:
        self.balance = balance
        self.received: list[DataItem] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = request.read()
        if len(body) > self.balance:
            return httpx.Response(402)
        self.balance -= len(body)
        self.received.append(DataItem(body))
        return httpx.Response(201, json={"id": self.received[-1].id})


def _uploader(node: FakeNode, tmp: Path, **config: object) -> Uploader:
    km = KeyManager()
    private_pem, public_pem = km.generate_pem()
    km.save_keypair(private_pem, public_pem, str(tmp / "keys"))
    signer = km.load_signer(str(tmp / "keys" / "private.pem"))
    return Uploader(
        ApiConfig(host="node.example", port=443),
        LocalCurrency("arweave", signer),
        LocalArbundles(),
        config=UploadConfig(min_backoff=0, max_backoff=0, **config),
        client=httpx.AsyncClient(transport=httpx.MockTransport(node.handler)),
    )


# ---------------------------------------------------------------------------
# Demo 1 — Build and verify a signed item
# ---------------------------------------------------------------------------


def demo_build_item() -> None:
    """Sign a payload into a data item and check its signature."""

    print("\n=== Demo 1: Build a Signed Item ===")

    arbundles = LocalArbundles()
    signer = arbundles.signer_for(arbundles.generate_keypair())
    item = build_item(
        "hello permaweb",
        signer,
        arbundles,
        tags=[Tag(name="Content-Type", value="text/plain")],
    )
    print(f"  Item id   : {item.id}")
    print(f"  Anchor    : {item.anchor}")
    print(f"  Signature valid: {item.verify()}")
    assert item.verify()

    again = build_item("hello permaweb", signer, arbundles)
    print(f"  Rebuilt without anchor gives a new id: {again.id != item.id}")
    assert again.id != item.id

    print("  Demo 1 passed.")


# ---------------------------------------------------------------------------
# Demo 2 — Concurrent upload and manifest
# ---------------------------------------------------------------------------


async def demo_concurrent_upload() -> None:
    """Upload a small site and publish a path manifest for it."""

    print("\n=== Demo 2: Concurrent Upload + Manifest ===")

    with tempfile.TemporaryDirectory() as tmpdir:
        node = FakeNode()
        files = {
            "index.html": b"<h1>hi</h1>",
            "style.css": b"h1 { color: teal }",
            "app.js": b"console.log('hi')",
        }
        async with _uploader(node, Path(tmpdir)) as uploader:
            outcome = await uploader.concurrent_upload(
                list(files.values()),
                concurrency=2,
                options=CreateOptions(tags=[Tag(name="App-Name", value="quickstart")]),
                progress=lambda msg: print(f"  {msg}"),
            )

        names = list(files)
        ids = {names[r.i]: r.res.id for r in sorted(outcome.results, key=lambda r: r.i)}
        print(f"  Uploaded {len(ids)} files, {len(outcome.errors)} errors")
        assert not outcome.errors

        manifest = build_manifest(ids, "index.html")
        print("  Manifest:")
        for line in manifest_to_json(manifest, indent=2).splitlines():
            print(f"    {line}")

    print("  Demo 2 passed.")


# ---------------------------------------------------------------------------
# Demo 3 — Running out of funds stops the batch
# ---------------------------------------------------------------------------


async def demo_insufficient_funds() -> None:
    """Show that a 402 aborts the batch instead of burning retries."""

    print("\n=== Demo 3: Insufficient Funds ===")

    with tempfile.TemporaryDirectory() as tmpdir:
        node = FakeNode(balance=1_200)
        async with _uploader(node, Path(tmpdir)) as uploader:
            outcome = await uploader.concurrent_upload(
                [bytes(200) for _ in range(20)], concurrency=1
            )

        print(f"  Uploaded before running dry: {len(outcome.results)}")
        print(f"  Errors: {[str(e) for e in outcome.errors]}")
        assert len(outcome.errors) == 1
        assert len(outcome.results) + len(outcome.errors) < 20

    print("  Demo 3 passed.")


# ---------------------------------------------------------------------------
# Demo 4 — Bundle upload under an ephemeral key
# ---------------------------------------------------------------------------


async def demo_bundle() -> None:
    """Bundle pre-signed and raw items together and upload them once."""

    print("\n=== Demo 4: Bundle Upload ===")

    with tempfile.TemporaryDirectory() as tmpdir:
        node = FakeNode()
        async with _uploader(node, Path(tmpdir)) as uploader:
            presigned = build_item(b"already signed", uploader.signer, uploader.arbundles)
            result = await uploader.upload_bundle([presigned, b"raw one", "raw two"])

        print(f"  Bundle id        : {result.id}")
        print(f"  Member ids       : {result.txs}")
        print(f"  Ephemeral address: {result.ephemeral_address}")
        assert result.ephemeral_address == ephemeral_address(
            result.ephemeral_key.public_key, LocalArbundles()
        )

        wrapper = node.received[0]
        print(f"  Wrapper tags     : {json.dumps([t.model_dump() for t in wrapper.tags])}")
        assert Bundle.from_raw(wrapper.data).get_ids() == result.txs

    print("  Demo 4 passed.")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Run all quickstart demos in sequence."""
    print("aumai-bundlr quickstart demos")
    print("=" * 45)

    demo_build_item()
    asyncio.run(demo_concurrent_upload())
    asyncio.run(demo_insufficient_funds())
    asyncio.run(demo_bundle())

    print("\n" + "=" * 45)
    print("All demos completed successfully.")


if __name__ == "__main__":
    main()
