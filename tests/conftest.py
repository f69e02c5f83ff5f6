"""Shared test fixtures for aumai-bundlr."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from aumai_bundlr.envelope import LocalArbundles
from aumai_bundlr.models import ApiConfig, Tag, UploadConfig
from aumai_bundlr.signing import Ed25519Signer, KeyManager, LocalCurrency
from aumai_bundlr.uploader import Uploader

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeNode:
    """Records every direct upload and answers with a configurable response."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.respond: Callable[[httpx.Request], httpx.Response] = self._accept

    @staticmethod
    def _accept(request: httpx.Request) -> httpx.Response:
        return httpx.Response(201, text="OK")

    def handler(self, request: httpx.Request) -> httpx.Response:
        request.read()
        self.requests.append(request)
        return self.respond(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


class FakeChunkedUploader:
    """Stands in for the chunked-transfer client."""

    def __init__(self, status: int = 200, body: dict[str, Any] | None = None) -> None:
        self.status = status
        self.body = body if body is not None else {"id": "chunked-id"}
        self.transactions: list[tuple[Any, dict[str, Any]]] = []
        self.data_calls: list[tuple[Any, dict[str, Any]]] = []

    def _response(self) -> httpx.Response:
        return httpx.Response(self.status, content=json.dumps(self.body).encode())

    async def upload_transaction(self, data: Any, **kwargs: Any) -> httpx.Response:
        self.transactions.append((data, kwargs))
        return self._response()

    async def upload_data(self, data: Any, **kwargs: Any) -> httpx.Response:
        self.data_calls.append((data, kwargs))
        return self._response()


class StaticVerifier:
    def __init__(self, answer: bool = True) -> None:
        self.answer = answer
        self.calls = 0

    async def verify_receipt(self, receipt: Any) -> bool:
        self.calls += 1
        return self.answer


# ---------------------------------------------------------------------------
# Key and codec fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def key_manager() -> KeyManager:
    return KeyManager()


@pytest.fixture(scope="session")
def pem_keypair(key_manager: KeyManager) -> tuple[bytes, bytes]:
    """(private_pem, public_pem) for Ed25519."""
    return key_manager.generate_pem()


@pytest.fixture()
def arbundles() -> LocalArbundles:
    return LocalArbundles()


@pytest.fixture()
def signer(pem_keypair: tuple[bytes, bytes]) -> Ed25519Signer:
    private_pem, _ = pem_keypair
    return Ed25519Signer.from_pem(private_pem)


@pytest.fixture()
def currency(signer: Ed25519Signer) -> LocalCurrency:
    return LocalCurrency("arweave", signer)


@pytest.fixture()
def content_tags() -> list[Tag]:
    return [Tag(name="Content-Type", value="text/plain"), Tag(name="App-Name", value="tests")]


# ---------------------------------------------------------------------------
# Uploader fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def api_config() -> ApiConfig:
    return ApiConfig(host="node.test", port=443, headers={"x-client": "aumai-tests"})


@pytest.fixture()
def fast_config() -> UploadConfig:
    """Default thresholds, no backoff delay."""
    return UploadConfig(min_backoff=0, max_backoff=0)


@pytest.fixture()
def node() -> FakeNode:
    return FakeNode()


@pytest.fixture()
def chunked() -> FakeChunkedUploader:
    return FakeChunkedUploader()


@pytest.fixture()
def verifier() -> StaticVerifier:
    return StaticVerifier()


@pytest.fixture()
def make_uploader(
    api_config: ApiConfig,
    currency: LocalCurrency,
    arbundles: LocalArbundles,
    node: FakeNode,
    chunked: FakeChunkedUploader,
    verifier: StaticVerifier,
) -> Callable[..., Uploader]:
    """Factory for uploaders wired to the fake node and chunked client."""

    def _make(**config: Any) -> Uploader:
        return Uploader(
            api_config,
            currency,
            arbundles,
            chunked=chunked,
            config=UploadConfig(**{"min_backoff": 0, "max_backoff": 0, **config}),
            client=node.client(),
            receipt_verifier=verifier,
        )

    return _make


@pytest.fixture()
def uploader(make_uploader: Callable[..., Uploader]) -> Uploader:
    return make_uploader()
