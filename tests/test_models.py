"""Tests for Pydantic models in aumai_bundlr.models."""

from __future__ import annotations

import asyncio

import pytest
from pydantic import ValidationError

from aumai_bundlr.models import (
    ApiConfig,
    BatchOutcome,
    Keypair,
    Manifest,
    PayloadKind,
    Tag,
    UploadConfig,
    UploadOptions,
    UploadReceipt,
    UploadResult,
)

# ---------------------------------------------------------------------------
# PayloadKind
# ---------------------------------------------------------------------------


class TestPayloadKind:
    def test_is_string_enum(self) -> None:
        assert isinstance(PayloadKind.signed_item, str)

    def test_closed_set(self) -> None:
        assert {k.value for k in PayloadKind} == {"raw_bytes", "stream", "signed_item"}


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class TestApiConfig:
    def test_url_for_currency(self) -> None:
        api = ApiConfig(protocol="http", host="localhost", port=10000)
        assert api.url_for("arweave") == "http://localhost:10000/tx/arweave"

    def test_defaults(self) -> None:
        api = ApiConfig(host="node1.example")
        assert api.protocol == "https"
        assert api.port == 443
        assert api.headers == {}

    def test_port_out_of_range_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ApiConfig(host="x", port=70000)

    def test_is_frozen(self) -> None:
        api = ApiConfig(host="x")
        with pytest.raises(ValidationError):
            api.host = "y"  # type: ignore[misc]


class TestUploadConfig:
    def test_defaults(self) -> None:
        config = UploadConfig()
        assert config.chunking_threshold == 50_000_000
        assert config.force_chunking is False
        assert config.content_type is None
        assert config.retry_attempts == 3
        assert config.min_backoff == 1.0
        assert config.max_backoff == 10.0
        assert config.concurrency == 5

    def test_is_frozen(self) -> None:
        config = UploadConfig()
        with pytest.raises(ValidationError):
            config.force_chunking = True  # type: ignore[misc]

    def test_zero_attempts_rejected(self) -> None:
        with pytest.raises(ValidationError):
            UploadConfig(retry_attempts=0)


class TestUploadOptions:
    def test_receipt_off_by_default(self) -> None:
        assert UploadOptions().receipt is False


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class TestUploadReceipt:
    def _receipt(self) -> UploadReceipt:
        return UploadReceipt.model_validate(
            {
                "id": "abc",
                "signature": "sig",
                "timestamp": 1700000000000,
                "public": "pub",
                "version": "1.0.0",
                "deadlineHeight": 1234,
            }
        )

    def test_parses_camel_case_deadline(self) -> None:
        assert self._receipt().deadline_height == 1234

    def test_is_an_upload_result(self) -> None:
        assert isinstance(self._receipt(), UploadResult)

    def test_missing_signature_rejected(self) -> None:
        with pytest.raises(ValidationError):
            UploadReceipt.model_validate({"id": "abc", "timestamp": 1})

    @pytest.mark.asyncio
    async def test_verify_without_verifier_raises(self) -> None:
        with pytest.raises(RuntimeError, match="No receipt verifier"):
            await self._receipt().verify()

    @pytest.mark.asyncio
    async def test_verify_is_lazy_and_memoised(self) -> None:
        calls: list[str] = []

        async def _verifier(receipt: UploadReceipt) -> bool:
            calls.append(receipt.id)
            return True

        receipt = self._receipt()
        receipt.bind_verifier(_verifier)
        assert calls == []
        assert await receipt.verify() is True
        assert await receipt.verify() is True
        assert calls == ["abc"]

    @pytest.mark.asyncio
    async def test_concurrent_verify_shares_one_check(self) -> None:
        calls: list[str] = []
        release = asyncio.Event()

        async def _verifier(receipt: UploadReceipt) -> bool:
            calls.append(receipt.id)
            await release.wait()
            return True

        receipt = self._receipt()
        receipt.bind_verifier(_verifier)
        pending = asyncio.gather(receipt.verify(), receipt.verify(), receipt.verify())
        await asyncio.sleep(0)
        release.set()
        assert await pending == [True, True, True]
        assert calls == ["abc"]

    @pytest.mark.asyncio
    async def test_failed_check_is_retried(self) -> None:
        answers: list[bool | Exception] = [ConnectionError("gateway down"), True]

        async def _verifier(receipt: UploadReceipt) -> bool:
            answer = answers.pop(0)
            if isinstance(answer, Exception):
                raise answer
            return answer

        receipt = self._receipt()
        receipt.bind_verifier(_verifier)
        with pytest.raises(ConnectionError):
            await receipt.verify()
        assert await receipt.verify() is True
        assert answers == []

    @pytest.mark.asyncio
    async def test_verify_reports_false(self) -> None:
        async def _verifier(receipt: UploadReceipt) -> bool:
            return False

        receipt = self._receipt()
        receipt.bind_verifier(_verifier)
        assert await receipt.verify() is False


class TestMisc:
    def test_tag_is_hashable(self) -> None:
        assert len({Tag(name="a", value="1"), Tag(name="a", value="1")}) == 1

    def test_keypair_fields(self) -> None:
        kp = Keypair(private_key="p", public_key="q")
        assert kp.public_key == "q"

    def test_batch_outcome_holds_exceptions(self) -> None:
        outcome = BatchOutcome(errors=[ValueError("x")], results=[1])
        assert isinstance(outcome.errors[0], ValueError)

    def test_manifest_defaults(self) -> None:
        manifest = Manifest()
        assert manifest.manifest == "arweave/paths"
        assert manifest.version == "0.1.0"
        assert manifest.index is None
        assert manifest.paths == {}
