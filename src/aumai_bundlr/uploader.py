"""Single-item uploads to a bundler node."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

import httpx
from pydantic import ValidationError

from aumai_bundlr.errors import (
    ChunkingUnavailable,
    InsufficientFunds,
    MalformedReceipt,
    UploadError,
    UploadRejected,
)
from aumai_bundlr.items import build_item, classify_payload
from aumai_bundlr.models import (
    ApiConfig,
    BatchOutcome,
    BundleUploadResult,
    CreateOptions,
    Keypair,
    PayloadKind,
    Tag,
    UploadConfig,
    UploadOptions,
    UploadReceipt,
    UploadResult,
)
from aumai_bundlr.protocols import (
    Arbundles,
    ChunkedUploader,
    CurrencyConfig,
    DataItem,
    ReceiptVerifier,
    Signer,
)

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class Uploader:
    """Send data items to a bundler node, directly or through chunking.

    The routing decision is made once per call: forced chunking, anything
    that is not already a signed item, and items at or above the chunking
    threshold go to the chunked collaborator.  Everything else is posted in
    a single request to ``/tx/{currency}``.

    Args:
        api: Where the node lives and which headers every request carries.
        currency: The paying account; its name selects the endpoint and its
            signer signs raw data.
        arbundles: Data-item codec used to recognise and build items.
        chunked: Client for the chunked-transfer protocol.  Optional; when
            absent, payloads routed to it raise :class:`ChunkingUnavailable`.
        config: Immutable thresholds, retry and concurrency settings.
        client: An ``httpx.AsyncClient`` to reuse.  When omitted the uploader
            creates one and closes it in :meth:`aclose`.
        receipt_verifier: Collaborator bound to every returned receipt.
    """

    def __init__(
        self,
        api: ApiConfig,
        currency: CurrencyConfig,
        arbundles: Arbundles,
        *,
        chunked: ChunkedUploader | None = None,
        config: UploadConfig | None = None,
        client: httpx.AsyncClient | None = None,
        receipt_verifier: ReceiptVerifier | None = None,
    ) -> None:
        self._api = api
        self._currency = currency
        self._arbundles = arbundles
        self._chunked = chunked
        self._config = config or UploadConfig()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=api.timeout)
        self._receipt_verifier = receipt_verifier

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> Uploader:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @property
    def config(self) -> UploadConfig:
        return self._config

    @property
    def arbundles(self) -> Arbundles:
        return self._arbundles

    @property
    def signer(self) -> Signer:
        return self._currency.get_signer()

    @property
    def endpoint(self) -> str:
        return self._api.url_for(self._currency.name)

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    def should_chunk(self, payload: Any) -> bool:
        """Return True if *payload* must go through the chunked collaborator."""
        if self._config.force_chunking:
            return True
        if classify_payload(payload, self._arbundles) is not PayloadKind.signed_item:
            return True
        return len(payload.raw) >= self._config.chunking_threshold

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------

    async def upload_item(
        self, payload: DataItem | Any, options: UploadOptions | None = None
    ) -> UploadResult:
        """Upload a signed item, or raw bytes / a stream via chunking.

        Raises:
            InsufficientFunds: the node answered 402.
            UploadRejected: the node answered any other status >= 400.
            MalformedReceipt: a receipt was requested and the body is not one.
            ChunkingUnavailable: chunking was required but not configured.
        """
        options = options or UploadOptions()
        is_item = self._arbundles.is_data_item(payload)

        if self.should_chunk(payload):
            logger.debug("Routing upload through chunked transfer (item=%s)", is_item)
            chunked = self._require_chunked()
            response = await chunked.upload_transaction(
                payload.raw if is_item else payload,
                receipt=options.receipt,
                headers=dict(options.headers),
            )
            return self._classify(response, options, item_id=None)

        logger.debug("Posting item %s directly to %s", payload.id, self.endpoint)
        response = await self._client.post(
            self.endpoint,
            content=payload.raw,
            headers=self._headers(options),
            timeout=self._api.timeout,
        )
        return self._classify(response, options, item_id=payload.id)

    async def upload_data(
        self, data: bytes | str | Any, options: CreateOptions | None = None
    ) -> UploadResult:
        """Sign raw data with the currency signer and upload it.

        In-memory payloads up to the chunking threshold are built into an
        item here and posted directly; streams and larger payloads are
        handed to the chunked collaborator, which builds the item itself.
        """
        options = options or CreateOptions()
        tags = self._tags_for(options)
        if isinstance(data, str):
            data = data.encode("utf-8")

        if (
            isinstance(data, (bytes, bytearray, memoryview))
            and len(data) <= self._config.chunking_threshold
        ):
            item = build_item(
                bytes(data), self.signer, self._arbundles, tags=tags, anchor=options.anchor
            )
            return await self.upload_item(item, options.upload)

        chunked = self._require_chunked()
        response = await chunked.upload_data(
            data,
            tags=tags,
            anchor=options.anchor,
            receipt=options.upload.receipt,
            headers=dict(options.upload.headers),
        )
        return self._classify(response, options.upload, item_id=None)

    async def process_item(
        self, payload: DataItem | bytes | str | Any, options: CreateOptions | None = None
    ) -> UploadResult:
        """Upload one batch entry, whatever its kind."""
        if self._arbundles.is_data_item(payload):
            return await self.upload_item(payload, (options or CreateOptions()).upload)
        return await self.upload_data(payload, options)

    async def concurrent_upload(
        self,
        items: Sequence[Any],
        concurrency: int | None = None,
        *,
        options: CreateOptions | None = None,
        result_processor: Callable[[Any], Awaitable[Any]] | None = None,
        progress: Callable[[str], Any] | None = None,
    ) -> BatchOutcome:
        """Upload *items* with bounded concurrency.  See :class:`ConcurrentUploader`."""
        from aumai_bundlr.scheduler import ConcurrentUploader

        async def _upload(item: Any) -> UploadResult:
            return await self.process_item(item, options)

        scheduler = ConcurrentUploader(_upload, self._config)
        return await scheduler.run(
            items,
            concurrency,
            result_processor=result_processor,
            progress=progress,
        )

    async def upload_bundle(
        self,
        items: Sequence[DataItem | bytes | str],
        options: UploadOptions | None = None,
        *,
        ephemeral_key: Keypair | None = None,
    ) -> BundleUploadResult:
        """Bundle *items* under a single-use key and upload them as one item."""
        from aumai_bundlr.bundle import upload_bundle

        return await upload_bundle(self, items, options, ephemeral_key=ephemeral_key)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_chunked(self) -> ChunkedUploader:
        if self._chunked is None:
            raise ChunkingUnavailable(
                "Payload requires chunked upload but no chunked uploader is configured"
            )
        return self._chunked

    def _tags_for(self, options: CreateOptions) -> list[Tag]:
        tags = list(options.tags)
        content_type = self._config.content_type
        if content_type and not any(t.name.lower() == "content-type" for t in tags):
            tags.append(Tag(name="Content-Type", value=content_type))
        return tags

    def _headers(self, options: UploadOptions) -> dict[str, str]:
        headers = {"Content-Type": DEFAULT_CONTENT_TYPE, **self._api.headers, **options.headers}
        if options.receipt:
            headers["x-proof-type"] = "receipt"
        return headers

    def _classify(
        self, response: httpx.Response, options: UploadOptions, item_id: str | None
    ) -> UploadResult:
        status = response.status_code
        if status == 402:
            raise InsufficientFunds()
        if status >= 400:
            logger.warning(
                "Upload rejected by %s: %s %s", self.endpoint, status, response.reason_phrase
            )
            raise UploadRejected(status, response.reason_phrase)

        if options.receipt:
            return self._parse_receipt(response)
        if status == 201 and item_id is not None:
            return UploadResult(id=item_id)
        try:
            return UploadResult.model_validate_json(response.content)
        except ValidationError as exc:
            raise UploadError(f"Unexpected upload response: {response.text!r}") from exc

    def _parse_receipt(self, response: httpx.Response) -> UploadReceipt:
        try:
            receipt = UploadReceipt.model_validate_json(response.content)
        except ValidationError as exc:
            raise MalformedReceipt(response.text, detail=exc.errors()[0]["msg"]) from exc
        receipt.bind_verifier(self._verify_receipt)
        return receipt

    async def _verify_receipt(self, receipt: UploadReceipt) -> bool:
        if self._receipt_verifier is None:
            raise UploadError("No receipt verifier configured for this uploader")
        return await self._receipt_verifier.verify_receipt(receipt)


__all__ = ["DEFAULT_CONTENT_TYPE", "Uploader"]
