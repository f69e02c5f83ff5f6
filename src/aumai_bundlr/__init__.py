"""aumai-bundlr: Signed data-item uploads, bundling and manifests for bundler nodes."""

from aumai_bundlr.bundle import ephemeral_address, upload_bundle
from aumai_bundlr.envelope import Bundle, DataItem, LocalArbundles
from aumai_bundlr.errors import (
    ChunkingUnavailable,
    InsufficientFunds,
    MalformedReceipt,
    UnknownIndexTarget,
    UploadError,
    UploadRejected,
)
from aumai_bundlr.items import build_item, classify_payload, generate_anchor
from aumai_bundlr.manifest import build_manifest
from aumai_bundlr.models import (
    ApiConfig,
    BatchOutcome,
    BundleUploadResult,
    CreateOptions,
    ItemOutcome,
    Keypair,
    Manifest,
    PayloadKind,
    Tag,
    UploadConfig,
    UploadOptions,
    UploadReceipt,
    UploadResult,
)
from aumai_bundlr.scheduler import ConcurrentUploader
from aumai_bundlr.signing import Ed25519Signer, KeyManager, LocalCurrency
from aumai_bundlr.uploader import Uploader

__version__ = "0.1.0"

__all__ = [
    "ApiConfig",
    "BatchOutcome",
    "Bundle",
    "BundleUploadResult",
    "ChunkingUnavailable",
    "ConcurrentUploader",
    "CreateOptions",
    "DataItem",
    "Ed25519Signer",
    "InsufficientFunds",
    "ItemOutcome",
    "KeyManager",
    "Keypair",
    "LocalArbundles",
    "LocalCurrency",
    "MalformedReceipt",
    "Manifest",
    "PayloadKind",
    "Tag",
    "UnknownIndexTarget",
    "UploadConfig",
    "UploadError",
    "UploadOptions",
    "UploadReceipt",
    "UploadRejected",
    "UploadResult",
    "Uploader",
    "build_item",
    "build_manifest",
    "classify_payload",
    "ephemeral_address",
    "generate_anchor",
    "upload_bundle",
]
