"""CLI entry point for aumai-bundlr."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click

from aumai_bundlr.envelope import LocalArbundles
from aumai_bundlr.manifest import build_manifest, manifest_to_json
from aumai_bundlr.models import BatchOutcome, BundleUploadResult, CreateOptions, UploadOptions
from aumai_bundlr.settings import UploaderSettings
from aumai_bundlr.signing import KeyManager, LocalCurrency
from aumai_bundlr.uploader import Uploader

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _node_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by every command that talks to a node."""
    options = [
        click.option("--key", required=True, metavar="PATH", help="Path to private PEM key file."),
        click.option("--host", default=None, help="Bundler node host."),
        click.option("--port", default=None, type=int, help="Bundler node port."),
        click.option("--protocol", default=None, help="http or https."),
        click.option("--currency", default=None, help="Currency / network name."),
        click.option("--receipt", is_flag=True, help="Request signed receipts."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _build_uploader(
    key: str,
    host: str | None,
    port: int | None,
    protocol: str | None,
    currency: str | None,
) -> Uploader:
    settings = UploaderSettings()
    overrides = {
        name: value
        for name, value in (("host", host), ("port", port), ("protocol", protocol))
        if value is not None
    }
    api = settings.api_config().model_copy(update=overrides)
    signer = KeyManager().load_signer(key)
    return Uploader(
        api,
        LocalCurrency(currency or settings.currency, signer),
        LocalArbundles(),
        config=settings.upload_config(),
    )


def _run_batch(
    uploader: Uploader, paths: list[Path], concurrency: int | None, receipt: bool
) -> BatchOutcome:
    async def _label(outcome: Any) -> dict[str, Any]:
        return {"path": paths[outcome.i].as_posix(), "id": outcome.res.id, "i": outcome.i}

    async def _go() -> BatchOutcome:
        async with uploader:
            return await uploader.concurrent_upload(
                [p.read_bytes() for p in paths],
                concurrency,
                options=CreateOptions(upload=UploadOptions(receipt=receipt)),
                result_processor=_label,
                progress=lambda msg: click.echo(f"  {msg}", err=True),
            )

    return asyncio.run(_go())


def _run_bundle(uploader: Uploader, paths: list[Path], receipt: bool) -> BundleUploadResult:
    async def _go() -> BundleUploadResult:
        async with uploader:
            return await uploader.upload_bundle(
                [p.read_bytes() for p in paths], UploadOptions(receipt=receipt)
            )

    return asyncio.run(_go())


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="aumai-bundlr")
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level (default from AUMAI_BUNDLR_LOG_LEVEL).",
)
def main(log_level: str | None) -> None:
    """AumAI Bundlr — signed data-item uploads for bundler nodes."""
    level = (log_level or UploaderSettings().log_level).upper()
    logging.basicConfig(
        level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )


@main.command("keygen")
@click.option(
    "--output",
    default="keys",
    show_default=True,
    metavar="DIR",
    help="Directory to write private.pem and public.pem.",
)
def keygen_command(output: str) -> None:
    """Generate an Ed25519 key pair for signing data items."""
    km = KeyManager()
    private_pem, public_pem = km.generate_pem()
    km.save_keypair(private_pem, public_pem, output)
    click.echo(f"Key pair (ed25519) written to '{output}/'")
    click.echo(f"  Private: {output}/private.pem")
    click.echo(f"  Public : {output}/public.pem")


@main.command("upload")
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@_node_options
@click.option("--concurrency", default=None, type=int, help="Parallel uploads.")
@click.option(
    "--manifest-out",
    default=None,
    metavar="PATH",
    help="Write a path manifest for the uploaded files.",
)
@click.option("--index", "index_path", default=None, help="Manifest index path.")
def upload_command(
    files: tuple[str, ...],
    key: str,
    host: str | None,
    port: int | None,
    protocol: str | None,
    currency: str | None,
    receipt: bool,
    concurrency: int | None,
    manifest_out: str | None,
    index_path: str | None,
) -> None:
    """Sign and upload FILES concurrently."""
    paths = [Path(f) for f in files]
    try:
        uploader = _build_uploader(key, host, port, protocol, currency)
        outcome = _run_batch(uploader, paths, concurrency, receipt)
    except Exception as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    uploaded = sorted(outcome.results, key=lambda r: r["i"])
    for entry in uploaded:
        click.echo(f"  [OK]   {entry['path']} -> {entry['id']}")
    for error in outcome.errors:
        click.echo(f"  [FAIL] {error}", err=True)
    click.echo(f"Uploaded {len(uploaded)} of {len(paths)} files.")

    if manifest_out is not None:
        try:
            manifest = build_manifest({e["path"]: e["id"] for e in uploaded}, index_path)
        except Exception as exc:
            click.echo(f"Error: {exc}", err=True)
            sys.exit(1)
        Path(manifest_out).write_text(manifest_to_json(manifest, indent=2), encoding="utf-8")
        click.echo(f"Manifest written to: {manifest_out}")

    if outcome.errors:
        sys.exit(2)


@main.command("bundle")
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@_node_options
def bundle_command(
    files: tuple[str, ...],
    key: str,
    host: str | None,
    port: int | None,
    protocol: str | None,
    currency: str | None,
    receipt: bool,
) -> None:
    """Upload FILES together as a single bundle."""
    paths = [Path(f) for f in files]
    try:
        uploader = _build_uploader(key, host, port, protocol, currency)
        result = _run_bundle(uploader, paths, receipt)
    except Exception as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    click.echo(f"Bundle   : {result.id}")
    click.echo(f"Ephemeral: {result.ephemeral_address}")
    click.echo("Members:")
    for path, item_id in zip(paths, result.txs):
        click.echo(f"  {path.as_posix()} -> {item_id}")


@main.command("manifest")
@click.option(
    "--items",
    "items_path",
    required=True,
    metavar="PATH",
    help="JSON object mapping logical paths to item ids.",
)
@click.option("--index", "index_path", default=None, help="Index path.")
@click.option("--output", default=None, metavar="PATH", help="Write to file instead of stdout.")
def manifest_command(items_path: str, index_path: str | None, output: str | None) -> None:
    """Build a path manifest from a JSON mapping."""
    try:
        items = json.loads(Path(items_path).read_text(encoding="utf-8"))
        manifest = build_manifest(items, index_path)
    except Exception as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    rendered = manifest_to_json(manifest, indent=2)
    if output is None:
        click.echo(rendered)
    else:
        Path(output).write_text(rendered, encoding="utf-8")
        click.echo(f"Manifest written to: {output}")


if __name__ == "__main__":
    main()
