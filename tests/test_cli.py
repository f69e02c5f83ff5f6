"""Tests for aumai_bundlr.cli — Click command group."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest
from click.testing import CliRunner

from aumai_bundlr.cli import _build_uploader, main
from aumai_bundlr.envelope import Bundle, DataItem
from aumai_bundlr.signing import KeyManager
from aumai_bundlr.uploader import Uploader

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_key(tmp_path: Path) -> Path:
    km = KeyManager()
    private_pem, public_pem = km.generate_pem()
    km.save_keypair(private_pem, public_pem, str(tmp_path / "keys"))
    return tmp_path / "keys" / "private.pem"


def _write_files(tmp_path: Path, contents: dict[str, bytes]) -> list[str]:
    paths = []
    for name, body in contents.items():
        path = tmp_path / name
        path.write_bytes(body)
        paths.append(str(path))
    return paths


# ===========================================================================
# Global flags
# ===========================================================================


class TestCliVersion:
    def test_version_flag(self) -> None:
        runner = CliRunner()
        with patch("importlib.metadata.version", return_value="0.1.0"):
            result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_help_shows_subcommands(self) -> None:
        result = CliRunner().invoke(main, ["--help"])
        assert result.exit_code == 0
        for cmd in ("keygen", "upload", "bundle", "manifest"):
            assert cmd in result.output


# ===========================================================================
# keygen
# ===========================================================================


class TestKeygenCommand:
    def test_writes_loadable_keys(self, tmp_path: Path) -> None:
        out = tmp_path / "keys"
        result = CliRunner().invoke(main, ["keygen", "--output", str(out)])

        assert result.exit_code == 0
        assert "ed25519" in result.output
        assert (out / "private.pem").exists()
        assert (out / "public.pem").exists()
        signer = KeyManager().load_signer(str(out / "private.pem"))
        assert len(signer.public_key) == 32


# ===========================================================================
# manifest
# ===========================================================================


class TestManifestCommand:
    def test_prints_manifest(self, tmp_path: Path) -> None:
        items = tmp_path / "items.json"
        items.write_text(json.dumps({"index.html": "A", "a.css": "B"}), encoding="utf-8")

        result = CliRunner().invoke(
            main, ["manifest", "--items", str(items), "--index", "index.html"]
        )

        assert result.exit_code == 0
        payload = json.loads(result.output)
        assert payload["index"] == {"path": "index.html"}
        assert payload["paths"]["a.css"] == {"id": "B"}

    def test_writes_output_file(self, tmp_path: Path) -> None:
        items = tmp_path / "items.json"
        items.write_text(json.dumps({"a": "X"}), encoding="utf-8")
        out = tmp_path / "manifest.json"

        result = CliRunner().invoke(
            main, ["manifest", "--items", str(items), "--output", str(out)]
        )

        assert result.exit_code == 0
        assert "index" not in json.loads(out.read_text(encoding="utf-8"))

    def test_unknown_index_exits_one(self, tmp_path: Path) -> None:
        items = tmp_path / "items.json"
        items.write_text(json.dumps({"a": "X"}), encoding="utf-8")

        result = CliRunner().invoke(
            main, ["manifest", "--items", str(items), "--index", "index.html"]
        )

        assert result.exit_code == 1
        assert "Unable to access item: index.html" in result.output


# ===========================================================================
# upload
# ===========================================================================


class TestUploadCommand:
    def test_uploads_all_files(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        make_uploader: Callable[..., Uploader],
        node,
    ) -> None:
        monkeypatch.chdir(tmp_path)
        key = _write_key(tmp_path)
        _write_files(tmp_path, {"index.html": b"<h1>", "app.js": b"go()"})

        with patch("aumai_bundlr.cli._build_uploader", return_value=make_uploader()):
            result = CliRunner().invoke(
                main,
                [
                    "upload",
                    "index.html",
                    "app.js",
                    "--key",
                    str(key),
                    "--manifest-out",
                    "manifest.json",
                    "--index",
                    "index.html",
                ],
            )

        assert result.exit_code == 0, result.output
        assert "Uploaded 2 of 2 files." in result.output
        assert len(node.requests) == 2
        ids = {DataItem(r.content).data: DataItem(r.content).id for r in node.requests}
        manifest = json.loads((tmp_path / "manifest.json").read_text(encoding="utf-8"))
        assert manifest["index"] == {"path": "index.html"}
        assert manifest["paths"]["index.html"]["id"] == ids[b"<h1>"]
        assert manifest["paths"]["app.js"]["id"] == ids[b"go()"]

    def test_manifest_keeps_same_named_files_apart(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        make_uploader: Callable[..., Uploader],
        node,
    ) -> None:
        monkeypatch.chdir(tmp_path)
        key = _write_key(tmp_path)
        for folder, body in (("a", b"first"), ("b", b"second")):
            (tmp_path / folder).mkdir()
            (tmp_path / folder / "index.html").write_bytes(body)

        with patch("aumai_bundlr.cli._build_uploader", return_value=make_uploader()):
            result = CliRunner().invoke(
                main,
                [
                    "upload",
                    "a/index.html",
                    "b/index.html",
                    "--key",
                    str(key),
                    "--manifest-out",
                    "manifest.json",
                    "--index",
                    "a/index.html",
                ],
            )

        assert result.exit_code == 0, result.output
        ids = {DataItem(r.content).data: DataItem(r.content).id for r in node.requests}
        manifest = json.loads((tmp_path / "manifest.json").read_text(encoding="utf-8"))
        assert manifest["index"] == {"path": "a/index.html"}
        assert manifest["paths"] == {
            "a/index.html": {"id": ids[b"first"]},
            "b/index.html": {"id": ids[b"second"]},
        }
        assert "a/index.html -> " in result.output

    def test_partial_failure_exits_two(
        self, tmp_path: Path, make_uploader: Callable[..., Uploader], node
    ) -> None:
        key = _write_key(tmp_path)
        files = _write_files(tmp_path, {"good.txt": b"good", "bad.txt": b"bad"})

        def respond(request: httpx.Request) -> httpx.Response:
            if DataItem(request.content).data == b"bad":
                return httpx.Response(500)
            return httpx.Response(201)

        node.respond = respond
        with patch("aumai_bundlr.cli._build_uploader", return_value=make_uploader()):
            result = CliRunner().invoke(main, ["upload", *files, "--key", str(key)])

        assert result.exit_code == 2
        assert "Uploaded 1 of 2 files." in result.output
        assert "[FAIL]" in result.output

    def test_setup_failure_exits_one(self, tmp_path: Path) -> None:
        key = _write_key(tmp_path)
        files = _write_files(tmp_path, {"a.txt": b"a"})

        with patch("aumai_bundlr.cli._build_uploader", side_effect=ValueError("bad key")):
            result = CliRunner().invoke(main, ["upload", *files, "--key", str(key)])

        assert result.exit_code == 1
        assert "Error: bad key" in result.output

    def test_missing_key_option(self, tmp_path: Path) -> None:
        files = _write_files(tmp_path, {"a.txt": b"a"})
        result = CliRunner().invoke(main, ["upload", *files])
        assert result.exit_code != 0


# ===========================================================================
# bundle
# ===========================================================================


class TestBundleCommand:
    def test_uploads_one_bundle(
        self, tmp_path: Path, make_uploader: Callable[..., Uploader], node
    ) -> None:
        key = _write_key(tmp_path)
        files = _write_files(tmp_path, {"a.txt": b"a", "b.txt": b"b"})

        with patch("aumai_bundlr.cli._build_uploader", return_value=make_uploader()):
            result = CliRunner().invoke(main, ["bundle", *files, "--key", str(key)])

        assert result.exit_code == 0, result.output
        assert len(node.requests) == 1
        wrapper = DataItem(node.requests[0].content)
        assert f"Bundle   : {wrapper.id}" in result.output
        for member_id in Bundle.from_raw(wrapper.data).get_ids():
            assert member_id in result.output

    def test_insufficient_funds_exits_one(
        self, tmp_path: Path, make_uploader: Callable[..., Uploader], node
    ) -> None:
        key = _write_key(tmp_path)
        files = _write_files(tmp_path, {"a.txt": b"a"})
        node.respond = lambda request: httpx.Response(402)

        with patch("aumai_bundlr.cli._build_uploader", return_value=make_uploader()):
            result = CliRunner().invoke(main, ["bundle", *files, "--key", str(key)])

        assert result.exit_code == 1
        assert "Not enough funds to send data" in result.output


# ===========================================================================
# _build_uploader
# ===========================================================================


class TestBuildUploader:
    def test_overrides_and_settings(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("AUMAI_BUNDLR_HOST", "env.example")
        monkeypatch.setenv("AUMAI_BUNDLR_CONCURRENCY", "7")
        key = _write_key(tmp_path)

        uploader = _build_uploader(str(key), None, 8443, "http", "matic")
        try:
            assert uploader.endpoint == "http://env.example:8443/tx/matic"
            assert uploader.config.concurrency == 7
            assert len(uploader.signer.public_key) == 32
        finally:
            asyncio.run(uploader.aclose())
