"""Path manifests for a finished batch of uploads."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from aumai_bundlr.errors import UnknownIndexTarget
from aumai_bundlr.models import Manifest, ManifestIndex, ManifestPath


def build_manifest(items: Mapping[str, str], index_path: str | None = None) -> Manifest:
    """Map logical paths to item ids.

    ``paths`` follows the iteration order of *items*.

    Raises:
        UnknownIndexTarget: if *index_path* is given but is not a key of *items*.
    """
    index = None
    if index_path:
        if index_path not in items:
            raise UnknownIndexTarget(index_path)
        index = ManifestIndex(path=index_path)
    return Manifest(
        index=index,
        paths={path: ManifestPath(id=item_id) for path, item_id in items.items()},
    )


def manifest_to_dict(manifest: Manifest) -> dict[str, Any]:
    """Return the published shape, omitting ``index`` when unset."""
    return manifest.model_dump(mode="json", exclude_none=True)


def manifest_to_json(manifest: Manifest, indent: int | None = None) -> str:
    return json.dumps(manifest_to_dict(manifest), indent=indent)


__all__ = ["build_manifest", "manifest_to_dict", "manifest_to_json"]
