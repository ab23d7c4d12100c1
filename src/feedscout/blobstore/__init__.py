"""Utilities for working with the local blobstore used for discovery results."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Union

_PACKAGE_DIR = Path(__file__).resolve().parent

#: Name of the directory under :mod:`feedscout.blobstore` that contains the data.
DEFAULT_BLOB_SUBDIR = "data"

#: Default location where discovery artefacts are stored.
DEFAULT_BLOB_ROOT = _PACKAGE_DIR / DEFAULT_BLOB_SUBDIR


_Pathish = Union[str, Path]


def resolve_blob_root(blob_root: _Pathish | None = None) -> Path:
    """Return a :class:`Path` pointing at the blob root.

    ``blob_root`` may be either a string or :class:`Path`.  When ``None`` is
    provided, :data:`DEFAULT_BLOB_ROOT` is returned.  The path is not created on
    disk; writers create it on demand.
    """

    if blob_root is None:
        return DEFAULT_BLOB_ROOT
    if isinstance(blob_root, Path):
        return blob_root
    return Path(blob_root)


def store_json(path: Path, payload: object) -> None:
    """Write ``payload`` as UTF-8 JSON, replacing ``path`` in one step."""

    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as file:
        json.dump(payload, file, ensure_ascii=False, indent=2)
    os.replace(tmp_path, path)


__all__ = [
    "DEFAULT_BLOB_ROOT",
    "DEFAULT_BLOB_SUBDIR",
    "resolve_blob_root",
    "store_json",
]
