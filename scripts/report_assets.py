#!/usr/bin/env python3
"""Resolve logo and photo references from blob storage into in-memory images."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence
from urllib.parse import quote

import requests


Fetch = Callable[[str, str], Optional[bytes]]
FailureHook = Callable[[str, str, str], None]


def mime_from_path(path: str) -> str:
    lowered = path.lower()
    if lowered.endswith(".png"):
        return "image/png"
    if lowered.endswith(".webp"):
        return "image/webp"
    return "image/jpeg"


@dataclass(frozen=True)
class ResolvedAsset:
    path: str
    data: bytes
    mime_type: str

    @property
    def extension(self) -> str:
        return {"image/png": "png", "image/webp": "webp"}.get(self.mime_type, "jpeg")


class DirectoryFetcher:
    """Read ``<root>/<bucket>/<path>`` from a local mirror of the buckets."""

    def __init__(self, root: Path):
        self.root = Path(root).resolve()

    def __call__(self, bucket: str, path: str) -> Optional[bytes]:
        base = (self.root / bucket).resolve()
        target = (base / path.lstrip("/")).resolve()
        if base not in target.parents or not target.is_file():
            return None
        return target.read_bytes()


class StorageApiFetcher:
    """Download objects from a storage REST endpoint."""

    def __init__(self, base_url: str, api_key: str = "", *, timeout: float = 15, session: requests.Session | None = None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        if not self.api_key:
            return {}
        return {"Authorization": f"Bearer {self.api_key}", "apikey": self.api_key}

    def __call__(self, bucket: str, path: str) -> Optional[bytes]:
        url = f"{self.base_url}/storage/v1/object/{quote(bucket)}/{quote(path.lstrip('/'))}"
        resp = self.session.get(url, headers=self._headers(), timeout=self.timeout)
        if resp.status_code != 200:
            return None
        return resp.content


class AssetResolver:
    """Fetch wrapper that never raises: every failure becomes ``None``.

    Callers branch on ``None`` and render the "no asset" variant of the block.
    """

    def __init__(self, fetch: Fetch, *, max_workers: int = 4, on_failure: FailureHook | None = None):
        self.fetch = fetch
        self.max_workers = max(int(max_workers or 1), 1)
        self.on_failure = on_failure

    def _failed(self, bucket: str, path: str, reason: str) -> None:
        if self.on_failure is not None:
            try:
                self.on_failure(bucket, path, reason)
            except Exception:
                # A broken hook must not turn a missing asset into a fatal error.
                pass
        return None

    def resolve(self, bucket: str, path: Optional[str]) -> Optional[ResolvedAsset]:
        path = str(path or "").strip()
        if not path:
            return None
        try:
            data = self.fetch(bucket, path)
        except Exception as exc:
            return self._failed(bucket, path, f"{type(exc).__name__}: {exc}")
        if not data:
            return self._failed(bucket, path, "not found")
        return ResolvedAsset(path=path, data=bytes(data), mime_type=mime_from_path(path))

    def resolve_many(self, bucket: str, paths: Sequence[str]) -> List[Optional[ResolvedAsset]]:
        if not paths:
            return []
        if len(paths) == 1 or self.max_workers == 1:
            return [self.resolve(bucket, path) for path in paths]
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(paths))) as pool:
            return list(pool.map(lambda path: self.resolve(bucket, path), paths))
