#!/usr/bin/env python3
"""
In-memory store for uploaded photos and templates.

Blobs are content-addressed by SHA-256; names point at digests. Putting a
name again replaces what it pointed to, and blobs no name refers to any
more are dropped.
"""

import hashlib
import logging
import threading
from pathlib import Path
from typing import Optional
from urllib.parse import unquote

import requests

from config import IMAGE_EXTENSIONS


class AssetStore:
    """Name -> bytes map with replace-on-upload semantics."""

    def __init__(self):
        self._lock = threading.Lock()
        self._names: dict[str, str] = {}
        self._blobs: dict[str, bytes] = {}

    def put(self, name: str, data: bytes) -> str:
        """Store `data` under `name`, superseding any previous upload. Returns the digest."""
        if not name:
            raise ValueError("Asset name must not be empty")
        digest = hashlib.sha256(data).hexdigest()
        with self._lock:
            previous = self._names.get(name)
            self._names[name] = digest
            self._blobs[digest] = data
            if previous and previous != digest:
                self._drop_unreferenced(previous)
        if previous and previous != digest:
            logging.info("Replaced asset %s", name)
        return digest

    def get(self, name: str) -> Optional[bytes]:
        with self._lock:
            digest = self._names.get(name)
            return self._blobs.get(digest) if digest else None

    def digest(self, name: str) -> Optional[str]:
        with self._lock:
            return self._names.get(name)

    def remove(self, name: str) -> bool:
        with self._lock:
            digest = self._names.pop(name, None)
            if digest:
                self._drop_unreferenced(digest)
        return digest is not None

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._names)

    def blob_count(self) -> int:
        with self._lock:
            return len(self._blobs)

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._names

    def __len__(self) -> int:
        with self._lock:
            return len(self._names)

    def _drop_unreferenced(self, digest: str) -> None:
        if digest not in self._names.values():
            self._blobs.pop(digest, None)

    def put_file(self, path: Path, name: Optional[str] = None) -> str:
        return self.put(name or path.name, path.read_bytes())

    def load_directory(self, directory: Path) -> int:
        """Add every image file in `directory` (not recursive), keyed by filename."""
        if not directory.is_dir():
            raise FileNotFoundError(f"Photos directory not found: {directory}")
        count = 0
        for path in sorted(directory.iterdir()):
            if path.is_file() and path.suffix.lower() in IMAGE_EXTENSIONS:
                self.put_file(path)
                count += 1
        logging.info("Loaded %d photos from %s", count, directory)
        return count

    def put_url(self, url: str, name: Optional[str] = None, timeout: int = 30) -> str:
        """Download `url` and store it; the name defaults to the URL's last path segment."""
        name = name or unquote(url.split("?")[0].rstrip("/").split("/")[-1])
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
        logging.info("Downloaded %s (%d bytes)", name, len(response.content))
        return self.put(name, response.content)
