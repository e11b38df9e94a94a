"""
Content-Addressed Image Store

Shelf photos are stored under the SHA-256 of their bytes, so uploading the
same photo twice stores it once and returns the same address.
"""

import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from loguru import logger


def hash_bytes(data: bytes) -> str:
    """SHA-256 hex digest of ``data``."""
    return hashlib.sha256(data).hexdigest()


def hash_file(path: Union[str, Path]) -> Optional[tuple[str, bytes]]:
    """
    Read a file and hash it.

    Returns:
        ``(hash, bytes)``, or None if the file does not exist
    """
    path = Path(path)
    if not path.is_file():
        return None
    data = path.read_bytes()
    return hash_bytes(data), data


@dataclass
class UploadResult:
    """Where an image lives and whether it was already stored."""

    key: str
    url: str
    exists: bool

    def to_dict(self) -> dict:
        return {"hash": self.key, "url": self.url, "exists": self.exists}


class ImageStore:
    """
    Local filesystem blob store keyed by content hash.

    Layout: ``<root>/images/<sha256>``; addresses are ``<base_url>/images/<sha256>``.
    """

    PREFIX = "images"

    def __init__(
        self,
        root: Union[str, Path] = "./data/blobs",
        base_url: str = "/blobs",
    ):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")
        (self.root / self.PREFIX).mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        return self.root / self.PREFIX / key

    def url_for(self, key: str) -> str:
        return f"{self.base_url}/{self.PREFIX}/{key}"

    def exists(self, key: str) -> bool:
        return self.path_for(key).is_file()

    def upload(self, data: bytes, key: Optional[str] = None) -> UploadResult:
        """
        Store ``data`` unless an object with the same hash already exists.

        Args:
            data: Image bytes
            key: Precomputed hash of ``data``

        Returns:
            UploadResult with ``exists`` True when nothing was written
        """
        key = key or hash_bytes(data)
        path = self.path_for(key)

        if path.is_file():
            logger.debug(f"Image {key[:12]} already stored")
            return UploadResult(key=key, url=self.url_for(key), exists=True)

        # Blobs only appear under their final name once fully written
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_bytes(data)
        tmp_path.replace(path)

        logger.info(f"Stored image {key[:12]} ({len(data) // 1024}KB)")
        return UploadResult(key=key, url=self.url_for(key), exists=False)
