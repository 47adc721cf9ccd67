"""Storage for uploaded track assets (audio files and cover images).

Tracks only keep the generated filename; where the bytes live is up to the
configured backend.
"""

from __future__ import annotations

import abc
import asyncio
import os
from pathlib import Path
from typing import Literal

from botocore.exceptions import ClientError
from fastapi import Request
from loguru import logger

from .settings import Settings

AssetKind = Literal["audio", "image"]


class AssetStorage(abc.ABC):
    @abc.abstractmethod
    async def put(self, kind: AssetKind, filename: str, data: bytes) -> None: ...

    @abc.abstractmethod
    async def delete(self, kind: AssetKind, filename: str) -> bool:
        """Remove an asset; returns False when it did not exist."""

    @abc.abstractmethod
    async def exists(self, kind: AssetKind, filename: str) -> bool: ...

    @abc.abstractmethod
    def url(self, kind: AssetKind, filename: str) -> str: ...

    async def discard(self, kind: AssetKind, filename: str | None) -> None:
        """Best-effort delete; failures are logged, never raised."""
        if not filename:
            return
        try:
            await self.delete(kind, filename)
        except Exception:
            logger.warning(f"Failed to remove {kind} asset {filename}")


def _safe_name(filename: str) -> str:
    name = os.path.basename(filename)
    if not name or name in (".", "..") or name != filename:
        raise ValueError(f"Invalid asset filename: {filename!r}")
    return name


class LocalAssetStorage(AssetStorage):
    """Content directories on the local filesystem, served as static files."""

    def __init__(
        self,
        root: str | Path,
        *,
        audio_dir: str = "audio",
        image_dir: str = "images",
        url_prefix: str = "/uploads",
    ) -> None:
        self.root = Path(root)
        self.dirs: dict[str, Path] = {
            "audio": self.root / audio_dir,
            "image": self.root / image_dir,
        }
        self._url_dirs = {"audio": audio_dir, "image": image_dir}
        self.url_prefix = url_prefix.rstrip("/")
        for d in self.dirs.values():
            d.mkdir(parents=True, exist_ok=True)

    def path(self, kind: AssetKind, filename: str) -> Path:
        return self.dirs[kind] / _safe_name(filename)

    async def put(self, kind: AssetKind, filename: str, data: bytes) -> None:
        await asyncio.to_thread(self.path(kind, filename).write_bytes, data)

    async def delete(self, kind: AssetKind, filename: str) -> bool:
        path = self.path(kind, filename)

        def _unlink() -> bool:
            try:
                path.unlink()
            except FileNotFoundError:
                return False
            return True

        return await asyncio.to_thread(_unlink)

    async def exists(self, kind: AssetKind, filename: str) -> bool:
        return await asyncio.to_thread(self.path(kind, filename).is_file)

    def url(self, kind: AssetKind, filename: str) -> str:
        return f"{self.url_prefix}/{self._url_dirs[kind]}/{filename}"


class S3AssetStorage(AssetStorage):
    """Same contract on an S3/MinIO bucket; keys are `<dir>/<filename>`."""

    def __init__(
        self,
        client,
        bucket: str,
        *,
        audio_dir: str = "audio",
        image_dir: str = "images",
        endpoint: str = "",
    ) -> None:
        self.client = client
        self.bucket = bucket
        self._dirs = {"audio": audio_dir, "image": image_dir}
        self.endpoint = endpoint.rstrip("/")

    def key(self, kind: AssetKind, filename: str) -> str:
        return f"{self._dirs[kind]}/{_safe_name(filename)}"

    async def put(self, kind: AssetKind, filename: str, data: bytes) -> None:
        await asyncio.to_thread(
            self.client.put_object,
            Bucket=self.bucket,
            Key=self.key(kind, filename),
            Body=data,
        )

    async def delete(self, kind: AssetKind, filename: str) -> bool:
        if not await self.exists(kind, filename):
            return False
        await asyncio.to_thread(
            self.client.delete_object, Bucket=self.bucket, Key=self.key(kind, filename)
        )
        return True

    async def exists(self, kind: AssetKind, filename: str) -> bool:
        try:
            await asyncio.to_thread(
                self.client.head_object,
                Bucket=self.bucket,
                Key=self.key(kind, filename),
            )
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in ("404", "NoSuchKey", "NotFound"):
                return False
            raise
        return True

    def url(self, kind: AssetKind, filename: str) -> str:
        key = f"{self._dirs[kind]}/{filename}"
        if self.endpoint:
            return f"{self.endpoint}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.amazonaws.com/{key}"


def build_storage(settings: Settings) -> AssetStorage:
    if settings.STORAGE_BACKEND == "s3":
        from .s3 import create_s3_client

        return S3AssetStorage(
            create_s3_client(settings),
            settings.S3_BUCKET,
            audio_dir=settings.AUDIO_DIR,
            image_dir=settings.IMAGE_DIR,
            endpoint=settings.S3_ENDPOINT,
        )
    return LocalAssetStorage(
        settings.UPLOAD_ROOT,
        audio_dir=settings.AUDIO_DIR,
        image_dir=settings.IMAGE_DIR,
        url_prefix=settings.STATIC_URL_PREFIX,
    )


def get_storage(request: Request) -> AssetStorage:
    return request.app.state.storage
