from __future__ import annotations

import mimetypes
import os
import time
import uuid

from fastapi import UploadFile
from loguru import logger
from musicshare.core.errors import ValidationError
from musicshare.core.settings import Settings
from musicshare.core.storage import AssetStorage

from .schemas import StoredUploads, UploadPolicy

AUDIO_FIELD = "audioFile"
IMAGE_FIELD = "backgroundImage"

AUDIO_MIME_TYPES = frozenset(
    {
        "audio/mpeg",
        "audio/mp3",
        "audio/wav",
        "audio/x-wav",
        "audio/wave",
        "audio/ogg",
        "audio/flac",
        "audio/x-flac",
        "audio/aac",
        "audio/mp4",
        "audio/x-m4a",
    }
)
IMAGE_MIME_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png", "image/webp"})

# Common audio fallbacks mimetypes does not know about everywhere
_EXTENSION_FALLBACKS = {
    "audio/mpeg": ".mp3",
    "audio/mp3": ".mp3",
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
    "audio/wave": ".wav",
    "audio/ogg": ".ogg",
    "audio/flac": ".flac",
    "audio/x-flac": ".flac",
    "audio/aac": ".aac",
    "audio/mp4": ".m4a",
    "audio/x-m4a": ".m4a",
    "image/jpg": ".jpg",
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}


def audio_policy(settings: Settings) -> UploadPolicy:
    return UploadPolicy(
        field=AUDIO_FIELD,
        kind="audio",
        prefix="music",
        allowed_mime_types=AUDIO_MIME_TYPES,
        max_bytes=settings.MAX_AUDIO_BYTES,
        label="MP3, WAV, OGG, FLAC, AAC and M4A",
    )


def image_policy(settings: Settings) -> UploadPolicy:
    return UploadPolicy(
        field=IMAGE_FIELD,
        kind="image",
        prefix="image",
        allowed_mime_types=IMAGE_MIME_TYPES,
        max_bytes=settings.MAX_IMAGE_BYTES,
        label="JPG, PNG and WebP",
    )


def is_present(upload: UploadFile | None) -> bool:
    # Browsers send an empty, unnamed part for untouched file inputs
    return upload is not None and bool(upload.filename)


def extension_for(file_type: str, file_name: str) -> str:
    ext = os.path.splitext(file_name)[1].lower()
    if ext and len(ext) <= 6:
        return ext
    if file_type in _EXTENSION_FALLBACKS:
        return _EXTENSION_FALLBACKS[file_type]
    return mimetypes.guess_extension(file_type) or ""


def generate_filename(prefix: str, file_type: str, file_name: str) -> str:
    millis = int(time.time() * 1000)
    return f"{prefix}-{millis}-{uuid.uuid4().hex[:12]}{extension_for(file_type, file_name)}"


async def read_validated(upload: UploadFile, policy: UploadPolicy) -> bytes:
    """Check MIME type and size of one uploaded file and return its bytes."""
    file_type = (upload.content_type or "").lower()
    if file_type not in policy.allowed_mime_types:
        raise ValidationError(
            f"Invalid {policy.kind} file type. Only {policy.label} are allowed."
        )
    # Read one byte past the limit so oversize files are detected without
    # buffering the whole body
    data = await upload.read(policy.max_bytes + 1)
    if len(data) > policy.max_bytes:
        raise ValidationError(
            f"Upload error: {policy.field} exceeds max size of {policy.max_bytes} bytes"
        )
    if not data:
        raise ValidationError(f"Upload error: {policy.field} is empty")
    return data


async def store_uploads(
    storage: AssetStorage,
    settings: Settings,
    *,
    audio: UploadFile | None = None,
    image: UploadFile | None = None,
) -> StoredUploads:
    """Validate every submitted file, then write the accepted ones to storage.

    Nothing is written unless all submitted files pass validation.
    """
    pending: list[tuple[UploadPolicy, UploadFile, bytes]] = []
    for upload, policy in ((audio, audio_policy(settings)), (image, image_policy(settings))):
        if upload is not None and is_present(upload):
            pending.append((policy, upload, await read_validated(upload, policy)))

    stored = StoredUploads()
    written: list[tuple[str, str]] = []
    try:
        for policy, upload, data in pending:
            name = generate_filename(
                policy.prefix, (upload.content_type or "").lower(), upload.filename or ""
            )
            await storage.put(policy.kind, name, data)
            written.append((policy.kind, name))
            if policy.kind == "audio":
                stored.audio_file = name
            else:
                stored.background_image = name
            logger.debug(f"Stored {policy.kind} upload {name} ({len(data)} bytes)")
    except Exception:
        for kind, name in written:
            await storage.discard(kind, name)
        raise
    return stored


async def discard_uploads(storage: AssetStorage, stored: StoredUploads) -> None:
    await storage.discard("audio", stored.audio_file)
    await storage.discard("image", stored.background_image)
