"""Multipart upload validation and storage."""

import io

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from musicshare.core.errors import ValidationError
from musicshare.features.uploads.service import (
    discard_uploads,
    extension_for,
    generate_filename,
    store_uploads,
)


def upload(name, content_type, data=b"data"):
    return UploadFile(
        file=io.BytesIO(data),
        filename=name,
        headers=Headers({"content-type": content_type}),
    )


async def test_stores_audio_and_image(storage, settings):
    stored = await store_uploads(
        storage,
        settings,
        audio=upload("Track.MP3", "audio/mpeg"),
        image=upload("cover.webp", "image/webp"),
    )

    assert stored.audio_file.startswith("music-") and stored.audio_file.endswith(".mp3")
    assert stored.background_image.startswith("image-")
    assert stored.background_image.endswith(".webp")
    assert storage.blobs[("audio", stored.audio_file)] == b"data"

    await discard_uploads(storage, stored)
    assert storage.blobs == {}


async def test_nothing_submitted(storage, settings):
    stored = await store_uploads(storage, settings)
    assert stored.audio_file is None and stored.background_image is None


async def test_empty_file_input_counts_as_absent(storage, settings):
    stored = await store_uploads(storage, settings, image=upload("", "application/octet-stream", b""))
    assert stored.background_image is None


@pytest.mark.parametrize(
    "content_type", ["audio/mpeg", "audio/wav", "audio/ogg", "audio/flac", "audio/aac", "audio/x-m4a"]
)
async def test_accepted_audio_types(storage, settings, content_type):
    stored = await store_uploads(storage, settings, audio=upload("a", content_type))
    assert stored.audio_file is not None


async def test_image_type_rejected_before_anything_is_written(storage, settings):
    with pytest.raises(ValidationError) as exc:
        await store_uploads(
            storage,
            settings,
            audio=upload("a.mp3", "audio/mpeg"),
            image=upload("c.gif", "image/gif"),
        )
    assert "Invalid image file type" in exc.value.detail
    assert exc.value.status_code == 400
    assert storage.blobs == {}


async def test_audio_size_limit(storage, settings):
    small = settings.model_copy(update={"MAX_AUDIO_BYTES": 4})
    await store_uploads(storage, small, audio=upload("a.wav", "audio/wav", b"1234"))

    with pytest.raises(ValidationError):
        await store_uploads(storage, small, audio=upload("a.wav", "audio/wav", b"12345"))


async def test_failed_write_removes_earlier_files(storage, settings, monkeypatch):
    original_put = storage.put

    async def put(kind, filename, data):
        if kind == "image":
            raise OSError("disk full")
        await original_put(kind, filename, data)

    monkeypatch.setattr(storage, "put", put)
    with pytest.raises(OSError):
        await store_uploads(
            storage,
            settings,
            audio=upload("a.mp3", "audio/mpeg"),
            image=upload("c.png", "image/png"),
        )
    assert storage.blobs == {}


def test_extension_for():
    assert extension_for("audio/mpeg", "song.MP3") == ".mp3"
    assert extension_for("audio/x-m4a", "noext") == ".m4a"
    assert extension_for("image/png", "") == ".png"


def test_generated_names_are_unique():
    names = {generate_filename("music", "audio/mpeg", "a.mp3") for _ in range(50)}
    assert len(names) == 50
