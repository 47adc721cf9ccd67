"""Local filesystem and S3 asset storage backends."""

from unittest.mock import Mock

import pytest
from botocore.exceptions import ClientError

from musicshare.core.storage import LocalAssetStorage, S3AssetStorage, build_storage


@pytest.fixture
def local(tmp_path):
    return LocalAssetStorage(tmp_path, audio_dir="audio", image_dir="images")


class TestLocalAssetStorage:
    def test_creates_content_directories(self, local, tmp_path):
        assert (tmp_path / "audio").is_dir()
        assert (tmp_path / "images").is_dir()

    async def test_put_exists_delete(self, local, tmp_path):
        await local.put("audio", "music-1.mp3", b"abc")

        assert (tmp_path / "audio" / "music-1.mp3").read_bytes() == b"abc"
        assert await local.exists("audio", "music-1.mp3")
        assert not await local.exists("image", "music-1.mp3")

        assert await local.delete("audio", "music-1.mp3") is True
        assert await local.delete("audio", "music-1.mp3") is False
        assert not await local.exists("audio", "music-1.mp3")

    async def test_discard_ignores_missing_and_empty(self, local):
        await local.discard("image", None)
        await local.discard("image", "never-written.png")

    async def test_rejects_path_traversal(self, local):
        with pytest.raises(ValueError):
            await local.put("audio", "../escape.mp3", b"x")

    def test_url(self, local):
        assert local.url("audio", "music-1.mp3") == "/uploads/audio/music-1.mp3"
        assert local.url("image", "image-1.png") == "/uploads/images/image-1.png"


def _not_found():
    return ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadObject")


class TestS3AssetStorage:
    @pytest.fixture
    def client(self):
        return Mock()

    @pytest.fixture
    def s3(self, client):
        return S3AssetStorage(client, "tracks", endpoint="http://minio:9000")

    async def test_put_uses_prefixed_key(self, s3, client):
        await s3.put("image", "image-1.png", b"png")
        client.put_object.assert_called_once_with(
            Bucket="tracks", Key="images/image-1.png", Body=b"png"
        )

    async def test_exists_maps_404_to_false(self, s3, client):
        client.head_object.side_effect = _not_found()
        assert await s3.exists("audio", "music-1.mp3") is False

    async def test_exists_propagates_other_errors(self, s3, client):
        client.head_object.side_effect = ClientError(
            {"Error": {"Code": "403", "Message": "Forbidden"}}, "HeadObject"
        )
        with pytest.raises(ClientError):
            await s3.exists("audio", "music-1.mp3")

    async def test_delete(self, s3, client):
        assert await s3.delete("audio", "music-1.mp3") is True
        client.delete_object.assert_called_once_with(Bucket="tracks", Key="audio/music-1.mp3")

        client.head_object.side_effect = _not_found()
        assert await s3.delete("audio", "music-2.mp3") is False
        assert client.delete_object.call_count == 1

    def test_url(self, s3):
        assert s3.url("audio", "music-1.mp3") == "http://minio:9000/tracks/audio/music-1.mp3"


def test_build_storage_selects_backend(settings):
    assert isinstance(build_storage(settings), LocalAssetStorage)

    s3_settings = settings.model_copy(
        update={"STORAGE_BACKEND": "s3", "S3_BUCKET": "tracks", "S3_REGION": "us-east-1"}
    )
    assert isinstance(build_storage(s3_settings), S3AssetStorage)
