"""Application wiring: health probes, settings and static asset serving."""

from fastapi.testclient import TestClient

from musicshare.application import create_app
from musicshare.core.settings import Settings


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/healthz").json() == {"ok": True, "db": True}


def test_settings_helpers():
    settings = Settings(
        _env_file=None,
        ADMIN_EMAILS=" Root@Example.com, ,ops@example.com",
        ALLOWED_ORIGINS="http://localhost:5173,https://music.example.com",
    )
    assert settings.admin_emails == {"root@example.com", "ops@example.com"}
    assert settings.allowed_origins == ["http://localhost:5173", "https://music.example.com"]
    assert settings.MAX_AUDIO_BYTES == 20 * 1024 * 1024
    assert settings.MAX_IMAGE_BYTES == 5 * 1024 * 1024


def test_local_uploads_are_served_as_static_files(settings, monkeypatch):
    monkeypatch.setattr(
        "musicshare.features.auth.router.verify_oidc_token",
        lambda token, settings: {"email": token},
    )
    app = create_app(settings)
    with TestClient(app) as c:
        token = c.post(
            "/auth/session", headers={"Authorization": "Bearer eve@example.com"}
        ).json()["token"]
        c.cookies.clear()
        headers = {"Authorization": f"Bearer {token}"}

        res = c.post(
            "/music",
            data={"title": "Static", "is_public": "true"},
            files=[("audioFile", ("s.ogg", b"OggS-bytes", "audio/ogg"))],
            headers=headers,
        )
        assert res.status_code == 201
        audio_url = res.json()["audioUrl"]
        assert audio_url.startswith("/uploads/audio/music-")

        served = c.get(audio_url)
        assert served.status_code == 200
        assert served.content == b"OggS-bytes"

        c.delete(f"/music/{res.json()['id']}", headers=headers)
        assert c.get(audio_url).status_code == 404


def test_settings_are_not_loaded_at_import():
    import musicshare.core.settings as settings_module

    assert not hasattr(settings_module, "settings")
