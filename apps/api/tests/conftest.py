"""Shared fixtures: in-memory SQLite database, in-memory asset storage and an
API client whose users sign in through the real session endpoint."""

from __future__ import annotations

from typing import Callable

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

import musicshare.core.entities_hub  # noqa: F401
from musicshare.application import create_app
from musicshare.core.auth import CurrentUser
from musicshare.core.db import create_engine, create_sessionmaker, init_models
from musicshare.core.settings import Settings
from musicshare.core.storage import AssetStorage
from musicshare.features.tracks.service import TrackService
from musicshare.features.uploads.schemas import StoredUploads
from musicshare.features.users.repository import upsert_user

ADMIN_EMAIL = "admin@example.com"


class InMemoryAssetStorage(AssetStorage):
    def __init__(self) -> None:
        self.blobs: dict[tuple[str, str], bytes] = {}

    async def put(self, kind, filename, data):
        self.blobs[(kind, filename)] = data

    async def delete(self, kind, filename):
        return self.blobs.pop((kind, filename), None) is not None

    async def exists(self, kind, filename):
        return (kind, filename) in self.blobs

    def url(self, kind, filename):
        return f"memory://{kind}/{filename}"

    def names(self, kind: str) -> set[str]:
        return {name for (k, name) in self.blobs if k == kind}


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        DB_AUTO_CREATE=True,
        UPLOAD_ROOT=str(tmp_path / "uploads"),
        INTERNAL_JWT_SECRET="test-secret-that-is-long-enough-for-hs256",
        INTERNAL_JWT_ALGORITHM="HS256",
        AUTH_COOKIE_SECURE=False,
        ADMIN_EMAILS=ADMIN_EMAIL,
        OIDC_ISSUER="https://issuer.example.com",
        OIDC_JWKS_URL="https://issuer.example.com/jwks",
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def storage() -> InMemoryAssetStorage:
    return InMemoryAssetStorage()


# --- service level -------------------------------------------------------


@pytest_asyncio.fixture
async def session(settings):
    engine = create_engine(settings)
    await init_models(engine)
    async with create_sessionmaker(engine)() as s:
        yield s
    await engine.dispose()


@pytest_asyncio.fixture
async def users(session) -> dict[str, CurrentUser]:
    out: dict[str, CurrentUser] = {}
    for key, email, role in (
        ("alice", "alice@example.com", "user"),
        ("bob", "bob@example.com", "user"),
        ("admin", ADMIN_EMAIL, "admin"),
    ):
        user, _ = await upsert_user(session, email=email, name=key.title(), role=role)
        out[key] = CurrentUser(id=str(user.id), email=user.email, role=user.role)
    return out


@pytest.fixture
def service(session, storage, settings) -> TrackService:
    return TrackService(session, storage, settings)


@pytest.fixture
def make_track(service: TrackService, storage: InMemoryAssetStorage):
    """Create a track whose assets exist in storage, optionally published."""
    counter = {"n": 0}

    async def _make(
        owner: CurrentUser,
        title: str = "Song A",
        *,
        description: str | None = None,
        genre: str | None = None,
        publish: bool = False,
        image: bool = False,
    ):
        counter["n"] += 1
        uploads = StoredUploads(audio_file=f"music-test-{counter['n']}.mp3")
        await storage.put("audio", uploads.audio_file, b"audio")
        if image:
            uploads.background_image = f"image-test-{counter['n']}.png"
            await storage.put("image", uploads.background_image, b"image")
        track = await service.create(
            owner=owner,
            title=title,
            description=description,
            genre=genre,
            uploads=uploads,
        )
        if publish:
            track = await service.publish(track_id=track.id, user=owner)
        return track

    return _make


# --- API level -----------------------------------------------------------


@pytest.fixture
def client(settings, storage, monkeypatch):
    # Stand-in for the identity provider: the bearer token is the email
    monkeypatch.setattr(
        "musicshare.features.auth.router.verify_oidc_token",
        lambda token, settings: {"email": token, "name": token.split("@")[0]},
    )
    app = create_app(settings, storage=storage)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def login(client) -> Callable[[str], dict[str, str]]:
    """Establish a session for `email` and return its Authorization header."""

    def _login(email: str) -> dict[str, str]:
        res = client.post("/auth/session", headers={"Authorization": f"Bearer {email}"})
        assert res.status_code == 200, res.text
        # Requests authenticate via header only; the session cookie would win
        client.cookies.clear()
        return {"Authorization": f"Bearer {res.json()['token']}"}

    return _login


@pytest.fixture
def alice(login):
    return login("alice@example.com")


@pytest.fixture
def bob(login):
    return login("bob@example.com")


@pytest.fixture
def admin(login):
    return login(ADMIN_EMAIL)
