import os
import uuid
from types import SimpleNamespace
from typing import Any, Dict, List

os.environ.setdefault("AUTH_TOKEN_SECRET", "test-secret")

import httpx
import pytest
from beanie import init_beanie
from pymongo import AsyncMongoClient
from pymongo.errors import PyMongoError

from studysync import db as db_module
from studysync.db import DOCUMENT_MODELS
from studysync.dependencies import ensure_db, get_current_user, get_current_user_optional
from studysync.errors import ExternalFetchError
from studysync.main import app
from studysync.models.enums import UserRole
from studysync.models.user import User
from studysync.services.email_service import EmailService
from studysync.services.youtube_service import (
    YouTubeService,
    canonical_video_url,
    extract_playlist_id,
    extract_video_id,
)

MONGO_TEST_URI = os.environ.get("MONGO_TEST_URI", "mongodb://localhost:27017")


class Outbox(list):
    """Emails captured by the ``outbox`` fixture; set ``deliver`` to fail sends"""

    deliver = True


@pytest.fixture
async def db(monkeypatch):
    """Beanie bound to a throwaway database; skipped when MongoDB is unreachable"""
    client = AsyncMongoClient(MONGO_TEST_URI, tz_aware=True, serverSelectionTimeoutMS=1500)
    try:
        await client.admin.command("ping")
    except PyMongoError as e:
        await client.close()
        pytest.skip(f"MongoDB not available at {MONGO_TEST_URI}: {e}")

    name = f"studysync_test_{uuid.uuid4().hex[:10]}"
    database = client[name]
    await init_beanie(database=database, document_models=DOCUMENT_MODELS)
    monkeypatch.setattr(db_module, "_beanie_initialized", True)

    yield database

    await client.drop_database(name)
    await client.close()


@pytest.fixture
def make_user(db):
    async def _make(email: str = None, role: UserRole = UserRole.USER, **kwargs) -> User:
        email = email or f"{uuid.uuid4().hex[:8]}@example.com"
        user = User(
            uid=uuid.uuid4().hex,
            email=email.lower(),
            display_name=email.split("@")[0],
            role=role,
            **kwargs,
        )
        await user.insert()
        return user

    return _make


@pytest.fixture
def outbox(monkeypatch) -> Outbox:
    """Capture outgoing email instead of talking to SMTP"""
    box = Outbox()

    async def fake_send(to_email: str, subject: str, body: str) -> bool:
        if not box.deliver:
            return False
        box.append({"to": to_email, "subject": subject, "body": body})
        return True

    monkeypatch.setattr(EmailService, "send_email", staticmethod(fake_send))
    return box


@pytest.fixture
def fake_youtube(monkeypatch):
    """Canned YouTube metadata keyed by video id, plus playlists of ids"""
    videos: Dict[str, Dict[str, Any]] = {}
    playlists: Dict[str, List[str]] = {}
    calls: List[str] = []

    def add_video(video_id: str, title: str = None, duration: int = 10):
        videos[video_id] = {
            "video_id": video_id,
            "title": title or f"Video {video_id}",
            "duration": duration,
            "thumbnail_url": f"https://i.ytimg.com/vi/{video_id}/mqdefault.jpg",
            "url": canonical_video_url(video_id),
        }

    async def get_video_metadata(url: str):
        calls.append(url)
        video_id = extract_video_id(url)
        if video_id not in videos:
            raise ExternalFetchError("Video not found")
        return videos[video_id]

    async def get_playlist_videos(url: str):
        calls.append(url)
        playlist_id = extract_playlist_id(url)
        if playlist_id not in playlists:
            raise ExternalFetchError("YouTube API request failed: 404")
        return [videos[vid] for vid in playlists[playlist_id]]

    monkeypatch.setattr(YouTubeService, "get_video_metadata", staticmethod(get_video_metadata))
    monkeypatch.setattr(YouTubeService, "get_playlist_videos", staticmethod(get_playlist_videos))

    return SimpleNamespace(videos=videos, playlists=playlists, calls=calls, add_video=add_video)


@pytest.fixture
async def client():
    """HTTP client against the app with database startup bypassed"""

    async def no_db():
        return None

    app.dependency_overrides[ensure_db] = no_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http

    app.dependency_overrides.clear()


@pytest.fixture
def login(client):
    """Make ``user`` the authenticated caller for subsequent requests"""

    def _login(user: User):
        async def current():
            return user

        app.dependency_overrides[get_current_user] = current
        app.dependency_overrides[get_current_user_optional] = current

    return _login
