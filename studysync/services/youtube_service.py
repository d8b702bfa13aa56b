"""
YouTube Data API v3 client for video and playlist metadata
"""

import logging
import re
from typing import Any, Dict, List, Optional

import requests
from fastapi.concurrency import run_in_threadpool

from ..config import settings
from ..errors import ExternalFetchError

logger = logging.getLogger(__name__)

VIDEO_ID_PATTERNS = [
    re.compile(r"(?:youtube\.com/watch\?(?:.*&)?v=|youtu\.be/|youtube\.com/embed/|youtube\.com/shorts/)([A-Za-z0-9_-]{11})"),
    re.compile(r"^([A-Za-z0-9_-]{11})$"),  # Bare video ID
]
PLAYLIST_ID_PATTERN = re.compile(r"[?&]list=([^&#\s]+)")
DURATION_PATTERN = re.compile(
    r"^P(?:(\d+)D)?(?:T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+(?:\.\d+)?)S)?)?$"
)

PLAYLIST_PAGE_SIZE = 50


def extract_video_id(url: str) -> Optional[str]:
    for pattern in VIDEO_ID_PATTERNS:
        match = pattern.search(url.strip())
        if match:
            return match.group(1)
    return None


def extract_playlist_id(url: str) -> Optional[str]:
    match = PLAYLIST_ID_PATTERN.search(url)
    return match.group(1) if match else None


def canonical_video_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"


def parse_duration(iso_duration: str) -> int:
    """ISO 8601 duration (e.g. PT1H2M30S) to whole minutes, rounded"""
    match = DURATION_PATTERN.match(iso_duration or "")
    if not match:
        return 0

    days, hours, minutes, seconds = match.groups()
    total = (
        int(days or 0) * 24 * 60
        + int(hours or 0) * 60
        + int(minutes or 0)
        + float(seconds or 0) / 60
    )
    return int(total + 0.5)


def _video_metadata(item: Dict[str, Any]) -> Dict[str, Any]:
    snippet = item.get("snippet", {})
    thumbnails = snippet.get("thumbnails", {})
    thumbnail = thumbnails.get("medium") or thumbnails.get("default") or {}
    return {
        "video_id": item["id"],
        "title": snippet.get("title", ""),
        "duration": parse_duration(item.get("contentDetails", {}).get("duration", "")),
        "thumbnail_url": thumbnail.get("url", ""),
        "url": canonical_video_url(item["id"]),
    }


class YouTubeService:
    """Blocking HTTP calls run in the threadpool so the event loop stays free"""

    @staticmethod
    def _get(endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if not settings.YOUTUBE_API_KEY:
            raise ExternalFetchError("YouTube API key is not configured")

        try:
            response = requests.get(
                f"{settings.YOUTUBE_API_BASE_URL}/{endpoint}",
                params={**params, "key": settings.YOUTUBE_API_KEY},
                timeout=settings.YOUTUBE_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
            return response.json()
        except requests.HTTPError as e:
            # The request URL carries the API key; report the status only
            status_code = e.response.status_code if e.response is not None else "unknown"
            logger.error(f"YouTube API error ({endpoint}): HTTP {status_code}")
            raise ExternalFetchError(f"YouTube API request failed with status {status_code}")
        except requests.RequestException as e:
            logger.error(f"YouTube API error ({endpoint}): {type(e).__name__}")
            raise ExternalFetchError("YouTube API request failed")

    @staticmethod
    def _fetch_videos(video_ids: List[str]) -> List[Dict[str, Any]]:
        if not video_ids:
            return []
        data = YouTubeService._get(
            "videos",
            {"part": "snippet,contentDetails", "id": ",".join(video_ids)},
        )
        return [_video_metadata(item) for item in data.get("items", [])]

    @staticmethod
    def _fetch_playlist(playlist_id: str) -> List[Dict[str, Any]]:
        videos: List[Dict[str, Any]] = []
        page_token = None

        while True:
            params = {
                "part": "contentDetails",
                "playlistId": playlist_id,
                "maxResults": PLAYLIST_PAGE_SIZE,
            }
            if page_token:
                params["pageToken"] = page_token

            page = YouTubeService._get("playlistItems", params)
            video_ids = [
                item["contentDetails"]["videoId"] for item in page.get("items", [])
            ]
            by_id = {v["video_id"]: v for v in YouTubeService._fetch_videos(video_ids)}

            # Keep playlist order; private or deleted videos have no metadata
            videos.extend(by_id[vid] for vid in video_ids if vid in by_id)

            page_token = page.get("nextPageToken")
            if not page_token:
                return videos

    @staticmethod
    async def get_video_metadata(url: str) -> Dict[str, Any]:
        """
        Fetch title, duration (minutes) and thumbnail for one video

        Raises:
            ExternalFetchError: bad URL, provider error or no matching video
        """
        video_id = extract_video_id(url)
        if not video_id:
            raise ExternalFetchError("Invalid YouTube video URL")

        videos = await run_in_threadpool(YouTubeService._fetch_videos, [video_id])
        if not videos:
            raise ExternalFetchError("Video not found")
        return videos[0]

    @staticmethod
    async def get_playlist_videos(url: str) -> List[Dict[str, Any]]:
        """Fetch every video of a playlist in playlist order"""
        playlist_id = extract_playlist_id(url)
        if not playlist_id:
            raise ExternalFetchError("Invalid YouTube playlist URL")

        videos = await run_in_threadpool(YouTubeService._fetch_playlist, playlist_id)
        if not videos:
            raise ExternalFetchError("Playlist has no available videos")
        return videos
