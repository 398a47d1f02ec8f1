"""Transcript fetcher - video transcript and title lookup."""

import asyncio
import re
from dataclasses import dataclass
from typing import Any, Optional

import aiohttp

from ..config import Config
from ..errors import TranscriptUnavailable
from ..utils.logger import setup_logger
from .base import BaseFetcher

logger = setup_logger(__name__)

VIDEO_ID_PATTERN = re.compile(r'(?:v=|/)([0-9A-Za-z_-]{11})')

DISABLED_MARKERS = ("transcript is disabled", "no transcript found", "transcript-unavailable", "transcript_disabled")

DEFAULT_TITLE = "YouTube Video"
NO_TRANSCRIPT_TITLE = "YouTube Video (No Transcript)"


@dataclass
class TranscriptResult:
    """Transcript lookup outcome. transcript is None when none is available."""
    transcript: Optional[str]
    title: str
    video_id: str

    @property
    def available(self) -> bool:
        return bool(self.transcript)


def extract_video_id(url: str) -> str:
    """Get the 11-character video id, or the input unchanged if none is found."""
    match = VIDEO_ID_PATTERN.search(url or "")
    return match.group(1) if match else url


def parse_transcript_payload(data: Any) -> Optional[str]:
    """
    Read transcript text from a provider response.

    Accepts both the provider's segment list ({content: [{text}]}) and the
    proxy form ({transcript: str} or {error: "TRANSCRIPT_DISABLED"}).

    Returns:
        Transcript text, or None if the payload reports no transcript
    """
    if not isinstance(data, dict):
        return None
    if data.get("error") == "TRANSCRIPT_DISABLED":
        return None

    transcript = data.get("transcript")
    if isinstance(transcript, str):
        return transcript.strip() or None

    content = data.get("content")
    if isinstance(content, str):
        return content.strip() or None
    if isinstance(content, list):
        texts = [
            str(item.get("text", "")).strip()
            for item in content
            if isinstance(item, dict)
        ]
        joined = " ".join(t for t in texts if t)
        return joined or None

    return None


class TranscriptFetcher(BaseFetcher):
    """
    Fetch transcripts through the Supadata API and titles through oEmbed.

    A disabled or missing transcript is not an error: the result simply has
    transcript=None so the extraction can switch to search mode.
    """

    def __init__(
        self,
        api_url: str = Config.TRANSCRIPT_API_URL,
        oembed_url: str = Config.OEMBED_URL,
        timeout: int = Config.TRANSCRIPT_TIMEOUT
    ):
        super().__init__(timeout=timeout)
        self.api_url = api_url
        self.oembed_url = oembed_url

    async def fetch_title(self, video_id: str) -> str:
        """Video title via oEmbed (no key needed). Falls back to a generic title."""
        session = await self._get_session()
        params = {
            "url": f"https://www.youtube.com/watch?v={video_id}",
            "format": "json",
        }
        try:
            async with session.get(self.oembed_url, params=params) as response:
                if response.status == 200:
                    data = await response.json(content_type=None)
                    title = data.get("title") if isinstance(data, dict) else None
                    if isinstance(title, str) and title.strip():
                        return title.strip()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("Failed to fetch title via oEmbed: %s", e)
        return DEFAULT_TITLE

    async def fetch(self, source: str, api_key: Optional[str] = None) -> TranscriptResult:
        """
        Fetch transcript and title for a video URL.

        Args:
            source: Video URL
            api_key: Transcript provider key

        Returns:
            TranscriptResult

        Raises:
            TranscriptUnavailable: On network or provider errors other than
                "no transcript"
        """
        video_id = extract_video_id(source)
        logger.info("Processing video id: %s", video_id)

        if not api_key:
            logger.warning("No SUPADATA_API_KEY configured, skipping transcript lookup")
            return TranscriptResult(transcript=None, title=NO_TRANSCRIPT_TITLE, video_id=video_id)

        session = await self._get_session()
        try:
            async with session.get(
                self.api_url,
                params={"url": source},
                headers={"x-api-key": api_key},
            ) as response:
                if response.status != 200:
                    error_text = await response.text()
                    if response.status == 404 or any(m in error_text.lower() for m in DISABLED_MARKERS):
                        logger.info("No transcript available for %s", video_id)
                        return TranscriptResult(transcript=None, title=NO_TRANSCRIPT_TITLE, video_id=video_id)
                    raise TranscriptUnavailable(f"Transcript provider error {response.status}: {error_text[:200]}")

                data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TranscriptUnavailable(f"Transcript request failed: {e}") from e

        transcript = parse_transcript_payload(data)
        if transcript is None:
            return TranscriptResult(transcript=None, title=NO_TRANSCRIPT_TITLE, video_id=video_id)

        logger.info("Transcript fetched. Length: %d", len(transcript))
        title = await self.fetch_title(video_id)
        return TranscriptResult(transcript=transcript, title=title, video_id=video_id)
