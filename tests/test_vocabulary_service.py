"""End-to-end tests for VocabularyService with fake provider and fetcher."""

import asyncio

import pytest

from vocabmaster.errors import RateLimited, TranscriptUnavailable
from vocabmaster.fetchers import TranscriptResult
from vocabmaster.models import CardStatus
from vocabmaster.services import ExtractionOrchestrator, VocabularyService, VocabularyStore

from .conftest import VALID_RESPONSE_TEXT, VIDEO_URL, FakeProvider, rate_limit_error

NOW = 1700000000000


class FakeFetcher:
    """Returns a scripted transcript lookup and records the keys it was given."""

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []
        self.closed = False

    async def fetch(self, source, api_key=None):
        self.calls.append((source, api_key))
        if self.error is not None:
            raise self.error
        return self.result

    async def close(self):
        self.closed = True


def make_service(store, sleep_recorder, outcomes, fetcher=None, transcript_key=None):
    provider = FakeProvider(outcomes)
    orchestrator = ExtractionOrchestrator(provider, sleep=sleep_recorder)
    service = VocabularyService(store, orchestrator, fetcher, transcript_key, clock=lambda: NOW)
    return service, provider


class TestProcessVideo:

    def test_end_to_end(self, store, storage, sleep_recorder):
        service, _ = make_service(store, sleep_recorder, [VALID_RESPONSE_TEXT])

        video_set = asyncio.run(service.process_video(VIDEO_URL))

        assert store.sets == [video_set]
        assert video_set.id == f"set-{NOW}"
        assert video_set.url == VIDEO_URL
        assert video_set.title == "T"
        assert video_set.transcript == "S"
        assert video_set.created_at == NOW
        assert len(video_set.cards) == 1
        card = video_set.cards[0]
        assert (card.word, card.translation, card.status) == ("ephemeral", "短暫的", CardStatus.NEW)
        assert card.id == f"card-{NOW}-0"
        assert card.manual is False
        assert storage.write_count == 1

    def test_rate_limited_then_stored(self, store, sleep_recorder):
        service, _ = make_service(store, sleep_recorder, [rate_limit_error(), VALID_RESPONSE_TEXT])

        asyncio.run(service.process_video(VIDEO_URL))

        assert store.count == 1
        assert sleep_recorder.delays == [2.0]

    def test_failure_stores_nothing(self, store, storage, sleep_recorder):
        service, _ = make_service(store, sleep_recorder, [rate_limit_error()] * 3)

        with pytest.raises(RateLimited):
            asyncio.run(service.process_video(VIDEO_URL))

        assert store.count == 0
        assert storage.write_count == 0

    def test_same_millisecond_set_ids(self, store, sleep_recorder):
        service, _ = make_service(store, sleep_recorder, [VALID_RESPONSE_TEXT, VALID_RESPONSE_TEXT])

        first = asyncio.run(service.process_video(VIDEO_URL))
        second = asyncio.run(service.process_video(VIDEO_URL))

        assert first.id == f"set-{NOW}"
        assert second.id == f"set-{NOW}-1"
        assert [s.id for s in store.sets] == [second.id, first.id]

    def test_untitled_response_uses_date(self, store, sleep_recorder):
        response = '{"detectedTitle": "", "summary": "S", "vocabulary": []}'
        service, _ = make_service(store, sleep_recorder, [response])

        video_set = asyncio.run(service.process_video(VIDEO_URL))

        assert video_set.title.startswith("Vocabulary set - ")
        assert video_set.cards == []


class TestTranscriptLookup:

    def test_fetched_transcript_used(self, store, sleep_recorder):
        fetcher = FakeFetcher(TranscriptResult(transcript="It was ephemeral.", title="Real title", video_id="abc"))
        service, provider = make_service(store, sleep_recorder, [VALID_RESPONSE_TEXT], fetcher, "supadata-key-1")

        asyncio.run(service.process_video(VIDEO_URL))

        assert fetcher.calls == [(VIDEO_URL, "supadata-key-1")]
        assert provider.requests[0].use_search is False
        assert "It was ephemeral." in provider.requests[0].prompt

    def test_key_override(self, store, sleep_recorder):
        fetcher = FakeFetcher(TranscriptResult(transcript=None, title="x", video_id="abc"))
        service, _ = make_service(store, sleep_recorder, [VALID_RESPONSE_TEXT], fetcher, "default-key-1")

        asyncio.run(service.process_video(VIDEO_URL, transcript_key="override-key-1"))

        assert fetcher.calls[0][1] == "override-key-1"

    def test_fetched_title_is_fallback(self, store, sleep_recorder):
        fetcher = FakeFetcher(TranscriptResult(transcript="text", title="Real title", video_id="abc"))
        response = '{"detectedTitle": "", "summary": "S", "vocabulary": []}'
        service, _ = make_service(store, sleep_recorder, [response], fetcher)

        assert asyncio.run(service.process_video(VIDEO_URL)).title == "Real title"

    def test_unavailable_transcript_falls_back_to_search(self, store, sleep_recorder):
        fetcher = FakeFetcher(error=TranscriptUnavailable("provider down"))
        service, provider = make_service(store, sleep_recorder, [VALID_RESPONSE_TEXT], fetcher)

        video_set = asyncio.run(service.process_video(VIDEO_URL))

        assert provider.requests[0].use_search is True
        assert video_set.title == "T"

    def test_caller_transcript_skips_fetcher(self, store, sleep_recorder):
        fetcher = FakeFetcher(error=AssertionError("should not be called"))
        service, provider = make_service(store, sleep_recorder, [VALID_RESPONSE_TEXT], fetcher)

        asyncio.run(service.process_video(VIDEO_URL, transcript="Given text"))

        assert fetcher.calls == []
        assert "Given text" in provider.requests[0].prompt

    def test_close_closes_fetcher(self, store, sleep_recorder):
        fetcher = FakeFetcher()
        service, _ = make_service(store, sleep_recorder, [], fetcher)

        async def scenario():
            async with service:
                pass

        asyncio.run(scenario())
        assert fetcher.closed is True


class TestFromSettings:

    def test_stored_key_wins(self, storage, monkeypatch, tmp_path):
        from vocabmaster.config import SettingsManager
        from vocabmaster.services import CredentialStore

        monkeypatch.setenv("GEMINI_API_KEY", "env-key-0000000")
        monkeypatch.delenv("AI_PROVIDER", raising=False)
        SettingsManager.reset_instance()
        settings = SettingsManager(settings_file=str(tmp_path / "settings.json"))
        CredentialStore(storage).set_api_key("stored-key-1234567")

        service = VocabularyService.from_settings(settings, storage)

        try:
            assert service.orchestrator.provider.config.api_key == "stored-key-1234567"
            assert isinstance(service.store, VocabularyStore)
        finally:
            asyncio.run(service.close())
            SettingsManager.reset_instance()

    def test_review_session_uses_store(self, store, sleep_recorder):
        service, _ = make_service(store, sleep_recorder, [VALID_RESPONSE_TEXT])
        asyncio.run(service.process_video(VIDEO_URL))

        session = service.new_review_session()

        assert session.start(store.sets[0].id) == 1
