"""
Tests for the extraction orchestrator.

Tests cover:
- Rate-limit retry with exponential backoff and attempt events
- Terminal failure classification
- Prompt mode selection (transcript vs search)
- Citation extraction
- In-flight guard per video reference
"""

import asyncio

import pytest

from vocabmaster.errors import (
    CompletionError,
    ExtractionInProgress,
    InvalidResponseFormat,
    MissingCredential,
    RateLimited,
    UpstreamError,
    UpstreamRejected,
)
from vocabmaster.models import AttemptOutcome, ExtractionMode, GroundingSource
from vocabmaster.services import (
    CompletionResponse,
    ExtractionOrchestrator,
    classify_failure,
    extract_sources,
)
from vocabmaster.services.extraction import JSON_ONLY_INSTRUCTION, VOCABULARY_SCHEMA

from .conftest import VALID_RESPONSE_TEXT, VIDEO_URL, FakeProvider, rate_limit_error


def make_orchestrator(provider, sleep_recorder, **kwargs):
    kwargs.setdefault("max_attempts", 3)
    kwargs.setdefault("backoff_base", 2.0)
    return ExtractionOrchestrator(provider, sleep=sleep_recorder, **kwargs)


class TestRetry:
    """Rate limits are retried with exponential backoff."""

    def test_two_rate_limits_then_success(self, sleep_recorder):
        provider = FakeProvider([rate_limit_error(), rate_limit_error(), VALID_RESPONSE_TEXT])
        orchestrator = make_orchestrator(provider, sleep_recorder)
        seen = []
        orchestrator.on_retry(seen.append)

        result = asyncio.run(orchestrator.extract(VIDEO_URL))

        assert result.title == "T"
        assert [event.attempt for event in seen] == [1, 2]
        assert all(event.outcome == AttemptOutcome.RATE_LIMITED for event in seen)
        assert sleep_recorder.delays == [2.0, 4.0]
        assert len(provider.requests) == 3
        assert [e.outcome for e in result.attempts] == [
            AttemptOutcome.RATE_LIMITED,
            AttemptOutcome.RATE_LIMITED,
            AttemptOutcome.SUCCESS,
        ]

    def test_attempt_cap_raises_rate_limited(self, sleep_recorder):
        provider = FakeProvider([rate_limit_error(), rate_limit_error(), rate_limit_error()])
        orchestrator = make_orchestrator(provider, sleep_recorder)
        seen = []
        orchestrator.on_retry(seen.append)

        with pytest.raises(RateLimited) as exc_info:
            asyncio.run(orchestrator.extract(VIDEO_URL))

        assert exc_info.value.attempts == 3
        assert len(provider.requests) == 3
        assert sleep_recorder.delays == [2.0, 4.0]
        assert len(seen) == 2

    def test_quota_message_without_status_is_retryable(self, sleep_recorder):
        provider = FakeProvider([CompletionError("Quota exceeded for this project"), VALID_RESPONSE_TEXT])
        orchestrator = make_orchestrator(provider, sleep_recorder)

        result = asyncio.run(orchestrator.extract(VIDEO_URL))

        assert result.summary == "S"
        assert sleep_recorder.delays == [2.0]

    def test_failing_listener_does_not_break_retry(self, sleep_recorder):
        provider = FakeProvider([rate_limit_error(), VALID_RESPONSE_TEXT])
        orchestrator = make_orchestrator(provider, sleep_recorder)

        def broken(event):
            raise RuntimeError("ui gone")

        orchestrator.on_retry(broken)

        assert asyncio.run(orchestrator.extract(VIDEO_URL)).title == "T"

    def test_backoff_delay(self, sleep_recorder):
        orchestrator = make_orchestrator(FakeProvider([]), sleep_recorder, backoff_base=1.5)
        assert [orchestrator.backoff_delay(n) for n in (1, 2, 3)] == [1.5, 3.0, 6.0]


class TestTerminalFailures:
    """Non rate-limit failures are never retried."""

    def test_missing_credential(self, sleep_recorder):
        provider = FakeProvider([VALID_RESPONSE_TEXT], api_key="")
        orchestrator = make_orchestrator(provider, sleep_recorder)

        with pytest.raises(MissingCredential):
            asyncio.run(orchestrator.extract(VIDEO_URL))

        assert provider.requests == []

    def test_permission_error(self, sleep_recorder):
        provider = FakeProvider([CompletionError("Gemini API error 403: PERMISSION_DENIED", 403)])
        orchestrator = make_orchestrator(provider, sleep_recorder)

        with pytest.raises(UpstreamRejected):
            asyncio.run(orchestrator.extract(VIDEO_URL))

        assert sleep_recorder.delays == []
        assert len(provider.requests) == 1

    def test_network_error(self, sleep_recorder):
        provider = FakeProvider([CompletionError("Gemini connection error: connection reset")])
        orchestrator = make_orchestrator(provider, sleep_recorder)

        with pytest.raises(UpstreamError):
            asyncio.run(orchestrator.extract(VIDEO_URL))

        assert sleep_recorder.delays == []

    def test_invalid_response_not_retried(self, sleep_recorder):
        provider = FakeProvider(["I could not find this video.", VALID_RESPONSE_TEXT])
        orchestrator = make_orchestrator(provider, sleep_recorder)

        with pytest.raises(InvalidResponseFormat):
            asyncio.run(orchestrator.extract(VIDEO_URL))

        assert len(provider.requests) == 1

    def test_empty_response(self, sleep_recorder):
        provider = FakeProvider([CompletionResponse(text="")])
        orchestrator = make_orchestrator(provider, sleep_recorder)

        with pytest.raises(InvalidResponseFormat):
            asyncio.run(orchestrator.extract(VIDEO_URL))


class TestClassifyFailure:

    @pytest.mark.parametrize("error, expected", [
        (CompletionError("error 429", 429), RateLimited),
        (CompletionError("RESOURCE_EXHAUSTED"), RateLimited),
        (CompletionError("unauthorized", 401), UpstreamRejected),
        (CompletionError("forbidden", 403), UpstreamRejected),
        (CompletionError("Requested entity was not found.", 400), UpstreamRejected),
        (CompletionError("API key not valid. Please pass a valid API key.", 400), UpstreamRejected),
        (CompletionError("internal error", 500), UpstreamError),
        (CompletionError("Gemini API timeout"), UpstreamError),
    ])
    def test_classification(self, error, expected):
        assert type(classify_failure(error)) is expected


class TestModeSelection:
    """Transcript text switches off search and enables the schema."""

    def test_transcript_mode(self, sleep_recorder):
        provider = FakeProvider([VALID_RESPONSE_TEXT])
        orchestrator = make_orchestrator(provider, sleep_recorder)

        result = asyncio.run(orchestrator.extract(VIDEO_URL, transcript="The moment was ephemeral."))

        request = provider.requests[0]
        assert result.mode == ExtractionMode.TRANSCRIPT
        assert request.use_search is False
        assert request.schema == VOCABULARY_SCHEMA
        assert "The moment was ephemeral." in request.prompt
        assert "ONLY the transcript" in request.prompt

    def test_search_mode_without_transcript(self, sleep_recorder):
        provider = FakeProvider([VALID_RESPONSE_TEXT])
        orchestrator = make_orchestrator(provider, sleep_recorder)

        result = asyncio.run(orchestrator.extract(VIDEO_URL, transcript="   "))

        request = provider.requests[0]
        assert result.mode == ExtractionMode.SEARCH
        assert request.use_search is True
        assert VIDEO_URL in request.prompt
        # Schema cannot be combined with search: fall back to an explicit instruction
        assert request.schema is None
        assert request.prompt.endswith(JSON_ONLY_INSTRUCTION)

    def test_search_mode_on_provider_without_search(self, sleep_recorder):
        provider = FakeProvider([VALID_RESPONSE_TEXT])
        provider.supports_search = False
        orchestrator = make_orchestrator(provider, sleep_recorder)

        asyncio.run(orchestrator.extract(VIDEO_URL))

        assert provider.requests[0].use_search is False

    def test_transcript_is_truncated(self, sleep_recorder):
        provider = FakeProvider([VALID_RESPONSE_TEXT])
        orchestrator = make_orchestrator(provider, sleep_recorder, max_transcript_chars=10)

        asyncio.run(orchestrator.extract(VIDEO_URL, transcript="0123456789ABCDEF"))

        prompt = provider.requests[0].prompt
        assert "0123456789" in prompt
        assert "ABCDEF" not in prompt


class TestCitations:

    def test_sources_from_grounding_chunks(self, sleep_recorder):
        chunks = [
            {"web": {"title": "Video page", "uri": "https://youtube.com/watch?v=abc123"}},
            {"web": {"uri": "https://example.com/summary"}},
            {"web": {"title": "No uri"}},
            {"retrievedContext": {"uri": "gs://bucket"}},
            "garbage",
            {"web": {"title": "Duplicate", "uri": "https://youtube.com/watch?v=abc123"}},
        ]
        provider = FakeProvider([CompletionResponse(text=VALID_RESPONSE_TEXT, grounding_chunks=chunks)])
        orchestrator = make_orchestrator(provider, sleep_recorder)

        result = asyncio.run(orchestrator.extract(VIDEO_URL))

        assert result.sources == [
            GroundingSource(title="Video page", url="https://youtube.com/watch?v=abc123"),
            GroundingSource(title="example.com", url="https://example.com/summary"),
        ]

    def test_no_metadata(self):
        assert extract_sources(None) == []
        assert extract_sources({"web": {}}) == []


class BlockingProvider(FakeProvider):
    """Waits on an event before answering, to keep a request in flight."""

    def __init__(self, outcomes):
        super().__init__(outcomes)
        self.gate = None

    async def complete(self, request):
        await self.gate.wait()
        return await super().complete(request)


class TestInFlightGuard:

    def test_same_url_rejected_while_running(self, sleep_recorder):
        provider = BlockingProvider([VALID_RESPONSE_TEXT, VALID_RESPONSE_TEXT, VALID_RESPONSE_TEXT])
        orchestrator = make_orchestrator(provider, sleep_recorder)

        async def scenario():
            provider.gate = asyncio.Event()
            first = asyncio.create_task(orchestrator.extract(VIDEO_URL))
            await asyncio.sleep(0)

            with pytest.raises(ExtractionInProgress):
                await orchestrator.extract(VIDEO_URL)

            other = asyncio.create_task(orchestrator.extract("https://youtube.com/watch?v=other000001"))
            provider.gate.set()
            results = await asyncio.gather(first, other)

            # Guard is released once the first call finishes
            again = await orchestrator.extract(VIDEO_URL)
            return results, again

        results, again = asyncio.run(scenario())

        assert [r.title for r in results] == ["T", "T"]
        assert again.title == "T"

    def test_other_url_form_of_same_video_rejected(self, sleep_recorder):
        provider = BlockingProvider([VALID_RESPONSE_TEXT])
        orchestrator = make_orchestrator(provider, sleep_recorder)

        async def scenario():
            provider.gate = asyncio.Event()
            first = asyncio.create_task(orchestrator.extract("https://youtube.com/watch?v=abc123xyz00"))
            await asyncio.sleep(0)

            with pytest.raises(ExtractionInProgress):
                await orchestrator.extract("https://youtu.be/abc123xyz00")

            provider.gate.set()
            return await first

        assert asyncio.run(scenario()).title == "T"
        assert len(provider.requests) == 1
        assert "https://youtube.com/watch?v=abc123xyz00" in provider.requests[0].prompt

    def test_guard_released_after_failure(self, sleep_recorder):
        provider = FakeProvider([CompletionError("boom", 500), VALID_RESPONSE_TEXT])
        orchestrator = make_orchestrator(provider, sleep_recorder)

        with pytest.raises(UpstreamError):
            asyncio.run(orchestrator.extract(VIDEO_URL))

        assert asyncio.run(orchestrator.extract(VIDEO_URL)).title == "T"
