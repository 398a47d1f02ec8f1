"""
AI Service - completion provider clients.

Provides abstraction over the completion services used for vocabulary
extraction:
- Google Gemini (structured output + Google Search grounding)
- Any OpenAI-compatible chat completions endpoint
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import aiohttp

from ..config import Config, SettingsManager
from ..errors import CompletionError


class AIProvider(Enum):
    """Supported AI providers."""
    GEMINI = "gemini"
    OPENAI = "openai"  # Also Groq, Ollama and other compatible APIs


@dataclass
class AIConfig:
    """Configuration for AI service."""
    provider: AIProvider = AIProvider.GEMINI
    model: str = Config.GEMINI_MODEL
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    temperature: float = 0.4
    max_tokens: int = 8192
    timeout: int = Config.TIMEOUT


@dataclass
class CompletionRequest:
    """One call to the completion service."""
    prompt: str
    system_prompt: Optional[str] = None
    schema: Optional[Dict[str, Any]] = None
    use_search: bool = False


@dataclass
class CompletionResponse:
    """Raw completion text plus any citation metadata."""
    text: str
    grounding_chunks: List[Any] = field(default_factory=list)


class BaseAIProvider(ABC):
    """Abstract base class for AI providers."""

    supports_search: bool = False
    supports_schema: bool = False
    # Some services refuse a response schema when a search tool is enabled
    supports_schema_with_search: bool = False

    def __init__(self, config: AIConfig):
        self.config = config
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        """Close the session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "BaseAIProvider":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def is_configured(self) -> bool:
        return bool(self.config.api_key)

    async def _post_json(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        """POST a JSON payload and return the decoded body, raising CompletionError on failure."""
        session = await self._get_session()
        name = type(self).__name__.replace("Provider", "")
        try:
            async with session.post(url, headers=headers, params=params, json=payload) as response:
                if response.status == 200:
                    return await response.json(content_type=None)
                error = await response.text()
                raise CompletionError(f"{name} API error {response.status}: {error[:300]}", response.status)
        except asyncio.TimeoutError:
            raise CompletionError(f"{name} API timeout")
        except aiohttp.ClientError as e:
            raise CompletionError(f"{name} connection error: {e}")

    @abstractmethod
    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        """Generate completion for the given request."""
        pass


class GeminiProvider(BaseAIProvider):
    """Google Gemini generateContent REST API."""

    supports_search = True
    supports_schema = True

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        """Generate completion using the Gemini API."""
        base_url = self.config.base_url or Config.GEMINI_API_URL
        url = f"{base_url}/models/{self.config.model}:generateContent"

        headers = {
            "x-goog-api-key": self.config.api_key or "",
            "Content-Type": "application/json",
        }

        generation_config: Dict[str, Any] = {
            "temperature": self.config.temperature,
            "maxOutputTokens": self.config.max_tokens,
        }
        if request.schema is not None:
            generation_config["responseMimeType"] = "application/json"
            generation_config["responseSchema"] = request.schema

        payload: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": request.prompt}]}],
            "generationConfig": generation_config,
        }
        if request.system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": request.system_prompt}]}
        if request.use_search:
            payload["tools"] = [{"google_search": {}}]

        data = await self._post_json(url, payload, headers=headers)

        candidates = data.get("candidates") or []
        if not candidates:
            return CompletionResponse(text="")

        candidate = candidates[0] or {}
        parts = (candidate.get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
        chunks = (candidate.get("groundingMetadata") or {}).get("groundingChunks") or []

        return CompletionResponse(text=text, grounding_chunks=list(chunks))


class OpenAIProvider(BaseAIProvider):
    """OpenAI API provider (also works with compatible APIs)."""

    DEFAULT_BASE_URL = "https://api.openai.com/v1"

    supports_schema = True

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        """Generate completion using OpenAI API."""
        base_url = self.config.base_url or self.DEFAULT_BASE_URL
        url = f"{base_url}/chat/completions"

        messages = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.prompt})

        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }

        payload: Dict[str, Any] = {
            "model": self.config.model,
            "messages": messages,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }
        if request.schema is not None:
            payload["response_format"] = {"type": "json_object"}

        data = await self._post_json(url, payload, headers=headers)
        try:
            text = data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError):
            text = ""
        return CompletionResponse(text=text)


PROVIDER_CLASSES = {
    AIProvider.GEMINI: GeminiProvider,
    AIProvider.OPENAI: OpenAIProvider,
}

MODEL_DEFAULTS = {
    AIProvider.GEMINI: Config.GEMINI_MODEL,
    AIProvider.OPENAI: Config.OPENAI_MODEL,
}


def config_from_settings(
    settings: Optional[SettingsManager] = None,
    api_key: Optional[str] = None
) -> AIConfig:
    """
    Build an AIConfig from persisted settings.

    Args:
        settings: Settings manager (defaults to the shared instance)
        api_key: Explicit key, takes precedence over settings

    Returns:
        AIConfig for the configured provider
    """
    settings = settings or SettingsManager()
    try:
        provider = AIProvider(str(settings.get("AI_PROVIDER", "gemini")).lower())
    except ValueError:
        provider = AIProvider.GEMINI

    key_setting = "GEMINI_API_KEY" if provider == AIProvider.GEMINI else "OPENAI_API_KEY"

    return AIConfig(
        provider=provider,
        model=settings.get("AI_MODEL") or MODEL_DEFAULTS[provider],
        api_key=api_key or settings.get(key_setting) or None,
        base_url=settings.get("AI_BASE_URL") or None,
        timeout=int(settings.get("TIMEOUT", Config.TIMEOUT)),
    )


def create_provider(config: AIConfig) -> BaseAIProvider:
    """Instantiate the provider class for config.provider."""
    provider_class = PROVIDER_CLASSES.get(config.provider, GeminiProvider)
    return provider_class(config)
