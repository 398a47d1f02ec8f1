"""Global settings and configuration."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load from project root
_env_path = Path(__file__).parent.parent.parent / ".env"
load_dotenv(_env_path)


@dataclass
class Config:
    """Application-wide configuration."""

    # Completion service
    AI_PROVIDER: str = os.environ.get("AI_PROVIDER", "gemini")
    GEMINI_MODEL: str = os.environ.get("GEMINI_MODEL", "gemini-2.5-flash")
    GEMINI_API_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    OPENAI_MODEL: str = os.environ.get("OPENAI_MODEL", "gpt-4o-mini")

    # Transcript provider
    # Get your API key from https://supadata.ai/
    # Store in environment variable or .env file: SUPADATA_API_KEY
    TRANSCRIPT_API_URL: str = "https://api.supadata.ai/v1/youtube/transcript"
    OEMBED_URL: str = "https://www.youtube.com/oembed"

    # Retry & timeouts
    MAX_RETRIES: int = 3
    BACKOFF_BASE: float = 2.0
    TIMEOUT: int = 120
    TRANSCRIPT_TIMEOUT: int = 30
    MAX_TRANSCRIPT_CHARS: int = 30000

    # Extraction
    VOCAB_COUNT: str = "10-12"
    TARGET_LANGUAGE: str = "Traditional Chinese"

    # Storage keys
    SETS_KEY: str = "vocab_master_sets"
    API_KEY_KEY: str = "VOCAB_MASTER_API_KEY"
    SUPADATA_KEY_KEY: str = "SUPADATA_API_KEY"

    # Cross-platform paths using pathlib
    # BASE_DIR is the project root (parent of vocabmaster/)
    BASE_DIR: Path = Path(__file__).parent.parent.parent.resolve()

    DATA_DIR: str = str(BASE_DIR / "data" / "store")
    OUTPUT_DIR: str = str(BASE_DIR / "data" / "output")
    SETTINGS_FILE: str = str(BASE_DIR / "settings.json")

    # Anki export
    MODEL_ID: int = 1607393150
    DECK_ID: int = 2059400420
    DECK_NAME: str = "VocabMaster"
