"""Parsing utilities for text normalization and AI response handling."""

import json
import re
import unicodedata
from typing import Any, Dict, List, Optional, Sequence

from ..errors import InvalidResponseFormat
from ..models import VocabularyRecord


class TextParser:
    """Text normalization helpers shared by the store and exporters."""

    # Unified line splitting pattern (handles <br>, <br/>, <br />, \n)
    SENTENCE_PATTERN = re.compile(r'<br\s*/?>|\n')

    # Whitespace normalization pattern
    WHITESPACE_PATTERN = re.compile(r'\s+')

    @classmethod
    def normalize_unicode(cls, text: str) -> str:
        """
        Normalize text to NFC form for consistent Unicode handling.

        Prevents issues with characters like é being represented as
        either a single codepoint (NFC) or base + combining accent (NFD).
        """
        if not text:
            return ""
        return unicodedata.normalize('NFC', str(text))

    @classmethod
    def clean_field(cls, text: Optional[str]) -> str:
        """Normalize Unicode and collapse whitespace in a single-line field."""
        if not text:
            return ""
        text = cls.normalize_unicode(str(text))
        return cls.WHITESPACE_PATTERN.sub(' ', text).strip()

    @classmethod
    def to_html_lines(cls, text: Optional[str]) -> str:
        """Convert newlines to <br> for card display."""
        if not text:
            return ""
        lines = [line.strip() for line in cls.SENTENCE_PATTERN.split(str(text))]
        return "<br>".join(line for line in lines if line)


class ResponseParser:
    """
    Turns raw completion text into validated vocabulary data.

    Parsing is two-staged: a strict parse of the whole (trimmed) text, then a
    greedy search for the outermost {...} span when the model wrapped the JSON
    in prose or citations.
    """

    # Greedy: first '{' to the last '}'
    JSON_OBJECT_PATTERN = re.compile(r'\{[\s\S]*\}')

    CODE_FENCE_PATTERN = re.compile(r'^```(?:json)?\s*|\s*```$', re.IGNORECASE)

    TITLE_KEYS: Sequence[str] = ("detectedTitle", "title")
    DESCRIPTOR_KEYS: Sequence[str] = ("partOfSpeech", "level")
    TRANSLATION_KEYS: Sequence[str] = ("translation", "definition")
    EXAMPLE_KEYS: Sequence[str] = ("example", "sentence")

    @classmethod
    def parse_json(cls, text: str) -> Any:
        """
        Parse completion text as JSON.

        Args:
            text: Raw response text

        Returns:
            Parsed JSON value

        Raises:
            InvalidResponseFormat: If neither strategy yields valid JSON
        """
        if not text or not text.strip():
            raise InvalidResponseFormat("The response was empty.")

        trimmed = cls.CODE_FENCE_PATTERN.sub('', text.strip())
        try:
            return json.loads(trimmed)
        except json.JSONDecodeError:
            pass

        match = cls.JSON_OBJECT_PATTERN.search(text)
        if not match:
            raise InvalidResponseFormat("No JSON object found in the response.")

        try:
            return json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise InvalidResponseFormat(f"Embedded JSON is malformed: {e.msg}.") from e

    @staticmethod
    def _pick(data: Dict[str, Any], keys: Sequence[str]) -> Optional[str]:
        """Return the first non-empty string value among keys."""
        for key in keys:
            value = data.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
        return None

    @classmethod
    def validate_record(cls, item: Any, position: int) -> VocabularyRecord:
        """Validate one vocabulary entry."""
        if not isinstance(item, dict):
            raise InvalidResponseFormat(f"Vocabulary entry {position} is not an object.")

        word = cls._pick(item, ("word",))
        translation = cls._pick(item, cls.TRANSLATION_KEYS)
        example = cls._pick(item, cls.EXAMPLE_KEYS)
        part_of_speech = cls._pick(item, ("partOfSpeech",))
        level = cls._pick(item, ("level",))

        missing = []
        if word is None:
            missing.append("word")
        if part_of_speech is None and level is None:
            missing.append("partOfSpeech/level")
        if translation is None:
            missing.append("translation")
        if example is None:
            missing.append("example")
        if missing:
            raise InvalidResponseFormat(
                f"Vocabulary entry {position} is missing: {', '.join(missing)}."
            )

        return VocabularyRecord(
            word=TextParser.clean_field(word),
            translation=TextParser.clean_field(translation),
            example=TextParser.clean_field(example),
            part_of_speech=part_of_speech,
            level=level,
            phonetic=cls._pick(item, ("phonetic", "ipa")),
        )

    @classmethod
    def validate_extraction(cls, data: Any) -> Dict[str, Any]:
        """
        Validate the parsed response shape.

        Returns:
            Dict with 'title', 'summary' and 'vocabulary' (list of VocabularyRecord)

        Raises:
            InvalidResponseFormat: If required fields are missing
        """
        if not isinstance(data, dict):
            raise InvalidResponseFormat("Expected a JSON object at the top level.")

        title = cls._pick(data, cls.TITLE_KEYS)
        if title is None:
            # An empty title is allowed; the caller substitutes its own
            if not any(isinstance(data.get(key), str) for key in cls.TITLE_KEYS):
                raise InvalidResponseFormat("Missing 'detectedTitle'.")
            title = ""

        summary = data.get("summary")
        if not isinstance(summary, str):
            raise InvalidResponseFormat("Missing 'summary'.")

        vocabulary = data.get("vocabulary")
        if not isinstance(vocabulary, list):
            raise InvalidResponseFormat("Missing 'vocabulary' array.")

        records: List[VocabularyRecord] = [
            cls.validate_record(item, position)
            for position, item in enumerate(vocabulary, start=1)
        ]

        return {
            "title": TextParser.clean_field(title),
            "summary": summary.strip(),
            "vocabulary": records,
        }

    @classmethod
    def parse_extraction(cls, text: str) -> Dict[str, Any]:
        """Parse and validate in one step."""
        return cls.validate_extraction(cls.parse_json(text))
