"""
Blob Storage - string-keyed persisted storage.

The vocabulary store and the credential store both persist through this
layer, so tests can swap the file backend for an in-memory one.
"""

import json
import os
import re
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from threading import Lock
from typing import Dict, Optional

from ..config import Config
from ..utils.logger import setup_logger

logger = setup_logger(__name__)


class BlobStorage(ABC):
    """
    Abstract base class for string-keyed blob storage.

    Implementations can use local files, memory, a browser bridge, etc.
    """

    @abstractmethod
    def read(self, key: str) -> Optional[str]:
        """Read the blob stored under key, or None if absent."""
        pass

    @abstractmethod
    def write(self, key: str, value: str) -> bool:
        """Store value under key. Returns True if successful."""
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove key. Returns True if something was removed."""
        pass


class MemoryBlobStorage(BlobStorage):
    """In-process storage, used for tests and dry runs."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._blobs: Dict[str, str] = dict(initial or {})
        self.write_count = 0

    def read(self, key: str) -> Optional[str]:
        return self._blobs.get(key)

    def write(self, key: str, value: str) -> bool:
        self._blobs[key] = value
        self.write_count += 1
        return True

    def delete(self, key: str) -> bool:
        return self._blobs.pop(key, None) is not None


class FileBlobStorage(BlobStorage):
    """
    One file per key inside a data directory.

    Writes are atomic (temp file + rename) so a crash mid-write leaves the
    previous blob intact.
    """

    SAFE_KEY_PATTERN = re.compile(r'[^A-Za-z0-9_.-]')

    def __init__(self, data_dir: Optional[str] = None):
        """
        Initialize file storage.

        Args:
            data_dir: Directory holding the blobs (defaults to Config.DATA_DIR)
        """
        self.data_dir = Path(data_dir or Config.DATA_DIR)
        self._lock = Lock()

    def _path_for(self, key: str) -> Path:
        safe_key = self.SAFE_KEY_PATTERN.sub('_', key)
        return self.data_dir / f"{safe_key}.json"

    def read(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning("Could not read %s: %s", path, e)
            return None

    def write(self, key: str, value: str) -> bool:
        path = self._path_for(key)
        temp_file = path.with_name(f"{path.name}.{uuid.uuid4().hex[:8]}.tmp")
        with self._lock:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                with open(temp_file, "w", encoding="utf-8") as f:
                    f.write(value)
                os.replace(temp_file, path)
                return True
            except OSError as e:
                logger.warning("Could not write %s: %s", path, e)
                if temp_file.exists():
                    try:
                        temp_file.unlink()
                    except OSError:
                        pass
                return False

    def delete(self, key: str) -> bool:
        path = self._path_for(key)
        with self._lock:
            if not path.exists():
                return False
            path.unlink()
            return True


class CredentialStore:
    """
    Persists opaque API key strings.

    Keys are stored JSON-encoded under their own blob keys; nothing here is
    exposed globally, callers pass the values into the pipeline explicitly.
    """

    MIN_KEY_LENGTH = 10

    def __init__(self, storage: BlobStorage):
        self.storage = storage

    def _read(self, key: str) -> str:
        raw = self.storage.read(key)
        if raw is None:
            return ""
        try:
            value = json.loads(raw)
        except json.JSONDecodeError:
            # Plain, unencoded string from an older version
            value = raw
        return value.strip() if isinstance(value, str) else ""

    def _write(self, key: str, value: str) -> bool:
        value = (value or "").strip()
        if len(value) <= self.MIN_KEY_LENGTH:
            logger.warning("Rejected credential for %s: too short", key)
            return False
        return self.storage.write(key, json.dumps(value))

    @property
    def api_key(self) -> str:
        """Completion service key."""
        return self._read(Config.API_KEY_KEY)

    def set_api_key(self, value: str) -> bool:
        return self._write(Config.API_KEY_KEY, value)

    @property
    def transcript_key(self) -> str:
        """Secondary key for the transcript provider."""
        return self._read(Config.SUPADATA_KEY_KEY)

    def set_transcript_key(self, value: str) -> bool:
        return self._write(Config.SUPADATA_KEY_KEY, value)

    def clear(self) -> None:
        self.storage.delete(Config.API_KEY_KEY)
        self.storage.delete(Config.SUPADATA_KEY_KEY)
