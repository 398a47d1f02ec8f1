"""Utility functions."""

import time
from pathlib import Path


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def ensure_dir(path: str) -> None:
    """Ensure directory exists."""
    Path(path).mkdir(parents=True, exist_ok=True)


def get_file_size_mb(path: str) -> float:
    """Get file size in megabytes."""
    if not Path(path).exists():
        return 0.0
    return Path(path).stat().st_size / (1024 * 1024)


def mask_secret(value: str, visible: int = 4) -> str:
    """Mask a credential for display, keeping the last few characters."""
    if not value:
        return ""
    if len(value) <= visible:
        return "*" * len(value)
    return "*" * (len(value) - visible) + value[-visible:]
