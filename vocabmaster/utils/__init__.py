"""Utils module."""

from .helpers import (
    now_ms,
    ensure_dir,
    get_file_size_mb,
    mask_secret,
)
from .logger import setup_logger
from .parsing import TextParser, ResponseParser

__all__ = [
    'now_ms',
    'ensure_dir',
    'get_file_size_mb',
    'mask_secret',
    'setup_logger',
    'TextParser',
    'ResponseParser',
]
