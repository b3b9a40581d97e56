"""
HAR Replay Common Utilities

Shared loading and URL helpers used across harreplay modules.
"""

from .utils import ArchiveLoader, har_headers_to_dict
from .url_utils import URLMatcher

__all__ = [
    'ArchiveLoader',
    'har_headers_to_dict',
    'URLMatcher'
]
