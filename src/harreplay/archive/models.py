"""
HAR Replay Archive Models

Response records and the caller policy capability set.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional, Callable, Union, TYPE_CHECKING

if TYPE_CHECKING:
    from starlette.requests import Request
    from ..server.dispatcher import ResponseSink


HarEntry = Dict[str, Any]


@dataclass
class CompiledResponse:
    """Ready-to-serve form of an archived response."""

    status_code: int
    headers: Dict[str, Union[str, List[str]]] = field(default_factory=dict)
    body: bytes = b''


@dataclass
class ServerDelegate:
    """
    Caller-supplied policies for indexing and dispatch.

    The two key functions are required; every hook is optional and may be
    present or absent independently.

    Attributes:
        key_for_archive_entry: entry -> key, or None to leave the entry unserved
        key_for_server_request: live request -> key, or None for no lookup
        text_for: (entry, key, text) -> text, applied to non-base64 success bodies
        response_for: (entry, key) -> response or None, for non-2xx entries
        finalize_response: (entry, key, response) -> response, runs last
        missing_response: (request, sink) -> None, called when nothing matched

    Example:
        delegate = ServerDelegate(
            key_for_archive_entry=archive_key_method_path,
            key_for_server_request=request_key_method_path,
            text_for=replace_text({'https://api.example.com': 'http://127.0.0.1:8080'})
        )
    """

    key_for_archive_entry: Callable[[HarEntry], Optional[str]]
    key_for_server_request: Callable[['Request'], Optional[str]]
    text_for: Optional[Callable[[HarEntry, str, str], str]] = None
    response_for: Optional[Callable[[HarEntry, str], Optional[CompiledResponse]]] = None
    finalize_response: Optional[Callable[[HarEntry, str, CompiledResponse], CompiledResponse]] = None
    missing_response: Optional[Callable[['Request', 'ResponseSink'], None]] = None
