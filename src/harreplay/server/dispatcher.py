"""
HAR Replay Request Dispatcher

Matches a live request to a queued archived response and writes exactly one
response for it: the archived one, whatever the missing-response hook
writes, or an empty 404.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Any, List, Optional, Callable, Union

from starlette.requests import Request
from starlette.responses import Response

from ..archive import ResponseStore, ServerDelegate

FALLBACK_STATUS = 404


class ResponseSink:
    """
    Writable response for one live request.

    Collects exactly one status, header set and body, then converts to a
    Starlette Response. Hooks write through this object rather than
    returning a response, and can check headers_sent first.

    Example:
        def missing(request, sink):
            sink.write_head(503, {'Retry-After': '1'})
            sink.end(b'')
    """

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        """Discard anything written so far."""
        self.status_code: Optional[int] = None
        self.headers: Dict[str, Union[str, List[str]]] = {}
        self.body: bytes = b''
        self.finished = False

    @property
    def headers_sent(self) -> bool:
        return self.status_code is not None

    def write_head(self, status_code: int, headers: Optional[Dict[str, Union[str, List[str]]]] = None) -> None:
        """Set status and headers; allowed once."""
        if self.headers_sent:
            raise RuntimeError("Response headers already sent")
        self.status_code = status_code
        self.headers = dict(headers or {})

    def end(self, body: bytes = b'') -> None:
        """Set the body and finish the response; allowed once."""
        if not self.headers_sent:
            self.write_head(200)
        if self.finished:
            raise RuntimeError("Response already finished")
        self.body = body.encode('utf-8') if isinstance(body, str) else body
        self.finished = True

    def to_response(self) -> Response:
        """Build the Starlette response, body and headers verbatim."""
        response = Response(content=self.body, status_code=self.status_code or FALLBACK_STATUS)
        # Replace Starlette's computed headers so archived values go out as-is
        raw_headers = []
        for name, value in self.headers.items():
            values = value if isinstance(value, list) else [value]
            raw_headers.extend((name.lower().encode('latin-1'), v.encode('latin-1')) for v in values)
        if not any(name.lower() == 'content-length' for name in self.headers):
            raw_headers.append((b'content-length', str(len(self.body)).encode('latin-1')))
        response.raw_headers = raw_headers
        return response


@dataclass
class RequestRecord:
    """Diagnostic record emitted once per handled request."""

    method: str
    url: str
    status: int
    key: Optional[str] = None
    matched: bool = False
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'timestamp': self.timestamp,
            'method': self.method,
            'url': self.url,
            'key': self.key,
            'matched': self.matched,
            'status': self.status
        }


class RequestDispatcher:
    """
    Serves live requests from a ResponseStore.

    Example:
        dispatcher = RequestDispatcher(store, delegate)
        sink = ResponseSink()
        record = dispatcher.handle(request, sink)
        return sink.to_response()
    """

    def __init__(
        self,
        store: ResponseStore,
        delegate: ServerDelegate,
        observer: Optional[Callable[[RequestRecord], None]] = None
    ):
        """
        Initialize dispatcher.

        Args:
            store: Store to drain
            delegate: Caller policies; key_for_server_request is required
            observer: Optional callable receiving one RequestRecord per request
        """
        self.store = store
        self.delegate = delegate
        self.observer = observer
        self.logger = logging.getLogger("harreplay.server")

    def handle(self, request: Request, sink: ResponseSink) -> RequestRecord:
        """
        Write a response for the request into the sink.

        Args:
            request: Live request
            sink: Response sink for this request

        Returns:
            The diagnostic record for the request
        """
        key = self.delegate.key_for_server_request(request)
        matched = False

        if key:
            response = self.store.consume_one(key)
            if response is not None:
                self.logger.debug(f"hit:  {key}")
                sink.write_head(response.status_code, response.headers)
                sink.end(response.body)
                matched = True
            else:
                self.logger.debug(f"miss: {key}")

        if not sink.headers_sent and self.delegate.missing_response:
            try:
                self.delegate.missing_response(request, sink)
            except Exception as e:
                self.logger.error(f"missing_response hook failed for {request.method} {request.url}: {e}")
                sink.reset()

        if not sink.headers_sent:
            sink.write_head(FALLBACK_STATUS)
        if not sink.finished:
            sink.end(b'')

        record = RequestRecord(
            method=request.method,
            url=str(request.url),
            status=sink.status_code,
            key=key,
            matched=matched
        )
        self.logger.info(f"{record.status} {record.method} {record.url}")
        if self.observer:
            self.observer(record)
        return record
