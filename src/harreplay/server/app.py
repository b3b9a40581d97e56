"""
HAR Replay Server

FastAPI-based HTTP server that replays responses recorded in HAR archives.

Features:
- Exact key matching through caller-supplied policies
- Per-key FIFO replay of repeated requests
- Admin API for metrics and remaining responses
- Metrics and logging
"""

from __future__ import annotations  # Enable forward references for type hints

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Dict, Any, Optional, Union

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
import uvicorn

from ..archive import ArchiveIndexer, IndexStats, ResponseStore, ServerDelegate
from ..policies import default_delegate
from .dispatcher import RequestDispatcher, RequestRecord, ResponseSink

ALL_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]


@dataclass
class ReplayConfig:
    """Configuration for replay server behavior."""

    # Replay behavior
    repeat_last: bool = False  # Keep serving the last recorded response once a key drains

    # Server options
    host: str = "127.0.0.1"
    port: int = 8080
    log_level: str = "info"

    # Admin API
    admin_enabled: bool = True
    admin_prefix: str = "/__admin__"
    recent_requests_limit: int = 100  # Request records kept for the admin API


@dataclass
class ReplayMetrics:
    """Track replay server metrics."""

    total_requests: int = 0
    matched_requests: int = 0
    unmatched_requests: int = 0
    start_time: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        uptime_seconds = (datetime.now() - datetime.fromisoformat(self.start_time)).total_seconds()
        return {
            'total_requests': self.total_requests,
            'matched_requests': self.matched_requests,
            'unmatched_requests': self.unmatched_requests,
            'match_rate': round((self.matched_requests / self.total_requests * 100) if self.total_requests > 0 else 0, 2),
            'uptime_seconds': round(uptime_seconds, 2),
            'start_time': self.start_time
        }


class ArchiveServer:
    """
    FastAPI server replaying archived HTTP traffic.

    Indexes HAR archives into a ResponseStore and serves each incoming
    request with the next recorded response for its key.

    Example:
        # Default policies: key by method + path + sorted query
        server = ArchiveServer(['session.har'])
        server.start(port=8080)

        # Custom policies
        delegate = ServerDelegate(
            key_for_archive_entry=lambda e: e['request']['url'],
            key_for_server_request=lambda r: f"https://api.example.com{r.url.path}",
        )
        server = ArchiveServer(['session.har'], delegate=delegate)
    """

    def __init__(
        self,
        archives: Optional[List[Union[str, Path]]] = None,
        delegate: Optional[ServerDelegate] = None,
        config: Optional[ReplayConfig] = None,
        store: Optional[ResponseStore] = None
    ):
        """
        Initialize replay server.

        Args:
            archives: HAR files to index, in order
            delegate: Caller policies (default: default_delegate())
            config: Optional ReplayConfig for server behavior
            store: Optional pre-populated store (repeat_last comes from config otherwise)
        """
        self.config = config or ReplayConfig()
        self.delegate = delegate or default_delegate()
        self.metrics = ReplayMetrics()
        self.recent_requests: deque = deque(maxlen=self.config.recent_requests_limit)
        self.index_stats = IndexStats()

        # Setup logging first (before loading archives)
        self.logger = logging.getLogger("harreplay.server")
        self.logger.setLevel(getattr(logging, self.config.log_level.upper()))
        logging.getLogger("harreplay.archive").setLevel(self.logger.level)

        self.store = store if store is not None else ResponseStore(repeat_last=self.config.repeat_last)
        self.indexer = ArchiveIndexer(self.store, self.delegate)
        for path in archives or []:
            self.load_archive(path)

        self.dispatcher = RequestDispatcher(self.store, self.delegate, observer=self._observe)

        # Setup FastAPI app
        self.app = self._create_app()

    def load_archive(self, path: Union[str, Path]) -> IndexStats:
        """Index another HAR file into the running store."""
        stats = self.indexer.load_archive(path)
        self.index_stats.merge(stats)
        return stats

    def _observe(self, record: RequestRecord) -> None:
        """Update metrics and the recent-request log."""
        self.metrics.total_requests += 1
        if record.matched:
            self.metrics.matched_requests += 1
        else:
            self.metrics.unmatched_requests += 1
        self.recent_requests.append(record.to_dict())

    def _create_app(self) -> FastAPI:
        """Create FastAPI application with routes."""
        app = FastAPI(
            title="HAR Replay Server",
            description="HTTP server replaying responses recorded in HAR archives",
            version="1.0.0"
        )

        # Admin API routes
        if self.config.admin_enabled:
            @app.get(f"{self.config.admin_prefix}/metrics")
            async def get_metrics():
                """Get server metrics."""
                return JSONResponse(content={
                    **self.metrics.to_dict(),
                    'index': self.index_stats.to_dict(),
                    'remaining_responses': self.store.total_remaining()
                })

            @app.get(f"{self.config.admin_prefix}/keys")
            async def list_keys():
                """List match keys with their remaining response counts."""
                snapshot = self.store.snapshot()
                return JSONResponse(content={
                    'total': len(snapshot),
                    'keys': snapshot
                })

            @app.get(f"{self.config.admin_prefix}/requests")
            async def get_recent_requests():
                """Get recent request records, most recent first."""
                return JSONResponse(content={
                    'total': len(self.recent_requests),
                    'limit': self.config.recent_requests_limit,
                    'requests': list(reversed(self.recent_requests))
                })

            @app.post(f"{self.config.admin_prefix}/reset")
            async def reset_metrics():
                """Reset metrics."""
                self.metrics = ReplayMetrics()
                self.recent_requests.clear()
                return JSONResponse(content={'status': 'reset'})

        # Main catch-all route for replay
        @app.api_route("/{path:path}", methods=ALL_METHODS)
        async def replay_request(request: Request, path: str):
            """Handle incoming requests and serve recorded responses."""
            return self._handle_request(request)

        return app

    def _handle_request(self, request: Request) -> Response:
        """
        Dispatch a request and convert the sink into a response.

        Args:
            request: FastAPI Request object

        Returns:
            Response written by the dispatcher
        """
        sink = ResponseSink()
        self.dispatcher.handle(request, sink)
        return sink.to_response()

    def start(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        access_log: bool = False
    ):
        """
        Start the replay server.

        Args:
            host: Host to bind to (overrides config)
            port: Port to bind to (overrides config)
            access_log: Enable uvicorn access logging (the dispatcher already logs each request)
        """
        actual_host = host or self.config.host
        actual_port = port or self.config.port

        print(f"🚀 HAR Replay Server starting...")
        print(f"   Host: {actual_host}:{actual_port}")
        print(f"   Entries indexed: {self.index_stats.indexed} ({len(self.store)} keys)")

        if self.config.repeat_last:
            print(f"   Repeat last: enabled")

        if self.config.admin_enabled:
            print(f"   Admin API: http://{actual_host}:{actual_port}{self.config.admin_prefix}/metrics")

        print()

        uvicorn.run(
            self.app,
            host=actual_host,
            port=actual_port,
            log_level=self.config.log_level,
            access_log=access_log
        )

    def get_app(self) -> FastAPI:
        """
        Get the FastAPI app instance for testing or custom deployment.

        Returns:
            FastAPI application instance
        """
        return self.app


def create_archive_server(
    archives: List[Union[str, Path]],
    host: str = "127.0.0.1",
    port: int = 8080,
    repeat_last: bool = False,
    admin_enabled: bool = True,
    log_level: str = "info",
    delegate: Optional[ServerDelegate] = None
) -> ArchiveServer:
    """
    Convenience function to create and configure a replay server.

    Args:
        archives: HAR files to index
        host: Host to bind to
        port: Port to bind to
        repeat_last: Keep serving the last response once a key drains
        admin_enabled: Expose the admin API
        log_level: Log level name
        delegate: Caller policies (default: default_delegate())

    Returns:
        Configured ArchiveServer instance

    Example:
        server = create_archive_server(['session.har'], port=8080)
        server.start()
    """
    config = ReplayConfig(
        host=host,
        port=port,
        repeat_last=repeat_last,
        admin_enabled=admin_enabled,
        log_level=log_level
    )

    return ArchiveServer(archives, delegate=delegate, config=config)
