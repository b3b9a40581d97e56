"""
HAR Replay Server Module

HTTP hosting for archived responses.

This module provides:
- Request dispatch with missing-response fallback
- FastAPI-based replay server with admin API
- Metrics and request records
"""

from .dispatcher import RequestDispatcher, RequestRecord, ResponseSink
from .app import ArchiveServer, ReplayConfig, ReplayMetrics, create_archive_server

__all__ = [
    # Dispatch
    'RequestDispatcher',
    'RequestRecord',
    'ResponseSink',

    # Server
    'ArchiveServer',
    'ReplayConfig',
    'ReplayMetrics',
    'create_archive_server',
]
