"""
HAR Replay

Serve previously captured HTTP traffic (HAR archives) from a local HTTP
server so client code can be tested against recorded responses.
"""

from .archive import (
    CompiledResponse,
    ServerDelegate,
    ResponseStore,
    EntryCompiler,
    EntryCompileError,
    ArchiveIndexer,
    IndexStats,
)
from .server import (
    RequestDispatcher,
    RequestRecord,
    ResponseSink,
    ArchiveServer,
    ReplayConfig,
    ReplayMetrics,
    create_archive_server,
)

__all__ = [
    'CompiledResponse',
    'ServerDelegate',
    'ResponseStore',
    'EntryCompiler',
    'EntryCompileError',
    'ArchiveIndexer',
    'IndexStats',
    'RequestDispatcher',
    'RequestRecord',
    'ResponseSink',
    'ArchiveServer',
    'ReplayConfig',
    'ReplayMetrics',
    'create_archive_server',
]

__version__ = '1.0.0'
