"""
HAR Replay Archive Module

Indexing of captured HAR traffic into servable responses.

This module provides:
- Response records and the caller policy capability set
- Keyed FIFO response store
- Entry compilation (text transform, gzip recompression)
- Archive indexing with per-entry failure isolation
"""

from .models import CompiledResponse, ServerDelegate
from .store import ResponseStore
from .compiler import EntryCompiler, EntryCompileError
from .indexer import ArchiveIndexer, IndexStats

__all__ = [
    'CompiledResponse',
    'ServerDelegate',
    'ResponseStore',
    'EntryCompiler',
    'EntryCompileError',
    'ArchiveIndexer',
    'IndexStats',
]
