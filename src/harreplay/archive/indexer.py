"""
HAR Replay Archive Indexer

Walks archive entries in order and fills the response store.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, Iterable, Union

from ..common import ArchiveLoader
from .compiler import EntryCompiler, EntryCompileError
from .models import HarEntry, ServerDelegate
from .store import ResponseStore

INDEXED = 'indexed'
SKIPPED = 'skipped'
DROPPED = 'dropped'
FAILED = 'failed'


@dataclass
class IndexStats:
    """Outcome counts for one indexing call."""

    indexed: int = 0  # compiled and appended to the store
    skipped: int = 0  # no key derived
    dropped: int = 0  # keyed, but compiled to no response
    failed: int = 0  # malformed content

    @property
    def total(self) -> int:
        return self.indexed + self.skipped + self.dropped + self.failed

    def record(self, outcome: str) -> None:
        setattr(self, outcome, getattr(self, outcome) + 1)

    def merge(self, other: 'IndexStats') -> 'IndexStats':
        """Add another call's counts into this one."""
        self.indexed += other.indexed
        self.skipped += other.skipped
        self.dropped += other.dropped
        self.failed += other.failed
        return self

    def to_dict(self) -> Dict[str, int]:
        """Convert to dictionary."""
        return {
            'indexed': self.indexed,
            'skipped': self.skipped,
            'dropped': self.dropped,
            'failed': self.failed,
            'total': self.total
        }


class ArchiveIndexer:
    """
    Populates a ResponseStore from HAR archives.

    Can be called repeatedly to merge several archives; responses sharing a
    key are queued in call order, then archive order, never re-sorted by
    capture time.

    Example:
        store = ResponseStore()
        indexer = ArchiveIndexer(store, delegate)
        stats = indexer.load_archive('session.har')
        print(f"Indexed {stats.indexed} of {stats.total} entries")
    """

    def __init__(self, store: ResponseStore, delegate: ServerDelegate):
        """
        Initialize indexer.

        Args:
            store: Store receiving compiled responses
            delegate: Caller policies; key_for_archive_entry is required
        """
        self.store = store
        self.delegate = delegate
        self.compiler = EntryCompiler(delegate)
        self.logger = logging.getLogger("harreplay.archive")

    def load_archive(self, path: Union[str, Path]) -> IndexStats:
        """
        Read a HAR file from disk and index it.

        Raises:
            FileNotFoundError: If the archive doesn't exist
            ValueError: If the archive can't be parsed
        """
        har = ArchiveLoader(path).load()
        stats = self.add_archive(har)
        self.logger.info(
            f"Indexed {stats.indexed}/{stats.total} entries from {path} "
            f"(skipped {stats.skipped}, dropped {stats.dropped}, failed {stats.failed})"
        )
        return stats

    def add_archive(self, har: Dict[str, Any]) -> IndexStats:
        """Index every entry of a parsed HAR document."""
        return self.add_entries(har['log']['entries'])

    def add_entries(self, entries: Iterable[HarEntry]) -> IndexStats:
        """Index entries in order."""
        stats = IndexStats()
        for entry in entries:
            stats.record(self.add_entry(entry))
        return stats

    def add_entry(self, entry: HarEntry) -> str:
        """
        Index a single entry.

        A malformed entry is logged and reported as failed; it never aborts
        the surrounding archive.

        Args:
            entry: HAR entry

        Returns:
            One of 'indexed', 'skipped', 'dropped', 'failed'
        """
        key = self.delegate.key_for_archive_entry(entry)
        if not key:
            return SKIPPED

        try:
            response = self.compiler.compile(entry, key)
        except EntryCompileError as e:
            url = entry.get('request', {}).get('url', '<unknown>')
            self.logger.warning(f"Skipping malformed entry for {key} ({url}): {e}")
            return FAILED

        if response is None:
            self.logger.debug(f"drop: {key}")
            return DROPPED

        self.store.append(key, response)
        self.logger.debug(f"add:  {key}")
        return INDEXED
