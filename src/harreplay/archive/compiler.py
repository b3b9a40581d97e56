"""
HAR Replay Entry Compiler

Turns one archived request/response pair into a servable response.

Only 2xx entries are compiled by default. Bodies are rebuilt from the
archived content (base64 or text, optionally rewritten by the caller's text
hook) and re-gzipped when the archive says the original was compressed.
Archived headers are NOT copied: the compiled response carries only
Content-Type, Content-Length and, for compressed content, Content-Encoding,
so recorded cookies and cache headers don't leak into replayed traffic.
Use a finalize hook to restore any of them.
"""

import base64
import binascii
import gzip
from typing import Dict, Optional

from .models import CompiledResponse, HarEntry, ServerDelegate

# Fixed mtime keeps gzip output byte-identical across runs
GZIP_LEVEL = 9
GZIP_MTIME = 0


class EntryCompileError(ValueError):
    """Raised when an archive entry's response content cannot be compiled."""


class EntryCompiler:
    """
    Compiles archive entries using the caller's optional hooks.

    Example:
        compiler = EntryCompiler(delegate)
        response = compiler.compile(entry, 'GET /users')
        if response is not None:
            store.append('GET /users', response)
    """

    def __init__(self, delegate: ServerDelegate):
        """
        Initialize compiler.

        Args:
            delegate: Caller policies (text_for, response_for, finalize_response)
        """
        self.delegate = delegate

    def compile(self, entry: HarEntry, key: str) -> Optional[CompiledResponse]:
        """
        Compile an entry into a response.

        Args:
            entry: HAR entry
            key: Match key already derived for the entry

        Returns:
            CompiledResponse, or None when the entry should be dropped

        Raises:
            EntryCompileError: If the status or content is malformed
        """
        status_code = self._status_of(entry)

        if 200 <= status_code < 300:
            response = self._compile_success(entry, key, status_code)
        elif self.delegate.response_for:
            response = self.delegate.response_for(entry, key)
        else:
            response = None

        if response is not None and self.delegate.finalize_response:
            response = self.delegate.finalize_response(entry, key, response)

        return response

    def _compile_success(self, entry: HarEntry, key: str, status_code: int) -> CompiledResponse:
        """Build the default response for a 2xx entry."""
        content = entry.get('response', {}).get('content') or {}
        text = content.get('text') or ''
        if not isinstance(text, str):
            raise EntryCompileError(f"Content text must be a string, got {type(text).__name__}")

        if content.get('encoding') == 'base64':
            try:
                # Line-wrapped base64 is valid; whitespace is dropped before the alphabet check
                body = base64.b64decode(''.join(text.split()), validate=True)
            except (binascii.Error, ValueError) as e:
                raise EntryCompileError(f"Invalid base64 content: {e}") from e
        else:
            if self.delegate.text_for:
                text = self.delegate.text_for(entry, key, text)
            try:
                body = text.encode('utf-8')
            except UnicodeEncodeError as e:
                raise EntryCompileError(f"Content text is not valid UTF-8: {e}") from e

        headers: Dict[str, str] = {}
        if self._is_compressed(content):
            body = gzip.compress(body, compresslevel=GZIP_LEVEL, mtime=GZIP_MTIME)
            headers['Content-Encoding'] = 'gzip'

        headers['Content-Length'] = str(len(body))

        mime_type = content.get('mimeType')
        if mime_type:
            headers['Content-Type'] = mime_type

        return CompiledResponse(status_code=status_code, headers=headers, body=body)

    @staticmethod
    def _status_of(entry: HarEntry) -> int:
        """Read the response status as an int."""
        try:
            return int(entry['response']['status'])
        except (KeyError, TypeError, ValueError) as e:
            raise EntryCompileError(f"Missing or invalid response status: {e}") from e

    @staticmethod
    def _is_compressed(content: Dict) -> bool:
        """Check whether the archive declares positive compression."""
        compression = content.get('compression')
        if compression is None:
            return False
        try:
            return float(compression) > 0
        except (TypeError, ValueError) as e:
            raise EntryCompileError(f"Invalid compression value: {compression!r}") from e
