"""
HAR Replay Common Utilities

Archive loading and HAR header helpers.
"""

import json
from pathlib import Path
from typing import List, Dict, Any, Optional, Union


class ArchiveLoader:
    """
    Standardized loader for HAR (HTTP Archive) files.

    Accepts the standard HAR layout:
    - {"log": {"version": "1.2", "entries": [...]}}

    This is the single source of truth for reading archives from disk.
    Structural checks stop at `log.entries`; individual entries are not
    validated here.

    Example:
        loader = ArchiveLoader("session.har")
        har = loader.load()

        for entry in har['log']['entries']:
            print(entry['request']['url'])
    """

    def __init__(self, file_path: Union[str, Path]):
        """
        Initialize archive loader.

        Args:
            file_path: Path to HAR file
        """
        self.file_path = Path(file_path)

    def load(self) -> Dict[str, Any]:
        """
        Load the archive from disk.

        Returns:
            Parsed HAR document

        Raises:
            FileNotFoundError: If archive file doesn't exist
            ValueError: If the file is not JSON or lacks log.entries
        """
        if not self.file_path.exists():
            raise FileNotFoundError(f"Archive file not found: {self.file_path}")

        with open(self.file_path, 'r', encoding='utf-8') as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON in {self.file_path}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get('log'), dict):
            raise ValueError(
                f"Unexpected archive format in {self.file_path}. "
                f"Expected an object with a 'log' key."
            )

        entries = data['log'].get('entries')
        if not isinstance(entries, list):
            raise ValueError(
                f"Unexpected archive format in {self.file_path}. "
                f"Expected 'log.entries' to be a list, got {type(entries).__name__}"
            )

        return data


HeaderValue = Union[str, List[str]]


def har_headers_to_dict(
    headers: Optional[List[Dict[str, str]]],
    names: Optional[List[str]] = None
) -> Dict[str, HeaderValue]:
    """
    Convert a HAR headers list into a dict.

    Repeated headers are joined with ", " except Set-Cookie, whose values
    cannot be comma-joined safely; repeated Set-Cookie values are kept as a
    list and sent as separate header lines.

    Args:
        headers: HAR headers list
        names: Optional header names to keep (case-insensitive)

    Returns:
        Dictionary of header name to value, keyed by the first archived casing
    """
    keep = {n.lower() for n in names} if names is not None else None
    result: Dict[str, HeaderValue] = {}
    seen: Dict[str, str] = {}

    for header in headers or []:
        name = header.get('name', '')
        lowered = name.lower()
        if keep is not None and lowered not in keep:
            continue

        value = header.get('value', '')
        if lowered not in seen:
            seen[lowered] = name
            result[name] = value
            continue

        original = seen[lowered]
        if lowered == 'set-cookie':
            previous = result[original]
            result[original] = (previous if isinstance(previous, list) else [previous]) + [value]
        else:
            result[original] = f"{result[original]}, {value}"

    return result
