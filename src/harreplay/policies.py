"""
HAR Replay Policies

Ready-made key functions and hook factories for ServerDelegate, plus a
YAML policy file format for configuring them without code.

Policy file example (policy.yaml):

    hosts:
      - api.example.com
    include_errors: false
    strip_query: false
    replace:
      "https://api.example.com": "http://127.0.0.1:8080"
    copy_headers:
      - Set-Cookie
      - ETag
    missing:
      status: 404
      body: '{"error": "No recorded response"}'
      content_type: application/json
"""

from pathlib import Path
from typing import Dict, Any, List, Optional, Callable, Iterable, Union

import yaml

from .archive.models import CompiledResponse, HarEntry, ServerDelegate
from .common import URLMatcher, har_headers_to_dict

ArchiveKeyFn = Callable[[HarEntry], Optional[str]]


def archive_key_method_path(entry: HarEntry, strip_query: bool = False) -> Optional[str]:
    """
    Key an archive entry as "METHOD /path?sorted=query".

    The host is ignored so recordings against a remote API match requests
    sent to the local replay server.
    """
    request = entry.get('request') or {}
    method = request.get('method')
    url = request.get('url')
    if not method or not url:
        return None
    return f"{method.upper()} {URLMatcher.path_and_query(url, strip_query=strip_query)}"


def request_key_method_path(request, strip_query: bool = False) -> Optional[str]:
    """
    Key a live Starlette request the same way as archive_key_method_path.

    The path is taken from the ASGI raw_path so percent-escapes stay as
    they were sent, matching the still-encoded paths recorded in archives.
    """
    raw_path = request.scope.get('raw_path')
    if raw_path:
        url = raw_path.decode('latin-1').split('?', 1)[0]
    else:
        url = request.url.path
    if not strip_query and request.url.query:
        url = f"{url}?{request.url.query}"
    return f"{request.method.upper()} {URLMatcher.path_and_query(url, strip_query=strip_query)}"


def success_only(key_fn: ArchiveKeyFn) -> ArchiveKeyFn:
    """Wrap an archive key function so non-2xx entries get no key."""
    def keyed(entry: HarEntry) -> Optional[str]:
        try:
            status = int((entry.get('response') or {}).get('status', 0))
        except (TypeError, ValueError):
            return None
        if not 200 <= status < 300:
            return None
        return key_fn(entry)
    return keyed


def host_filter(key_fn: ArchiveKeyFn, hosts: Iterable[str]) -> ArchiveKeyFn:
    """Wrap an archive key function so only entries for the given hosts get a key."""
    allowed = {h.lower() for h in hosts}

    def keyed(entry: HarEntry) -> Optional[str]:
        url = (entry.get('request') or {}).get('url', '')
        if URLMatcher.hostname(url) not in allowed:
            return None
        return key_fn(entry)
    return keyed


def replace_text(replacements: Dict[str, str]) -> Callable[[HarEntry, str, str], str]:
    """
    Create a text_for hook that applies substring replacements in order.

    Example:
        text_for = replace_text({'https://api.example.com': 'http://127.0.0.1:8080'})
    """
    items = list(replacements.items())

    def text_for(entry: HarEntry, key: str, text: str) -> str:
        for old, new in items:
            text = text.replace(old, new)
        return text
    return text_for


def copy_archived_headers(
    names: List[str]
) -> Callable[[HarEntry, str, CompiledResponse], CompiledResponse]:
    """
    Create a finalize_response hook restoring named archived response headers.

    Framing headers computed at compile time (Content-Length,
    Content-Encoding) are never overwritten. Every recorded Set-Cookie is
    restored, one header line each.
    """
    protected = {'content-length', 'content-encoding'}
    wanted = [n for n in names if n.lower() not in protected]

    def finalize_response(entry: HarEntry, key: str, response: CompiledResponse) -> CompiledResponse:
        archived = har_headers_to_dict((entry.get('response') or {}).get('headers'), wanted)
        replaced = {name.lower() for name in archived}
        headers = {k: v for k, v in response.headers.items() if k.lower() not in replaced}
        headers.update(archived)
        return CompiledResponse(status_code=response.status_code, headers=headers, body=response.body)
    return finalize_response


def archived_error_response(entry: HarEntry, key: str) -> Optional[CompiledResponse]:
    """
    response_for hook serving non-2xx entries with their recorded text body.

    Base64 bodies are not decoded here; such entries are served empty.
    """
    response = entry.get('response') or {}
    content = response.get('content') or {}
    text = '' if content.get('encoding') == 'base64' else (content.get('text') or '')
    body = text.encode('utf-8')
    headers = {'Content-Length': str(len(body))}
    if content.get('mimeType'):
        headers['Content-Type'] = content['mimeType']
    return CompiledResponse(status_code=int(response['status']), headers=headers, body=body)


def fixed_missing_response(
    status: int = 404,
    body: Union[str, bytes] = b'',
    content_type: Optional[str] = None
):
    """Create a missing_response hook writing a fixed response."""
    if body is None:
        body = b''
    payload = body.encode('utf-8') if isinstance(body, str) else body
    headers = {'Content-Length': str(len(payload))}
    if content_type:
        headers['Content-Type'] = content_type

    def missing_response(request, sink) -> None:
        sink.write_head(status, headers)
        sink.end(payload)
    return missing_response


def default_delegate(
    hosts: Optional[Iterable[str]] = None,
    include_errors: bool = False,
    strip_query: bool = False,
    replace: Optional[Dict[str, str]] = None,
    copy_headers: Optional[List[str]] = None,
    missing: Optional[Dict[str, Any]] = None
) -> ServerDelegate:
    """
    Build a ServerDelegate from simple options.

    Args:
        hosts: Only index entries recorded against these hosts
        include_errors: Also serve non-2xx entries with their recorded body
        strip_query: Ignore query strings when keying
        replace: Substring replacements applied to text bodies
        copy_headers: Archived response headers to restore
        missing: Fixed response for unmatched requests ({status, body, content_type})

    Returns:
        Configured ServerDelegate
    """
    def archive_key(entry: HarEntry) -> Optional[str]:
        return archive_key_method_path(entry, strip_query=strip_query)

    def request_key(request) -> Optional[str]:
        return request_key_method_path(request, strip_query=strip_query)

    key_fn: ArchiveKeyFn = archive_key
    if not include_errors:
        key_fn = success_only(key_fn)
    if hosts:
        key_fn = host_filter(key_fn, hosts)

    return ServerDelegate(
        key_for_archive_entry=key_fn,
        key_for_server_request=request_key,
        text_for=replace_text(replace) if replace else None,
        response_for=archived_error_response if include_errors else None,
        finalize_response=copy_archived_headers(copy_headers) if copy_headers else None,
        missing_response=fixed_missing_response(**missing) if missing else None
    )


def load_policy_file(path: Union[str, Path], **overrides) -> ServerDelegate:
    """
    Load a YAML policy file into a ServerDelegate.

    Args:
        path: Path to YAML policy file
        **overrides: Options taking precedence over the file (None values ignored)

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file isn't a YAML mapping or has unknown keys
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Policy file not found: {path}")

    with open(path, 'r', encoding='utf-8') as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in policy file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Policy file {path} must contain a mapping, got {type(data).__name__}")

    allowed = {'hosts', 'include_errors', 'strip_query', 'replace', 'copy_headers', 'missing'}
    unknown = set(data) - allowed
    if unknown:
        raise ValueError(f"Unknown policy keys in {path}: {', '.join(sorted(unknown))}")

    missing = data.get('missing')
    if missing is not None and (not isinstance(missing, dict) or set(missing) - {'status', 'body', 'content_type'}):
        raise ValueError(f"Policy key 'missing' in {path} must map status, body and content_type")
    if missing is not None:
        if not isinstance(missing.get('status', 404), int):
            raise ValueError(f"Policy key 'missing.status' in {path} must be an integer")
        for name in ('body', 'content_type'):
            if not isinstance(missing.get(name) or '', str):
                raise ValueError(f"Policy key 'missing.{name}' in {path} must be a string")

    for name in ('hosts', 'copy_headers'):
        value = data.get(name)
        if value is not None and (not isinstance(value, list) or not all(isinstance(v, str) for v in value)):
            raise ValueError(f"Policy key '{name}' in {path} must be a list of strings")

    replace = data.get('replace')
    if replace is not None and not isinstance(replace, dict):
        raise ValueError(f"Policy key 'replace' in {path} must be a mapping")

    options = {**data, **{k: v for k, v in overrides.items() if v is not None}}
    return default_delegate(**options)
