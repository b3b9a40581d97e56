"""
Tests for HAR Replay Policies

Tests built-in key functions and hook factories including:
- Method/path keys on both sides
- success_only and host_filter wrappers
- Text replacement and header restoration
- YAML policy files
"""

from unittest.mock import Mock

import pytest

from harreplay.archive.models import CompiledResponse
from harreplay.policies import (
    archive_key_method_path,
    request_key_method_path,
    success_only,
    host_filter,
    replace_text,
    copy_archived_headers,
    archived_error_response,
    fixed_missing_response,
    default_delegate,
    load_policy_file
)
from harreplay.server.dispatcher import ResponseSink


def make_entry(method='GET', url='https://api.example.com/users?b=2&a=1', status=200, headers=None, text='body'):
    return {
        'request': {'method': method, 'url': url, 'headers': []},
        'response': {
            'status': status,
            'headers': headers or [],
            'content': {'size': len(text), 'mimeType': 'text/plain', 'text': text}
        }
    }


def make_request(method='GET', path='/users', query='', raw_path=None):
    """Stand-in for a Starlette request."""
    request = Mock(method=method)
    request.url.path = path
    request.url.query = query
    request.scope = {'raw_path': raw_path} if raw_path is not None else {}
    return request


class TestKeyFunctions:
    """Test method/path key derivation."""

    def test_archive_key(self):
        """Test host is dropped and query sorted."""
        assert archive_key_method_path(make_entry()) == 'GET /users?a=1&b=2'

    def test_archive_key_strip_query(self):
        """Test the query can be ignored."""
        assert archive_key_method_path(make_entry(), strip_query=True) == 'GET /users'

    def test_archive_key_lowercase_method(self):
        """Test methods are upper-cased."""
        assert archive_key_method_path(make_entry(method='post')) == 'POST /users?a=1&b=2'

    def test_archive_key_missing_url(self):
        """Test entries without a URL get no key."""
        entry = make_entry()
        del entry['request']['url']

        assert archive_key_method_path(entry) is None

    def test_root_path(self):
        """Test a bare host keys as '/'."""
        assert archive_key_method_path(make_entry(url='https://api.example.com')) == 'GET /'

    def test_request_key_matches_archive_key(self):
        """Test both sides produce the same key for the same request."""
        request = make_request(path='/users', query='a=1&b=2')

        assert request_key_method_path(request) == archive_key_method_path(make_entry())

    def test_request_key_without_query(self):
        """Test a request without a query string."""
        assert request_key_method_path(make_request(method='DELETE', path='/users/1')) == 'DELETE /users/1'

    @pytest.mark.parametrize('url,decoded,raw', [
        ('https://api.example.com/users/john%20doe', '/users/john doe', b'/users/john%20doe'),
        ('https://api.example.com/files/a%2Fb', '/files/a/b', b'/files/a%2Fb'),
    ])
    def test_encoded_path_matches_archive_key(self, url, decoded, raw):
        """Test percent-escapes in the path key the same on both sides."""
        request = make_request(path=decoded, raw_path=raw)

        assert request_key_method_path(request) == archive_key_method_path(make_entry(url=url))

    def test_raw_path_query_ignored(self):
        """Test a raw_path carrying the query string keys like the URL query."""
        request = make_request(path='/users', query='b=2&a=1', raw_path=b'/users?b=2&a=1')

        assert request_key_method_path(request) == 'GET /users?a=1&b=2'

    def test_blank_query_values_kept(self):
        """Test blank query values stay part of the key."""
        request = make_request(path='/search', query='q=')

        assert request_key_method_path(request) == 'GET /search?q='


class TestWrappers:
    """Test key function wrappers."""

    def test_success_only(self):
        """Test non-2xx entries get no key."""
        key_fn = success_only(archive_key_method_path)

        assert key_fn(make_entry(status=200)) == 'GET /users?a=1&b=2'
        assert key_fn(make_entry(status=304)) is None
        assert key_fn(make_entry(status=500)) is None
        assert key_fn(make_entry(status='oops')) is None

    def test_host_filter(self):
        """Test only listed hosts are keyed (case-insensitive)."""
        key_fn = host_filter(archive_key_method_path, ['API.example.com'])

        assert key_fn(make_entry()) == 'GET /users?a=1&b=2'
        assert key_fn(make_entry(url='https://cdn.example.com/x.js')) is None


class TestHookFactories:
    """Test hook factories."""

    def test_replace_text_in_order(self):
        """Test replacements apply in the given order."""
        text_for = replace_text({'a': 'b', 'b': 'c'})

        assert text_for({}, 'k', 'aab') == 'ccc'

    def test_copy_archived_headers(self):
        """Test named archived headers are restored without touching framing."""
        entry = make_entry(headers=[
            {'name': 'Set-Cookie', 'value': 'a=1'},
            {'name': 'Set-Cookie', 'value': 'b=2'},
            {'name': 'ETag', 'value': '"abc"'},
            {'name': 'Content-Length', 'value': '999'},
            {'name': 'Cache-Control', 'value': 'no-store'}
        ])
        original = CompiledResponse(status_code=200, headers={'Content-Length': '4', 'Content-Type': 'text/plain'},
                                    body=b'body')

        finalize = copy_archived_headers(['set-cookie', 'etag', 'content-length'])
        response = finalize(entry, 'k', original)

        assert response.headers == {
            'Content-Length': '4',
            'Content-Type': 'text/plain',
            'Set-Cookie': ['a=1', 'b=2'],
            'ETag': '"abc"'
        }
        assert response.body == b'body'
        assert original.headers == {'Content-Length': '4', 'Content-Type': 'text/plain'}

    def test_archived_error_response(self):
        """Test recorded error bodies are served with their status."""
        response = archived_error_response(make_entry(status=404, text='not here'), 'k')

        assert response.status_code == 404
        assert response.body == b'not here'
        assert response.headers == {'Content-Length': '8', 'Content-Type': 'text/plain'}

    def test_fixed_missing_response(self):
        """Test the fixed missing hook writes its response."""
        missing = fixed_missing_response(503, 'later', 'text/plain')
        sink = ResponseSink()

        missing(Mock(), sink)

        assert sink.status_code == 503
        assert sink.body == b'later'
        assert sink.headers == {'Content-Length': '5', 'Content-Type': 'text/plain'}


    def test_fixed_missing_response_none_body(self):
        """Test a None body is treated as empty."""
        sink = ResponseSink()

        fixed_missing_response(404, None)(Mock(), sink)

        assert sink.body == b''
        assert sink.headers == {'Content-Length': '0'}


class TestDefaultDelegate:
    """Test default_delegate options."""

    def test_defaults(self):
        """Test defaults serve 2xx only with no optional hooks."""
        delegate = default_delegate()

        assert delegate.key_for_archive_entry(make_entry()) == 'GET /users?a=1&b=2'
        assert delegate.key_for_archive_entry(make_entry(status=404)) is None
        assert delegate.text_for is None
        assert delegate.response_for is None
        assert delegate.finalize_response is None
        assert delegate.missing_response is None

    def test_include_errors(self):
        """Test include_errors keys non-2xx entries and serves them."""
        delegate = default_delegate(include_errors=True)

        assert delegate.key_for_archive_entry(make_entry(status=404)) == 'GET /users?a=1&b=2'
        assert delegate.response_for is archived_error_response

    def test_strip_query(self):
        """Test strip_query applies to both sides."""
        delegate = default_delegate(strip_query=True)

        assert delegate.key_for_archive_entry(make_entry()) == 'GET /users'
        assert delegate.key_for_server_request(make_request(query='z=1')) == 'GET /users'


class TestPolicyFile:
    """Test YAML policy files."""

    def test_load_policy_file(self, tmp_path):
        """Test a full policy file."""
        path = tmp_path / 'policy.yaml'
        path.write_text(
            "hosts:\n"
            "  - api.example.com\n"
            "replace:\n"
            "  body: BODY\n"
            "copy_headers:\n"
            "  - ETag\n"
            "missing:\n"
            "  status: 404\n"
            "  body: '{\"error\": \"none\"}'\n"
            "  content_type: application/json\n",
            encoding='utf-8'
        )

        delegate = load_policy_file(path)

        assert delegate.key_for_archive_entry(make_entry()) == 'GET /users?a=1&b=2'
        assert delegate.key_for_archive_entry(make_entry(url='https://other.com/users')) is None
        assert delegate.text_for({}, 'k', 'body') == 'BODY'
        assert delegate.finalize_response is not None
        assert delegate.missing_response is not None

    def test_empty_policy_file(self, tmp_path):
        """Test an empty file means default policies."""
        path = tmp_path / 'policy.yaml'
        path.write_text('', encoding='utf-8')

        delegate = load_policy_file(path)

        assert delegate.key_for_archive_entry(make_entry()) == 'GET /users?a=1&b=2'

    def test_overrides(self, tmp_path):
        """Test explicit overrides win over the file, None values don't."""
        path = tmp_path / 'policy.yaml'
        path.write_text("include_errors: false\nhosts: [api.example.com]\n", encoding='utf-8')

        delegate = load_policy_file(path, include_errors=True, hosts=None)

        assert delegate.response_for is archived_error_response
        assert delegate.key_for_archive_entry(make_entry(url='https://other.com/x')) is None

    def test_missing_null_body(self, tmp_path):
        """Test a null missing body serves an empty response."""
        path = tmp_path / 'policy.yaml'
        path.write_text("missing:\n  status: 410\n  body: null\n", encoding='utf-8')
        sink = ResponseSink()

        load_policy_file(path).missing_response(Mock(), sink)

        assert sink.status_code == 410
        assert sink.body == b''
        assert sink.headers == {'Content-Length': '0'}

    def test_missing_file(self, tmp_path):
        """Test a missing policy file."""
        with pytest.raises(FileNotFoundError):
            load_policy_file(tmp_path / 'nope.yaml')

    @pytest.mark.parametrize('content', [
        "- just\n- a list\n",
        "unknown_key: 1\n",
        "missing: {status: 404, colour: red}\n",
        "hosts: [unclosed\n",
        "hosts: api.example.com\n",
        "hosts: [1, 2]\n",
        "copy_headers: Set-Cookie\n",
        "replace: [a, b]\n",
        "missing: {status: teapot}\n",
        "missing: {body: [1, 2]}\n",
    ])
    def test_invalid_policy_file(self, tmp_path, content):
        """Test malformed policy files raise ValueError."""
        path = tmp_path / 'policy.yaml'
        path.write_text(content, encoding='utf-8')

        with pytest.raises(ValueError):
            load_policy_file(path)
