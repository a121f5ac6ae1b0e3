"""Tests for the requests-backed transport."""

from unittest.mock import patch

import pytest
import requests

from reqcli.core import Body, RequestDescriptor
from reqcli.errors import TransportError
from reqcli.executor import HttpResponse, send_request, wire_headers


def _fake_response(status_code=200, headers=None, content=b"", url="http://x/", reason="OK"):
    return type(
        "Response",
        (),
        {
            "status_code": status_code,
            "reason": reason,
            "headers": headers or {},
            "content": content,
            "url": url,
            "encoding": "utf-8",
        },
    )()


# ── wire_headers ─────────────────────────────────────────────────────────


class TestWireHeaders:
    def test_unique_names_untouched(self):
        assert wire_headers((("A", "1"), ("B", "2"))) == {"A": "1", "B": "2"}

    def test_duplicates_comma_joined(self):
        merged = wire_headers((("Authorization", "Y"), ("authorization", "Bearer X")))
        assert merged == {"Authorization": "Y, Bearer X"}

    def test_cookie_semicolon_joined(self):
        merged = wire_headers((("Cookie", "a=1"), ("Cookie", "b=2")))
        assert merged == {"Cookie": "a=1; b=2"}


# ── HttpResponse ─────────────────────────────────────────────────────────


class TestHttpResponse:
    def test_ok_range(self):
        assert HttpResponse(status_code=204).ok
        assert not HttpResponse(status_code=302).ok
        assert not HttpResponse(status_code=404).ok

    def test_is_redirect_needs_location(self):
        assert HttpResponse(status_code=301, headers=[("location", "/x")]).is_redirect
        assert not HttpResponse(status_code=301).is_redirect
        assert not HttpResponse(status_code=200, headers=[("Location", "/x")]).is_redirect

    def test_text_decoding(self):
        resp = HttpResponse(content="héllo".encode("latin-1"), encoding="latin-1")
        assert resp.text == "héllo"

    def test_text_defaults_to_utf8(self):
        assert HttpResponse(content="✓".encode()).text == "✓"

    def test_status_line(self):
        assert HttpResponse(status_code=404, reason="Not Found").status_line == "404 Not Found"
        assert HttpResponse(status_code=599).status_line == "599"


# ── send_request ─────────────────────────────────────────────────────────


class TestSendRequest:
    @patch("reqcli.executor.requests.request")
    def test_kwargs(self, mock_req):
        mock_req.return_value = _fake_response()
        request = RequestDescriptor(
            "GET",
            "http://localhost:3000/search",
            params=(("q", "a b"),),
            headers=(("Accept", "*/*"),),
        )
        send_request(request, timeout=5)
        kwargs = mock_req.call_args[1]
        assert kwargs["method"] == "GET"
        assert kwargs["url"] == "http://localhost:3000/search?q=a+b"
        assert kwargs["headers"] == {"Accept": "*/*"}
        assert kwargs["data"] is None
        assert kwargs["timeout"] == 5
        assert kwargs["allow_redirects"] is False

    @patch("reqcli.executor.requests.request")
    def test_json_body_encoded(self, mock_req):
        mock_req.return_value = _fake_response()
        request = RequestDescriptor("POST", "http://x/", body=Body("json", {"a": {"b": 1}}))
        send_request(request)
        kwargs = mock_req.call_args[1]
        assert kwargs["data"] == b'{"a": {"b": 1}}'
        assert kwargs["headers"]["Content-Type"] == "application/json"

    @patch("reqcli.executor.requests.request")
    def test_json_explicit_content_type_kept(self, mock_req):
        mock_req.return_value = _fake_response()
        request = RequestDescriptor(
            "POST",
            "http://x/",
            headers=(("content-type", "application/vnd.api+json"),),
            body=Body("json", {}),
        )
        send_request(request)
        assert mock_req.call_args[1]["headers"] == {"content-type": "application/vnd.api+json"}

    @patch("reqcli.executor.requests.request")
    def test_text_and_bytes_bodies(self, mock_req):
        mock_req.return_value = _fake_response()
        send_request(RequestDescriptor("POST", "http://x/", body=Body("text", "a=1")))
        assert mock_req.call_args[1]["data"] == b"a=1"
        send_request(RequestDescriptor("PUT", "http://x/", body=Body("bytes", b"\x00\x01")))
        assert mock_req.call_args[1]["data"] == b"\x00\x01"

    @patch("reqcli.executor.requests.request")
    def test_response_mapped(self, mock_req):
        mock_req.return_value = _fake_response(
            status_code=201,
            reason="Created",
            headers={"Content-Type": "application/json"},
            content=b'{"id": 1}',
            url="http://x/items/1",
        )
        resp = send_request(RequestDescriptor("POST", "http://x/items"))
        assert resp.status_code == 201
        assert resp.status_line == "201 Created"
        assert resp.headers == [("Content-Type", "application/json")]
        assert resp.content == b'{"id": 1}'
        assert resp.url == "http://x/items/1"

    @patch("reqcli.executor.requests.request")
    def test_timeout(self, mock_req):
        mock_req.side_effect = requests.exceptions.ReadTimeout("slow")
        with pytest.raises(TransportError, match="timed out after 5s"):
            send_request(RequestDescriptor("GET", "http://x/"), timeout=5)

    @patch("reqcli.executor.requests.request")
    def test_connection_error(self, mock_req):
        mock_req.side_effect = requests.exceptions.ConnectionError("refused")
        with pytest.raises(TransportError, match="Connection error: refused") as excinfo:
            send_request(RequestDescriptor("GET", "http://x/"))
        assert excinfo.value.exit_code == 4

    @patch("reqcli.executor.requests.request")
    def test_other_request_error(self, mock_req):
        mock_req.side_effect = requests.exceptions.InvalidURL("bad url")
        with pytest.raises(TransportError, match="Request failed: bad url"):
            send_request(RequestDescriptor("GET", "http://x/"))
