import io
from typing import Iterator

from conftest import readBody
from servedir.features.cors import setCORSHeaders
from servedir.http.model import (
	HTTPBodyBlob,
	HTTPBodyStream,
	HTTPRequest,
	HTTPResponse,
	headername,
)
from servedir.utils.htmpl import H
from servedir.utils.logging import (
	LogLevel,
	event,
	formatData,
	info,
	setLevel,
	setStream,
	warning,
)


def test_headername() -> None:
	assert headername("content-type") == "Content-Type"
	assert headername("X-CONTENT-TYPE-OPTIONS") == "X-Content-Type-Options"
	assert headername("Host") == "Host"


def test_response_head() -> None:
	response = HTTPResponse.Create("ok", contentType="text/plain", status=200)
	response.setHeader("x-custom", 1)
	assert response.head() == (
		b"HTTP/1.1 200 OK\r\n"
		b"Content-Type: text/plain\r\n"
		b"Content-Length: 2\r\n"
		b"X-Custom: 1\r\n"
		b"\r\n"
	)
	response.setHeader("X-Custom", None)
	assert response.getHeader("x-custom") is None


def test_response_bodies() -> None:
	def chunks() -> Iterator[str | bytes]:
		yield "a"
		yield b"b"

	assert isinstance(HTTPResponse.Create().body, HTTPBodyBlob)
	streamed = HTTPResponse.Create(chunks())
	assert isinstance(streamed.body, HTTPBodyStream)
	assert streamed.shouldClose
	assert readBody(streamed) == b"ab"
	assert readBody(HTTPResponse.Create("é")) == "é".encode("utf-8")


def test_response_on_close() -> None:
	closed: list[HTTPResponse] = []
	response = HTTPResponse.Create(b"x").onClose(closed.append)
	response.close()
	response.close()
	assert closed == [response]


def test_request() -> None:
	request = HTTPRequest.Create(
		"GET", "/a/b?c=d", {"user-agent": "test"}, protocol="HTTP/1.0"
	)
	assert request.path == "/a/b"
	assert request.header("User-Agent") == "test"
	assert not request.keepAlive
	assert HTTPRequest.Create("GET", "/", {"Connection": "keep-alive"}, protocol="HTTP/1.0").keepAlive


def test_error_response() -> None:
	response = HTTPRequest.Create("GET", "/").error(403, headers={"X-A": "b"})
	assert response.status == 403
	assert response.getHeader("X-A") == "b"
	assert response.getHeader("X-Content-Type-Options") == "nosniff"
	assert readBody(response) == b"Forbidden\n"


def test_cors_headers() -> None:
	response = setCORSHeaders(
		HTTPResponse.Create(), origin="https://example.com", methods=["GET"]
	)
	assert response.getHeader("Access-Control-Allow-Origin") == "https://example.com"
	assert response.getHeader("Access-Control-Allow-Methods") == "GET"
	assert response.getHeader("Access-Control-Allow-Headers") == "Content-Type, Authorization"


def test_htmpl() -> None:
	assert str(H.p("a < b", _="note")) == '<p class="note">a &lt; b</p>'
	assert str(H.meta(charset="utf-8")) == '<meta charset="utf-8">'
	assert str(H.td()) == "<td></td>"
	assert str(H.a("x", href='"quoted"&')) == '<a href="&quot;quoted&quot;&amp;">x</a>'
	assert str(H.tr(H.td(H.p("x")), H.td(1))) == "<tr><td><p>x</p></td><td>1</td></tr>"


def test_logging() -> None:
	stream = io.StringIO()
	previous_stream = setStream(stream)
	previous_level = setLevel(LogLevel.Info)
	try:
		info("Server listening", Port=8000)
		warning("Malformed request", Remote="127.0.0.1:1234")
		event("GET", "/hello.txt", Agent="curl")
		setLevel(LogLevel.Warning)
		info("Hidden")
		setLevel(None)
		warning("Hidden too")
	finally:
		setStream(previous_stream)
		setLevel(previous_level)
	output = stream.getvalue()
	assert "[servedir]" in output
	assert "Server listening" in output
	assert "Malformed request" in output
	assert "/hello.txt" in output
	assert "Hidden" not in output
	assert len(output.splitlines()) == 3


def test_format_data() -> None:
	assert formatData(None) == "◌"
	assert formatData(True) == "✓"
	assert formatData(0.5) == "0.50"
	assert formatData("two words") == "'two words'"
	assert formatData(["a", 1]) == "a,1"


# EOF
