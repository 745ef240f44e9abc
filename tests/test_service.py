import os
from pathlib import Path
from typing import Any, Callable

import pytest

from conftest import HELLO, INDEX
from servedir.http.model import HTTPBodyFile, HTTPBodyParts, HTTPRequest, HTTPResponse
from servedir.model import Application, ServerContext, mount
from servedir.services.files import FileService
from servedir.services.listing import LISTING_PRELUDE

Fetch = Callable[..., tuple[HTTPResponse, bytes]]


def assertCommonHeaders(response: HTTPResponse) -> None:
	assert response.getHeader("Access-Control-Allow-Origin") == "*"
	assert response.getHeader("Access-Control-Allow-Methods") == "GET, POST, OPTIONS"
	assert (
		response.getHeader("Access-Control-Allow-Headers")
		== "Content-Type, Authorization"
	)
	assert response.getHeader("Cache-Control") == "no-store"


def assertError(response: HTTPResponse, body: bytes, status: int, message: str) -> None:
	assert response.status == status
	assert body == f"{message}\n".encode("utf-8")
	assert response.getHeader("Content-Type") == "text/plain; charset=utf-8"
	assert response.getHeader("X-Content-Type-Options") == "nosniff"
	assertCommonHeaders(response)


# -----------------------------------------------------------------------------
#
# FILES
#
# -----------------------------------------------------------------------------


def test_file(fetch: Fetch) -> None:
	response, body = fetch("/hello.txt")
	assert response.status == 200
	assert body == HELLO
	assert response.getHeader("Content-Type") == "text/plain; charset=utf-8"
	assert response.getHeader("Content-Length") == str(len(HELLO))
	assert response.getHeader("Accept-Ranges") == "bytes"
	assert response.getHeader("Last-Modified") is None
	assert not response.shouldClose
	assertCommonHeaders(response)


def test_binary_file(fetch: Fetch) -> None:
	response, body = fetch("/data.bin")
	assert response.status == 200
	assert body == bytes(range(256))
	assert response.getHeader("Content-Type") == "application/octet-stream"


def test_empty_file(fetch: Fetch) -> None:
	response, body = fetch("/empty.txt")
	assert response.status == 200
	assert body == b""
	assert response.getHeader("Content-Length") == "0"


def test_sniffed_content_type(fetch: Fetch) -> None:
	assert fetch("/README")[0].getHeader("Content-Type") == "text/plain; charset=utf-8"
	assert fetch("/blob")[0].getHeader("Content-Type") == "application/octet-stream"


def test_query_is_ignored(fetch: Fetch) -> None:
	response, body = fetch("/hello.txt?download=1")
	assert response.status == 200
	assert body == HELLO


def test_escaped_path(root: Path, fetch: Fetch) -> None:
	(root / "a b é.txt").write_bytes(b"spaced")
	response, body = fetch("/a%20b%20%C3%A9.txt")
	assert response.status == 200
	assert body == b"spaced"


def test_traversal(fetch: Fetch) -> None:
	for path in ("/../../hello.txt", "/docs/../hello.txt", "/%2e%2e/hello.txt"):
		response, body = fetch(path)
		assert response.status == 200, path
		assert body == HELLO


def test_normalized_paths_are_the_same(fetch: Fetch) -> None:
	assert fetch("/docs/../site/index.html")[1] == fetch("/site/index.html")[1]


def test_file_is_closed(app: Application) -> None:
	response = app.process(HTTPRequest.Create("GET", "/hello.txt"))
	assert isinstance(response.body, HTTPBodyFile)
	f = response.body.file
	assert not f.closed
	response.close()
	assert f.closed
	# Closing again is harmless
	response.close()


# -----------------------------------------------------------------------------
#
# RANGES
#
# -----------------------------------------------------------------------------


def test_range(fetch: Fetch) -> None:
	response, body = fetch("/hello.txt", headers={"Range": "bytes=0-4"})
	assert response.status == 206
	assert body == b"hello"
	assert response.getHeader("Content-Range") == f"bytes 0-4/{len(HELLO)}"
	assert response.getHeader("Content-Length") == "5"
	assertCommonHeaders(response)


def test_suffix_range(fetch: Fetch) -> None:
	response, body = fetch("/data.bin", headers={"Range": "bytes=-10"})
	assert response.status == 206
	assert body == bytes(range(246, 256))
	assert response.getHeader("Content-Range") == "bytes 246-255/256"


def test_unsatisfiable_range(fetch: Fetch) -> None:
	response, body = fetch("/hello.txt", headers={"Range": "bytes=100-"})
	assertError(response, body, 416, "invalid range")
	assert response.getHeader("Content-Range") == f"bytes */{len(HELLO)}"


def test_malformed_range(fetch: Fetch) -> None:
	response, _ = fetch("/hello.txt", headers={"Range": "lines=1-2"})
	assert response.status == 416


def test_multiple_ranges(fetch: Fetch) -> None:
	response, body = fetch("/hello.txt", headers={"Range": "bytes=0-1,6-10"})
	assert response.status == 206
	assertCommonHeaders(response)
	content_type = response.getHeader("Content-Type") or ""
	prefix = "multipart/byteranges; boundary="
	assert content_type.startswith(prefix)
	boundary = content_type[len(prefix) :]
	assert boundary
	size = len(HELLO)
	expected = (
		f"--{boundary}\r\n"
		f"Content-Range: bytes 0-1/{size}\r\n"
		"Content-Type: text/plain; charset=utf-8\r\n"
		"\r\n"
		"he"
		f"\r\n--{boundary}\r\n"
		f"Content-Range: bytes 6-10/{size}\r\n"
		"Content-Type: text/plain; charset=utf-8\r\n"
		"\r\n"
		"world"
		f"\r\n--{boundary}--\r\n"
	).encode("latin-1")
	assert body == expected
	assert response.getHeader("Content-Length") == str(len(expected))
	assert response.getHeader("Content-Range") is None
	assert not response.shouldClose


def test_multiple_ranges_file_is_closed(app: Application) -> None:
	response = app.process(
		HTTPRequest.Create("GET", "/data.bin", {"Range": "bytes=0-9,-10"})
	)
	assert response.status == 206
	assert isinstance(response.body, HTTPBodyParts)
	slices = [_ for _ in response.body.parts if isinstance(_, HTTPBodyFile)]
	assert [(_.offset, _.length) for _ in slices] == [(0, 10), (246, 10)]
	response.close()
	assert slices[0].file.closed


def test_ranges_larger_than_content(fetch: Fetch) -> None:
	# Overlapping ranges adding up to more than the file get all of it
	response, body = fetch("/hello.txt", headers={"Range": "bytes=0-10,0-10"})
	assert response.status == 200
	assert body == HELLO
	assert response.getHeader("Content-Type") == "text/plain; charset=utf-8"


def test_if_range(fetch: Fetch) -> None:
	response, body = fetch(
		"/hello.txt", headers={"Range": "bytes=0-4", "If-Range": '"etag"'}
	)
	assert response.status == 200
	assert body == HELLO


# -----------------------------------------------------------------------------
#
# DIRECTORIES
#
# -----------------------------------------------------------------------------


@pytest.mark.parametrize("path", ["/site/", "/site"])
def test_index(fetch: Fetch, path: str) -> None:
	response, body = fetch(path)
	assert response.status == 200
	assert body == INDEX
	assert response.getHeader("Content-Type") == "text/html; charset=utf-8"
	assert response.getHeader("Content-Length") == str(len(INDEX))
	assertCommonHeaders(response)


def test_listing(fetch: Fetch) -> None:
	response, body = fetch("/docs/")
	assert response.status == 200
	assert response.getHeader("Content-Type") == "text/html; charset=utf-8"
	# The listing is streamed, its end is the end of the connection
	assert response.getHeader("Content-Length") is None
	assert response.shouldClose
	assertCommonHeaders(response)
	page = body.decode("utf-8")
	assert page.startswith(LISTING_PRELUDE)
	assert page.index('href="a.txt"') < page.index('href="b.txt"') < page.index('href="Sub/"')


def test_root_listing(fetch: Fetch) -> None:
	response, body = fetch("/")
	assert response.status == 200
	page = body.decode("utf-8")
	assert '<a href="hello.txt">hello.txt</a>' in page
	assert '<a href="site/">site/</a>' in page
	assert "<td><p>link</p></td>" in page
	assert "<td><p>fifo</p></td>" in page


def test_index_that_is_a_directory(fetch: Fetch) -> None:
	response, body = fetch("/weird/")
	assert response.status == 200
	page = body.decode("utf-8")
	assert '<a href="index.html/">index.html/</a>' in page
	assert '<a href="x.txt">x.txt</a>' in page


# -----------------------------------------------------------------------------
#
# ERRORS
#
# -----------------------------------------------------------------------------


def test_not_found(fetch: Fetch) -> None:
	response, body = fetch("/missing.txt")
	assertError(response, body, 404, "file not found")


def test_symlink(fetch: Fetch) -> None:
	for path in ("/link", "/linkdir"):
		response, body = fetch(path)
		assertError(response, body, 403, "file is a symlink")


def test_symlink_parent(fetch: Fetch) -> None:
	# Only the last component is checked, the way `lstat` does
	response, body = fetch("/linkdir/a.txt")
	assert response.status == 200
	assert body == b"aa"


def test_special_file(fetch: Fetch) -> None:
	response, body = fetch("/fifo")
	assertError(response, body, 403, "file isn't a regular file or directory")


def test_stat_failure(fetch: Fetch) -> None:
	response, body = fetch("/%00")
	assert response.status == 500
	assert body.startswith(b"failed to stat file: ")
	assertCommonHeaders(response)


def test_file_used_as_directory(fetch: Fetch) -> None:
	response, body = fetch("/hello.txt/child")
	assert response.status == 500
	assert body.startswith(b"failed to stat file: ")


@pytest.mark.skipif(os.geteuid() == 0, reason="root can open any file")
def test_unreadable_file(root: Path, fetch: Fetch) -> None:
	path = root / "secret.txt"
	path.write_bytes(b"secret")
	path.chmod(0)
	try:
		response, body = fetch("/secret.txt")
	finally:
		path.chmod(0o644)
	assert response.status == 500
	assert body.startswith(b"failed to open file: ")
	assertCommonHeaders(response)


def test_open_failure(fetch: Fetch, monkeypatch: pytest.MonkeyPatch) -> None:
	def denied(*args: Any, **kwargs: Any) -> Any:
		raise PermissionError(13, "Permission denied")

	monkeypatch.setattr("servedir.services.files.open", denied, raising=False)
	response, body = fetch("/hello.txt")
	assert response.status == 500
	assert body == b"failed to open file: [Errno 13] Permission denied\n"
	assertCommonHeaders(response)


def test_invalid_escape(fetch: Fetch) -> None:
	response, body = fetch("/%zz")
	assertError(
		response, body, 500, 'failed to path unescape: invalid URL escape "%zz"'
	)


def test_invalid_escape_status(root: Path) -> None:
	app = mount(FileService(ServerContext.FromPath(root, decodeErrorStatus=400)))
	response = app.process(HTTPRequest.Create("GET", "/%zz"))
	assert response.status == 400


# -----------------------------------------------------------------------------
#
# METHODS
#
# -----------------------------------------------------------------------------


@pytest.mark.parametrize("path", ["/missing", "/hello.txt", "*"])
def test_preflight(fetch: Fetch, path: str) -> None:
	response, body = fetch(
		path,
		method="OPTIONS",
		headers={"Origin": "http://example.com", "Access-Control-Request-Method": "GET"},
	)
	assert response.status == 200
	assert body == b""
	assert response.getHeader("Content-Length") == "0"
	assertCommonHeaders(response)


@pytest.mark.parametrize("method", ["POST", "PUT", "DELETE", "HEAD", "PATCH"])
def test_method_not_allowed(fetch: Fetch, method: str) -> None:
	response, body = fetch("/hello.txt", method=method)
	assertError(response, body, 405, "method not allowed")
	assert response.getHeader("Allow") == "GET, OPTIONS"


# EOF
