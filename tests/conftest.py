import asyncio
import os
from pathlib import Path
from typing import Callable, Iterator

import pytest

from servedir.http.model import HTTPBodyWriter, HTTPRequest, HTTPResponse
from servedir.model import Application, ServerContext, mount
from servedir.services.files import FileService
from servedir.utils.logging import setLevel

HELLO: bytes = b"hello world\n"
INDEX: bytes = b"<h1>Home</h1>"


class BufferWriter(HTTPBodyWriter):
	"""Collects the body in memory, with small chunks so that files are
	read in more than one go."""

	def __init__(self, chunkSize: int = 7) -> None:
		super().__init__(chunkSize)
		self.data: bytearray = bytearray()

	async def _writeBytes(self, chunk: bytes) -> bool:
		self.data += chunk
		return True


def readBody(response: HTTPResponse) -> bytes:
	"""Writes the response body to memory and closes the response, like the
	server does once it is sent."""
	writer = BufferWriter()
	try:
		asyncio.run(writer.write(response.body))
	finally:
		response.close()
	return bytes(writer.data)


@pytest.fixture(autouse=True)
def quiet() -> Iterator[None]:
	previous = setLevel(None)
	yield
	setLevel(previous)


@pytest.fixture
def root(tmp_path: Path) -> Path:
	"""A small tree with one of each kind of entry."""
	(tmp_path / "hello.txt").write_bytes(HELLO)
	(tmp_path / "empty.txt").write_bytes(b"")
	(tmp_path / "data.bin").write_bytes(bytes(range(256)))
	(tmp_path / "README").write_bytes(b"plain text without an extension\n")
	(tmp_path / "blob").write_bytes(b"\x00\x01\x02\x03")
	(tmp_path / "site").mkdir()
	(tmp_path / "site" / "index.html").write_bytes(INDEX)
	(tmp_path / "docs").mkdir()
	(tmp_path / "docs" / "b.txt").write_bytes(b"b")
	(tmp_path / "docs" / "a.txt").write_bytes(b"aa")
	(tmp_path / "docs" / "Sub").mkdir()
	(tmp_path / "weird").mkdir()
	(tmp_path / "weird" / "index.html").mkdir()
	(tmp_path / "weird" / "x.txt").write_bytes(b"x")
	os.symlink(tmp_path / "hello.txt", tmp_path / "link")
	os.symlink(tmp_path / "docs", tmp_path / "linkdir")
	os.mkfifo(tmp_path / "fifo")
	return tmp_path


@pytest.fixture
def context(root: Path) -> ServerContext:
	return ServerContext.FromPath(root)


@pytest.fixture
def app(context: ServerContext) -> Application:
	return mount(FileService(context))


@pytest.fixture
def fetch(
	app: Application,
) -> Callable[..., tuple[HTTPResponse, bytes]]:
	"""Processes a request with the application, returning the response
	and its body."""

	def fetch(
		uri: str, method: str = "GET", headers: dict[str, str] | None = None
	) -> tuple[HTTPResponse, bytes]:
		response = app.process(HTTPRequest.Create(method, uri, headers))
		return response, readBody(response)

	return fetch


# EOF
