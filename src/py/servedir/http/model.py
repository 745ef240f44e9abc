import inspect
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO, Callable, Generator, NamedTuple, TypeAlias

from ..utils.io import DEFAULT_ENCODING, asWritable
from .api import ResponseFactory
from .status import HTTP_STATUS

# -----------------------------------------------------------------------------
#
# HELPERS
#
# -----------------------------------------------------------------------------


def headername(name: str, *, headers: dict[str, str] = {}) -> str:
	"""Normalizes the header name as `Kebab-Case`."""
	if name in headers:
		return headers[name]
	key: str = name.lower()
	if key in headers:
		return headers[key]
	else:
		normalized: str = "-".join(_.capitalize() for _ in name.split("-"))
		headers[key] = normalized
		return normalized


# -----------------------------------------------------------------------------
#
# DATA MODEL
#
# -----------------------------------------------------------------------------


class HTTPRequestLine(NamedTuple):
	"""Represents a request status line. The `uri` is the request target
	as it was received, `path` is the part before any query string."""

	method: str
	uri: str
	path: str
	protocol: str


class HTTPHeaders(NamedTuple):
	"""Wraps HTTP headers, keeping key information for response/request processing."""

	headers: dict[str, str]
	contentType: str | None = None
	contentLength: int | None = None


class HTTPProcessingStatus(Enum):
	"""Internal parser/processor state management"""

	Processing = 0
	Body = 1
	Complete = 2
	Timeout = 10
	NoData = 11
	BadFormat = 12


# -----------------------------------------------------------------------------
#
# ERRORS
#
# -----------------------------------------------------------------------------


class HTTPRequestError(Exception):
	"""To be raised by handlers to generate an error response, 500 unless
	the status says otherwise."""

	def __init__(
		self,
		message: str,
		status: int | None = None,
		contentType: str | None = None,
	):
		super().__init__(message)
		self.message: str = message
		self.status: int | None = status
		self.contentType: str | None = contentType


# -----------------------------------------------------------------------------
#
# BODY
#
# -----------------------------------------------------------------------------


class HTTPBodyBlob(NamedTuple):
	"""Represents a part (or a whole) body as bytes."""

	payload: bytes = b""
	length: int = 0

	@staticmethod
	def FromBytes(data: bytes) -> "HTTPBodyBlob":
		return HTTPBodyBlob(payload=data, length=len(data))


class HTTPBodyFile(NamedTuple):
	"""A slice of an already opened file. The file is owned by the
	response, which closes it once sent."""

	path: Path
	file: BinaryIO
	offset: int
	length: int


class HTTPBodyStream(NamedTuple):
	"""An HTTP body that is generated from a stream."""

	stream: Generator[str | bytes, Any, Any]


class HTTPBodyParts(NamedTuple):
	"""A body made of fixed byte strings and file slices, sent in order, as
	in a `multipart/byteranges` response. The length is known upfront."""

	parts: tuple[bytes | HTTPBodyFile, ...]
	length: int


# The different types of bodies that are managed
THTTPBody: TypeAlias = HTTPBodyBlob | HTTPBodyFile | HTTPBodyStream | HTTPBodyParts


class HTTPBodyWriter(ABC):
	"""A generic writer for response bodies."""

	__slots__ = ["chunkSize"]

	def __init__(self, chunkSize: int = 64_000) -> None:
		self.chunkSize: int = chunkSize

	async def write(self, body: THTTPBody | bytes | None) -> bool:
		"""Writes the given type of body."""
		if isinstance(body, bytes):
			return await self._writeBytes(body)
		elif isinstance(body, HTTPBodyBlob):
			return await self._writeBytes(body.payload)
		elif isinstance(body, HTTPBodyFile):
			return await self._writeFile(body)
		elif isinstance(body, HTTPBodyParts):
			for part in body.parts:
				if isinstance(part, HTTPBodyFile):
					if not await self._writeFile(part):
						return False
				else:
					await self._writeBytes(part)
			return True
		elif isinstance(body, HTTPBodyStream):
			for _ in body.stream:
				await self._writeBytes(asWritable(_))
			return True
		elif body is None:
			return True
		else:
			raise ValueError(f"Unsupported body format: {body}")

	async def _writeFile(self, body: HTTPBodyFile) -> bool:
		f = body.file
		f.seek(body.offset)
		left: int = body.length
		while left > 0:
			chunk = f.read(min(self.chunkSize, left))
			if not chunk:
				# The file was truncated while we were sending it
				return False
			left -= len(chunk)
			await self._writeBytes(chunk)
		return True

	@abstractmethod
	async def _writeBytes(self, chunk: bytes) -> bool: ...


# -----------------------------------------------------------------------------
#
# REQUESTS
#
# -----------------------------------------------------------------------------


class HTTPRequest(ResponseFactory["HTTPResponse"]):
	"""Represents an HTTP requests, which also acts as a factory for
	responses."""

	__slots__ = [
		"protocol",
		"method",
		"uri",
		"path",
		"peer",
		"_headers",
	]

	def __init__(
		self,
		method: str,
		path: str,
		headers: HTTPHeaders,
		protocol: str = "HTTP/1.1",
		*,
		uri: str | None = None,
		peer: str | None = None,
	):
		super().__init__()
		self.method: str = method
		self.path: str = path
		self.uri: str = path if uri is None else uri
		self.protocol: str = protocol
		self.peer: str | None = peer
		self._headers: HTTPHeaders = headers

	@staticmethod
	def Create(
		method: str,
		uri: str,
		headers: dict[str, str] | None = None,
		*,
		protocol: str = "HTTP/1.1",
		peer: str | None = None,
	) -> "HTTPRequest":
		"""Creates a request from a raw request target, which is how
		requests are made outside of the parser."""
		path = uri.partition("?")[0]
		return HTTPRequest(
			method=method,
			path=path,
			headers=HTTPHeaders({headername(k): v for k, v in (headers or {}).items()}),
			protocol=protocol,
			uri=uri,
			peer=peer,
		)

	@property
	def headers(self) -> dict[str, str]:
		return self._headers.headers

	def header(self, name: str) -> str | None:
		return self._headers.headers.get(headername(name))

	@property
	def keepAlive(self) -> bool:
		connection = (self.header("Connection") or "").lower()
		if self.protocol == "HTTP/1.0":
			return connection == "keep-alive"
		else:
			return connection != "close"

	def respond(
		self,
		content: Any = None,
		contentType: str | None = None,
		contentLength: int | None = None,
		status: int = 200,
		headers: dict[str, str] | None = None,
		message: str | None = None,
	) -> "HTTPResponse":
		return HTTPResponse.Create(
			status=status,
			message=message,
			content=content,
			contentType=contentType,
			contentLength=contentLength,
			headers=headers,
		)

	def __str__(self) -> str:
		return f"Request({self.method} {self.uri} {self.headers})"


# -----------------------------------------------------------------------------
#
# RESPONSE
#
# -----------------------------------------------------------------------------


class HTTPResponse:
	"""An HTTP response."""

	@staticmethod
	def Create(
		content: Any = None,
		contentType: str | None = None,
		contentLength: int | None = None,
		headers: dict[str, str] | None = None,
		status: int = 200,
		message: str | None = None,
		protocol: str = "HTTP/1.1",
	) -> "HTTPResponse":
		"""Factory method to create HTTP response objects."""
		body: THTTPBody
		if content is None:
			body = HTTPBodyBlob()
		elif isinstance(content, str):
			body = HTTPBodyBlob.FromBytes(content.encode(DEFAULT_ENCODING))
		elif isinstance(content, bytes):
			body = HTTPBodyBlob.FromBytes(content)
		elif isinstance(
			content, (HTTPBodyBlob, HTTPBodyFile, HTTPBodyStream, HTTPBodyParts)
		):
			body = content
		elif inspect.isgenerator(content):
			body = HTTPBodyStream(content)
		else:
			raise ValueError(f"Unsupported content {type(content)}:{content}")
		if isinstance(body, (HTTPBodyBlob, HTTPBodyFile, HTTPBodyParts)):
			contentLength = body.length
		res_headers: dict[str, str] = {
			headername(k): v for k, v in (headers or {}).items()
		}
		if contentType is not None:
			res_headers["Content-Type"] = contentType
		if contentLength is not None:
			res_headers["Content-Length"] = str(contentLength)
		return HTTPResponse(
			status=status,
			message=message or HTTP_STATUS.get(status, "Unknown status"),
			headers=HTTPHeaders(
				res_headers,
				contentType=res_headers.get("Content-Type"),
				contentLength=contentLength,
			),
			body=body,
			protocol=protocol,
			# Without a length, the end of the body is the end of the connection
			shouldClose=contentLength is None,
		)

	__slots__ = [
		"protocol",
		"status",
		"message",
		"headers",
		"body",
		"shouldClose",
		"_onClose",
	]

	def __init__(
		self,
		protocol: str,
		status: int,
		message: str | None,
		headers: HTTPHeaders,
		body: THTTPBody | None = None,
		shouldClose: bool = False,
	):
		self.protocol: str = protocol
		self.status: int = status
		self.message: str | None = message
		self.headers: HTTPHeaders = headers
		self.body: THTTPBody | None = body
		self._onClose: Callable[[HTTPResponse], None] | None = None
		self.shouldClose: bool = shouldClose

	def getHeader(self, name: str) -> str | None:
		return self.headers.headers.get(headername(name))

	def setHeader(self, name: str, value: str | int | None) -> "HTTPResponse":
		if value is None:
			self.headers.headers.pop(headername(name), None)
		else:
			self.headers.headers[headername(name)] = str(value)
		return self

	def setHeaders(self, headers: dict[str, str | int | None]) -> "HTTPResponse":
		for k, v in headers.items():
			self.setHeader(k, v)
		return self

	def head(self) -> bytes:
		"""Serializes the head as a payload."""
		message: str = self.message or HTTP_STATUS.get(self.status, "Unknown status")
		lines: list[str] = [f"{self.protocol} {self.status} {message}"]
		lines += [f"{headername(k)}: {v}" for k, v in self.headers.headers.items()]
		lines.append("")
		lines.append("")
		# NOTE: Header values are expected to be ASCII, non-ASCII values are
		# sent as Latin-1 like most servers do.
		return "\r\n".join(lines).encode("latin-1", "replace")

	def onClose(
		self, callback: Callable[["HTTPResponse"], None] | None
	) -> "HTTPResponse":
		self._onClose = callback
		return self

	def close(self) -> None:
		"""Releases the resources held by the response, this is safe to call
		more than once."""
		callback, self._onClose = self._onClose, None
		if callback:
			callback(self)

	def __str__(self) -> str:
		return f"Response({self.protocol} {self.status} {self.message} {self.headers} {self.body})"


# EOF
