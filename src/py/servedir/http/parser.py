from typing import Iterator, Literal, TypeAlias

from ..utils.io import LineParser
from .model import (
	HTTPHeaders,
	HTTPProcessingStatus,
	HTTPRequest,
	HTTPRequestLine,
	headername,
)

# What the parser produces while being fed
HTTPAtom: TypeAlias = HTTPRequestLine | HTTPHeaders | HTTPProcessingStatus | HTTPRequest


class MessageParser:
	"""Parses an HTTP request line."""

	__slots__ = ["line", "value"]

	def __init__(self) -> None:
		self.line: LineParser = LineParser()
		self.value: HTTPRequestLine | None = None

	def flush(self) -> HTTPRequestLine | None:
		res = self.value
		self.reset()
		return res

	def reset(self) -> "MessageParser":
		self.line.reset()
		self.value = None
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bool | None, int]:
		line, read = self.line.feed(chunk, start)
		if line is None:
			return None, read
		elif not line:
			# Empty lines before the request line are tolerated (RFC 9112 §2.2)
			return None, read
		else:
			# NOTE: Raises UnicodeDecodeError (a ValueError) on junk
			ln = line.decode("ascii")
			parts = ln.split(" ")
			if len(parts) != 3 or not parts[0] or not parts[2].startswith("HTTP/"):
				raise ValueError(f"Malformed request line: {ln!r}")
			method, uri, protocol = parts
			self.value = HTTPRequestLine(method, uri, uri.partition("?")[0], protocol)
			return True, read

	def __str__(self) -> str:
		return f"MessageParser({self.value})"


class HeadersParser:
	__slots__ = ["headers", "contentType", "contentLength", "line"]

	def __init__(self) -> None:
		self.line: LineParser = LineParser()
		self.headers: dict[str, str] = {}
		self.contentType: str | None = None
		self.contentLength: int | None = None

	def flush(self) -> HTTPHeaders:
		res = HTTPHeaders(self.headers, self.contentType, self.contentLength)
		self.reset()
		return res

	def reset(self) -> "HeadersParser":
		self.line.reset()
		self.headers = {}
		self.contentType = None
		self.contentLength = None
		return self

	def feed(
		self, chunk: bytes, start: int = 0
	) -> tuple[str | Literal[False] | None, int]:
		"""Feeds data from chunk, starting at `start` offset. Returns
		a value and the number of bytes read. When the value is `None`, no
		header has been extracted, when the value is `False` it's the empty
		line ending the headers, otherwise it is the name of the header
		that was added."""
		line, read = self.line.feed(chunk, start)
		if line is None:
			return None, read
		elif not line:
			return False, read
		else:
			# Headers are expected to be in ASCII format, Latin-1 is what
			# most servers accept.
			ln: str = line.decode("latin-1")
			i = ln.find(":")
			if i <= 0:
				raise ValueError(f"Malformed header line: {ln!r}")
			h = ln[:i].lower().strip()
			v = ln[i + 1 :].strip()
			if h == "content-length":
				if not v.isdigit():
					raise ValueError(f"Invalid Content-Length: {v!r}")
				self.contentLength = int(v)
			elif h == "content-type":
				self.contentType = v
			n: str = headername(h)
			self.headers[n] = v
			return n, read

	def __str__(self) -> str:
		return f"HeadersParser({self.headers})"


class BodyLengthParser:
	"""Skips the body of a request with Content-Length set. No request is
	expected to have one, so the bytes are counted and dropped as they come."""

	__slots__ = ["expected", "read"]

	def __init__(self) -> None:
		self.expected: int = 0
		self.read: int = 0

	def flush(self) -> int:
		res = self.read
		self.reset()
		return res

	def reset(self, length: int = 0) -> "BodyLengthParser":
		self.expected = length
		self.read = 0
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bool | None, int]:
		to_read: int = min(len(chunk) - start, self.expected - self.read)
		self.read += to_read
		return (True if self.read >= self.expected else None), to_read


class HTTPParser:
	"""A stateful HTTP request parser. Chunks are fed as they are received
	and requests are yielded as soon as they are complete, so that pipelined
	requests are all produced."""

	def __init__(self) -> None:
		self.message: MessageParser = MessageParser()
		self.headers: HeadersParser = HeadersParser()
		self.bodyLength: BodyLengthParser = BodyLengthParser()
		self.parser: MessageParser | HeadersParser | BodyLengthParser = self.message
		self.requestLine: HTTPRequestLine | None = None
		self.requestHeaders: HTTPHeaders | None = None

	def reset(self) -> "HTTPParser":
		self.parser = self.message.reset()
		self.headers.reset()
		self.bodyLength.reset()
		self.requestLine = None
		self.requestHeaders = None
		return self

	def feed(self, chunk: bytes) -> Iterator[HTTPAtom]:
		size: int = len(chunk)
		offset: int = 0
		while offset < size:
			try:
				value, read = self.parser.feed(chunk, offset)
			except ValueError:
				yield HTTPProcessingStatus.BadFormat
				self.reset()
				return
			offset += read
			if value is None:
				continue
			elif self.parser is self.message:
				self.requestLine = self.message.flush()
				if self.requestLine:
					yield self.requestLine
				self.parser = self.headers
			elif self.parser is self.headers:
				if value is not False:
					# A header was added, we keep going
					continue
				headers = self.headers.flush()
				self.requestHeaders = headers
				yield headers
				# Any request with a length has its body consumed, so that the
				# next request on the connection starts at the right offset.
				length = headers.contentLength or 0
				if length:
					self.parser = self.bodyLength.reset(length)
					yield HTTPProcessingStatus.Body
				else:
					yield from self.complete()
			elif self.parser is self.bodyLength:
				self.bodyLength.flush()
				yield from self.complete()
			else:
				raise RuntimeError(f"Unsupported parser: {self.parser}")

	def complete(self) -> Iterator[HTTPAtom]:
		line = self.requestLine
		headers = self.requestHeaders
		if line is None or headers is None:
			yield HTTPProcessingStatus.BadFormat
		else:
			yield HTTPRequest(
				method=line.method,
				path=line.path,
				headers=headers,
				protocol=line.protocol,
				uri=line.uri,
			)
			yield HTTPProcessingStatus.Complete
		self.reset()


# EOF
