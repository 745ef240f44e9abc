import os
import posixpath
import re
from pathlib import Path
from typing import BinaryIO, ClassVar
from urllib.parse import unquote_to_bytes

from ..decorators import on
from ..errors import DecodeError, ForbiddenError, OpenError
from ..features.cache import nostore
from ..features.cors import cors
from ..http.api import TEXT_HTML
from ..http.model import HTTPBodyFile, HTTPBodyParts, HTTPRequest, HTTPResponse
from ..http.ranges import (
	ByteRange,
	RangeNotSatisfiable,
	multipartType,
	parseRange,
	partHeader,
	partsEnd,
	randomBoundary,
	totalLength,
)
from ..model import ServerContext, Service
from ..utils.files import EntryKind, classify, contentType
from .listing import readEntries, renderListing

# How much of a file is looked at to guess its type
SNIFF_SIZE: int = 1024

# A `%` that does not start a two digit hex escape
INVALID_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def unescapePath(path: str, *, status: int = 500) -> str:
	"""Strictly decodes the percent-escapes of the path. Decoded bytes that
	are not valid UTF-8 are kept the way `os.fsdecode` does, so that any
	file name can be addressed."""
	if match := INVALID_ESCAPE.search(path):
		escape = path[match.start() : match.start() + 3]
		raise DecodeError(f'invalid URL escape "{escape}"', status)
	return os.fsdecode(unquote_to_bytes(path))


def resolvePath(context: ServerContext, path: str) -> Path:
	"""Maps the request path to a path within the root directory. The path
	is normalized as an absolute path first, so `..` stops at the root."""
	decoded = unescapePath(path, status=context.decodeErrorStatus)
	relative = posixpath.normpath(f"/{decoded}").lstrip("/")
	return context.root / relative if relative else context.root


class FileService(Service):
	"""A read-only service serving the files of the context's root
	directory. Directories are served as their `index.html` when there is
	one, as a listing otherwise. Symlinks are never followed."""

	INDEX: ClassVar[str] = "index.html"
	ALLOWED: ClassVar[list[str]] = ["GET", "OPTIONS"]

	def __init__(self, context: ServerContext):
		super().__init__()
		self.context: ServerContext = context

	@property
	def root(self) -> Path:
		return self.context.root

	@nostore
	@cors
	@on(OPTIONS="/")
	def preflight(self, request: HTTPRequest) -> HTTPResponse:
		return request.empty()

	@nostore
	@cors
	@on(GET="/")
	def read(self, request: HTTPRequest) -> HTTPResponse:
		local_path = self.resolvePath(request.path)
		kind, _ = classify(local_path)
		match kind:
			case EntryKind.Directory:
				return self.respondDirectory(request, local_path)
			case EntryKind.File:
				return self.respondContent(request, local_path)
			case EntryKind.Symlink:
				raise ForbiddenError("file is a symlink")
			case EntryKind.Other:
				raise ForbiddenError("file isn't a regular file or directory")

	@nostore
	@cors
	@on(ANY="/")
	def unsupported(self, request: HTTPRequest) -> HTTPResponse:
		return request.notAllowed(self.ALLOWED)

	def resolvePath(self, path: str) -> Path:
		return resolvePath(self.context, path)

	def respondDirectory(self, request: HTTPRequest, path: Path) -> HTTPResponse:
		index_path = path / self.INDEX
		try:
			f = open(index_path, "rb")
		except OSError:
			# No usable index, the entries are read before anything is sent
			# so that a failure is still an error response.
			entries = readEntries(path)
			return request.respondHTML(renderListing(entries))
		return self.respondFile(request, f, index_path, contentType=TEXT_HTML)

	def respondContent(self, request: HTTPRequest, path: Path) -> HTTPResponse:
		"""Responds with the file's content, or the slice of it the `Range`
		header asks for. The modification time is not used, so there is no
		`Last-Modified` and never a 304."""
		try:
			f = open(path, "rb")
		except OSError as e:
			raise OpenError(e) from e
		try:
			size = os.fstat(f.fileno()).st_size
			content_type = contentType(path, f.read(SNIFF_SIZE))
			# Without a validator an `If-Range` never matches, so the
			# whole content is sent.
			ranges = (
				None
				if request.header("If-Range") is not None
				else parseRange(request.header("Range"), size)
			)
		except RangeNotSatisfiable:
			f.close()
			return request.error(
				416, "invalid range", headers={"Content-Range": f"bytes */{size}"}
			)
		except Exception:
			f.close()
			raise
		if ranges and totalLength(ranges) > size:
			# Overlapping ranges that add up to more than the content get the
			# whole content instead.
			ranges = None
		if ranges and len(ranges) > 1:
			return self.respondParts(
				request, f, path, contentType=content_type, size=size, ranges=ranges
			)
		return self.respondFile(
			request,
			f,
			path,
			contentType=content_type,
			size=size,
			range=ranges[0] if ranges else None,
		)

	def respondFile(
		self,
		request: HTTPRequest,
		file: BinaryIO,
		path: Path,
		*,
		contentType: str,
		size: int | None = None,
		range: ByteRange | None = None,
	) -> HTTPResponse:
		"""Wraps the open file in a response that owns it, the file is
		closed once the response is closed."""
		try:
			if size is None:
				size = os.fstat(file.fileno()).st_size
		except Exception:
			file.close()
			raise
		headers: dict[str, str] = {"Accept-Ranges": "bytes"}
		if range:
			body = HTTPBodyFile(path, file, range.start, range.length)
			headers["Content-Range"] = range.contentRange(size)
		else:
			body = HTTPBodyFile(path, file, 0, size)
		return request.respond(
			body,
			contentType=contentType,
			status=206 if range else 200,
			headers=headers,
		).onClose(lambda _: file.close())

	def respondParts(
		self,
		request: HTTPRequest,
		file: BinaryIO,
		path: Path,
		*,
		contentType: str,
		size: int,
		ranges: list[ByteRange],
	) -> HTTPResponse:
		"""Sends each range as a part of a `multipart/byteranges` body, with
		its own `Content-Range` and `Content-Type`."""
		boundary = randomBoundary()
		parts: list[bytes | HTTPBodyFile] = []
		for i, r in enumerate(ranges):
			parts.append(partHeader(boundary, r, size, contentType, first=i == 0))
			parts.append(HTTPBodyFile(path, file, r.start, r.length))
		parts.append(partsEnd(boundary))
		length = sum(len(_) if isinstance(_, bytes) else _.length for _ in parts)
		return request.respond(
			HTTPBodyParts(tuple(parts), length),
			contentType=multipartType(boundary),
			status=206,
			headers={"Accept-Ranges": "bytes"},
		).onClose(lambda _: file.close())


# EOF
