import secrets
from typing import NamedTuple

# SEE: https://www.rfc-editor.org/rfc/rfc9110#name-range-requests


class RangeNotSatisfiable(ValueError):
	"""The `Range` header is malformed, or none of its ranges overlaps
	the content."""


class ByteRange(NamedTuple):
	"""An inclusive byte range, as in `Content-Range`."""

	start: int
	end: int

	@property
	def length(self) -> int:
		return self.end - self.start + 1

	def contentRange(self, size: int) -> str:
		return f"bytes {self.start}-{self.end}/{size}"


def parseRange(header: str | None, size: int) -> list[ByteRange] | None:
	"""Parses a `Range` header against content of the given size. Returns
	`None` when there is no header, the list of satisfiable ranges otherwise,
	and raises `RangeNotSatisfiable` when the header is invalid or when no
	range overlaps the content."""
	if header is None:
		return None
	if not header.startswith("bytes="):
		raise RangeNotSatisfiable(f"Invalid range unit: {header}")
	ranges: list[ByteRange] = []
	overlaps: bool = False
	for spec in header[len("bytes=") :].split(","):
		spec = spec.strip()
		if not spec:
			continue
		start, sep, end = spec.partition("-")
		start, end = start.strip(), end.strip()
		if not sep or not (start.isdigit() or end.isdigit()):
			raise RangeNotSatisfiable(f"Invalid range: {spec}")
		if not start:
			# Suffix range, the last N bytes
			if not end.isdigit():
				raise RangeNotSatisfiable(f"Invalid range: {spec}")
			count = min(int(end), size)
			if count == 0:
				continue
			ranges.append(ByteRange(size - count, size - 1))
		else:
			if not start.isdigit() or (end and not end.isdigit()):
				raise RangeNotSatisfiable(f"Invalid range: {spec}")
			first = int(start)
			last = int(end) if end else size - 1
			if end and first > last:
				raise RangeNotSatisfiable(f"Invalid range: {spec}")
			if first >= size:
				continue
			ranges.append(ByteRange(first, min(last, size - 1)))
		overlaps = True
	if not overlaps:
		raise RangeNotSatisfiable(f"No satisfiable range in: {header}")
	return ranges


# --
# Several ranges are sent as `multipart/byteranges`, each part framed the
# way MIME multipart does it.


def randomBoundary() -> str:
	return secrets.token_hex(30)


def multipartType(boundary: str) -> str:
	return f"multipart/byteranges; boundary={boundary}"


def partHeader(
	boundary: str, range: ByteRange, size: int, contentType: str, *, first: bool
) -> bytes:
	"""The delimiter and headers that come before the bytes of the range."""
	delimiter = "--" if first else "\r\n--"
	return (
		f"{delimiter}{boundary}\r\n"
		f"Content-Range: {range.contentRange(size)}\r\n"
		f"Content-Type: {contentType}\r\n"
		"\r\n"
	).encode("latin-1")


def partsEnd(boundary: str) -> bytes:
	return f"\r\n--{boundary}--\r\n".encode("latin-1")


def totalLength(ranges: list[ByteRange]) -> int:
	return sum(_.length for _ in ranges)


# EOF
