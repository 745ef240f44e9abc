import mimetypes
import os
import stat
import time
from enum import Enum
from pathlib import Path
from typing import NamedTuple

from ..errors import NotFoundError, StatError

mimetypes.init()

# Overrides for what `mimetypes` gets wrong or does not know
MIME_TYPES: dict[str, str] = dict(
	bz2="application/x-bzip",
	gz="application/x-gzip",
	mjs="text/javascript",
	md="text/markdown",
	wasm="application/wasm",
)

TEXT_DEFAULT: str = "text/plain; charset=utf-8"
BINARY_DEFAULT: str = "application/octet-stream"

KB: int = 1024
MB: int = 1024 * KB
GB: int = 1024 * MB


class EntryKind(Enum):
	"""The only kinds of filesystem entries we know of. Adding one means
	revisiting every `match` on it."""

	Directory = "directory"
	File = "file"
	Symlink = "symlink"
	Other = "other"

	@staticmethod
	def FromMode(mode: int) -> "EntryKind":
		if stat.S_ISDIR(mode):
			return EntryKind.Directory
		elif stat.S_ISREG(mode):
			return EntryKind.File
		elif stat.S_ISLNK(mode):
			return EntryKind.Symlink
		else:
			return EntryKind.Other


def classify(path: Path | str) -> tuple[EntryKind, os.stat_result]:
	"""Stats the path without following symlinks, a symlink is reported as
	such and never as what it points to."""
	try:
		st = os.lstat(path)
	except FileNotFoundError as e:
		raise NotFoundError() from e
	except (OSError, ValueError) as e:
		# A file used as a directory is a failure, not a missing entry.
		# ValueError is for paths with an embedded NUL.
		raise StatError(e) from e
	return EntryKind.FromMode(st.st_mode), st


class DirectoryEntry(NamedTuple):
	"""A row of a directory listing, `size` is only known for regular files."""

	name: str
	kind: EntryKind
	size: int | None
	modified: float

	@staticmethod
	def FromDirEntry(entry: os.DirEntry[str]) -> "DirectoryEntry":
		st = entry.stat(follow_symlinks=False)
		kind = EntryKind.FromMode(st.st_mode)
		return DirectoryEntry(
			name=entry.name,
			kind=kind,
			size=st.st_size if kind is EntryKind.File else None,
			modified=st.st_mtime,
		)

	@property
	def sortKey(self) -> tuple[str, str]:
		return (self.name.lower(), self.name)


def fileSize(size: int) -> str:
	"""Human readable size, in binary units."""
	if size < KB:
		return f"{size} B"
	elif size < MB:
		return f"{size / KB:.2f} KB"
	elif size < GB:
		return f"{size / MB:.2f} MB"
	else:
		return f"{size / GB:.2f} GB"


def fileDate(timestamp: float) -> str:
	"""Formats the timestamp in the server's local time."""
	return time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(timestamp))


def isText(data: bytes) -> bool:
	"""Tells if the given sample is likely to come from a text file."""
	if b"\x00" in data:
		return False
	try:
		data.decode("utf-8")
		return True
	except UnicodeDecodeError as e:
		# The sample may cut a multi-byte sequence at its end
		return e.start >= len(data) - 3 and e.reason == "unexpected end of data"


def contentType(path: Path | str, sample: bytes | None = None) -> str:
	"""Guesses the content type from the given path, falling back to
	sniffing the sample of the content when the extension says nothing."""
	name = str(path)
	ext = name.rsplit(".", 1)[-1].lower() if "." in os.path.basename(name) else ""
	res = MIME_TYPES.get(ext) or mimetypes.guess_type(name)[0]
	if res is None:
		return TEXT_DEFAULT if sample is not None and isText(sample) else BINARY_DEFAULT
	elif res.startswith("text/") and "charset" not in res:
		return f"{res}; charset=utf-8"
	else:
		return res


# EOF
