import os
from pathlib import Path
from typing import Iterable, Iterator
from urllib.parse import quote

from ..errors import ListingError
from ..utils.files import DirectoryEntry, EntryKind, fileDate, fileSize
from ..utils.htmpl import H, Node

# --
# The listing page is scraped by some clients, the preamble, the column
# order (Name, Size, Date) and the markup of each kind of row must stay as
# they are.

LISTING_PRELUDE: str = """<head>
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<link rel="icon" href="data:,">
<style>

* {
     font-family: monospace;
}
 table {
     width: 100%;
}
 table {
     border-spacing: 0;
     border-collapse: collapse;
}
 td {
     padding:0px;
     overflow: hidden;
     text-overflow: ellipsis;
     white-space: nowrap;
}
 body {
     background-color: black;
     color: white;
}
 a:hover {
     color: #eeb9da
}
 a {
     color: #ff3d98
}

</style>
</head>
<table cellspacing="0">
<thead>
    <tr><th>Name</th><th>Size</th><th>Date</th></tr>
</thead>
<tbody>"""

LISTING_CLOSE: str = "</tbody></table>"

# Characters that Go's `url.PathEscape` leaves as-is in a path segment
PATH_SEGMENT_SAFE: str = "$&+=:@"


def hrefEscape(name: str) -> str:
	# Names that are not valid UTF-8 come back as their original bytes
	return quote(os.fsencode(name), safe=PATH_SEGMENT_SAFE)


def readEntries(path: Path) -> list[DirectoryEntry]:
	"""Reads all the children of the directory, sorted case-insensitively
	by name."""
	entries: list[DirectoryEntry] = []
	try:
		with os.scandir(path) as children:
			for child in children:
				try:
					entries.append(DirectoryEntry.FromDirEntry(child))
				except FileNotFoundError:
					# Removed since the directory was read
					continue
	except OSError as e:
		raise ListingError(e) from e
	return sorted(entries, key=lambda _: _.sortKey)


def renderRow(entry: DirectoryEntry) -> Node:
	match entry.kind:
		case EntryKind.Directory:
			return H.tr(
				H.td(H.a(f"{entry.name}/", href=f"{hrefEscape(entry.name)}/")),
				H.td(),
				H.td(),
			)
		case EntryKind.File:
			return H.tr(
				H.td(H.a(entry.name, href=hrefEscape(entry.name))),
				H.td(fileSize(entry.size or 0)),
				H.td(fileDate(entry.modified)),
			)
		case EntryKind.Symlink | EntryKind.Other:
			return H.tr(H.td(H.p(entry.name)), H.td(), H.td())


def renderListing(entries: Iterable[DirectoryEntry]) -> Iterator[bytes]:
	"""Yields the listing page fragment by fragment, rows in the order of
	the entries."""
	yield LISTING_PRELUDE.encode("utf-8")
	for entry in entries:
		yield str(renderRow(entry)).encode("utf-8", "replace")
	yield LISTING_CLOSE.encode("utf-8")


# EOF
