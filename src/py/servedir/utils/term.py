import os
from typing import ClassVar

# SEE: https://no-color.org/
NO_COLOR: bool = "NO_COLOR" in os.environ
FORCE_COLOR: bool = "FORCE_COLOR" in os.environ


def hasColor(stream: object) -> bool:
	"""Tells if ANSI colours should be written to the given stream."""
	if FORCE_COLOR:
		return True
	elif NO_COLOR:
		return False
	else:
		isatty = getattr(stream, "isatty", None)
		return bool(isatty and isatty())


class Term:
	"""ANSI sequences, resolved once for the given stream."""

	BOLD: ClassVar[str] = "\033[1m"
	RESET: ClassVar[str] = "\033[0m"

	def __init__(self, color: bool):
		self.color: bool = color

	@property
	def bold(self) -> str:
		return self.BOLD if self.color else ""

	@property
	def reset(self) -> str:
		return self.RESET if self.color else ""

	def fg(self, color: int) -> str:
		return f"\033[0;38;5;{color}m" if self.color else ""


# EOF
