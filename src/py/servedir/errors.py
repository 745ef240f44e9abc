from .http.model import HTTPRequestError

# --
# Errors raised while serving a request. Each one carries the status of
# the response it maps to.


class DecodeError(HTTPRequestError):
	"""The request path holds a malformed percent-escape."""

	def __init__(self, cause: str, status: int = 500):
		super().__init__(f"failed to path unescape: {cause}", status)


class NotFoundError(HTTPRequestError):
	def __init__(self) -> None:
		super().__init__("file not found", 404)


class StatError(HTTPRequestError):
	def __init__(self, cause: Exception):
		super().__init__(f"failed to stat file: {cause}", 500)


class OpenError(HTTPRequestError):
	def __init__(self, cause: Exception):
		super().__init__(f"failed to open file: {cause}", 500)


class ForbiddenError(HTTPRequestError):
	"""Symlinks and anything that is not a directory or a regular file."""

	def __init__(self, message: str):
		super().__init__(message, 403)


class ListingError(HTTPRequestError):
	def __init__(self, cause: Exception):
		super().__init__(f"failed to render directory listing: {cause}", 500)


# EOF
