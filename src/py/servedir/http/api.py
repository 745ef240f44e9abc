from abc import ABC, abstractmethod
from typing import Any, Generic, Iterator, TypeVar

from .status import HTTP_STATUS

T = TypeVar("T")

# -----------------------------------------------------------------------------
#
# API
#
# -----------------------------------------------------------------------------

# --
# == HTTP Request Response API
#
# Defines the high level API functions (orthogonal to the underlying model)
# to create responses.

TEXT_PLAIN: str = "text/plain; charset=utf-8"
TEXT_HTML: str = "text/html; charset=utf-8"


class ResponseFactory(ABC, Generic[T]):
	@abstractmethod
	def respond(
		self,
		content: Any = None,
		contentType: str | None = None,
		contentLength: int | None = None,
		status: int = 200,
		headers: dict[str, str] | None = None,
		message: str | None = None,
	) -> T: ...

	def empty(
		self,
		status: int = 200,
		headers: dict[str, str] | None = None,
	) -> T:
		return self.respond(
			content=None,
			contentType=None,
			status=status,
			headers=headers,
		)

	def error(
		self,
		status: int,
		content: str | None = None,
		contentType: str = TEXT_PLAIN,
		headers: dict[str, str] | None = None,
	) -> T:
		"""Plain text error response, the body is the given content followed
		by a newline."""
		message = HTTP_STATUS.get(status, "Server Error")
		base_headers = {"X-Content-Type-Options": "nosniff"}
		return self.respond(
			content=f"{message if content is None else content}\n",
			contentType=contentType,
			status=status,
			message=message,
			headers=base_headers | headers if headers else base_headers,
		)

	def notFound(self, content: str = "Not Found") -> T:
		return self.error(404, content)

	def notAllowed(self, allowed: list[str], content: str = "method not allowed") -> T:
		return self.error(405, content, headers={"Allow": ", ".join(allowed)})

	def fail(self, content: str | None = None, *, status: int = 500) -> T:
		return self.error(status, content)

	def respondHTML(
		self, html: str | bytes | Iterator[str | bytes], status: int = 200
	) -> T:
		return self.respond(content=html, contentType=TEXT_HTML, status=status)


# EOF
