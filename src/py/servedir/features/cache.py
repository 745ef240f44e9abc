from ..decorators import post
from ..http.model import HTTPRequest, HTTPResponse


@post
def nostore(request: HTTPRequest, response: HTTPResponse) -> HTTPResponse:
	"""A post decorator that disables caching of the response, files may
	change at any time."""
	return response.setHeader("Cache-Control", "no-store")


# EOF
