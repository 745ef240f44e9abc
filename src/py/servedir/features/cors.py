from ..decorators import post
from ..http.model import HTTPRequest, HTTPResponse

# SEE: https://developer.mozilla.org/en-US/docs/Web/HTTP/CORS

CORS_METHODS: list[str] = ["GET", "POST", "OPTIONS"]
CORS_HEADERS: list[str] = ["Content-Type", "Authorization"]


@post
def cors(request: HTTPRequest, response: HTTPResponse) -> HTTPResponse:
	"""A post decorator that ensures that the CORS headers are set."""
	return setCORSHeaders(response)


def setCORSHeaders(
	response: HTTPResponse,
	*,
	origin: str = "*",
	methods: list[str] | None = None,
	headers: list[str] | None = None,
) -> HTTPResponse:
	"""Sets the CORS headers on the response. Any origin is allowed by
	default, as the served files are public."""
	response.setHeaders(
		{
			"Access-Control-Allow-Origin": origin,
			"Access-Control-Allow-Methods": ", ".join(methods or CORS_METHODS),
			"Access-Control-Allow-Headers": ", ".join(headers or CORS_HEADERS),
		}
	)
	return response


# EOF
