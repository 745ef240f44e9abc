from os import getenv

PORT: int = int(getenv("PORT", 8000))

# Only reachable from the local machine unless told otherwise
HOST: str = getenv("HOST", "127.0.0.1")

LOG_REQUESTS: bool = getenv("SERVEDIR_LOG_REQUESTS", "1") == "1"

# NOTE: A malformed percent-escape in the request path is reported as a
# server error by default. Set to 400 to report it as a client error.
DECODE_ERROR_STATUS: int = int(getenv("SERVEDIR_DECODE_ERROR_STATUS", 500))

# EOF
