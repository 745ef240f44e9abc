import argparse
import socket
import ssl
import sys
from typing import NoReturn

from . import __version__
from .config import HOST, LOG_REQUESTS, PORT
from .model import ServerContext
from .server import run, tlsContext
from .services.files import FileService
from .utils.logging import disable, info


def die(message: str) -> NoReturn:
	sys.stderr.write(f"{message}\n")
	sys.exit(1)


def parse(args: list[str] | None = None) -> argparse.Namespace:
	parser = argparse.ArgumentParser(
		prog="servedir",
		description="Serves a directory over HTTP(S), read-only.",
	)
	# NOTE: Single dash long options are kept for existing scripts
	parser.add_argument(
		"-q", "--quiet", action="store_true", help="quiet; disable all logging"
	)
	parser.add_argument(
		"-port", "--port", type=int, default=PORT, help="port to listen on"
	)
	parser.add_argument(
		"-bind", "--bind", default=HOST, help="listener socket's bind address"
	)
	parser.add_argument("-cert", "--cert", help="path to SSL/TLS certificate file")
	parser.add_argument("-key", "--key", help="path to SSL/TLS key file")
	parser.add_argument(
		"-V", "--version", action="version", version=f"%(prog)s {__version__}"
	)
	parser.add_argument(
		"directory", nargs="?", default=".", help="directory to serve"
	)
	return parser.parse_args(args)


def main(args: list[str] | None = None) -> None:
	options = parse(args)
	if options.quiet:
		disable()
	listen_addr = f"{options.bind}:{options.port}"
	try:
		socket.getaddrinfo(options.bind, options.port, type=socket.SOCK_STREAM)
	except (socket.gaierror, UnicodeError):
		die(f"Could not resolve the address to listen to: {listen_addr}")
	try:
		context = ServerContext.FromPath(options.directory)
	except OSError as e:
		die(str(e))
	tls: ssl.SSLContext | None = None
	if options.cert and options.key:
		try:
			tls = tlsContext(options.cert, options.key)
		except (OSError, ssl.SSLError) as e:
			die(f"Could not load the TLS certificate and key: {e}")
	info(
		f"Serving {options.directory} over HTTP{'S' if tls else ''} on {listen_addr}"
	)
	if tls:
		info("Using SSL/TLS", Certificate=options.cert, Key=options.key)
	try:
		run(
			FileService(context),
			host=options.bind,
			port=options.port,
			tls=tls,
			logRequests=LOG_REQUESTS and not options.quiet,
		)
	except OSError as e:
		die(str(e))


if __name__ == "__main__":
	main()

# EOF
