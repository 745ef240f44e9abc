import asyncio
import ssl
import threading
from dataclasses import dataclass, field
from signal import SIGINT, SIGTERM
from typing import Any, NamedTuple

from .config import HOST, LOG_REQUESTS, PORT
from .features.cors import setCORSHeaders
from .http.api import TEXT_PLAIN
from .http.model import HTTPBodyWriter, HTTPProcessingStatus, HTTPRequest, HTTPResponse
from .http.parser import HTTPParser
from .model import Application, Service, mount
from .utils.logging import debug, event, exception, info, logged, warning


@dataclass(slots=True)
class ServerState:
	isRunning: bool = True
	# The port actually bound, which differs from the options when they ask for 0
	port: int | None = None
	connections: set[asyncio.Task[None]] = field(default_factory=set)

	def stop(self) -> None:
		info("Server stopping…")
		self.isRunning = False

	def onException(
		self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]
	) -> None:
		e = context.get("exception")
		if e:
			exception(e)
		else:
			warning("Event loop error", Message=context.get("message"))


class ServerOptions(NamedTuple):
	host: str = HOST
	port: int = PORT
	backlog: int = 1_000
	# How often the server checks whether it should stop
	polling: float = 1.0
	readsize: int = 64_000
	# How long an idle keep-alive connection is kept open
	keepalive: float = 30.0
	logRequests: bool = LOG_REQUESTS
	tls: ssl.SSLContext | None = None
	stopSignals: bool = True


OPTIONS: ServerOptions = ServerOptions()


def badRequest() -> HTTPResponse:
	"""The response to a request that can't be parsed, after which the
	connection is closed."""
	res = HTTPResponse.Create(
		"bad request\n",
		contentType=TEXT_PLAIN,
		status=400,
		headers={
			"X-Content-Type-Options": "nosniff",
			"Cache-Control": "no-store",
			"Connection": "close",
		},
	)
	return setCORSHeaders(res)


def tlsContext(certFile: str, keyFile: str) -> ssl.SSLContext:
	"""Creates the TLS context from the certificate and key files, raising
	an `OSError` or `ssl.SSLError` when they can't be loaded."""
	context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
	context.load_cert_chain(certFile, keyFile)
	return context


class StreamBodyWriter(HTTPBodyWriter):
	"""Specialized body writer to work with asyncio streams."""

	__slots__ = ["stream"]

	def __init__(self, stream: asyncio.StreamWriter, chunkSize: int = 64_000) -> None:
		super().__init__(chunkSize)
		self.stream: asyncio.StreamWriter = stream

	async def _writeBytes(self, chunk: bytes) -> bool:
		if chunk:
			self.stream.write(chunk)
			await self.stream.drain()
		return True


def logRequest(request: HTTPRequest) -> None:
	event(
		request.method,
		request.uri,
		Protocol=request.protocol,
		Host=request.header("Host"),
		Remote=request.peer,
		Agent=request.header("User-Agent"),
	)


class AIOStreamServer:
	"""AsyncIO backend using streams, with one task per connection. Streams
	are what allows for TLS."""

	@classmethod
	async def OnConnection(
		cls,
		app: Application,
		reader: asyncio.StreamReader,
		writer: asyncio.StreamWriter,
		*,
		options: ServerOptions,
	) -> None:
		"""Processes the requests of a connection until the client or a
		response asks for it to be closed."""
		peername = writer.get_extra_info("peername")
		peer: str | None = (
			f"{peername[0]}:{peername[1]}"
			if isinstance(peername, tuple) and len(peername) >= 2
			else None
		)
		parser = HTTPParser()
		out = StreamBodyWriter(writer, options.readsize)
		keep_alive: bool = True
		req_count: int = 0
		try:
			while keep_alive:
				try:
					data = await asyncio.wait_for(
						reader.read(options.readsize), timeout=options.keepalive
					)
				except asyncio.TimeoutError:
					logged(debug) and debug("Client idle", Remote=peer, Count=req_count)
					break
				if not data:
					# A no-data means a close
					break
				# NOTE: With HTTP pipelining, there may be more than one
				# request in the chunk.
				for atom in parser.feed(data):
					if atom is HTTPProcessingStatus.BadFormat:
						warning("Malformed request", Remote=peer)
						res = badRequest()
						await out.write(res.head())
						await out.write(res.body)
						keep_alive = False
						break
					elif isinstance(atom, HTTPRequest):
						req_count += 1
						atom.peer = peer
						if options.logRequests:
							logRequest(atom)
						keep_alive = atom.keepAlive
						res = await cls.SendResponse(atom, app, out, keepAlive=keep_alive)
						if res.shouldClose:
							keep_alive = False
						if not keep_alive:
							break
		except (ConnectionError, ssl.SSLError) as e:
			# Client did an early close, or failed the handshake
			debug("Connection lost", Remote=peer, Error=str(e))
		except Exception as e:
			exception(e)
		finally:
			writer.close()
			try:
				await writer.wait_closed()
			except (ConnectionError, ssl.SSLError) as e:
				debug("Connection close failed", Remote=peer, Error=str(e))

	@staticmethod
	async def SendResponse(
		request: HTTPRequest,
		app: Application,
		out: HTTPBodyWriter,
		*,
		keepAlive: bool = True,
	) -> HTTPResponse:
		"""Processes the request within the application and sends the
		response with the given writer. The response is always closed, even
		when the client went away while it was sent."""
		res: HTTPResponse = app.process(request)
		try:
			if not keepAlive or res.shouldClose:
				res.setHeader("Connection", "close")
			await out.write(res.head())
			if not await out.write(res.body):
				# Fewer bytes than announced were sent, the client can only
				# tell where the body ends if the connection is closed.
				warning("Response body cut short", URI=request.uri)
				res.shouldClose = True
		finally:
			res.close()
		return res

	@classmethod
	async def Serve(
		cls,
		app: Application,
		options: ServerOptions = OPTIONS,
		state: ServerState | None = None,
	) -> None:
		"""Main server coroutine, it returns once the state is stopped."""
		state = state or ServerState()
		loop = asyncio.get_running_loop()
		# Signal handlers can only be registered from the main thread
		if options.stopSignals and threading.current_thread() is threading.main_thread():
			loop.add_signal_handler(SIGINT, state.stop)
			loop.add_signal_handler(SIGTERM, state.stop)
		loop.set_exception_handler(state.onException)

		async def onConnection(
			reader: asyncio.StreamReader, writer: asyncio.StreamWriter
		) -> None:
			task = asyncio.current_task()
			if task:
				state.connections.add(task)
				task.add_done_callback(state.connections.discard)
			await cls.OnConnection(app, reader, writer, options=options)

		server = await asyncio.start_server(
			onConnection,
			options.host,
			options.port,
			ssl=options.tls,
			backlog=options.backlog,
			reuse_address=True,
		)
		state.port = (
			server.sockets[0].getsockname()[1] if server.sockets else options.port
		)
		info(
			"Server listening",
			icon="🚀",
			Host=options.host,
			Port=state.port,
			TLS=options.tls is not None,
		)
		try:
			while state.isRunning:
				await asyncio.sleep(options.polling)
		finally:
			server.close()
			for task in list(state.connections):
				task.cancel()
			await asyncio.gather(*state.connections, return_exceptions=True)
			await server.wait_closed()


def run(
	*services: Application | Service,
	host: str = OPTIONS.host,
	port: int = OPTIONS.port,
	tls: ssl.SSLContext | None = None,
	logRequests: bool = OPTIONS.logRequests,
	keepalive: float = OPTIONS.keepalive,
) -> None:
	"""High level function to run the server until it is interrupted."""
	options = ServerOptions(
		host=host,
		port=port,
		tls=tls,
		logRequests=logRequests,
		keepalive=keepalive,
	)
	apps = [_ for _ in services if isinstance(_, Application)]
	app = apps[0] if apps else mount(*(_ for _ in services if isinstance(_, Service)))
	try:
		asyncio.run(AIOStreamServer.Serve(app, options))
	except KeyboardInterrupt:
		event("ManualShutdown")
	event("EOK")


# EOF
