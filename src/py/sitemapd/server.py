import sys
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, BinaryIO, ClassVar, NamedTuple

from .bridge import send
from .config import HOST, PORT
from .http.model import TRANSPORT_ERRORS, HTTPBodyWriter, HTTPClientAbort, HTTPRequest
from .model import Application, Service, mount
from .utils.logging import debug, event, exception, info, warning

# -----------------------------------------------------------------------------
#
# SERVER
#
# -----------------------------------------------------------------------------

# --
# Each connection is handled by its own thread, and requests are processed
# synchronously on it: directory listing, content probing and streaming all
# block the calling thread. There is no state shared across requests.


class ServerOptions(NamedTuple):
	host: str = "0.0.0.0"  # nosec: B104
	port: int = 8000
	# Seconds a kept-alive connection may stay idle
	timeout: float = 30.0
	logRequests: bool = True


OPTIONS: ServerOptions = ServerOptions()


class SocketBodyWriter(HTTPBodyWriter):
	"""Writes to the connection's output stream."""

	def __init__(self, stream: BinaryIO) -> None:
		self.stream: BinaryIO = stream

	def _writeBytes(self, chunk: bytes) -> None:
		self.stream.write(chunk)

	def flush(self) -> None:
		try:
			self.stream.flush()
		except TRANSPORT_ERRORS as e:
			raise HTTPClientAbort(str(e)) from e


class RequestHandler(BaseHTTPRequestHandler):
	"""Bridges the standard library's request handler to an application."""

	protocol_version = "HTTP/1.1"
	app: ClassVar[Application]
	options: ClassVar[ServerOptions]

	def setup(self) -> None:
		self.timeout = self.options.timeout
		super().setup()

	def process(self) -> None:
		request = HTTPRequest.Create(
			self.command,
			self.path,
			dict(self.headers.items()),
			protocol=self.request_version,
		)
		if self.options.logRequests:
			event(request.method, request.path)
		# Request bodies are not read, so the connection can't be reused
		# when there is one.
		if self.headers.get("Content-Length", "0") != "0" or self.headers.get(
			"Transfer-Encoding"
		):
			self.close_connection = True
		res = send(self.app, request, SocketBodyWriter(self.wfile))
		if res is None or res.shouldClose:
			self.close_connection = True

	do_GET = process
	do_HEAD = process
	do_POST = process
	do_PUT = process
	do_PATCH = process
	do_DELETE = process
	do_OPTIONS = process

	def log_message(self, format: str, *args: Any) -> None:
		debug(format % args, Client=self.address_string())

	def log_error(self, format: str, *args: Any) -> None:
		warning(format % args, Client=self.address_string())


class Server(ThreadingHTTPServer):
	daemon_threads = True

	def handle_error(self, request: Any, client_address: Any) -> None:
		e = sys.exc_info()[1]
		if isinstance(e, TRANSPORT_ERRORS):
			debug("Client reset the connection", Client=str(client_address))
		elif e is not None:
			exception(e, f"Connection from {client_address} failed")


def serve(app: Application, options: ServerOptions = OPTIONS) -> Server:
	"""Creates the server for the application, without starting it."""
	handler: type[RequestHandler] = type(
		"BoundRequestHandler", (RequestHandler,), {"app": app, "options": options}
	)
	return Server((options.host, options.port), handler)


def run(
	*services: Service,
	host: str = HOST,
	port: int = PORT,
	timeout: float = OPTIONS.timeout,
	logRequests: bool = OPTIONS.logRequests,
) -> None:
	"""High level function to run the server until interrupted."""
	options = ServerOptions(host=host, port=port, timeout=timeout, logRequests=logRequests)
	server = serve(mount(*services), options)
	info("Sitemap server listening", icon="🚀", Host=options.host, Port=server.server_port)
	try:
		server.serve_forever()
	except KeyboardInterrupt:
		event("ManualShutdown")
	finally:
		server.server_close()
	event("EOK")


# EOF
