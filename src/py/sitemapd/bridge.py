from typing import NamedTuple

from .http.model import (
	HTTPBodyStream,
	HTTPBodyWriter,
	HTTPClientAbort,
	HTTPRequest,
	HTTPResponse,
)
from .model import Application, Service, mount
from .utils.logging import debug, exception, warning

SERVER_ERROR: bytes = (
	b"HTTP/1.1 500 Internal Server Error\r\n"
	b"Content-Type: text/plain\r\n"
	b"Content-Length: 21\r\n"
	b"Connection: close\r\n"
	b"\r\n"
	b"Internal Server Error"
)


def send(app: Application, request: HTTPRequest, writer: HTTPBodyWriter) -> HTTPResponse | None:
	"""Processes the request within the application and sends the response
	using the given writer. Returns the response when one was produced,
	with `shouldClose` set when the connection can't be reused."""
	res: HTTPResponse | None = None
	sent: bool = False
	done: bool = False
	try:
		res = app.process(request)
		writer.write(res.head())
		sent = True
		written = writer.write(res.body)
		writer.flush()
		# A stream that ended early leaves the client expecting more bytes
		done = not (
			isinstance(res.body, HTTPBodyStream) and written != res.headers.contentLength
		)
	except HTTPClientAbort as e:
		# There's no one left to send an error to
		debug("Client closed the connection early", Path=request.path, Reason=str(e))
		sent = True
	except Exception as e:
		exception(e, f"Failed to process {request.method} {request.path}")
	if res:
		# Whatever follows a partial response would be read as its body
		if not done:
			res.shouldClose = True
		if res._onClose:
			try:
				res._onClose(res)
			except Exception as e:
				exception(e)
	if not sent:
		warning("Server did not send a response", Method=request.method, Path=request.path)
		try:
			writer.write(SERVER_ERROR)
			writer.flush()
		except HTTPClientAbort:
			pass
		return None
	return res


# -----------------------------------------------------------------------------
#
# IN-PROCESS BRIDGE
#
# -----------------------------------------------------------------------------


class BufferedBodyWriter(HTTPBodyWriter):
	"""Collects what is written, optionally failing like a closed socket
	once `limit` bytes have been written."""

	def __init__(self, limit: int | None = None) -> None:
		self.data: bytearray = bytearray()
		self.limit: int | None = limit

	def _writeBytes(self, chunk: bytes) -> None:
		if self.limit is not None and len(self.data) + len(chunk) > self.limit:
			raise BrokenPipeError("Client disconnected")
		self.data += chunk


class BridgeResponse(NamedTuple):
	"""What a client would have received: the response and the raw bytes,
	head included."""

	response: HTTPResponse | None
	raw: bytes

	@property
	def status(self) -> int:
		return self.response.status if self.response else 500

	@property
	def body(self) -> bytes:
		return self.raw.split(b"\r\n\r\n", 1)[1] if b"\r\n\r\n" in self.raw else b""

	def header(self, name: str) -> str | None:
		return self.response.getHeader(name) if self.response else None


class Bridge:
	"""Runs requests through an application without a network, which is
	how the services are embedded and tested."""

	def __init__(self, *services: Service | Application):
		apps = [_ for _ in services if isinstance(_, Application)]
		self.application: Application = (
			apps[0]
			if apps
			else mount(*(_ for _ in services if isinstance(_, Service)))
		)

	def request(
		self,
		method: str,
		uri: str,
		headers: dict[str, str] | None = None,
		*,
		abortAfter: int | None = None,
	) -> BridgeResponse:
		request = HTTPRequest.Create(method, uri, headers)
		writer = BufferedBodyWriter(abortAfter)
		res = send(self.application, request, writer)
		return BridgeResponse(res, bytes(writer.data))

	def get(self, uri: str, headers: dict[str, str] | None = None) -> BridgeResponse:
		return self.request("GET", uri, headers)


# EOF
