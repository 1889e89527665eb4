import inspect
from abc import ABC, abstractmethod
from typing import Any, Callable, Generator, NamedTuple, TypeAlias
from urllib.parse import parse_qsl

from ..utils.logging import TPrimitive
from .api import ResponseFactory
from .status import HTTP_STATUS

DEFAULT_ENCODING: str = "utf8"

# -----------------------------------------------------------------------------
#
# HELPERS
#
# -----------------------------------------------------------------------------


def headername(name: str, *, headers: dict[str, str] = {}) -> str:
	"""Normalizes the header name as `Kebab-Case`."""
	if name in headers:
		return headers[name]
	key: str = name.lower()
	if key in headers:
		return headers[key]
	else:
		normalized: str = "-".join(_.capitalize() for _ in name.split("-"))
		headers[key] = normalized
		return normalized


def asWritable(value: str | bytes | bytearray) -> bytes:
	if isinstance(value, bytes):
		return value
	elif isinstance(value, bytearray):
		return bytes(value)
	elif isinstance(value, str):
		return value.encode(DEFAULT_ENCODING)
	else:
		raise ValueError(f"Expected bytes or str, got: {value!r}")


# -----------------------------------------------------------------------------
#
# DATA MODEL
#
# -----------------------------------------------------------------------------


class HTTPResponseLine(NamedTuple):
	"""Represents a response status line"""

	protocol: str
	status: int
	message: str


class HTTPHeaders(NamedTuple):
	"""Wraps HTTP headers, keeping key information for response processing."""

	headers: dict[str, str]
	contentType: str | None = None
	contentLength: int | None = None


# -----------------------------------------------------------------------------
#
# ERRORS
#
# -----------------------------------------------------------------------------


class HTTPRequestError(Exception):
	"""To be raised by handlers to generate an error response, 500 unless
	a status is given."""

	def __init__(
		self,
		message: str,
		status: int | None = None,
		contentType: str | None = None,
		payload: TPrimitive | None = None,
	):
		super().__init__(message)
		self.message: str = message
		self.status: int | None = status
		self.contentType: str | None = contentType
		self.payload: TPrimitive | None = payload


class HTTPClientAbort(ConnectionError):
	"""The client went away while the response was being written."""


# The transport-level errors that mean the peer closed the connection
TRANSPORT_ERRORS: tuple[type[BaseException], ...] = (
	BrokenPipeError,
	ConnectionResetError,
	ConnectionAbortedError,
)

# -----------------------------------------------------------------------------
#
# BODY
#
# -----------------------------------------------------------------------------


class HTTPBodyBlob(NamedTuple):
	"""Represents a whole body as bytes."""

	payload: bytes = b""
	length: int = 0


class HTTPBodyStream(NamedTuple):
	"""An HTTP body that is generated from a stream. A client abort is
	thrown into the generator, which can then end quietly."""

	stream: Generator[str | bytes, Any, Any]


THTTPBody: TypeAlias = HTTPBodyBlob | HTTPBodyStream


class HTTPBodyWriter(ABC):
	"""A generic writer for bodies, returning the number of bytes written."""

	def write(self, body: THTTPBody | bytes | None) -> int:
		"""Writes the given type of body."""
		if body is None:
			return 0
		elif isinstance(body, bytes):
			return self._write(body)
		elif isinstance(body, HTTPBodyBlob):
			return self._write(body.payload)
		elif isinstance(body, HTTPBodyStream):
			return self._writeStream(body.stream)
		else:
			raise ValueError(f"Unsupported body format: {body}")

	def _write(self, chunk: bytes) -> int:
		try:
			self._writeBytes(chunk)
		except TRANSPORT_ERRORS as e:
			raise HTTPClientAbort(str(e) or e.__class__.__name__) from e
		return len(chunk)

	def _writeStream(self, stream: Generator[str | bytes, Any, Any]) -> int:
		written: int = 0
		try:
			chunk = next(stream)
			while True:
				data = asWritable(chunk)
				try:
					self._write(data)
				except HTTPClientAbort as e:
					# The stream decides what an abort means, it is expected
					# to stop there.
					chunk = stream.throw(e)
				else:
					written += len(data)
					chunk = next(stream)
		except StopIteration:
			pass
		finally:
			stream.close()
		return written

	def flush(self) -> None:
		pass

	@abstractmethod
	def _writeBytes(self, chunk: bytes) -> None: ...


# -----------------------------------------------------------------------------
#
# REQUESTS
#
# -----------------------------------------------------------------------------


class HTTPRequest(ResponseFactory["HTTPResponse"]):
	"""Represents an HTTP requests, which also acts as a factory for
	responses."""

	__slots__ = ["protocol", "method", "path", "query", "_headers", "attributes"]

	@staticmethod
	def Create(
		method: str,
		uri: str,
		headers: dict[str, str] | None = None,
		protocol: str = "HTTP/1.1",
	) -> "HTTPRequest":
		"""Creates a request from a raw request URI, splitting the query."""
		path, _, query = uri.partition("?")
		return HTTPRequest(
			method=method.upper(),
			path=path or "/",
			query=dict(parse_qsl(query)) if query else None,
			headers=headers or {},
			protocol=protocol,
		)

	def __init__(
		self,
		method: str,
		path: str,
		query: dict[str, str] | None,
		headers: dict[str, str],
		protocol: str = "HTTP/1.1",
	):
		super().__init__()
		self.method: str = method
		self.path: str = path
		self.query: dict[str, str] | None = query
		self.protocol: str = protocol
		self._headers: dict[str, str] = {headername(k): v for k, v in headers.items()}
		# Request-scoped values, like the transactional context
		self.attributes: dict[str, Any] = {}

	@property
	def headers(self) -> dict[str, str]:
		return self._headers

	def header(self, name: str) -> str | None:
		return self._headers.get(headername(name))

	def respond(
		self,
		content: Any = None,
		contentType: str | None = None,
		contentLength: int | None = None,
		status: int = 200,
		headers: dict[str, str] | None = None,
		message: str | None = None,
	) -> "HTTPResponse":
		return HTTPResponse.Create(
			status=status,
			message=message,
			content=content,
			contentType=contentType,
			contentLength=contentLength,
			protocol=self.protocol,
			headers=headers,
		)

	def __str__(self) -> str:
		return f"Request({self.method} {self.path}{f'?{self.query}' if self.query else ''} {self.headers})"


# -----------------------------------------------------------------------------
#
# RESPONSE
#
# -----------------------------------------------------------------------------


class HTTPResponse:
	"""An HTTP response."""

	@staticmethod
	def Create(
		content: Any = None,
		contentType: str | None = None,
		contentLength: int | None = None,
		headers: dict[str, str] | None = None,
		status: int = 200,
		message: str | None = None,
		protocol: str = "HTTP/1.1",
	) -> "HTTPResponse":
		"""Factory method to create HTTP response objects."""
		payload: bytes | None = None
		updated_headers: dict[str, str] = (
			{headername(k): v for k, v in headers.items()} if headers else {}
		)
		body: THTTPBody | None = None
		if content is None:
			pass
		elif isinstance(content, str):
			payload = content.encode(DEFAULT_ENCODING)
		elif isinstance(content, bytes):
			payload = content
		elif inspect.isgenerator(content):
			body = HTTPBodyStream(content)
		else:
			raise ValueError(f"Unsupported content {type(content)}:{content}")
		if payload is not None:
			contentLength = len(payload)
			body = HTTPBodyBlob(payload, contentLength)
		if contentType is not None:
			updated_headers["Content-Type"] = contentType
		if contentLength is not None:
			updated_headers["Content-Length"] = str(contentLength)
		elif (hcl := updated_headers.get("Content-Length")) is not None:
			contentLength = int(hcl)
		return HTTPResponse(
			status=status,
			message=message or HTTP_STATUS.get(status, "Unknown status"),
			headers=HTTPHeaders(
				updated_headers,
				contentType=updated_headers.get("Content-Type"),
				contentLength=contentLength,
			),
			body=body,
			protocol=protocol,
			# A stream without a length can only be delimited by a close
			shouldClose=isinstance(body, HTTPBodyStream) and contentLength is None,
		)

	__slots__ = [
		"protocol",
		"status",
		"message",
		"headers",
		"body",
		"shouldClose",
		"_onClose",
	]

	def __init__(
		self,
		protocol: str,
		status: int,
		message: str | None,
		headers: HTTPHeaders,
		body: THTTPBody | None = None,
		shouldClose: bool = False,
	):
		self.protocol: str = protocol
		self.status: int = status
		self.message: str | None = message
		self.headers: HTTPHeaders = headers
		self.body: THTTPBody | None = body
		self.shouldClose: bool = shouldClose
		self._onClose: Callable[[HTTPResponse], None] | None = None

	@property
	def line(self) -> HTTPResponseLine:
		return HTTPResponseLine(
			self.protocol, self.status, self.message or HTTP_STATUS[self.status]
		)

	def getHeader(self, name: str) -> str | None:
		return self.headers.headers.get(headername(name))

	def head(self) -> bytes:
		"""Serializes the head as a payload."""
		line = self.line
		lines: list[str] = [f"{line.protocol} {line.status} {line.message}"]
		lines += [f"{headername(k)}: {v}" for k, v in self.headers.headers.items()]
		lines.append("")
		lines.append("")
		# NOTE: Header values are latin-1 per RFC 9110, non-ASCII file names
		# go through the `filename*` parameter.
		return "\r\n".join(lines).encode("latin-1")

	def onClose(
		self, callback: Callable[["HTTPResponse"], None] | None
	) -> "HTTPResponse":
		self._onClose = callback
		return self

	def __str__(self) -> str:
		return f"Response({self.protocol} {self.status} {self.message} {self.headers} {self.body})"


# EOF
