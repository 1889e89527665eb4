from enum import Enum
from typing import BinaryIO, Generator, Iterator

from .config import SitemapConfig
from .context import ContextProvider
from .http.headers import (
	CONTENT_DISPOSITION_ATTACHMENT,
	FileHeaders,
	FileMeta,
	HeaderOptions,
	Invalid,
	buildHeaders,
)
from .http.model import HTTPClientAbort, HTTPRequest, HTTPResponse
from .locator import SitemapFile
from .utils.files import contentType
from .utils.logging import debug, logged

# -----------------------------------------------------------------------------
#
# DELIVERY
#
# -----------------------------------------------------------------------------


class DeliveryState(Enum):
	Resolving = 0
	HeadersComputed = 1
	Streaming = 2
	Completed = 3
	Aborted = 4


TRANSITIONS: dict[DeliveryState, tuple[DeliveryState, ...]] = {
	DeliveryState.Resolving: (DeliveryState.HeadersComputed,),
	# Responses without a body complete right after their headers
	DeliveryState.HeadersComputed: (DeliveryState.Streaming, DeliveryState.Completed),
	DeliveryState.Streaming: (DeliveryState.Completed, DeliveryState.Aborted),
}


class Delivery:
	"""Tracks the sending of one file, from its resolution to the last byte.
	States only ever move forward."""

	ATTRIBUTE: str = "sitemapd.delivery"

	def __init__(self, file: SitemapFile):
		self.file: SitemapFile = file
		self.state: DeliveryState = DeliveryState.Resolving
		self.status: int | None = None
		self.sent: int = 0

	def advance(self, state: DeliveryState) -> "Delivery":
		if state not in TRANSITIONS.get(self.state, ()):
			raise RuntimeError(
				f"Delivery of {self.file.name} cannot go from {self.state.name} to {state.name}"
			)
		self.state = state
		return self

	@property
	def isDone(self) -> bool:
		return self.state in (DeliveryState.Completed, DeliveryState.Aborted)


# -----------------------------------------------------------------------------
#
# RESPONDER
#
# -----------------------------------------------------------------------------


class StaticFileResponder:
	"""Sends a resolved file, negotiating its headers (type, length,
	validators, ranges, disposition) and releasing the request's context
	before any byte of the body is sent."""

	def __init__(self, config: SitemapConfig, contexts: ContextProvider | None = None):
		self.config: SitemapConfig = config
		self.contexts: ContextProvider = contexts or ContextProvider()
		self.options: HeaderOptions = HeaderOptions(cacheMaxAge=config.cacheMaxAge)

	def meta(self, file: SitemapFile) -> FileMeta:
		return FileMeta(
			name=file.name,
			length=file.length,
			lastModified=file.lastModified,
			contentType=contentType(file.path),
			# Large files are downloaded, otherwise we let the client decide
			disposition=(
				CONTENT_DISPOSITION_ATTACHMENT
				if self.config.forcesAttachment(file.length)
				else None
			),
		)

	def respond(self, file: SitemapFile, request: HTTPRequest) -> HTTPResponse:
		delivery = Delivery(file)
		request.attributes[Delivery.ATTRIBUTE] = delivery
		meta: FileMeta = self.meta(file)
		negotiated: FileHeaders | Invalid = buildHeaders(meta, request, self.options)
		delivery.advance(DeliveryState.HeadersComputed)
		delivery.status = negotiated.status
		# We have all we need, the context must not stay open while the
		# file is streaming.
		self.contexts.complete(self.contexts.obtain(request))
		if isinstance(negotiated, Invalid):
			logged(debug) and debug(
				"Responding without a body",
				Name=file.name,
				Status=negotiated.status,
				Reason=negotiated.reason,
			)
			delivery.advance(DeliveryState.Completed)
			return request.respondEmpty(
				negotiated.status,
				(
					negotiated.headers
					if negotiated.status == 304
					else negotiated.headers | {"Content-Length": "0"}
				),
			)
		elif request.method == "HEAD":
			delivery.advance(DeliveryState.Completed)
			return request.respondEmpty(negotiated.status, negotiated.headers)
		else:
			f: BinaryIO = open(file.path, "rb")
			return request.respond(
				self.stream(delivery, f, negotiated, meta),
				status=negotiated.status,
				headers=negotiated.headers,
			).onClose(lambda _: f.close())

	def stream(
		self,
		delivery: Delivery,
		f: BinaryIO,
		negotiated: FileHeaders,
		meta: FileMeta,
	) -> Generator[bytes, None, None]:
		"""Yields the body, ending quietly when the client goes away."""
		delivery.advance(DeliveryState.Streaming)
		try:
			with f:
				for chunk in self.chunks(f, negotiated, meta):
					yield chunk
					delivery.sent += len(chunk)
		except HTTPClientAbort as e:
			delivery.advance(DeliveryState.Aborted)
			debug(
				"Client aborted the request before the download was completed, it is probably switching to a Range request",
				Name=meta.name,
				Sent=delivery.sent,
				Reason=str(e),
			)
			return
		delivery.advance(DeliveryState.Completed)

	def chunks(
		self, f: BinaryIO, negotiated: FileHeaders, meta: FileMeta
	) -> Iterator[bytes]:
		if not negotiated.ranges:
			yield from self.read(f, 0, meta.length)
		elif negotiated.boundary is None:
			r = negotiated.ranges[0]
			yield from self.read(f, r.start, r.length)
		else:
			for head, r in negotiated.parts(meta.contentType, meta.length):
				yield head
				yield from self.read(f, r.start, r.length)
			yield negotiated.trailer

	def read(self, f: BinaryIO, start: int, length: int) -> Iterator[bytes]:
		"""Reads `length` bytes from `start`, never more, so that the body
		matches the announced length even if the file grew."""
		f.seek(start)
		remaining: int = length
		while remaining > 0 and (chunk := f.read(min(self.config.bufferSize, remaining))):
			remaining -= len(chunk)
			yield chunk


def respond(
	file: SitemapFile,
	request: HTTPRequest,
	config: SitemapConfig,
	contexts: ContextProvider | None = None,
) -> HTTPResponse:
	return StaticFileResponder(config, contexts).respond(file, request)


# EOF
