from pathlib import Path

import pytest

from conftest import LARGE, SMALL, Recorder, request
from sitemapd.bridge import BufferedBodyWriter, send
from sitemapd.config import SitemapConfig
from sitemapd.context import ContextProvider, ContextState
from sitemapd.http.headers import parseRange
from sitemapd.http.model import HTTPRequest, HTTPResponse
from sitemapd.locator import SitemapFile, locate
from sitemapd.model import mount
from sitemapd.responder import Delivery, DeliveryState, StaticFileResponder
from sitemapd.service import SitemapService
from sitemapd.utils.logging import LogEntry, LogLevel


def deliver(
	config: SitemapConfig,
	file: SitemapFile,
	req: HTTPRequest,
	contexts: ContextProvider | None = None,
) -> tuple[HTTPResponse, bytes]:
	res = StaticFileResponder(config, contexts).respond(file, req)
	writer = BufferedBodyWriter()
	writer.write(res.body)
	return res, bytes(writer.data)


class EventWriter(BufferedBodyWriter):
	"""Records each write along with the context events."""

	def __init__(self, recorder: Recorder) -> None:
		super().__init__()
		self.recorder = recorder

	def _writeBytes(self, chunk: bytes) -> None:
		self.recorder.events.append("write")
		super()._writeBytes(chunk)


def test_context_completes_before_first_write(config: SitemapConfig, recorder: Recorder):
	app = mount(SitemapService(config, contexts=ContextProvider(recorder)))
	req = request("GET", "/sitemaps/sitemap_index.html")
	writer = EventWriter(recorder)
	res = send(app, req, writer)
	assert res is not None and res.status == 200
	assert recorder.events[0] == "complete"
	assert recorder.events.count("complete") == 1
	assert "abort" not in recorder.events
	assert recorder.events.count("write") > 1
	assert bytes(writer.data).endswith(LARGE)
	assert req.attributes[Delivery.ATTRIBUTE].state is DeliveryState.Completed


def test_full_body(config: SitemapConfig, sitemaps: Path):
	file = locate("sitemap0.html", sitemaps)
	req = request("GET", "/sitemaps/sitemap0.html")
	res, body = deliver(config, file, req)
	assert res.status == 200
	assert body == SMALL
	assert res.getHeader("Content-Length") == "500"
	assert res.getHeader("Content-Type") == "text/html"
	assert res.getHeader("Accept-Ranges") == "bytes"
	assert res.getHeader("Content-Disposition") is None
	assert not res.shouldClose
	delivery: Delivery = req.attributes[Delivery.ATTRIBUTE]
	assert delivery.state is DeliveryState.Completed
	assert delivery.status == 200
	assert delivery.sent == len(SMALL)
	assert delivery.isDone


def test_small_buffer_sends_everything(config: SitemapConfig, sitemaps: Path):
	file = locate("sitemap_index.html", sitemaps)
	_, body = deliver(config._replace(bufferSize=7), file, request("GET", "/"))
	assert body == LARGE


def test_large_files_are_attachments(config: SitemapConfig, sitemaps: Path):
	file = locate("sitemap_index.html", sitemaps)
	res, _ = deliver(config, file, request("GET", "/"))
	assert (
		res.getHeader("Content-Disposition")
		== 'attachment; filename="sitemap_index.html"'
	)


@pytest.mark.parametrize("threshold", [-1, -100, len(LARGE)])
def test_attachment_threshold(config: SitemapConfig, sitemaps: Path, threshold: int):
	file = locate("sitemap_index.html", sitemaps)
	res, body = deliver(
		config._replace(dispositionThreshold=threshold), file, request("GET", "/")
	)
	assert res.getHeader("Content-Disposition") is None
	assert body == LARGE


def test_range_resumes_download(config: SitemapConfig, sitemaps: Path):
	file = locate("sitemap_index.html", sitemaps)
	req = request("GET", "/", Range="bytes=1000-")
	res, body = deliver(config, file, req)
	assert res.status == 206
	assert res.getHeader("Content-Range") == "bytes 1000-49999/50000"
	assert res.getHeader("Content-Length") == "49000"
	assert len(body) == 49_000
	assert body == LARGE[1000:]


def test_suffix_range(config: SitemapConfig, sitemaps: Path):
	file = locate("sitemap0.html", sitemaps)
	res, body = deliver(config, file, request("GET", "/", Range="bytes=-7"))
	assert res.status == 206
	assert body == b"</html>"


def test_multiple_ranges(config: SitemapConfig, sitemaps: Path):
	file = locate("sitemap_index.html", sitemaps)
	res, body = deliver(config, file, request("GET", "/", Range="bytes=0-9,100-119"))
	assert res.status == 206
	assert (res.getHeader("Content-Type") or "").startswith("multipart/byteranges; boundary=")
	assert len(body) == int(res.getHeader("Content-Length") or -1)
	boundary = (res.getHeader("Content-Type") or "").split("boundary=")[1]
	assert body.startswith(f"--{boundary}\r\n".encode())
	assert body.endswith(f"\r\n--{boundary}--\r\n".encode())
	assert b"Content-Type: text/html\r\nContent-Range: bytes 0-9/50000\r\n\r\n" + LARGE[0:10] in body
	assert b"Content-Range: bytes 100-119/50000\r\n\r\n" + LARGE[100:120] in body


def test_head_has_headers_only(config: SitemapConfig, sitemaps: Path, recorder: Recorder):
	file = locate("sitemap_index.html", sitemaps)
	req = request("HEAD", "/", Range="bytes=0-9")
	res, body = deliver(config, file, req, ContextProvider(recorder))
	assert res.status == 200
	assert body == b""
	assert res.body is None
	assert res.getHeader("Content-Length") == "50000"
	assert res.getHeader("Content-Disposition") is not None
	assert recorder.events == ["complete"]
	assert req.attributes[Delivery.ATTRIBUTE].state is DeliveryState.Completed


def test_not_modified(config: SitemapConfig, sitemaps: Path, recorder: Recorder):
	file = locate("sitemap0.html", sitemaps)
	first, _ = deliver(config, file, request("GET", "/"))
	etag = first.getHeader("ETag")
	assert etag
	req = request("GET", "/", If_None_Match=etag)
	res, body = deliver(config, file, req, ContextProvider(recorder))
	assert res.status == 304
	assert body == b""
	assert res.getHeader("ETag") == etag
	assert res.getHeader("Cache-Control") == "public, max-age=3600"
	assert res.getHeader("Content-Length") is None
	assert res.getHeader("Content-Type") is None
	assert recorder.events == ["complete"]
	assert req.attributes[Delivery.ATTRIBUTE].state is DeliveryState.Completed


def test_range_not_satisfiable(config: SitemapConfig, sitemaps: Path):
	file = locate("sitemap0.html", sitemaps)
	res, body = deliver(config, file, request("GET", "/", Range="bytes=500-"))
	assert res.status == 416
	assert body == b""
	assert res.getHeader("Content-Range") == "bytes */500"
	assert res.getHeader("Content-Length") == "0"


def test_precondition_failed(config: SitemapConfig, sitemaps: Path):
	file = locate("sitemap0.html", sitemaps)
	res, body = deliver(config, file, request("GET", "/", If_Match='"nope"'))
	assert res.status == 412
	assert body == b""


def test_unknown_extension_is_binary(config: SitemapConfig, sitemaps: Path):
	(sitemaps / "sitemap.zzq").write_bytes(b"\x00\x01")
	(sitemaps / "sitemap.xml").write_bytes(b"<urlset/>")
	res, _ = deliver(config, locate("sitemap.zzq", sitemaps), request("GET", "/"))
	assert res.getHeader("Content-Type") == "application/octet-stream"
	res, _ = deliver(config, locate("SITEMAP.XML", sitemaps), request("GET", "/"))
	assert res.getHeader("Content-Type") == "application/xml"


def test_body_matches_length_at_locate_time(config: SitemapConfig, sitemaps: Path):
	file = locate("sitemap0.html", sitemaps)
	with open(sitemaps / "sitemap0.html", "ab") as f:
		f.write(b"appended later")
	res, body = deliver(config, file, request("GET", "/"))
	assert res.getHeader("Content-Length") == "500"
	assert body == SMALL


def test_client_abort_ends_quietly(
	config: SitemapConfig, recorder: Recorder, logs: list[LogEntry]
):
	app = mount(
		SitemapService(config._replace(bufferSize=4096), contexts=ContextProvider(recorder))
	)
	req = request("GET", "/sitemaps/sitemap_index.html")
	writer = BufferedBodyWriter(limit=30_000)
	res = send(app, req, writer)
	assert res is not None
	assert res.status == 200
	assert len(writer.data) <= 30_000
	assert res.shouldClose
	delivery: Delivery = req.attributes[Delivery.ATTRIBUTE]
	assert delivery.state is DeliveryState.Aborted
	assert 0 < delivery.sent < len(LARGE)
	# The context was released before streaming, it's not rolled back
	assert recorder.events == ["complete"]
	assert recorder.contexts[0].state is ContextState.Completed
	aborted = [_ for _ in logs if _.message and _.message.startswith("Client aborted")]
	assert len(aborted) == 1
	assert aborted[0].level is LogLevel.Debug
	assert aborted[0].context and aborted[0].context["Name"] == "sitemap_index.html"
	assert not [_ for _ in logs if _.level is LogLevel.Exception]


def test_delivery_only_moves_forward(sitemaps: Path):
	delivery = Delivery(locate("sitemap0.html", sitemaps))
	assert delivery.state is DeliveryState.Resolving
	with pytest.raises(RuntimeError):
		delivery.advance(DeliveryState.Streaming)
	delivery.advance(DeliveryState.HeadersComputed).advance(DeliveryState.Completed)
	assert delivery.isDone
	with pytest.raises(RuntimeError):
		delivery.advance(DeliveryState.Aborted)


def test_ranges_are_read_exactly(config: SitemapConfig, sitemaps: Path):
	file = locate("sitemap_index.html", sitemaps)
	for header in ("bytes=0-0", "bytes=49999-", "bytes=4095-4096", "bytes=40959-40961"):
		res, body = deliver(config._replace(bufferSize=4096), file, request("GET", "/", Range=header))
		r = (parseRange(header, len(LARGE)) or [])[0]
		assert res.status == 206
		assert body == LARGE[r.start : r.end + 1]


# EOF
