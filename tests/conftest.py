import sys
from pathlib import Path
from typing import Iterator

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src" / "py"))

from sitemapd.config import SitemapConfig  # NOQA: E402
from sitemapd.context import Context  # NOQA: E402
from sitemapd.http.model import HTTPRequest  # NOQA: E402
from sitemapd.utils import logging  # NOQA: E402

SMALL: bytes = b"<html>" + b"s" * 487 + b"</html>"
LARGE: bytes = bytes(i % 251 for i in range(50_000))


class Recorder:
	"""A context factory that records what happens to the contexts it
	creates, along with anything else tests append to `events`."""

	def __init__(self) -> None:
		self.events: list[str] = []
		self.contexts: list[Context] = []

	def __call__(self, request: HTTPRequest) -> Context:
		context = Context()
		context.onComplete(lambda: self.events.append("complete"))
		context.onAbort(lambda: self.events.append("abort"))
		self.contexts.append(context)
		return context


@pytest.fixture
def sitemaps(tmp_path: Path) -> Path:
	directory = tmp_path / "sitemaps"
	directory.mkdir()
	(directory / "sitemap0.html").write_bytes(SMALL)
	(directory / "sitemap_index.html").write_bytes(LARGE)
	return directory


@pytest.fixture
def config(sitemaps: Path) -> SitemapConfig:
	return SitemapConfig(
		directory=sitemaps, prefix="sitemaps", dispositionThreshold=10_000
	)


@pytest.fixture
def recorder() -> Recorder:
	return Recorder()


@pytest.fixture
def logs() -> Iterator[list[logging.LogEntry]]:
	entries = logging.SINK.capture()
	yield entries
	logging.SINK.entries = None


def request(method: str, uri: str, **headers: str) -> HTTPRequest:
	return HTTPRequest.Create(method, uri, {k.replace("_", "-"): v for k, v in headers.items()})


# EOF
