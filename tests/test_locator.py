from pathlib import Path

import pytest

from conftest import LARGE, SMALL
from sitemapd.config import SitemapConfig
from sitemapd.locator import (
	DirectoryMissing,
	SitemapConflict,
	SitemapError,
	SitemapLocator,
	SitemapNotFound,
	locate,
)


@pytest.mark.parametrize(
	"name,expected,length",
	[
		("sitemap0.html", "sitemap0.html", len(SMALL)),
		("Sitemap0.HTML", "sitemap0.html", len(SMALL)),
		("SITEMAP_INDEX.html", "sitemap_index.html", len(LARGE)),
	],
)
def test_locate_ignores_case(sitemaps: Path, name: str, expected: str, length: int):
	found = locate(name, sitemaps)
	assert found.name == expected
	assert found.length == length
	assert found.path == (sitemaps / expected).absolute()
	assert found.path.is_absolute()
	assert found.lastModified == (sitemaps / expected).stat().st_mtime


def test_locate_missing_name(sitemaps: Path):
	with pytest.raises(SitemapNotFound) as e:
		locate("missing.html", sitemaps)
	assert e.value.status == 404
	assert e.value.message == "Not Found"
	assert "missing.html" in str(e.value)


def test_locate_directory_is_a_conflict(sitemaps: Path):
	(sitemaps / "nested.xml").mkdir()
	with pytest.raises(SitemapConflict) as e:
		locate("Nested.XML", sitemaps)
	assert isinstance(e.value, SitemapError)
	assert "found, but no file" in e.value.detail


def test_locate_missing_directory_fails_before_listing(tmp_path: Path):
	def listing(directory: Path):
		raise AssertionError("The directory should not be listed")

	with pytest.raises(DirectoryMissing):
		locate("sitemap0.html", tmp_path / "nowhere", listing)
	(tmp_path / "file").write_text("not a directory")
	with pytest.raises(DirectoryMissing):
		locate("sitemap0.html", tmp_path / "file", listing)


def test_locate_is_not_recursive(sitemaps: Path):
	(sitemaps / "sub").mkdir()
	(sitemaps / "sub" / "deep.xml").write_text("<urlset/>")
	with pytest.raises(SitemapNotFound):
		locate("deep.xml", sitemaps)


@pytest.mark.parametrize("name", ["", ".", "..", "sub/deep.xml", "../sitemaps", "a\\b"])
def test_locate_only_matches_direct_children(sitemaps: Path, name: str):
	(sitemaps / "sub").mkdir()
	(sitemaps / "sub" / "deep.xml").write_text("<urlset/>")
	with pytest.raises(SitemapNotFound):
		locate(name, sitemaps)


def test_first_listed_variant_wins(sitemaps: Path):
	upper = sitemaps / "SITEMAP.xml"
	lower = sitemaps / "sitemap.xml"
	upper.write_bytes(b"<upper/>")
	lower.write_bytes(b"<lower-case/>")
	assert locate("sitemap.XML", sitemaps, lambda _: [upper, lower]).path == upper
	assert locate("sitemap.XML", sitemaps, lambda _: [lower, upper]).path == lower


def test_first_listed_directory_wins_over_file(sitemaps: Path):
	(sitemaps / "Data.xml").mkdir()
	(sitemaps / "data.xml").write_bytes(b"<urlset/>")
	listing = [sitemaps / "Data.xml", sitemaps / "data.xml"]
	with pytest.raises(SitemapConflict):
		locate("data.xml", sitemaps, lambda _: listing)
	assert locate("data.xml", sitemaps, lambda _: listing[::-1]).length == 9


def test_locator_uses_configured_directory(sitemaps: Path, tmp_path: Path):
	assert SitemapLocator(SitemapConfig(directory=sitemaps)).locate("SITEMAP0.html").length == 500
	with pytest.raises(DirectoryMissing):
		SitemapLocator(SitemapConfig(directory=tmp_path / "none")).locate("sitemap0.html")


# EOF
