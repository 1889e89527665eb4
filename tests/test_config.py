from pathlib import Path

import pytest

from sitemapd.__main__ import parse
from sitemapd.config import BUFFER_SIZE, DISPOSITION_THRESHOLD, SitemapConfig


def test_defaults():
	config = SitemapConfig.FromEnv({})
	assert config.directory == Path("sitemaps")
	assert config.prefix == "sitemaps"
	assert config.dispositionThreshold == DISPOSITION_THRESHOLD == 8_388_608
	assert config.cacheMaxAge == 3600
	assert config.bufferSize == BUFFER_SIZE == 40_960


def test_from_env():
	config = SitemapConfig.FromEnv(
		{
			"SITEMAP_DIR": "/data/sitemaps",
			"SITEMAP_PATH": "/maps/",
			"SITEMAP_DISPOSITION_THRESHOLD": "-1",
			"SITEMAP_CACHE_MAX_AGE": "0",
			"SITEMAP_BUFFER_SIZE": "0",
		}
	)
	assert config.directory == Path("/data/sitemaps")
	assert config.prefix == "maps"
	assert config.dispositionThreshold == -1
	assert config.cacheMaxAge == 0
	assert config.bufferSize == 1


def test_invalid_numbers_keep_defaults():
	config = SitemapConfig.FromEnv(
		{"SITEMAP_DISPOSITION_THRESHOLD": "lots", "SITEMAP_CACHE_MAX_AGE": " "}
	)
	assert config.dispositionThreshold == DISPOSITION_THRESHOLD
	assert config.cacheMaxAge == 3600


@pytest.mark.parametrize(
	"threshold,length,expected",
	[
		(100, 100, False),
		(100, 101, True),
		(0, 0, False),
		(0, 1, True),
		(-1, 10**12, False),
		(-100, 0, False),
	],
)
def test_forces_attachment(threshold: int, length: int, expected: bool):
	assert SitemapConfig(dispositionThreshold=threshold).forcesAttachment(length) is expected


def test_command_line_overrides_environment():
	defaults = SitemapConfig.FromEnv({"SITEMAP_DIR": "/env"})
	options = parse(["-d", "/cli", "-t", "-1", "-p", "9000"], defaults)
	assert options.directory == Path("/cli")
	assert options.dispositionThreshold == -1
	assert options.port == 9000
	assert options.prefix == "sitemaps"
	assert parse([], defaults).directory == Path("/env")


# EOF
