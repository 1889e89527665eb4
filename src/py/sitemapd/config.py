import os
from pathlib import Path
from typing import Mapping, NamedTuple

# Most file systems use block sizes of 4096 or 8192, the buffer is a
# multiple of that.
BUFFER_SIZE: int = 4096 * 10

# Files larger than this are sent as attachments, a negative value disables it
DISPOSITION_THRESHOLD: int = 8_388_608

CACHE_MAX_AGE: int = 3600

PORT: int = int(os.getenv("PORT", 8000))

# If we're starting in a development environment, we want the server to be
# accessible from everywhere
HOST: str = os.getenv("HOST", "0.0.0.0")  # nosec: B104


def asInt(value: str | None, default: int) -> int:
	"""Parses an integer setting, keeping the default when it is unset or
	not a number."""
	if value is None or not value.strip():
		return default
	try:
		return int(value.strip())
	except ValueError:
		return default


class SitemapConfig(NamedTuple):
	"""The settings shared by the locator, the responder and the service. It
	is created once and passed to each of them."""

	directory: Path = Path("sitemaps")
	prefix: str = "sitemaps"
	dispositionThreshold: int = DISPOSITION_THRESHOLD
	cacheMaxAge: int = CACHE_MAX_AGE
	bufferSize: int = BUFFER_SIZE

	@staticmethod
	def FromEnv(environ: Mapping[str, str] | None = None) -> "SitemapConfig":
		env: Mapping[str, str] = os.environ if environ is None else environ
		return SitemapConfig(
			directory=Path(env.get("SITEMAP_DIR") or "sitemaps"),
			prefix=(env.get("SITEMAP_PATH") or "sitemaps").strip("/"),
			dispositionThreshold=asInt(
				env.get("SITEMAP_DISPOSITION_THRESHOLD"), DISPOSITION_THRESHOLD
			),
			cacheMaxAge=asInt(env.get("SITEMAP_CACHE_MAX_AGE"), CACHE_MAX_AGE),
			bufferSize=max(1, asInt(env.get("SITEMAP_BUFFER_SIZE"), BUFFER_SIZE)),
		)

	def forcesAttachment(self, length: int) -> bool:
		"""Tells if a file of the given length must be downloaded rather
		than displayed inline."""
		return self.dispositionThreshold >= 0 and length > self.dispositionThreshold


# EOF
