import mimetypes
from pathlib import Path

mimetypes.init()

DEFAULT_CONTENT_TYPE: str = "application/octet-stream"

# Sitemaps are served as plain XML, not as an RSS/Atom flavour, and compressed
# sitemaps keep their gzip type so that clients don't transparently inflate them.
MIME_TYPES: dict[str, str] = dict(
	xml="application/xml",
	gz="application/gzip",
	html="text/html",
	htm="text/html",
	txt="text/plain",
)


def contentType(path: Path | str, default: str = DEFAULT_CONTENT_TYPE) -> str:
	"""Probes the content type of the given path, falling back to `default`.
	This never raises, whatever the path looks like."""
	try:
		name = str(path)
		return (
			res
			if (res := MIME_TYPES.get(name.rsplit(".", 1)[-1].lower()))
			else mimetypes.guess_type(name)[0] or default
		)
	except (TypeError, ValueError):
		return default


# EOF
