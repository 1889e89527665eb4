import hashlib
import re
import secrets
import time
from email.utils import mktime_tz, parsedate_tz
from typing import NamedTuple, Pattern
from urllib.parse import quote

from .model import HTTPRequest

# -----------------------------------------------------------------------------
#
# HEADER NEGOTIATION
#
# -----------------------------------------------------------------------------

# --
# Computes the headers of a file response given the request's validators,
# following RFC 9110 (sections 13 and 14):
#
# - <https://www.rfc-editor.org/rfc/rfc9110#section-13.2.2> precedence of
#   the preconditions
# - <https://www.rfc-editor.org/rfc/rfc9110#section-14.2> range requests
#
# The result is either a set of headers along with the byte ranges to send,
# or an `Invalid` value when the exchange ends with a status and no body
# (304, 412, 416).

CONTENT_DISPOSITION_ATTACHMENT: str = "attachment"
CONTENT_DISPOSITION_INLINE: str = "inline"

MULTIPART_BYTERANGES: str = "multipart/byteranges"

# Past that many (coalesced) ranges, the `Range` header is ignored
MAX_RANGES: int = 16

DAYS: tuple[str, ...] = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
MONTHS: tuple[str, ...] = (
	"Jan",
	"Feb",
	"Mar",
	"Apr",
	"May",
	"Jun",
	"Jul",
	"Aug",
	"Sep",
	"Oct",
	"Nov",
	"Dec",
)

RE_RANGE_SPEC: Pattern[str] = re.compile(r"^\s*(\d*)\s*-\s*(\d*)\s*$")


def httpdate(timestamp: float) -> str:
	"""Formats a timestamp in the HTTP date format, independently of the
	locale: `Sat, 29 Oct 1994 19:43:31 GMT`"""
	t = time.gmtime(timestamp)
	return f"{DAYS[t.tm_wday]}, {t.tm_mday:02d} {MONTHS[t.tm_mon - 1]} {t.tm_year} {t.tm_hour:02d}:{t.tm_min:02d}:{t.tm_sec:02d} GMT"


def parseHTTPDate(value: str | None) -> int | None:
	"""Parses any of the three HTTP date formats, returning a timestamp
	in seconds, or `None` when the value is not a date."""
	if not value:
		return None
	parsed = parsedate_tz(value.strip())
	if parsed is None:
		return None
	try:
		return mktime_tz(parsed)
	except (OverflowError, ValueError):
		return None


# -----------------------------------------------------------------------------
#
# DATA MODEL
#
# -----------------------------------------------------------------------------


class FileMeta(NamedTuple):
	"""What the negotiation needs to know about the file being sent."""

	name: str
	length: int
	lastModified: float
	contentType: str
	disposition: str | None = None

	@property
	def lastModifiedSeconds(self) -> int:
		# HTTP dates have a one second resolution
		return int(self.lastModified)

	@property
	def etag(self) -> str:
		sig = f"{self.name}:{self.length}:{self.lastModifiedSeconds}".encode("utf8")
		return f'"{hashlib.sha256(sig).hexdigest()[:32]}"'


class HeaderOptions(NamedTuple):
	cacheMaxAge: int = 3600


class ByteRange(NamedTuple):
	"""An inclusive range of bytes."""

	start: int
	end: int

	@property
	def length(self) -> int:
		return self.end - self.start + 1

	def contentRange(self, total: int) -> str:
		return f"bytes {self.start}-{self.end}/{total}"


class FileHeaders(NamedTuple):
	"""A successful negotiation: the status, the headers and what to send.
	An empty `ranges` means the whole file."""

	status: int
	headers: dict[str, str]
	ranges: tuple[ByteRange, ...] = ()
	boundary: str | None = None

	@property
	def contentLength(self) -> int:
		return int(self.headers["Content-Length"])

	@property
	def isValid(self) -> bool:
		return True

	def parts(self, contentType: str, total: int) -> list[tuple[bytes, ByteRange]]:
		"""Returns the multipart head that precedes each range."""
		return [
			(multipartHead(self.boundary or "", i, contentType, r.contentRange(total)), r)
			for i, r in enumerate(self.ranges)
		]

	@property
	def trailer(self) -> bytes:
		return multipartTrailer(self.boundary or "")


class Invalid(NamedTuple):
	"""The negotiation ended with a status and no body. Only the headers the
	status calls for are kept (`ETag` and caching for 304, `Content-Range` for 416)."""

	status: int
	reason: str
	headers: dict[str, str] = {}

	@property
	def isValid(self) -> bool:
		return False


# -----------------------------------------------------------------------------
#
# HELPERS
#
# -----------------------------------------------------------------------------


def multipartHead(boundary: str, index: int, contentType: str, contentRange: str) -> bytes:
	# Each part but the first starts on a new line
	lead: str = "" if index == 0 else "\r\n"
	return (
		f"{lead}--{boundary}\r\n"
		f"Content-Type: {contentType}\r\n"
		f"Content-Range: {contentRange}\r\n\r\n"
	).encode("latin-1")


def multipartTrailer(boundary: str) -> bytes:
	return f"\r\n--{boundary}--\r\n".encode("latin-1")


def contentDisposition(disposition: str, filename: str) -> str:
	"""Returns the `Content-Disposition` value, with an RFC 5987 `filename*`
	parameter when the name is not plain ASCII."""
	fallback = filename.encode("ascii", "replace").decode("ascii")
	fallback = fallback.replace("\\", "\\\\").replace('"', '\\"')
	if filename.isascii():
		return f'{disposition}; filename="{fallback}"'
	else:
		return f"{disposition}; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


def cacheControl(maxAge: int) -> str:
	return f"public, max-age={maxAge}" if maxAge > 0 else "no-cache"


def etagMatches(header: str, etag: str, *, weak: bool) -> bool:
	"""Tells if `etag` is listed in an `If-Match`/`If-None-Match` header,
	using the weak comparison for `If-None-Match` and the strong one
	otherwise."""
	if header.strip() == "*":
		return True
	for candidate in (_.strip() for _ in header.split(",")):
		if candidate.startswith("W/"):
			if weak and candidate[2:] == etag:
				return True
		elif candidate == etag:
			return True
	return False


def parseRange(header: str | None, length: int) -> list[ByteRange] | None:
	"""Parses a `Range` header against a representation of `length` bytes.
	Returns `None` when the header is absent, malformed or not worth
	honouring (the whole file is then sent), and an empty list when none
	of the ranges can be satisfied."""
	if not header:
		return None
	unit, sep, specs = header.partition("=")
	if not sep or unit.strip().lower() != "bytes":
		return None
	ranges: list[ByteRange] = []
	for spec in specs.split(","):
		if not spec.strip():
			continue
		if not (match := RE_RANGE_SPEC.match(spec)):
			return None
		first, last = match.group(1), match.group(2)
		if first:
			start = int(first)
			end = int(last) if last else length - 1
			if last and end < start:
				return None
			if start >= length:
				continue
			ranges.append(ByteRange(start, min(end, length - 1)))
		elif last:
			suffix = int(last)
			if suffix == 0 or length == 0:
				continue
			ranges.append(ByteRange(max(0, length - suffix), length - 1))
		else:
			return None
	if len(ranges) > 1:
		ranges = coalesce(ranges)
	return None if len(ranges) > MAX_RANGES else ranges


def coalesce(ranges: list[ByteRange]) -> list[ByteRange]:
	"""Merges overlapping or adjacent ranges, ordering them by start."""
	res: list[ByteRange] = []
	for r in sorted(ranges):
		if res and r.start <= res[-1].end + 1:
			res[-1] = ByteRange(res[-1].start, max(res[-1].end, r.end))
		else:
			res.append(r)
	return res


# -----------------------------------------------------------------------------
#
# NEGOTIATION
#
# -----------------------------------------------------------------------------


def preconditions(meta: FileMeta, request: HTTPRequest) -> Invalid | None:
	"""Evaluates the conditional headers in the RFC 9110 order."""
	etag: str = meta.etag
	modified: int = meta.lastModifiedSeconds
	is_read: bool = request.method in ("GET", "HEAD")
	if (if_match := request.header("If-Match")) is not None:
		if not etagMatches(if_match, etag, weak=False):
			return Invalid(412, "If-Match does not match")
	elif (since := parseHTTPDate(request.header("If-Unmodified-Since"))) is not None:
		if modified > since:
			return Invalid(412, "Modified since If-Unmodified-Since")
	if (if_none_match := request.header("If-None-Match")) is not None:
		if etagMatches(if_none_match, etag, weak=True):
			return (
				Invalid(304, "If-None-Match matches", {"ETag": etag})
				if is_read
				else Invalid(412, "If-None-Match matches")
			)
	elif is_read and (
		since := parseHTTPDate(request.header("If-Modified-Since"))
	) is not None:
		if modified <= since:
			return Invalid(304, "Not modified since If-Modified-Since", {"ETag": etag})
	return None


def rangeApplies(meta: FileMeta, request: HTTPRequest) -> bool:
	"""A range only applies to `GET`, and when `If-Range` still holds."""
	if request.method != "GET":
		return False
	if_range: str | None = request.header("If-Range")
	if if_range is None:
		return True
	if_range = if_range.strip()
	if if_range.startswith('"') or if_range.startswith("W/"):
		return if_range == meta.etag
	else:
		return parseHTTPDate(if_range) == meta.lastModifiedSeconds


def buildHeaders(
	meta: FileMeta,
	request: HTTPRequest,
	options: HeaderOptions = HeaderOptions(),
) -> FileHeaders | Invalid:
	"""Negotiates the response headers for sending the file described by
	`meta` in response to `request`."""
	if meta.length < 0:
		return Invalid(500, "File has a negative length")
	now: float = time.time()
	caching: dict[str, str] = {
		"Cache-Control": cacheControl(options.cacheMaxAge),
		"Expires": httpdate(now + max(0, options.cacheMaxAge)),
	}
	if (failed := preconditions(meta, request)) is not None:
		# A 304 carries the caching headers a 200 would have had
		return (
			failed._replace(headers=failed.headers | caching)
			if failed.status == 304
			else failed
		)
	headers: dict[str, str] = {
		"Content-Type": meta.contentType,
		"Content-Length": str(meta.length),
		"Last-Modified": httpdate(meta.lastModified),
		"ETag": meta.etag,
		"Accept-Ranges": "bytes",
	} | caching
	if meta.disposition:
		headers["Content-Disposition"] = contentDisposition(
			meta.disposition, meta.name
		)
	ranges: list[ByteRange] | None = (
		parseRange(request.header("Range"), meta.length)
		if rangeApplies(meta, request)
		else None
	)
	if ranges is None:
		return FileHeaders(200, headers)
	elif not ranges:
		return Invalid(
			416, "Range not satisfiable", {"Content-Range": f"bytes */{meta.length}"}
		)
	elif len(ranges) == 1:
		headers["Content-Range"] = ranges[0].contentRange(meta.length)
		headers["Content-Length"] = str(ranges[0].length)
		return FileHeaders(206, headers, (ranges[0],))
	else:
		boundary: str = secrets.token_hex(16)
		res = FileHeaders(206, headers, tuple(ranges), boundary)
		headers["Content-Type"] = f"{MULTIPART_BYTERANGES}; boundary={boundary}"
		headers["Content-Length"] = str(
			sum(len(head) + r.length for head, r in res.parts(meta.contentType, meta.length))
			+ len(res.trailer)
		)
		return res


# EOF
