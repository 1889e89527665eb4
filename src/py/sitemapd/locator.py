from pathlib import Path
from typing import Callable, Iterable, NamedTuple

from .config import SitemapConfig
from .http.model import HTTPRequestError

# -----------------------------------------------------------------------------
#
# ERRORS
#
# -----------------------------------------------------------------------------


class SitemapError(HTTPRequestError):
	"""A sitemap could not be resolved. Clients only ever see a 404, the
	`detail` is meant for the logs."""

	def __init__(self, detail: str, *, name: str, directory: Path):
		super().__init__("Not Found", status=404, contentType="text/plain")
		self.detail: str = detail
		self.name: str = name
		self.directory: Path = directory

	def __str__(self) -> str:
		return self.detail


class DirectoryMissing(SitemapError):
	pass


class SitemapNotFound(SitemapError):
	pass


class SitemapConflict(SitemapError):
	pass


# -----------------------------------------------------------------------------
#
# LOCATOR
#
# -----------------------------------------------------------------------------


class SitemapFile(NamedTuple):
	"""A regular file found in the sitemap directory."""

	name: str
	path: Path
	length: int
	lastModified: float

	@staticmethod
	def FromPath(path: Path) -> "SitemapFile":
		stats = path.stat()
		return SitemapFile(
			name=path.name,
			path=path.absolute(),
			length=stats.st_size,
			lastModified=stats.st_mtime,
		)


TListing = Callable[[Path], Iterable[Path]]


def listdir(directory: Path) -> Iterable[Path]:
	return directory.iterdir()


def isDirectChild(name: str) -> bool:
	return bool(name) and name not in (".", "..") and "/" not in name and "\\" not in name


def locate(name: str, directory: Path, listing: TListing = listdir) -> SitemapFile:
	"""Finds the file named `name` (ignoring case) directly in `directory`.
	When the listing yields more than one case variant, the first one
	listed wins."""
	if not (directory.exists() and directory.is_dir()):
		raise DirectoryMissing(
			f"Sitemap directory in {directory.absolute()} does not exist, either sitemaps have not been generated, or are located elsewhere (config used: SITEMAP_DIR)",
			name=name,
			directory=directory,
		)
	wanted: str | None = name.casefold() if isDirectChild(name) else None
	match: Path | None = (
		next((_ for _ in listing(directory) if _.name.casefold() == wanted), None)
		if wanted
		else None
	)
	if match is None:
		raise SitemapNotFound(
			f"Could not find sitemap file with name {name} in {directory.absolute()}",
			name=name,
			directory=directory,
		)
	elif not match.is_file():
		raise SitemapConflict(
			f"Directory with name {name} in {directory.absolute()} found, but no file",
			name=name,
			directory=directory,
		)
	else:
		return SitemapFile.FromPath(match)


class SitemapLocator:
	"""Resolves sitemap names against the configured directory."""

	def __init__(self, config: SitemapConfig, listing: TListing = listdir):
		self.config: SitemapConfig = config
		self.listing: TListing = listing

	def locate(self, name: str) -> SitemapFile:
		return locate(name, self.config.directory, self.listing)


# EOF
