from .config import SitemapConfig
from .context import ContextProvider
from .decorators import on
from .http.model import HTTPRequest, HTTPResponse
from .locator import (
	DirectoryMissing,
	SitemapConflict,
	SitemapError,
	SitemapLocator,
	TListing,
	listdir,
)
from .model import Service
from .responder import StaticFileResponder
from .utils.logging import info, warning


class SitemapService(Service):
	"""Serves the generated sitemap files, as in

	```
	GET /sitemaps/sitemap0.html
	```

	Any name that can't be resolved to a file of the sitemap directory is
	a plain 404, whatever the reason."""

	def __init__(
		self,
		config: SitemapConfig | None = None,
		*,
		contexts: ContextProvider | None = None,
		listing: TListing = listdir,
	):
		self.config: SitemapConfig = config or SitemapConfig.FromEnv()
		super().__init__(prefix=self.config.prefix)
		self.contexts: ContextProvider = contexts or ContextProvider()
		self.locator: SitemapLocator = SitemapLocator(self.config, listing)
		self.responder: StaticFileResponder = StaticFileResponder(
			self.config, self.contexts
		)

	@on(GET_HEAD=("/{name:segment}", "/{name:segment}/"))
	def retrieve(self, request: HTTPRequest, name: str) -> HTTPResponse:
		with self.contexts.scoped(request):
			try:
				sitemap = self.locator.locate(name)
			except SitemapError as e:
				self.logFailure(e)
				return request.notFound()
			return self.responder.respond(sitemap, request)

	def logFailure(self, failure: SitemapError) -> None:
		if isinstance(failure, DirectoryMissing):
			warning(
				"Sitemap directory is missing",
				Name=failure.name,
				Detail=failure.detail,
			)
		elif isinstance(failure, SitemapConflict):
			warning(
				"Sitemap name matches a directory",
				Name=failure.name,
				Detail=failure.detail,
			)
		else:
			info("Sitemap not found", Name=failure.name, Detail=failure.detail)


# EOF
