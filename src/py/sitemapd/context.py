from contextlib import contextmanager
from enum import Enum
from typing import Callable, Iterator

from .http.model import HTTPRequest
from .utils.logging import debug, exception

# -----------------------------------------------------------------------------
#
# CONTEXT
#
# -----------------------------------------------------------------------------

# --
# A context holds whatever transactional resources (typically a database
# connection) were opened to authenticate or authorize a request. It must be
# released before a response body starts streaming, so that long downloads
# don't hold on to these resources.


class ContextState(Enum):
	Open = 0
	Completed = 1
	Aborted = 2


class Context:
	"""A request-scoped transactional context. Callbacks registered with
	`onComplete` commit and release resources, those registered with
	`onAbort` roll back and release them."""

	def __init__(self) -> None:
		self.state: ContextState = ContextState.Open
		self._onComplete: list[Callable[[], None]] = []
		self._onAbort: list[Callable[[], None]] = []

	@property
	def isOpen(self) -> bool:
		return self.state is ContextState.Open

	def onComplete(self, callback: Callable[[], None]) -> "Context":
		self._onComplete.append(callback)
		return self

	def onAbort(self, callback: Callable[[], None]) -> "Context":
		self._onAbort.append(callback)
		return self

	def complete(self) -> "Context":
		"""Commits and closes the context, this can be called more than once."""
		if self.isOpen:
			self.state = ContextState.Completed
			for callback in self._onComplete:
				callback()
		return self

	def abort(self) -> "Context":
		"""Rolls back and closes the context, unless it is already closed."""
		if self.isOpen:
			self.state = ContextState.Aborted
			for callback in self._onAbort:
				try:
					callback()
				except Exception as e:
					# An abort happens on an error path, the original error
					# is the one that should propagate.
					exception(e, "Context abort callback failed")
		return self


class ContextProvider:
	"""Gives each request its own context, created on first use."""

	ATTRIBUTE: str = "sitemapd.context"

	def __init__(self, factory: Callable[[HTTPRequest], Context] | None = None):
		self.factory: Callable[[HTTPRequest], Context] = factory or (
			lambda request: Context()
		)

	def obtain(self, request: HTTPRequest) -> Context:
		context: Context | None = request.attributes.get(self.ATTRIBUTE)
		if context is None:
			context = self.factory(request)
			request.attributes[self.ATTRIBUTE] = context
		return context

	def complete(self, context: Context) -> Context:
		debug("Completing request context", State=context.state.name)
		return context.complete()

	@contextmanager
	def scoped(self, request: HTTPRequest) -> Iterator[Context]:
		"""Obtains the request's context, guaranteeing that it is closed when
		the block exits, aborted if the block raised."""
		context = self.obtain(request)
		try:
			yield context
		except BaseException:
			context.abort()
			raise
		else:
			self.complete(context)


# EOF
