from typing import ClassVar, Iterable

from .http.model import HTTPRequest, HTTPResponse
from .routing import Dispatcher, Handler
from .utils.logging import debug

# -----------------------------------------------------------------------------
#
# SERVICE
#
# -----------------------------------------------------------------------------


class Service:
	PREFIX: ClassVar[str] = ""
	NO_HANDLER: ClassVar[list[str]] = [
		"name",
		"app",
		"prefix",
		"_handlers",
		"isMounted",
		"handlers",
	]

	def __init__(self, name: str | None = None, *, prefix: str | None = None) -> None:
		self.name: str = name or self.__class__.__name__
		self.app: Application | None = None
		self.prefix: str = self.PREFIX if prefix is None else prefix
		self._handlers: list[Handler] | None = None

	@property
	def isMounted(self) -> bool:
		return self.app is not None

	@property
	def handlers(self) -> list[Handler]:
		if self._handlers is None:
			self._handlers = list(self.iterHandlers())
		return self._handlers

	def iterHandlers(self) -> Iterable[Handler]:
		for value in (getattr(self, _) for _ in dir(self) if _ not in self.NO_HANDLER):
			handler = Handler.Get(value)
			if handler:
				yield handler

	def __repr__(self) -> str:
		return f"(Service {self.name}{' :mounted' if self.isMounted else ''})"


# -----------------------------------------------------------------------------
#
# APPLICATION
#
# -----------------------------------------------------------------------------


class Application:
	"""Dispatches requests to the handlers of the mounted services."""

	def __init__(self, services: Iterable[Service] = ()) -> None:
		self.dispatcher: Dispatcher = Dispatcher()
		self.services: list[Service] = []
		for service in services:
			self.mount(service)

	def process(self, request: HTTPRequest) -> HTTPResponse:
		route, params = self.dispatcher.match(request.method, request.path)
		if route and route.handler:
			return route.handler(request, params or {})
		elif allowed := self.dispatcher.allowed(request.path):
			return request.notAllowed(", ".join(sorted(allowed)))
		else:
			debug("No route found", Method=request.method, Path=request.path)
			return request.notFound()

	def mount(self, service: Service, prefix: str | None = None) -> Service:
		if service.isMounted:
			raise RuntimeError(f"Cannot mount service, it is already mounted: {service}")
		for handler in service.handlers:
			self.dispatcher.register(handler, service.prefix if prefix is None else prefix)
		service.app = self
		self.services.append(service)
		return service


def mount(*services: Service) -> Application:
	"""Mounts the given services into an application"""
	return Application(services)


# EOF
