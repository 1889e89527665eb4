import re
from typing import Any, Callable, ClassVar, NamedTuple, Pattern
from urllib.parse import unquote

from .decorators import Extra
from .http.model import HTTPRequest, HTTPRequestError, HTTPResponse
from .utils.logging import info

# -----------------------------------------------------------------------------
#
# ROUTE
#
# -----------------------------------------------------------------------------
#
# Routes are paths where template expressions like `{name}` or
# `{name:type}` capture parameters.


class RoutePattern(NamedTuple):
	"""Used in a parameter chunk to extract/match from the given path."""

	expr: str
	extractor: Callable[[str], Any]


class TextChunk(NamedTuple):
	text: str


class ParameterChunk(NamedTuple):
	name: str
	pattern: RoutePattern


TChunk = TextChunk | ParameterChunk


class Route:
	"""A route template, compiled to a regular expression and assigned to
	a handler."""

	RE_TEMPLATE: ClassVar[Pattern[str]] = re.compile(
		r"\{(?P<name>[\w][_\w\d]*)(:(?P<type>[^}]+))?\}"
	)

	PATTERNS: ClassVar[dict[str, RoutePattern]] = {
		"id": RoutePattern(r"[a-zA-Z0-9\-_]+", str),
		"name": RoutePattern(r"\w[\-\w]*", str),
		"string": RoutePattern(r"[^/]+", str),
		"int": RoutePattern(r"\-?\d+", int),
		# Segments are matched on the raw path and decoded afterwards, so
		# that an encoded slash can't span two segments.
		"segment": RoutePattern(r"[^/]+", unquote),
		"any": RoutePattern(r".*", str),
	}

	@classmethod
	def Parse(cls, expression: str) -> list[TChunk]:
		"""Parses routes expressed as strings where patterns are denoted
		as `{name}` or `{name:pattern}`"""
		chunks: list[TChunk] = []
		offset: int = 0
		for match in cls.RE_TEMPLATE.finditer(expression):
			chunks.append(TextChunk(expression[offset : match.start()]))
			name: str = match.group("name")
			pattern: str = (match.group("type") or name).lower()
			if pattern not in cls.PATTERNS:
				raise ValueError(
					f"Route pattern '{pattern}' is not registered, pick one of: {', '.join(sorted(cls.PATTERNS.keys()))}"
				)
			chunks.append(ParameterChunk(name, cls.PATTERNS[pattern]))
			offset = match.end()
		chunks.append(TextChunk(expression[offset:]))
		return chunks

	def __init__(self, text: str, handler: "Handler | None" = None):
		self.text: str = text
		self.chunks: list[TChunk] = self.Parse(text)
		self.params: dict[str, ParameterChunk] = {
			_.name: _ for _ in self.chunks if isinstance(_, ParameterChunk)
		}
		self.handler: Handler | None = handler
		self.regexp: Pattern[str] = re.compile(f"^{self.toRegExp()}$")

	@property
	def priority(self) -> int:
		return self.handler.priority if self.handler else 0

	def toRegExp(self) -> str:
		return "".join(
			re.escape(_.text)
			if isinstance(_, TextChunk)
			else f"(?P<{_.name}>{_.pattern.expr})"
			for _ in self.chunks
		)

	def match(self, path: str) -> dict[str, Any] | None:
		matches = self.regexp.match(path)
		return (
			{k: v.pattern.extractor(matches.group(k)) for k, v in self.params.items()}
			if matches
			else None
		)

	def __repr__(self) -> str:
		return f"(Route \"{self.text}\" ({' '.join(_ for _ in self.params)}))"


# -----------------------------------------------------------------------------
#
# HANDLER
#
# -----------------------------------------------------------------------------


class Handler:
	"""Wraps a function and maps it to paths for HTTP methods, along with
	a priority."""

	@classmethod
	def Get(cls, value: Any) -> "Handler | None":
		return (
			Handler(
				functor=value,
				methods=getattr(value, Extra.ON),
				priority=getattr(value, Extra.ON_PRIORITY, 0),
			)
			if hasattr(value, Extra.ON)
			else None
		)

	def __init__(
		self,
		functor: Callable[..., HTTPResponse],
		methods: list[tuple[str, str]],
		priority: int = 0,
	):
		self.functor = functor
		self.methods: dict[str, list[str]] = {}
		for method, path in methods:
			self.methods.setdefault(method, []).append(path)
		self.priority: int = priority

	def __call__(self, request: HTTPRequest, params: dict[str, Any]) -> HTTPResponse:
		try:
			return self.functor(request, **params)
		except HTTPRequestError as e:
			return request.error(e.status or 500, e.message, e.contentType or "text/plain")

	def __repr__(self) -> str:
		methods = " ".join(
			f'({k} {" ".join(repr(_) for _ in v)})' for k, v in self.methods.items()
		)
		return f"(Handler {self.priority} ({methods}) '{self.functor}')"


# -----------------------------------------------------------------------------
#
# DISPATCHER
#
# -----------------------------------------------------------------------------


class Dispatcher:
	"""Registers handlers that respond to HTTP methods on a given path."""

	def __init__(self) -> None:
		self.routes: dict[str, list[Route]] = {}

	def register(self, handler: Handler, prefix: str | None = None) -> "Dispatcher":
		"""Registers the handlers and their routes, adding the prefix if given."""
		for method, paths in handler.methods.items():
			for path in paths:
				path = f"/{prefix.strip('/')}/{path.lstrip('/')}" if prefix else path
				path = f"/{path}" if not path.startswith("/") else path
				info("Registered route", Method=method, Path=path)
				self.routes.setdefault(method, []).append(Route(path, handler))
		return self

	def match(self, method: str, path: str) -> tuple[Route | None, dict[str, Any] | None]:
		"""Returns the highest priority route matching `method` and `path`,
		along with the extracted parameters."""
		matched: tuple[Route | None, dict[str, Any] | None] = (None, None)
		priority: int = -1
		for route in self.routes.get(method, ()):
			if route.priority <= priority:
				continue
			if (params := route.match(path)) is not None:
				matched = (route, params)
				priority = route.priority
		return matched

	def allowed(self, path: str) -> list[str]:
		"""Lists the methods that have a route for `path`."""
		return [
			method
			for method, routes in self.routes.items()
			if any(_.match(path) is not None for _ in routes)
		]


# EOF
