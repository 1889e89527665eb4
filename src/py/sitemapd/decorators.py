from typing import Any, Callable, ClassVar, TypeVar, cast

T = TypeVar("T")


class Extra:
	"""Defines the attributes used by decorators"""

	ON: ClassVar[str] = "_sitemapd_on"
	ON_PRIORITY: ClassVar[str] = "_sitemapd_on_priority"

	@staticmethod
	def Meta(scope: Any) -> dict[str, Any]:
		"""Returns the dictionary of meta attributes for the given value."""
		if isinstance(scope, type):
			if "__sitemapd__" not in scope.__dict__:
				setattr(scope, "__sitemapd__", {})
			return cast(dict[str, Any], getattr(scope, "__sitemapd__"))
		elif hasattr(scope, "__dict__"):
			return cast(dict[str, Any], scope.__dict__)
		else:
			raise RuntimeError(f"Metadata cannot be attached to object: {scope}")


def on(priority: int = 0, **methods: str | list[str] | tuple[str, ...]) -> Callable[[T], T]:
	"""Marks a service method as handling the HTTP methods given as keyword
	arguments, each mapping to one or more route templates (see `Route`).
	Methods can be joined with an underscore, as in `GET_HEAD`.

	>    @on(GET_HEAD="/{name:segment}")
	>    def retrieve(self, request, name):
	>        return request.respond(...)
	"""

	def decorator(function: T) -> T:
		meta = Extra.Meta(function)
		v = meta.setdefault(Extra.ON, [])
		meta.setdefault(Extra.ON_PRIORITY, priority)
		for http_methods, url in list(methods.items()):
			urls = (url,) if isinstance(url, str) else url
			for http_method in http_methods.upper().split("_"):
				for _ in urls:
					v.append((http_method, _))
		return function

	return decorator


# EOF
