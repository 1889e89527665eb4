from .http.model import HTTPRequest, HTTPResponse, HTTPRequestError  # NOQA: F401
from .config import SitemapConfig  # NOQA: F401
from .context import Context, ContextProvider  # NOQA: F401
from .locator import (  # NOQA: F401
	DirectoryMissing,
	SitemapConflict,
	SitemapError,
	SitemapFile,
	SitemapLocator,
	SitemapNotFound,
	locate,
)
from .responder import Delivery, DeliveryState, StaticFileResponder, respond  # NOQA: F401
from .service import SitemapService  # NOQA: F401
from .server import run  # NOQA: F401

# EOF
