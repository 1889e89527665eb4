import argparse
import sys
from pathlib import Path

from .config import HOST, PORT, SitemapConfig
from .server import run
from .service import SitemapService
from .utils.logging import info


def parse(args: list[str], config: SitemapConfig) -> argparse.Namespace:
	parser = argparse.ArgumentParser(
		prog="sitemapd",
		description="Serves generated sitemap files over HTTP",
		formatter_class=argparse.ArgumentDefaultsHelpFormatter,
	)
	parser.add_argument(
		"-d",
		"--directory",
		action="store",
		dest="directory",
		type=Path,
		help="Directory containing the generated sitemaps (SITEMAP_DIR)",
		default=config.directory,
	)
	parser.add_argument(
		"--prefix",
		action="store",
		dest="prefix",
		help="URL path under which sitemaps are served (SITEMAP_PATH)",
		default=config.prefix,
	)
	parser.add_argument(
		"-t",
		"--disposition-threshold",
		action="store",
		dest="dispositionThreshold",
		type=int,
		help="Files larger than this many bytes are sent as attachments, negative to disable",
		default=config.dispositionThreshold,
	)
	parser.add_argument(
		"--cache-max-age",
		action="store",
		dest="cacheMaxAge",
		type=int,
		help="Cache-Control max-age in seconds, 0 for no-cache",
		default=config.cacheMaxAge,
	)
	parser.add_argument("-H", "--host", action="store", dest="host", default=HOST)
	parser.add_argument(
		"-p", "--port", action="store", dest="port", type=int, default=PORT
	)
	return parser.parse_args(args)


def main(args: list[str] | None = None) -> None:
	defaults = SitemapConfig.FromEnv()
	options = parse(sys.argv[1:] if args is None else args, defaults)
	config = defaults._replace(
		directory=options.directory,
		prefix=options.prefix.strip("/"),
		dispositionThreshold=options.dispositionThreshold,
		cacheMaxAge=options.cacheMaxAge,
	)
	info(
		"Serving sitemaps",
		Directory=str(config.directory.absolute()),
		Prefix=f"/{config.prefix}",
		Threshold=config.dispositionThreshold,
	)
	run(SitemapService(config), host=options.host, port=options.port)


if __name__ == "__main__":
	main()

# EOF
