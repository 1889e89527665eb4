import os
import sys
import time
from contextvars import ContextVar
from enum import Enum
from typing import Any, Callable, NamedTuple, TextIO

TPrimitive = bool | int | float | str | bytes | None | list[Any] | tuple[Any, ...] | dict[str, Any]

# SEE: https://no-color.org/
NO_COLOR: bool = "NO_COLOR" in os.environ
COLOR: bool = "FORCE_COLOR" in os.environ or not NO_COLOR

BOLD: str = "\033[1m" if COLOR else ""
RESET: str = "\033[0m" if COLOR else ""


LogOrigin: ContextVar[str] = ContextVar("LogOrigin", default="sitemapd")


class LogType(Enum):
	Message = 0
	Event = 20


class LogLevel(Enum):
	Debug = 0
	Info = 10
	Warning = 30
	Error = 40
	Exception = 50


LOG_LEVEL_COLOR: dict[LogLevel, int] = {
	LogLevel.Debug: 31,
	LogLevel.Info: 75,
	LogLevel.Warning: 202,
	LogLevel.Error: 160,
	LogLevel.Exception: 124,
}

LOG_LEVELS: dict[str, LogLevel] = {
	"debug": LogLevel.Debug,
	"info": LogLevel.Info,
	"warning": LogLevel.Warning,
	"error": LogLevel.Error,
}


class LogEntry(NamedTuple):
	origin: str
	time: float
	type: LogType = LogType.Message
	level: LogLevel = LogLevel.Info
	message: str | None = None
	name: str | None = None
	value: TPrimitive | None = None
	context: dict[str, TPrimitive] | None = None
	icon: str | None = None


class LogSink:
	"""Where entries go, with the minimum level that gets written. Tests
	swap the stream to capture output."""

	def __init__(self, stream: TextIO | None = None, level: LogLevel | None = None):
		self.stream: TextIO = stream or sys.stderr
		self.level: LogLevel = level or LOG_LEVELS.get(
			os.getenv("SITEMAPD_LOG_LEVEL", "info").lower(), LogLevel.Info
		)
		self.entries: list[LogEntry] | None = None

	def capture(self) -> list[LogEntry]:
		"""Starts keeping a copy of every entry sent, returning the list."""
		self.entries = []
		return self.entries


SINK: LogSink = LogSink()


def color(code: int) -> str:
	return f"\033[0;38;5;{code}m" if COLOR else ""


def formatData(value: Any) -> str:
	if value is None or value == () or value == [] or value == {}:
		return "◌"
	elif isinstance(value, dict):
		return " ".join(f"{BOLD}{k}{RESET}={formatData(v)}" for k, v in value.items())
	elif isinstance(value, list) or isinstance(value, tuple):
		return ",".join(formatData(v) for v in value)
	elif isinstance(value, str):
		return repr(value) if " " in value else value
	elif isinstance(value, bool):
		return "✓" if value else "✗"
	elif isinstance(value, float):
		return f"{value:0.2f}"
	else:
		return str(value)


def send(entry: LogEntry) -> LogEntry:
	if SINK.entries is not None:
		SINK.entries.append(entry)
	if entry.level.value < SINK.level.value:
		return entry
	out: TextIO = SINK.stream
	icon: str = f" {entry.icon}" if entry.icon else ""
	clr: str = color(LOG_LEVEL_COLOR[entry.level])
	if entry.type == LogType.Event:
		out.write(
			f"{clr}{BOLD}[{entry.origin}] {entry.name}{RESET} {formatData(entry.value)} {formatData(entry.context)}{RESET}\n"
		)
	else:
		out.write(
			f"{clr}{BOLD}[{entry.origin}]{RESET}{icon} {entry.message} {formatData(entry.context)}{RESET}\n"
		)
	out.flush()
	return entry


def entry(
	*,
	origin: str | None = None,
	type: LogType = LogType.Message,
	level: LogLevel = LogLevel.Info,
	message: str | None = None,
	name: str | None = None,
	value: TPrimitive | None = None,
	context: dict[str, TPrimitive],
	icon: str | None = None,
) -> LogEntry:
	return LogEntry(
		origin=origin or LogOrigin.get(),
		time=time.time(),
		type=type,
		level=level,
		message=message,
		name=name,
		value=value,
		context=context,
		icon=icon,
	)


def debug(
	message: str,
	*,
	origin: str | None = None,
	icon: str | None = None,
	**context: TPrimitive,
) -> LogEntry:
	return send(
		entry(
			message=message,
			level=LogLevel.Debug,
			origin=origin,
			context=context,
			icon=icon,
		)
	)


def info(
	message: str,
	*,
	origin: str | None = None,
	icon: str | None = None,
	**context: TPrimitive,
) -> LogEntry:
	return send(entry(message=message, origin=origin, context=context, icon=icon))


def warning(
	message: str,
	*,
	origin: str | None = None,
	icon: str | None = None,
	**context: TPrimitive,
) -> LogEntry:
	return send(
		entry(
			message=message,
			level=LogLevel.Warning,
			origin=origin,
			context=context,
			icon=icon,
		)
	)


def error(
	message: str,
	code: int | str | None,
	*,
	origin: str | None = None,
	icon: str | None = None,
	**context: TPrimitive,
) -> LogEntry:
	return send(
		entry(
			message=message,
			value=code,
			level=LogLevel.Error,
			origin=origin,
			context=context,
			icon=icon,
		)
	)


def event(
	event: str,
	value: Any = None,
	*,
	origin: str | None = None,
	**context: TPrimitive,
) -> LogEntry:
	return send(
		entry(
			name=event,
			value=value,
			type=LogType.Event,
			origin=origin,
			context=context,
		)
	)


def exception(
	exception: BaseException,
	message: str | None = None,
) -> BaseException:
	if SINK.entries is not None:
		SINK.entries.append(
			entry(
				message=message or str(exception),
				level=LogLevel.Exception,
				context={"Type": exception.__class__.__name__},
			)
		)
	try:
		stream = SINK.stream
		stream.write(
			f"!!! EXCP {f'{message}: ' if message else ''}[{exception.__class__.__name__}] {exception}\n"
		)
		tb = exception.__traceback__
		while tb:
			code = tb.tb_frame.f_code
			stream.write(
				f"... in {code.co_name:15s} at {tb.tb_lineno:4d} in {code.co_filename}\n",
			)
			tb = tb.tb_next
		stream.flush()
	except Exception:  # nosec: B110
		# Swallow all exceptions so that this function can be called from an
		# exception handler safely.
		pass
	# Returned so that it can be used as `raise exception(e)`
	return exception


def logged(item: Callable[..., LogEntry]) -> bool:
	"""Takes one of the logging functions and tells if its entries would
	be written, so that callers can skip building expensive context."""
	level: LogLevel = {
		debug: LogLevel.Debug,
		info: LogLevel.Info,
		warning: LogLevel.Warning,
		error: LogLevel.Error,
	}.get(item, LogLevel.Info)
	return SINK.entries is not None or level.value >= SINK.level.value


# EOF
