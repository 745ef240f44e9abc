import sys
import time
from contextvars import ContextVar
from enum import Enum
from typing import Any, Callable, NamedTuple, TextIO

from .term import Term, hasColor

LogOrigin: ContextVar[str] = ContextVar("LogOrigin", default="servedir")


class LogType(Enum):
	Message = 0  # A general information message
	Event = 20  # An event, like an incoming request


class LogLevel(Enum):
	Debug = 0
	Info = 10
	Warning = 30
	Error = 40  # A managed error
	Exception = 50  # An un-managed error


LOG_LEVEL_COLOR: dict[LogLevel, int] = {
	LogLevel.Debug: 31,
	LogLevel.Info: 75,
	LogLevel.Warning: 202,
	LogLevel.Error: 160,
	LogLevel.Exception: 124,
}


class LogEntry(NamedTuple):
	origin: str
	time: float
	type: LogType = LogType.Message
	level: LogLevel = LogLevel.Info
	message: str | None = None
	name: str | None = None
	value: Any = None
	context: dict[str, Any] | None = None
	icon: str | None = None


class LogSink:
	"""Where entries end up. There is one sink per process, `None` as the
	threshold means logging is disabled altogether."""

	__slots__ = ["stream", "threshold", "term"]

	def __init__(self, stream: TextIO, threshold: LogLevel | None = LogLevel.Info):
		self.stream: TextIO = stream
		self.threshold: LogLevel | None = threshold
		self.term: Term = Term(hasColor(stream))

	def accepts(self, level: LogLevel) -> bool:
		return self.threshold is not None and level.value >= self.threshold.value


SINK: LogSink = LogSink(sys.stderr)


def setLevel(level: LogLevel | None) -> LogLevel | None:
	"""Sets the minimum level of the entries that are written, returning
	the previous one."""
	previous = SINK.threshold
	SINK.threshold = level
	return previous


def setStream(stream: TextIO) -> TextIO:
	previous = SINK.stream
	SINK.stream = stream
	SINK.term = Term(hasColor(stream))
	return previous


def disable() -> None:
	"""Disables all logging, this is what the quiet mode does."""
	setLevel(None)


def formatData(value: Any) -> str:
	if value is None or value == () or value == [] or value == {}:
		return "◌"
	elif isinstance(value, dict):
		t = SINK.term
		return " ".join(f"{t.bold}{k}{t.reset}={formatData(v)}" for k, v in value.items())
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
	if not SINK.accepts(entry.level):
		return entry
	t = SINK.term
	icon: str = f" {entry.icon}" if entry.icon else ""
	clr: str = t.fg(LOG_LEVEL_COLOR[entry.level])
	if entry.type == LogType.Event:
		line = f"{clr}{t.bold}[{entry.origin}] {entry.name}{t.reset} {formatData(entry.value)} {formatData(entry.context)}{t.reset}\n"
	else:
		line = f"{clr}{t.bold}[{entry.origin}]{t.reset}{icon} {entry.message} {formatData(entry.context)}{t.reset}\n"
	SINK.stream.write(line)
	SINK.stream.flush()
	return entry


def entry(
	*,
	origin: str | None = None,
	type: LogType = LogType.Message,
	level: LogLevel = LogLevel.Info,
	message: str | None = None,
	name: str | None = None,
	value: Any = None,
	context: dict[str, Any],
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
	message: str, *, origin: str | None = None, icon: str | None = None, **context: Any
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
	message: str, *, origin: str | None = None, icon: str | None = None, **context: Any
) -> LogEntry:
	return send(entry(message=message, origin=origin, context=context, icon=icon))


def warning(
	message: str, *, origin: str | None = None, icon: str | None = None, **context: Any
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
	**context: Any,
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
	**context: Any,
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
	if not SINK.accepts(LogLevel.Exception):
		return exception
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
	# Returns the exception so that this can be used as `raise exception(e)`
	return exception


LEVELS: dict[Callable[..., Any], LogLevel] = {
	debug: LogLevel.Debug,
	info: LogLevel.Info,
	event: LogLevel.Info,
	warning: LogLevel.Warning,
	error: LogLevel.Error,
	exception: LogLevel.Exception,
}


def logged(item: Callable[..., Any]) -> bool:
	"""Takes one of the logging function, and tells if it is currently
	enabled. This is used to guard against running the whole entry
	building when not necessary."""
	return SINK.accepts(LEVELS.get(item, LogLevel.Info))


# EOF
