import os
import sys
import time
from enum import Enum
from typing import Any, NamedTuple, TextIO

from ..config import LOG_LEVEL

# --
# # Logging
#
# Structured logging to stderr. Each logging function takes a message and
# ad-hoc keyword context, builds a `LogEntry` and sends it to the log stream,
# so that a request's diagnostics can be read as `key=value` pairs.

# SEE: https://no-color.org/
NO_COLOR: bool = "NO_COLOR" in os.environ
FORCE_COLOR: bool = "FORCE_COLOR" in os.environ
COLOR: bool = FORCE_COLOR or NO_COLOR is False

ORIGIN: str = "sluice"

ERR: TextIO = sys.stderr


class LogType(Enum):
	Message = 0
	Event = 20


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


def color(code: int, bold: bool = False) -> str:
	return f"\033[{'1' if bold else '0'};38;5;{code}m" if COLOR else ""


BOLD: str = "\033[1m" if COLOR else ""
RESET: str = "\033[0m" if COLOR else ""


def setLogStream(stream: TextIO) -> TextIO:
	"""Redirects the log output, returning the previous stream."""
	global ERR
	previous = ERR
	ERR = stream
	return previous


def setLogLevel(level: LogLevel | str) -> LogLevel:
	global THRESHOLD
	THRESHOLD = level if isinstance(level, LogLevel) else LogLevel[level]
	return THRESHOLD


THRESHOLD: LogLevel = LogLevel.Info
setLogLevel(LOG_LEVEL)


def logged(level: LogLevel) -> bool:
	"""Tells if entries of the given level are currently output. This guards
	against building entries that would be discarded."""
	return level.value >= THRESHOLD.value


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
	if not logged(entry.level):
		return entry
	clr: str = color(LOG_LEVEL_COLOR[entry.level])
	if entry.type == LogType.Event:
		ERR.write(
			f"{clr}{BOLD}[{entry.origin}] {entry.name}{RESET} {formatData(entry.value)} {formatData(entry.context)}{RESET}\n"
		)
	else:
		ERR.write(
			f"{clr}{BOLD}[{entry.origin}]{RESET} {entry.message} {formatData(entry.context)}{RESET}\n"
		)
	ERR.flush()
	return entry


def entry(
	*,
	level: LogLevel = LogLevel.Info,
	type: LogType = LogType.Message,
	message: str | None = None,
	name: str | None = None,
	value: Any = None,
	origin: str | None = None,
	context: dict[str, Any],
) -> LogEntry:
	return LogEntry(
		origin=origin or ORIGIN,
		time=time.time(),
		type=type,
		level=level,
		message=message,
		name=name,
		value=value,
		context=context,
	)


def debug(message: str, *, origin: str | None = None, **context: Any) -> LogEntry:
	return send(
		entry(message=message, level=LogLevel.Debug, origin=origin, context=context)
	)


def info(message: str, *, origin: str | None = None, **context: Any) -> LogEntry:
	return send(entry(message=message, origin=origin, context=context))


def warning(message: str, *, origin: str | None = None, **context: Any) -> LogEntry:
	return send(
		entry(message=message, level=LogLevel.Warning, origin=origin, context=context)
	)


def error(
	message: str,
	code: int | str | None = None,
	*,
	origin: str | None = None,
	**context: Any,
) -> LogEntry:
	return send(
		entry(
			message=message,
			value=code,
			level=LogLevel.Error,
			origin=origin,
			context=context,
		)
	)


def event(
	name: str, value: Any = None, *, origin: str | None = None, **context: Any
) -> LogEntry:
	return send(
		entry(
			name=name, value=value, type=LogType.Event, origin=origin, context=context
		)
	)


def exception(exception: BaseException, message: str | None = None) -> BaseException:
	"""Writes the exception and a compact traceback, returning the exception so
	that it can be used as `raise exception(e)`."""
	if not logged(LogLevel.Exception):
		return exception
	try:
		stream = ERR
		label = f"[{exception.__class__.__name__}] {exception}"
		stream.write(f"!!! EXCP {f'{message}: {label}' if message else label}\n")
		tb = exception.__traceback__
		while tb:
			code = tb.tb_frame.f_code
			stream.write(
				f"... in {code.co_name:15s} at {tb.tb_lineno:4d} in {code.co_filename}\n",
			)
			tb = tb.tb_next
		stream.flush()
	except Exception:  # nosec: B110
		# This is called from exception handlers, where a failing log stream
		# must not mask the exception being reported.
		pass
	return exception


# EOF
