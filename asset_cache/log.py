
import sys
import typing as t

from loguru import logger

if t.TYPE_CHECKING:
	from loguru import Record


_STDERR_FMT = (
	"<green>{time:MMM DD HH:mm:ss.SSS}</green> | "
	"<cyan>{extra[elapsed_secs_total]:0>6}.{extra[elapsed_millisecs_total]:0>3}</cyan> | "
	"<level>{level:<8}</level> | "
	"<cyan>{name}</cyan>:<cyan>{function}</cyan>@<cyan>{line}</cyan> - "
	"<level>{message}</level>"
)


def _elapsed_patcher(record: "Record") -> None:
	elapsed = record["elapsed"]
	days = elapsed.days % 11 # some sanity
	record["extra"]["elapsed_secs_total"] = elapsed.seconds + days * 86400
	record["extra"]["elapsed_millisecs_total"] = elapsed.microseconds // 1000


def level_for_debug_level(debug_level: int) -> str:
	if debug_level >= 2:
		return "TRACE"
	elif debug_level == 1:
		return "DEBUG"
	return "INFO"


def setup_logging(debug_level: int = 0, sink: t.Any = None) -> int:
	"""
	Removes all loguru handlers and installs a single one writing to
	``sink`` (stderr by default), filtered by ``debug_level``:
	0 logs INFO and up, 1 DEBUG and up, 2 and higher everything.
	Returns the id of the new handler.
	"""
	logger.remove()
	logger.configure(patcher=_elapsed_patcher)

	if sink is None:
		sink = sys.stderr

	return logger.add(
		sink,
		format = _STDERR_FMT,
		level = level_for_debug_level(debug_level),
		colorize = sink is sys.stderr and sys.stderr.isatty(),
	)
