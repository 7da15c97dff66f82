"""Build log capability passed through the versioner components."""
import logging
from typing import Any, Protocol

logger = logging.getLogger("versioner")


class BuildLog(Protocol):
    """Receives build progress and failures."""

    def verbose(self, message: str) -> None: ...

    def warn(self, message: str) -> None: ...

    def error(self, message: str, error: BaseException | None = None) -> None: ...


class LoggerBuildLog:
    """BuildLog backed by a stdlib logger."""

    def __init__(self, target: logging.Logger | None = None):
        self.logger = target or logger

    def verbose(self, message: str) -> None:
        self.logger.debug(message)

    def warn(self, message: str) -> None:
        self.logger.warning(message)

    def error(self, message: str, error: BaseException | None = None) -> None:
        if error is not None:
            self.logger.error(f"{message}: {error}")
        else:
            self.logger.error(message)


class _PartialBuildLog:
    """Adapts an object implementing only some BuildLog methods."""

    def __init__(self, target: Any):
        self._target = target

    def verbose(self, message: str) -> None:
        method = getattr(self._target, "verbose", None)
        if method is not None:
            method(message)

    def warn(self, message: str) -> None:
        method = getattr(self._target, "warn", None)
        if method is not None:
            method(message)

    def error(self, message: str, error: BaseException | None = None) -> None:
        method = getattr(self._target, "error", None)
        if method is not None:
            method(message, error)


def resolve_build_log(log: Any = None) -> BuildLog:
    """Return a BuildLog for the ``log`` option.

    Args:
        log: None for the ``versioner`` logger, a ``logging.Logger``, or any
            object with ``verbose``/``warn``/``error`` methods (missing ones are ignored)

    Returns:
        BuildLog implementation
    """
    if log is None:
        return LoggerBuildLog()
    if isinstance(log, logging.Logger):
        return LoggerBuildLog(log)
    if all(callable(getattr(log, name, None)) for name in ("verbose", "warn", "error")):
        return log
    return _PartialBuildLog(log)
