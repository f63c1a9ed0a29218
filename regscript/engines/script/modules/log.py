"""
Log sink for a script run: info, warn, error, debug.

Every message is forwarded to a stdlib logger and captured for the
execution report. Debug messages are only captured when the run is verbose.
"""

import logging
from types import SimpleNamespace
from typing import Any

logger = logging.getLogger(__name__)


def make_log_module(
    *,
    logger_instance: logging.Logger | None = None,
    verbose: bool = False,
    captured: list[str] | None = None,
    extra: dict[str, Any] | None = None,
) -> Any:
    """Build the `log` object: info, warn, error, debug, plus `lines` (captured output)."""
    log = logger_instance or logger
    ext = extra or {}
    lines: list[str] = captured if captured is not None else []

    def _log(level: int, msg: str, *args: Any, **kwargs: Any) -> None:
        if level == logging.DEBUG and not verbose:
            return
        text = msg % args if args else str(msg)
        lines.append(text if level == logging.INFO else f"{logging.getLevelName(level)}: {text}")
        merged = {**ext, **kwargs.pop("extra", {})}
        if merged:
            kwargs["extra"] = merged
        log.log(logging.INFO if verbose and level == logging.DEBUG else level, "%s", text, **kwargs)

    def info(msg: str, *args: Any, **kwargs: Any) -> None:
        _log(logging.INFO, msg, *args, **kwargs)

    def warn(msg: str, *args: Any, **kwargs: Any) -> None:
        _log(logging.WARNING, msg, *args, **kwargs)

    def error(msg: str, *args: Any, **kwargs: Any) -> None:
        _log(logging.ERROR, msg, *args, **kwargs)

    def debug(msg: str, *args: Any, **kwargs: Any) -> None:
        _log(logging.DEBUG, msg, *args, **kwargs)

    return SimpleNamespace(info=info, warn=warn, warning=warn, error=error, debug=debug, lines=lines)
