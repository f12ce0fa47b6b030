import logging
import os
import sys

# ======================================================================================
#  Standard Logger
# ======================================================================================

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
PACKAGE_LOGGER = "recontrack"

# Set from the loaded config; loggers created afterwards start at this level
_configured_level: int | None = None


def _resolve_level(level: int | str | None) -> int:
    """Map an explicit level, the configured level, ``RECONTRACK_LOG_LEVEL`` or INFO to a logging level."""
    if level is None:
        if _configured_level is not None:
            return _configured_level
        level = os.getenv("RECONTRACK_LOG_LEVEL", "INFO")
    if isinstance(level, str):
        resolved = logging.getLevelName(level.strip().upper())
        return resolved if isinstance(resolved, int) else logging.INFO
    return int(level)


def is_valid_level(level: str) -> bool:
    return isinstance(logging.getLevelName(str(level).strip().upper()), int)


def apply_log_level(level: int | str) -> int:
    """Set ``level`` on every existing ``recontrack`` logger and on those created later."""
    global _configured_level
    resolved = _resolve_level(level)
    _configured_level = resolved
    logging.getLogger(PACKAGE_LOGGER).setLevel(resolved)
    for name, existing in list(logging.Logger.manager.loggerDict.items()):
        if name.startswith(PACKAGE_LOGGER + ".") and isinstance(existing, logging.Logger):
            existing.setLevel(resolved)
    return resolved


def get_logger(name: str, level: int | str | None = None) -> logging.Logger:
    """Initializes a pipeline logger writing to stdout.

    Args:
        name (str): The name of the logger.
        level (int | str, optional): The logging level. Defaults to the level
            applied from the loaded config, then ``RECONTRACK_LOG_LEVEL``,
            then INFO.

    Returns:
        logging.Logger: The configured logger instance.
    """

    logger = logging.getLogger(name)
    logger.setLevel(_resolve_level(level))

    formatter = logging.Formatter(LOG_FORMAT)

    # Reuse the stdout handler on repeated calls; leave other handlers alone
    handler = None
    for existing_handler in logger.handlers:
        if isinstance(existing_handler, logging.StreamHandler) and getattr(existing_handler, "stream", None) is sys.stdout:
            handler = existing_handler
            break

    if handler is None:
        handler = logging.StreamHandler(sys.stdout)
        logger.addHandler(handler)

    handler.setFormatter(formatter)

    return logger
