"""Logging configuration for BUGTRAIL.

Logging is disabled unless explicitly switched on through environment
variables, so that the ticketing client stays quiet when embedded in a
host application.

Environment Variables:
    BUGTRAIL_LOG: Set to "true" to enable logging (default: "false")
    BUGTRAIL_LOG_FILE: Path to log file (default: ~/.bugtrail.log)
"""

import logging
import os
from pathlib import Path

# Environment variable configuration
LOG_ENABLED = os.environ.get("BUGTRAIL_LOG", "false").lower() == "true"
LOG_FILE = Path(os.environ.get("BUGTRAIL_LOG_FILE", str(Path.home() / ".bugtrail.log")))

# Module-level logger instance
_logger: logging.Logger | None = None


def setup_logging() -> logging.Logger:
    """Configure logging based on environment variables.

    Creates a logger that writes to the configured log file when
    BUGTRAIL_LOG is set to "true". Otherwise, uses a NullHandler
    to suppress all log output.

    Module loggers (``logging.getLogger(__name__)``) inside the package
    propagate to this logger, so they follow the same switch.

    Returns:
        Configured logger instance
    """
    global _logger

    if _logger is not None:
        return _logger

    logger = logging.getLogger("bugtrail")

    # Clear any existing handlers
    logger.handlers.clear()

    if LOG_ENABLED:
        LOG_FILE.parent.mkdir(parents=True, exist_ok=True)

        handler = logging.FileHandler(LOG_FILE)
        handler.setFormatter(
            logging.Formatter(
                "[%(asctime)s] %(levelname)s %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(handler)
        logger.setLevel(logging.DEBUG)
    else:
        logger.addHandler(logging.NullHandler())

    _logger = logger
    return logger


def get_logger() -> logging.Logger:
    """Get the configured logger instance, creating it if necessary."""
    global _logger
    if _logger is None:
        return setup_logging()
    return _logger


def log_message(message: str) -> None:
    """Log a message if logging is enabled.

    Args:
        message: Message to log
    """
    logger = get_logger()
    logger.info(message)


def log_request_metadata(
    operation: str,
    *,
    endpoint: str | None = None,
    timeout: float | None = None,
) -> None:
    """Log sanitized request metadata for debugging.

    Only the operation name, endpoint and timeout are logged; request
    bodies and headers may carry credentials and are never written.

    Args:
        operation: Name of the remote operation (e.g. "viewer", "issueCreate")
        endpoint: Endpoint URL if relevant
        timeout: Timeout in seconds if specified
    """
    parts: list[str] = []
    if endpoint:
        parts.append(f"endpoint={endpoint}")
    if timeout is not None:
        parts.append(f"timeout={timeout}s")
    suffix = f" ({', '.join(parts)})" if parts else ""
    get_logger().debug(f"  {operation}{suffix}")


__all__ = [
    "LOG_ENABLED",
    "LOG_FILE",
    "setup_logging",
    "get_logger",
    "log_message",
    "log_request_metadata",
]
