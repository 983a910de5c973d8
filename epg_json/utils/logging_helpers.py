"""
Structured logging helpers for consistent log formatting.

Provides utilities for structured, clean logging without excessive decorative separators.
"""
import logging
from datetime import datetime, timezone


def log_section_start(logger: logging.Logger, section_name: str) -> None:
    """
    Log the start of a processing section.

    Args:
        logger: Logger instance
        section_name: Name of the section being started
    """
    logger.info(f"Starting: {section_name}")


def log_section_end(logger: logging.Logger, section_name: str) -> None:
    """
    Log the end of a processing section.

    Args:
        logger: Logger instance
        section_name: Name of the section being ended
    """
    logger.info(f"Completed: {section_name}")


def log_run_start(logger: logging.Logger, name: str) -> None:
    """Log operation start."""
    logger.info(f"{name} started at {datetime.now(timezone.utc).isoformat()}")


def log_run_end(logger: logging.Logger, name: str) -> None:
    """Log operation end."""
    logger.info(f"{name} completed at {datetime.now(timezone.utc).isoformat()}")


def log_output_summary(
    logger: logging.Logger,
    channels_count: int,
    programmes_count: int
) -> None:
    """
    Log output summary.

    Args:
        logger: Logger instance
        channels_count: Number of channel files written
        programmes_count: Number of programmes written
    """
    logger.info(f"Output summary - Channels: {channels_count}, Programmes: {programmes_count}")


def sanitize_url_for_logging(url: str) -> str:
    """Remove credentials from URL for safe logging."""
    if "://" not in url:
        return url
    try:
        protocol, rest = url.split("://", 1)
        if "@" in rest.split("/", 1)[0]:
            rest = rest.split("@", 1)[1]
            return f"{protocol}://***:***@{rest}"
        return url
    except (ValueError, IndexError):
        return url
