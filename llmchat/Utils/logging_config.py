"""
Logging configuration for llmchat.

Call `configure_logging` once at startup. Every sink receives messages that
have already been passed through the log sanitizer.
"""

import os
import sys
from pathlib import Path
from typing import Optional, Union

from loguru import logger

from llmchat.Utils.log_sanitizer import redact_log_record


LOG_LEVEL_ENV_VAR = "LLMCHAT_LOG_LEVEL"


def configure_logging(
    level: Optional[str] = None,
    log_file: Optional[Union[str, Path]] = None,
    to_console: bool = False,
) -> None:
    """
    Configure loguru sinks.

    Args:
        level: Minimum level; falls back to $LLMCHAT_LOG_LEVEL, then INFO
        log_file: Rotating file sink, skipped when None
        to_console: Also log to stderr (off by default, stderr belongs to the TUI)
    """
    level = (level or os.environ.get(LOG_LEVEL_ENV_VAR) or "INFO").upper()

    logger.remove()
    logger.configure(patcher=redact_log_record)

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            sink=str(log_path),
            level=level,
            rotation="10 MB",
            retention="7 days",
            compression="zip",
            enqueue=False,
        )

    if to_console:
        logger.add(sink=sys.stderr, level=level, colorize=True)

    logger.info(f"Logging configured: level={level}, file={log_file}, console={to_console}")
