"""Logging setup for the CLI and the boot-time monitor.

Modules log through ``logging.getLogger(__name__)``; this module only decides
where records end up. On a terminal they are rendered by Rich. Inside the boot
image, when file logging is enabled, they are appended to the configured log
file instead, so the console stays free for the status banner.
"""

import logging
from pathlib import Path

from rich.logging import RichHandler

from grubpower.utils.formatting import err_console

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(verbose: bool = False, log_file: Path | None = None) -> None:
    """Configure the root logger.

    Existing handlers are removed so repeated calls (tests, CLI callback
    followed by ``monitor``) never duplicate output.

    Args:
        verbose: Log at DEBUG instead of INFO.
        log_file: Write records to this file instead of the console.
            Parent directories are created. If the file cannot be opened,
            console logging is used and a warning is emitted.
    """
    level = logging.DEBUG if verbose else logging.INFO
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)

    handler: logging.Handler | None = None
    if log_file is not None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(log_file, encoding="utf-8")
            handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        except OSError as e:
            _add_console_handler(root_logger)
            logging.getLogger(__name__).warning(
                "Cannot open log file %s (%s), logging to console", log_file, e
            )
            return

    if handler is None:
        _add_console_handler(root_logger)
    else:
        root_logger.addHandler(handler)


def _add_console_handler(root_logger: logging.Logger) -> None:
    """Attach a Rich console handler to the given logger."""
    handler = RichHandler(console=err_console, show_path=False, rich_tracebacks=True)
    handler.setFormatter(logging.Formatter("%(message)s", datefmt=DATE_FORMAT))
    root_logger.addHandler(handler)
