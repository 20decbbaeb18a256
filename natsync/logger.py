import logging
import sys
from logging.handlers import RotatingFileHandler

from .settings import LOG_LEVEL, ENABLE_CONSOLE_LOG, ENABLE_FILE_LOG


class SafeStreamHandler(logging.StreamHandler):
    """
    A StreamHandler that suppresses BlockingIOError during stdout congestion.

    Frame tracing at DEBUG level can produce a lot of output while a dispatch
    loop is draining a busy subscription. Log messages are dropped instead of
    crashing the caller when stdout cannot keep up.

    Example:
        logger = logging.getLogger("natsync.connection")
        handler = SafeStreamHandler(sys.stdout)
        logger.addHandler(handler)
    """
    def emit(self, record):
        try:
            super().emit(record)
        except BlockingIOError:
            # Message is dropped, the caller keeps running.
            pass


# Log formatting style
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FORMAT_CONSOLE = "\033[92m%(asctime)s\033[0m - \033[94m%(name)s\033[0m - %(levelname)s - %(message)s"

# Convert string level from settings to actual logging constant
LOG_LEVEL = getattr(logging, LOG_LEVEL, logging.DEBUG)

def setup_logger(name: str) -> logging.Logger:
    # Get or create a logger instance with the given name
    logger = logging.getLogger(name)

    # Set the logging level based on config (e.g. DEBUG, INFO, etc.)
    logger.setLevel(LOG_LEVEL)

    # Prevent adding duplicate handlers if logger was already set up
    if not logger.handlers:
        if ENABLE_CONSOLE_LOG:
            console_handler = SafeStreamHandler(sys.stdout)
            console_handler.setFormatter(logging.Formatter(LOG_FORMAT_CONSOLE))
            logger.addHandler(console_handler)

        if ENABLE_FILE_LOG:
            # e.g. "natsync.connection" becomes "natsync_connection.log"
            safe_name = name.replace('.', '_')

            # Limits log file size to ~1MB and keeps up to 3 old backups
            file_handler = RotatingFileHandler(
                f"{safe_name}.log", maxBytes=1_000_000, backupCount=3
            )
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            logger.addHandler(file_handler)

    # Return the fully configured logger instance
    return logger
