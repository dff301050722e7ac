import logging
import os
import sys
import traceback

from concurrent_log_handler import ConcurrentRotatingFileHandler

from edmcp.config import Settings

LOGGER_NAME = "edmcp"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class SystemLogger:
    def __init__(self):
        self.logger = logging.getLogger(LOGGER_NAME)
        self.console_handler = None
        self.file_handler = None

    def configure_logging(self, settings: Settings):
        # Drop handlers from a previous configuration so app rebuilds don't duplicate output
        for handler in (self.console_handler, self.file_handler):
            if handler is not None and handler in self.logger.handlers:
                self.logger.removeHandler(handler)
                handler.close()
        self.console_handler = None
        self.file_handler = None

        level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
        self.logger.setLevel(level)

        # Console Handler
        self.console_handler = logging.StreamHandler(sys.stdout)
        self.console_handler.setLevel(level)
        self.console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        self.logger.addHandler(self.console_handler)

        if not settings.LOG_TO_FILE:
            return

        # File Handler with Concurrent Rotation
        os.makedirs(settings.LOG_DIR, exist_ok=True)
        self.file_handler = ConcurrentRotatingFileHandler(
            os.path.join(settings.LOG_DIR, "edmcp.log"),
            maxBytes=settings.MAX_LOG_FILE_SIZE,
            backupCount=settings.BACKUP_COUNT,
            encoding="utf-8",
        )
        self.file_handler.setLevel(level)
        self.file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        self.logger.addHandler(self.file_handler)

    def _log(self, level, message, *args, **kwargs):
        extra = kwargs.pop("extra", {})
        exc_info = kwargs.pop("exc_info", None)

        if exc_info:
            extra["traceback"] = traceback.format_exc()

        try:
            self.logger.log(level, message, *args, extra=extra, exc_info=exc_info, **kwargs)
        except Exception as e:
            print(f"Logging error: {str(e)}")

    def debug(self, message, *args, **kwargs):
        self._log(logging.DEBUG, message, *args, **kwargs)

    def info(self, message, *args, **kwargs):
        self._log(logging.INFO, message, *args, **kwargs)

    def warning(self, message, *args, **kwargs):
        self._log(logging.WARNING, message, *args, **kwargs)

    def error(self, message, *args, **kwargs):
        self._log(logging.ERROR, message, *args, **kwargs)


# Create a global instance of the logger
system_logger = SystemLogger()

# Function to get the logger instance
def get_logger():
    return system_logger
