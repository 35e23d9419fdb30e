import logging
import logging.config
import os
import re


class ColourizedFormatter(logging.Formatter):
    """
    Custom formatter to add colors to log levels.
    """
    GREY = "\x1b[90m"
    GREEN = "\x1b[32m"
    YELLOW = "\x1b[33m"
    RED = "\x1b[31m"
    BOLD_RED = "\x1b[31;1m"
    RESET = "\x1b[0m"

    LEVEL_COLORS = {
        logging.DEBUG: GREY,
        logging.INFO: GREEN,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: BOLD_RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        orig_levelname = record.levelname
        if record.levelno in self.LEVEL_COLORS:
            record.levelname = f"{self.LEVEL_COLORS[record.levelno]}{record.levelname}{self.RESET}"

        result = super().format(record)

        # Restore so other handlers see the plain level name
        record.levelname = orig_levelname
        return result


def get_logging_config() -> dict:
    log_level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    log_dir = os.getenv("LOG_DIR")
    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stdout",
            "formatter": "default",
        },
    }
    root_handlers = ["console"]
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        handlers["file"] = {
            "class": "logging.FileHandler",
            "filename": os.path.join(log_dir, "sms_categorizer.log"),
            "formatter": "plain",
        }
        root_handlers.append("file")

    uvicorn_logger = {
        "handlers": root_handlers,
        "level": "INFO",
        "propagate": False,
    }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "()": "sms_categorizer.logger.ColourizedFormatter",
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            },
            "plain": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            },
        },
        "handlers": handlers,
        "loggers": {
            "": {
                "handlers": root_handlers,
                "level": log_level_name,
            },
            "uvicorn": dict(uvicorn_logger),
            "uvicorn.error": dict(uvicorn_logger),
            "uvicorn.access": dict(uvicorn_logger),
        },
    }


def setup_logging() -> None:
    logging.config.dictConfig(get_logging_config())


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


_LONG_DIGITS = re.compile(r"\d{6,}")


def _mask_digits(match: re.Match[str]) -> str:
    digits = match.group(0)
    return f"{digits[:2]}{'*' * (len(digits) - 4)}{digits[-2:]}"


def preview_message(body: str | None, limit: int = 50) -> str:
    """Shorten an SMS body for log lines, masking account and phone numbers."""
    if not body:
        return ""
    flat = " ".join(body.split())
    masked = _LONG_DIGITS.sub(_mask_digits, flat)
    if len(masked) <= limit:
        return masked
    return f"{masked[:limit]}..."
