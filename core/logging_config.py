import logging
import logging.handlers
import sys
from pathlib import Path
from pythonjsonlogger import jsonlogger

from middleware.request_id import RequestIDFilter

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
LOG_FILE_BACKUPS = 5

# Third-party loggers and the level they are capped at
QUIET_LOGGERS = {
    "uvicorn": logging.WARNING,
    "uvicorn.access": logging.WARNING,
    "uvicorn.error": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    # passlib warns on every start about the bcrypt version probe
    "passlib": logging.ERROR,
}


class AuthJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON lines for the log files.

    Each entry carries the request id, so every line written while one
    request was handled (access log, login failures, revocations) can be
    pulled together.
    """

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = record.created
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["location"] = f"{record.module}.{record.funcName}:{record.lineno}"
        log_record["request_id"] = getattr(record, "request_id", "-")


def _rotating_handler(path: Path, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(log_level: str = "INFO", log_dir: str = "logs"):
    """
    Configure application-wide logging.

    - console: human readable, at `log_level`
    - app.log: everything, JSON
    - error.log: ERROR and above, JSON

    Safe to call more than once; existing root handlers are replaced.
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    console_level = getattr(logging, log_level.upper(), logging.INFO)

    json_formatter = AuthJsonFormatter("%(timestamp)s %(level)s %(logger)s %(message)s")

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter(
        "%(asctime)s [%(request_id)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    ))

    handlers = [
        console_handler,
        _rotating_handler(log_path / "app.log", logging.DEBUG, json_formatter),
        _rotating_handler(log_path / "error.log", logging.ERROR, json_formatter),
    ]

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    request_id_filter = RequestIDFilter()
    for handler in handlers:
        handler.addFilter(request_id_filter)
        root_logger.addHandler(handler)

    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)

    root_logger.info(
        "Logging configured",
        extra={"log_level": log_level, "log_dir": str(log_path.absolute())}
    )
