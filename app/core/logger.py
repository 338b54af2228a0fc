import atexit
import json
import logging
import logging.handlers
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from queue import Queue
from typing import Optional

from app.core.settings import settings

# Global listener to ensure it stays alive
_log_listener = None

# Set per HTTP request by app.main; "-" outside a request (scripts, startup)
request_id_var: ContextVar[str] = ContextVar("request_id", default="-")


def new_request_id(incoming: Optional[str] = None) -> str:
    request_id = incoming or uuid.uuid4().hex[:12]
    request_id_var.set(request_id)
    return request_id


class RequestContextFilter(logging.Filter):
    """
    Stamps every record with the current request id.
    Must sit on the QueueHandler: the listener thread cannot see the request's context.
    """

    def filter(self, record):
        record.request_id = request_id_var.get()
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record):
        log_obj = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "request_id": getattr(record, "request_id", "-"),
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_obj, ensure_ascii=False)


class ColorFormatter(logging.Formatter):
    COLORS = {
        logging.DEBUG: "\x1b[38;20m",
        logging.INFO: "\x1b[32;20m",
        logging.WARNING: "\x1b[33;20m",
        logging.ERROR: "\x1b[31;20m",
        logging.CRITICAL: "\x1b[31;1m",
    }
    RESET = "\x1b[0m"

    def __init__(self):
        super().__init__("%(asctime)s [%(request_id)s] %(name)s - %(levelname)s - %(message)s", datefmt="%H:%M:%S")

    def format(self, record):
        if not hasattr(record, "request_id"):
            record.request_id = "-"
        color = self.COLORS.get(record.levelno, "")
        return f"{color}{super().format(record)}{self.RESET}"


def setup_logging():
    """
    Configures Non-Blocking Logging via QueueHandler.
    Handlers never block on stdout; a background listener drains the queue.
    Safe to call more than once (app import + scripts).
    """
    global _log_listener

    if _log_listener is not None:
        return

    root_logger = logging.getLogger()
    root_logger.setLevel(settings.LOG_LEVEL)
    root_logger.handlers = []

    # 1. Destination: JSON lines for log shipping in prod, colors locally
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(JSONFormatter() if settings.ENV == "prod" else ColorFormatter())

    # 2. Buffer + non-blocking front end, stamped with the request id
    log_queue = Queue(-1)
    queue_handler = logging.handlers.QueueHandler(log_queue)
    queue_handler.addFilter(RequestContextFilter())
    root_logger.addHandler(queue_handler)

    # 3. Background drain
    _log_listener = logging.handlers.QueueListener(log_queue, console_handler)
    _log_listener.start()
    atexit.register(_log_listener.stop)

    # Silence noisy libs (set LOG_LEVEL=DEBUG + ENV=dev for SQL echo instead)
    for noisy in ("httpx", "httpcore", "sqlalchemy.engine", "aiosqlite"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
