# wa_admin/core/logging_config.py
"""
Logging configuration for the WhatsApp admin service.
Console output plus rotating log files, with a dedicated file for
Graph API traffic so template/send failures are easy to trace.
"""
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any, Optional

GRAPH_LOGGER_NAME = "graph_api"

SENSITIVE_KEYS = {"token", "access_token", "authorization", "password", "secret"}


class ColoredFormatter(logging.Formatter):
    """Colored console formatter for better readability"""

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'
    }

    def format(self, record):
        # Work on a copy so file handlers keep the plain level name
        record = logging.makeLogRecord(record.__dict__)
        log_color = self.COLORS.get(record.levelname, self.COLORS['RESET'])
        record.levelname = f"{log_color}{record.levelname}{self.COLORS['RESET']}"
        return super().format(record)


def setup_logging(app_name: str = "wa_admin", level: str = "INFO", log_dir: Optional[str] = None):
    """
    Setup logging with console and rotating file handlers.

    Creates three log files:
    - error.log: Only ERROR and CRITICAL messages
    - debug.log: All DEBUG and above messages
    - graph_api.log: Requests/responses exchanged with the Graph API
    """
    logs_dir = Path(log_dir) if log_dir else Path(__file__).parent.parent.parent / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # Console
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level.upper(), logging.INFO))
    console_handler.setFormatter(ColoredFormatter('%(levelname)s | %(name)s | %(message)s'))
    root_logger.addHandler(console_handler)

    # error.log
    error_handler = logging.handlers.RotatingFileHandler(
        logs_dir / "error.log",
        maxBytes=10 * 1024 * 1024,  # 10 MB
        backupCount=5,
        encoding='utf-8'
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(logging.Formatter(
        '%(asctime)s | %(levelname)s | %(name)s | %(filename)s:%(lineno)d | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    root_logger.addHandler(error_handler)

    # debug.log
    debug_handler = logging.handlers.RotatingFileHandler(
        logs_dir / "debug.log",
        maxBytes=20 * 1024 * 1024,  # 20 MB
        backupCount=5,
        encoding='utf-8'
    )
    debug_handler.setLevel(logging.DEBUG)
    debug_handler.setFormatter(logging.Formatter(
        '%(asctime)s | %(levelname)-8s | %(name)-30s | %(filename)s:%(lineno)d | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    root_logger.addHandler(debug_handler)

    # graph_api.log - only attached to the Graph logger
    graph_handler = logging.handlers.RotatingFileHandler(
        logs_dir / "graph_api.log",
        maxBytes=20 * 1024 * 1024,  # 20 MB
        backupCount=5,
        encoding='utf-8'
    )
    graph_handler.setLevel(logging.DEBUG)
    graph_handler.setFormatter(logging.Formatter(
        '%(asctime)s | %(levelname)-8s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    graph_logger = get_graph_logger()
    for handler in graph_logger.handlers[:]:
        graph_logger.removeHandler(handler)
    graph_logger.addHandler(graph_handler)
    graph_logger.setLevel(logging.DEBUG)
    graph_logger.propagate = True

    logger = logging.getLogger(__name__)
    logger.info(f"{'='*60}")
    logger.info(f"Logging initialized for {app_name}")
    logger.info(f"Log directory: {logs_dir}")
    logger.info(f"{'='*60}")

    return root_logger


def get_graph_logger():
    """Get logger specifically for Graph API traffic"""
    return logging.getLogger(GRAPH_LOGGER_NAME)


def mask_secrets(data: Any) -> Any:
    """Return a copy of ``data`` with sensitive values hidden."""
    if isinstance(data, dict):
        return {
            k: ('***HIDDEN***' if str(k).lower() in SENSITIVE_KEYS else mask_secrets(v))
            for k, v in data.items()
        }
    if isinstance(data, list):
        return [mask_secrets(v) for v in data]
    return data


def log_api_request(logger, method: str, endpoint: str, data: Any = None, note: str = ""):
    """Log outgoing API request details"""
    logger.debug(f"{'─'*60}")
    logger.debug(f"🌐 API REQUEST: {method} {endpoint}" + (f" [{note}]" if note else ""))
    if data is not None:
        logger.debug(f"Request Data: {mask_secrets(data)}")
    logger.debug(f"{'─'*60}")


def log_api_response(logger, status_code: int, response_data: Any, error: Optional[Exception] = None):
    """Log API response details"""
    logger.debug(f"📥 API RESPONSE: Status {status_code}")
    if error:
        logger.error(f"❌ Error: {error} ({type(error).__name__})")
    else:
        logger.debug(f"Response Data: {mask_secrets(response_data)}")
    logger.debug(f"{'─'*60}")
