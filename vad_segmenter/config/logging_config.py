"""
Logging configuration for the segmentation engine
"""
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import structlog
from pythonjsonlogger.json import JsonFormatter


class SegmenterJsonFormatter(JsonFormatter):
    """JSON formatter that stamps every record with service metadata"""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = datetime.now(timezone.utc).isoformat()
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['service'] = 'vad-segmenter'

        if record.exc_info:
            log_record['exception'] = self.formatException(record.exc_info)


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None,
    log_dir: Optional[str] = None
) -> structlog.BoundLogger:
    """
    Configure structlog and the stdlib root logger

    Args:
        level: Log level name
        json_format: Render JSON instead of colored console output
        log_file: Optional log file name
        log_dir: Optional log directory

    Returns:
        Root structlog logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        renderers = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderers = [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]

    structlog.configure(
        processors=shared_processors + renderers,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)

    if json_format:
        formatter = SegmenterJsonFormatter('%(timestamp)s %(level)s %(name)s %(message)s')
    else:
        formatter = logging.Formatter(
            '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file or log_dir:
        if log_dir:
            log_path = Path(log_dir)
            log_path.mkdir(parents=True, exist_ok=True)
            log_file_path = log_path / (log_file or f"segmenter_{datetime.now().strftime('%Y%m%d')}.log")
        else:
            log_file_path = Path(log_file)

        file_handler = logging.FileHandler(str(log_file_path))
        file_handler.setLevel(log_level)
        file_handler.setFormatter(SegmenterJsonFormatter() if json_format else formatter)
        root_logger.addHandler(file_handler)

    # sounddevice logs every stream open/close at INFO
    logging.getLogger('sounddevice').setLevel(logging.WARNING)

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a logger instance with the given name"""
    return structlog.get_logger(name)
