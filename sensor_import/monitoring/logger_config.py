"""
Structured logging configuration for the import pipeline.

structlog renders every event; stdlib logging only routes the rendered line
to the console and the rotating result log.
"""

import os
import logging
import logging.handlers
import time
import uuid
from typing import Any, Dict, List, Optional

import structlog

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


def _stringify_errors(logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Render exception values passed as context so JSON output stays serializable."""
    for key, value in event_dict.items():
        if isinstance(value, BaseException):
            event_dict[key] = f"{type(value).__name__}: {value}"
    return event_dict


class ImportLogger:
    """Configures structured logging for the import pipeline."""

    @staticmethod
    def setup_logging(
        log_level: str = None,
        log_format: str = None,
        log_file: Optional[str] = None,
        log_to_console: bool = True
    ) -> None:
        """Route structlog output to stderr and/or a rotating file.

        Falls back to LOG_LEVEL / LOG_FORMAT from the environment when no
        explicit value is given.
        """
        log_level = (log_level or os.getenv('LOG_LEVEL', 'INFO')).upper()
        log_format = (log_format or os.getenv('LOG_FORMAT', 'console')).lower()
        level = getattr(logging, log_level, logging.INFO)

        root = logging.getLogger()
        root.handlers[:] = ImportLogger._build_handlers(level, log_file, log_to_console)
        root.setLevel(level)

        structlog.configure(
            processors=ImportLogger._processors(log_format),
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

        structlog.get_logger().info(
            "Logging initialized",
            log_level=log_level,
            log_format=log_format,
            log_file=log_file or "disabled",
            log_to_console=log_to_console
        )

    @staticmethod
    def _build_handlers(level: int, log_file: Optional[str], log_to_console: bool) -> List[logging.Handler]:
        handlers: List[logging.Handler] = []

        if log_to_console:
            handlers.append(logging.StreamHandler())

        if log_file:
            log_dir = os.path.dirname(log_file)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            handlers.append(logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
                encoding='utf-8'
            ))

        if not handlers:
            handlers.append(logging.NullHandler())

        # structlog has already rendered the whole line
        formatter = logging.Formatter('%(message)s')
        for handler in handlers:
            handler.setLevel(level)
            handler.setFormatter(formatter)
        return handlers

    @staticmethod
    def _processors(log_format: str) -> list:
        if log_format == 'json':
            renderer = structlog.processors.JSONRenderer()
        else:
            renderer = structlog.dev.ConsoleRenderer(colors=False)

        return [
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _stringify_errors,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ]


class CorrelationLogger:
    """A structlog logger bound to one run's correlation id.

    Unknown attributes (info, warning, error, ...) resolve on the bound
    logger, so this can be passed anywhere a structlog logger is expected.
    """

    def __init__(self, correlation_id: str = None, name: str = "sensor_import"):
        self.correlation_id = correlation_id or str(uuid.uuid4())
        self._logger = structlog.get_logger(name).bind(correlation_id=self.correlation_id)

    def bind(self, **context) -> Any:
        return self._logger.bind(**context)

    def __getattr__(self, name: str):
        return getattr(self._logger, name)


class OperationLogger:
    """Context manager that logs start, completion or failure of an operation."""

    def __init__(self, operation_name: str, correlation_id: str = None, **context):
        self.operation_name = operation_name
        self.context = context
        self.logger = CorrelationLogger(correlation_id)
        self._started: Optional[float] = None

    def __enter__(self) -> CorrelationLogger:
        self._started = time.perf_counter()
        self.logger.info(
            f"Operation started: {self.operation_name}",
            operation=self.operation_name,
            **self.context
        )
        return self.logger

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        fields = dict(
            self.context,
            operation=self.operation_name,
            duration_seconds=round(time.perf_counter() - self._started, 6),
        )

        if exc_type is None:
            self.logger.info(f"Operation completed: {self.operation_name}", **fields)
        else:
            self.logger.error(
                f"Operation failed: {self.operation_name}",
                error_type=exc_type.__name__,
                error_message=str(exc_val) if exc_val else None,
                **fields
            )
        return False


def setup_logging(settings) -> None:
    """Configure logging from a Settings instance."""
    ImportLogger.setup_logging(
        log_level=settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        log_to_console=settings.log_to_console,
    )
