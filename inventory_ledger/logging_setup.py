import logging
import logging.handlers
import traceback
from datetime import datetime
from pathlib import Path

from inventory_ledger.config import config

class Logger:
    """Logging manager for the inventory ledger."""

    _instance = None
    _loggers = {}

    def __new__(cls):
        """Singleton pattern implementation."""
        if cls._instance is None:
            cls._instance = super(Logger, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        """Initialize the logger if not already initialized."""
        if self._initialized:
            return

        self._log_config = config.log_config
        self._log_dir = Path(self._log_config['directory'])

        # Set up global logging configuration
        self._configure_root_logger()

        # Application logger
        self._app_logger = self.get_logger('app')

        self._initialized = True

    def _level(self):
        level_name = self._log_config['level'].upper()
        return getattr(logging, level_name, logging.INFO)

    def _configure_root_logger(self):
        """Configure the root logger.

        Module loggers created with ``logging.getLogger(__name__)`` propagate
        here, so the root carries the console handler.
        """
        root_logger = logging.getLogger()
        root_logger.setLevel(self._level())

        if self._log_config['console_output'] and not root_logger.handlers:
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(logging.Formatter(self._log_config['format']))
            root_logger.addHandler(console_handler)

    def get_logger(self, name):
        """Get a logger with the specified name.

        Args:
            name: Name of the logger

        Returns:
            Configured logger instance
        """
        if name in self._loggers:
            return self._loggers[name]

        logger = logging.getLogger(name)
        logger.setLevel(self._level())

        # Remove existing handlers to prevent duplicates
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)

        if self._log_config['file_output']:
            try:
                self._log_dir.mkdir(parents=True, exist_ok=True)
                log_file = self._log_dir / f"{name}.log"
                file_handler = logging.handlers.RotatingFileHandler(
                    log_file,
                    maxBytes=self._log_config['max_size_mb'] * 1024 * 1024,
                    backupCount=self._log_config['backup_count']
                )
                file_handler.setFormatter(logging.Formatter(self._log_config['format']))
                logger.addHandler(file_handler)
            except OSError as e:
                logging.getLogger(__name__).warning(f"File logging unavailable for '{name}': {e}")

        # Console output comes from the root logger
        logger.propagate = True

        self._loggers[name] = logger
        return logger

    def log_exception(self, logger_name, exception, message=None):
        """Log an exception with stack trace.

        Args:
            logger_name: Logger name
            exception: Exception object
            message: Optional message to include
        """
        logger = self.get_logger(logger_name)

        if message:
            logger.error(f"{message}: {str(exception)}")
        else:
            logger.error(str(exception))

        logger.error(traceback.format_exc())

    @property
    def app_logger(self):
        """Get the application logger."""
        return self._app_logger

    def operation_start_log(self, operation_name, additional_info=None):
        """Log the start of a bulk operation (end of day, migration).

        Args:
            operation_name: Name of the operation
            additional_info: Optional additional information

        Returns:
            Dictionary with operation logging information
        """
        ops_logger = self.get_logger('operations')
        start_time = datetime.now()

        log_info = {
            'operation_name': operation_name,
            'start_time': start_time,
            'additional_info': additional_info
        }

        ops_logger.info(f"Starting operation: {operation_name}")
        if additional_info:
            ops_logger.info(f"Operation info: {additional_info}")

        return log_info

    def operation_end_log(self, log_info, success=True, result_info=None):
        """Log the end of a bulk operation.

        Args:
            log_info: Dictionary returned by ``operation_start_log``
            success: Whether the operation succeeded
            result_info: Optional result information
        """
        ops_logger = self.get_logger('operations')
        end_time = datetime.now()

        operation_name = log_info.get('operation_name', 'Unknown')
        start_time = log_info.get('start_time', end_time)
        duration = end_time - start_time

        if success:
            ops_logger.info(f"Completed operation: {operation_name}")
        else:
            ops_logger.error(f"Failed operation: {operation_name}")

        ops_logger.info(f"Operation duration: {duration}")

        if result_info:
            ops_logger.info(f"Operation results: {result_info}")

# Global logger instance
logger = Logger()

def get_logger(name):
    """Get a logger with the specified name."""
    return logger.get_logger(name)

def log_exception(logger_name, exception, message=None):
    """Log an exception with stack trace."""
    logger.log_exception(logger_name, exception, message)
