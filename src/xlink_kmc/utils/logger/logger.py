import threading
from datetime import datetime
from enum import Enum
import os
from .local_file_strategy import LocalFileStrategy

class Logger:
    """
    Global logger for the kinetics engine, runner and CLI.
    Implements a static class pattern; records below ``min_priority``
    are dropped before they reach the storage strategy.
    """

    class LogPriority(Enum):
        DEBUG = 1
        INFO = 2
        WARNING = 3
        ERROR = 4
        CRITICAL = 5

    is_logging_enabled = True
    log_storage_strategy = None
    min_priority = LogPriority.DEBUG
    _log_lock = threading.Lock()
    _strategy_lock = threading.Lock()
    _initialize_lock = threading.Lock()

    # INITIALIZE LOGGER
    @classmethod
    def initialize(cls):
        """
        Installs the default file strategy if none is set.
        The location comes from XLINK_KMC_LOG_PATH when defined.
        """
        with cls._initialize_lock:
            if cls.log_storage_strategy is None:
                default_path = "/tmp/xlink_kmc_logs.txt"
                file_location = os.getenv("XLINK_KMC_LOG_PATH", default_path)
                cls.set_log_storage_strategy(LocalFileStrategy(file_location))

                cls.log(f"Logger initialized with default file storage at {file_location}.",
                        cls.LogPriority.INFO)

    # LOG WITH MESSAGE AND PRIORITY
    @classmethod
    def log(cls, message, priority=LogPriority.DEBUG):
        """
        Stores a message through the active storage strategy.

        Parameters:
        message (str): The log message.
        priority (LogPriority): Record priority (default DEBUG).
        """
        if priority.value < cls.min_priority.value:
            return
        with cls._log_lock:
            if cls.is_logging_enabled and cls.log_storage_strategy:
                cls.log_storage_strategy.store_log(
                    message, priority.name, datetime.now().strftime("%Y-%m-%d %H:%M:%S")
                )

    @classmethod
    def set_log_storage_strategy(cls, log_storage_strategy):
        with cls._strategy_lock:
            cls.log_storage_strategy = log_storage_strategy

    @classmethod
    def set_min_priority(cls, priority):
        cls.min_priority = priority

    # FLUSH LOGS
    @classmethod
    def flush_logs(cls):
        with cls._log_lock:
            if cls.is_logging_enabled and cls.log_storage_strategy:
                cls.log_storage_strategy.flush_logs()

    @classmethod
    def disable_logging(cls):
        cls.is_logging_enabled = False

    @classmethod
    def enable_logging(cls):
        cls.is_logging_enabled = True

    # RESET TO UNCONFIGURED STATE
    @classmethod
    def reset(cls):
        """Drops the storage strategy and restores defaults."""
        with cls._strategy_lock:
            cls.log_storage_strategy = None
        cls.is_logging_enabled = True
        cls.min_priority = cls.LogPriority.DEBUG
