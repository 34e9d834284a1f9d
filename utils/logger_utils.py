from __future__ import annotations

import logging
import sys
import warnings
from logging import Formatter, NullHandler, StreamHandler
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import ClassVar, Final, Literal, NamedTuple, Self, TextIO, TypeAlias

__all__: list[str] = ["LoggerUtils"]

LevelType: TypeAlias = Literal[
    "NOTSET",
    "DEBUG",
    "INFO",
    "WARNING",
    "ERROR",
    "CRITICAL",
]

_LOG_FILE_SIZE: Final[int] = 2 * 1024 * 1024  # 2MB
_LOG_BACKUP_COUNT: Final[int] = 2  # Number of backup files to keep

DEFAULT_LOG_LEVEL: Final[int] = logging.INFO
DEFAULT_NAMESPACE: Final[str] = "TransGate"


class LogLevel(NamedTuple):
    """Represents a logging level with both name and numeric value.

    Attributes:
        name (str): The name of the logging level (e.g., 'INFO', 'DEBUG').
        value (int): The numeric value of the logging level.
    """

    name: str
    value: int


class LoggerUtils:
    """Singleton that configures the gateway's diagnostic logging.

    Diagnostic messages go to the console (WARNING and above) and optionally to a rotating file.
    Every module obtains its logger through ``get_logger(__name__)`` so that all loggers share the
    ``TransGate`` namespace. Translation telemetry is kept apart from diagnostics and is written
    through a record logger built by ``build_record_logger``.

    Attributes:
        _LOGGER_NAMESPACE (str): The namespace for the logger.
        _configured (bool): Indicates whether the logger has been configured.
        _instance (LoggerUtils | None): The singleton instance of LoggerUtils.
    """

    _LOGGER_NAMESPACE: ClassVar[str] = DEFAULT_NAMESPACE
    _configured: ClassVar[bool] = False  # reconfiguration-proof
    _instance: ClassVar[Self | None] = None

    def __new__(cls, *args, **kwargs) -> Self:
        _ = args, kwargs
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(
        self,
        filename: str | Path = "",
        *,
        use_null_console: bool = False,
        console_level: int = logging.WARNING,
    ) -> None:
        """Configure console and file logging once per process.

        Args:
            filename (str | Path): Diagnostic log file. If empty, logging to a file is not performed.
            use_null_console (bool): If True, uses NullHandler instead of StreamHandler for console output.
            console_level (int): Minimum level written to the console.
        """
        if LoggerUtils._configured:
            return

        self.root_logger: logging.Logger = logging.getLogger(self._LOGGER_NAMESPACE)
        self._use_null_console: bool = bool(use_null_console) or sys.stderr is None
        self._console_level: int = console_level
        filename = str(filename)
        # must be set to a lower level than the level set in the handler
        self.root_logger.setLevel(DEFAULT_LOG_LEVEL)

        self._console_logging()
        if filename.strip():
            self._file_logging(filename)
        else:
            self.root_logger.debug("Log file name is empty. Logging to the file is not performed.")

        warnings.showwarning = self.warning_to_log
        LoggerUtils._configured = True

    def warning_to_log(
        self,
        message: Warning | str,
        category: type[Warning],
        filename: str,
        lineno: int,
        file: TextIO | None = None,
        line: str | None = None,
    ) -> None:
        """Redirect ``warnings.warn`` output to the diagnostic logger."""
        _ = file, line
        self.root_logger.warning("%s:%d: %s: %s", filename, lineno, category.__name__, message)

    @classmethod
    def initialize(cls, namespace: str) -> None:
        """Change the logger namespace before the first configuration.

        Args:
            namespace (str): The namespace to set for the logger.

        Raises:
            RuntimeError: If the logger is already configured.
        """
        if cls._configured:
            msg = "LoggerUtils is already configured. Reinitialization is not allowed."
            raise RuntimeError(msg)

        cls._LOGGER_NAMESPACE = namespace

    def _console_logging(self) -> None:
        if self._use_null_console:
            if not self._has_handler(NullHandler):
                self.root_logger.addHandler(NullHandler())
            return

        if self._has_handler(StreamHandler):
            self.root_logger.warning("Console logging is already configured.")
            return

        console_handler: StreamHandler[TextIO] = StreamHandler(sys.stderr)
        console_handler.setLevel(self._console_level)
        console_handler.setFormatter(Formatter("%(levelname)s: %(message)s"))
        self.root_logger.addHandler(console_handler)

    def _file_logging(self, filename: str) -> None:
        """Configure diagnostic log output to a rotating UTF-8 file.

        Args:
            filename (str): Path to the log file.
        """
        if self._has_handler(RotatingFileHandler):
            self.root_logger.warning("File logging is already configured.")
            return

        try:
            file_handler = RotatingFileHandler(
                filename=filename,
                maxBytes=_LOG_FILE_SIZE,
                backupCount=_LOG_BACKUP_COUNT,
                encoding="utf-8",
            )
        except (FileNotFoundError, PermissionError):
            self.root_logger.error("Incorrect log file name: %s\nLogging to the file is not performed.", filename)
            return

        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            Formatter("%(asctime)s %(levelname)-8s %(process)5d %(lineno)4d %(name)-40s\t%(funcName)s\t%(message)s")
        )
        self.root_logger.addHandler(file_handler)

    def _has_handler(self, handler_type: type) -> bool:
        return any(isinstance(h, handler_type) for h in self.root_logger.handlers)

    def set_level(self, level: LevelType) -> None:
        """Set the logging level for the namespace root logger.

        If an unknown level is specified, the logging level is set to 'INFO' and a warning is logged.

        Args:
            level (LevelType): The logging level to set.
        """
        level_map: dict[str, int] = logging.getLevelNamesMapping()
        try:
            self.root_logger.setLevel(level_map[level.upper()])
        except KeyError:
            self.root_logger.setLevel(DEFAULT_LOG_LEVEL)
            self.root_logger.warning("Unknown logging level '%s' specified.\nLogging level set to 'INFO'.", level)

    def get_level(self) -> LogLevel:
        """Get the current logging level of the namespace root logger.

        Returns:
            LogLevel: A named tuple containing the logging level name and its numeric value.
        """
        level_value: int = self.root_logger.getEffectiveLevel()
        return LogLevel(name=logging.getLevelName(level_value), value=level_value)

    @staticmethod
    def get_logger(name: str | None = None) -> logging.Logger:
        """Get a logger inside the gateway namespace.

        Args:
            name (str | None): The name of the logger. If None, the namespace root logger is returned.

        Returns:
            logging.Logger: The logger instance.
        """
        full_name: str | None
        if LoggerUtils._LOGGER_NAMESPACE:
            full_name = f"{LoggerUtils._LOGGER_NAMESPACE}.{name}" if name else LoggerUtils._LOGGER_NAMESPACE
        else:
            full_name = name or None
        return logging.getLogger(full_name)

    @staticmethod
    def build_record_logger(
        name: str,
        filename: str | Path,
        *,
        max_bytes: int = _LOG_FILE_SIZE,
        backup_count: int = _LOG_BACKUP_COUNT,
    ) -> tuple[logging.Logger, RotatingFileHandler]:
        """Build a logger that writes one raw message per line to a rotating file.

        The logger lives outside the diagnostic namespace and does not propagate, so records
        never reach the console. The parent directory of ``filename`` is created if missing.

        Args:
            name (str): Logger name, unique per record file.
            filename (str | Path): Destination file.
            max_bytes (int): Size at which the file is rotated.
            backup_count (int): Number of rotated files to keep.

        Returns:
            tuple[logging.Logger, RotatingFileHandler]: The logger and its handler. The caller owns
                the handler and must close it.
        """
        path = Path(filename)
        path.parent.mkdir(parents=True, exist_ok=True)

        handler = RotatingFileHandler(
            filename=str(path),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        handler.setFormatter(Formatter("%(message)s"))

        record_logger: logging.Logger = logging.getLogger(f"{name}.records")
        record_logger.setLevel(logging.INFO)
        record_logger.propagate = False
        for old in list(record_logger.handlers):
            record_logger.removeHandler(old)
            old.close()
        record_logger.addHandler(handler)
        return record_logger, handler
