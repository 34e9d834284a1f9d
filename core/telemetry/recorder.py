"""Asynchronous JSON-lines recorder for translation telemetry.

Producers enqueue records without blocking. A single consumer task writes them to a rotating
file. When the queue is full the record is dropped and the producer is told so through
`TelemetryQueueFullError`.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import TYPE_CHECKING, Final

from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from logging.handlers import RotatingFileHandler
    from pathlib import Path

    from models.translation_models import TranslationRecord

__all__: list[str] = ["TelemetryError", "TelemetryQueueFullError", "TranslationRecorder"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

DEFAULT_QUEUE_SIZE: Final[int] = 1000
DEFAULT_MAX_BYTES: Final[int] = 10 * 1024 * 1024
DEFAULT_BACKUP_COUNT: Final[int] = 5


class TelemetryError(Exception):
    """An error occurred while recording translation telemetry."""


class TelemetryQueueFullError(TelemetryError):
    """The telemetry queue is full and the record was dropped."""


class TranslationRecorder:
    """Writes one JSON line per translation request.

    The consumer is started by `start`, or by the first `log_translation` call, which must then
    happen inside the event loop. Call `close` at shutdown to flush the records still queued.
    A disabled recorder accepts records and discards them.
    """

    def __init__(
        self,
        file_path: str | Path,
        *,
        enabled: bool = True,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        max_bytes: int = DEFAULT_MAX_BYTES,
        backup_count: int = DEFAULT_BACKUP_COUNT,
    ) -> None:
        """Initialize the recorder.

        Args:
            file_path (str | Path): Destination JSON-lines file. Its directory is created on start.
            enabled (bool): If False, records are discarded and no file is opened.
            queue_size (int): Maximum number of queued records. Non-positive falls back to the default.
            max_bytes (int): Size at which the file is rotated.
            backup_count (int): Number of rotated files to keep.
        """
        self.enabled: bool = enabled
        self._file_path: str | Path = file_path
        self._max_bytes: int = max_bytes
        self._backup_count: int = backup_count
        self._queue: asyncio.Queue[TranslationRecord] = asyncio.Queue(
            maxsize=queue_size if queue_size > 0 else DEFAULT_QUEUE_SIZE
        )
        self._record_logger: logging.Logger | None = None
        self._handler: RotatingFileHandler | None = None
        self._consumer: asyncio.Task[None] | None = None
        self._closed: bool = False

    @property
    def is_running(self) -> bool:
        return self._consumer is not None and not self._consumer.done()

    def start(self) -> None:
        """Open the record file and start the consumer task.

        Must be called from within a running event loop. Calling it again has no effect.
        """
        if not self.enabled or self._closed or self._consumer is not None:
            return
        self._record_logger, self._handler = LoggerUtils.build_record_logger(
            f"{__name__}.{id(self):x}",
            self._file_path,
            max_bytes=self._max_bytes,
            backup_count=self._backup_count,
        )
        self._consumer = asyncio.create_task(self._consume(), name="translation-recorder")
        logger.info("Translation telemetry is written to '%s'", self._file_path)

    def log_translation(self, record: TranslationRecord) -> None:
        """Stamp and enqueue a record without blocking.

        Args:
            record (TranslationRecord): Record to write. Its timestamp is set here.

        Raises:
            TelemetryQueueFullError: If the queue is full. The record is dropped.
        """
        if not self.enabled or self._closed:
            return
        if self._consumer is None:
            self.start()
        record.timestamp = datetime.now().astimezone()
        try:
            self._queue.put_nowait(record)
        except asyncio.QueueFull as err:
            msg = "Telemetry queue is full"
            raise TelemetryQueueFullError(msg) from err

    async def _consume(self) -> None:
        while True:
            record: TranslationRecord = await self._queue.get()
            try:
                await asyncio.to_thread(self._write, record)
            except (OSError, ValueError, TypeError) as err:
                logger.error("Failed to write translation record: %s", err)
            finally:
                self._queue.task_done()

    def _write(self, record: TranslationRecord) -> None:
        if self._record_logger is not None:
            self._record_logger.info(record.to_json(ensure_ascii=False))

    async def close(self) -> None:
        """Flush queued records, stop the consumer and close the file.

        Calling it more than once is allowed.
        """
        if self._closed:
            return
        self._closed = True

        if self._consumer is not None:
            await self._queue.join()
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
            self._consumer = None

        if self._record_logger is not None and self._handler is not None:
            self._record_logger.removeHandler(self._handler)
            self._handler.close()
        self._record_logger = None
        self._handler = None
        logger.debug("Translation recorder closed")
