# imagedump/writer.py

import logging
from datetime import datetime
from typing import Any, Dict, List, TextIO

from .batch import BatchAggregator
from .config import OutputConfig
from .database import Database
from .errors import SinkFailure
from .formatter import EntryFormatter
from .loader import ImageLoader
from .models import Entry, WriteResult

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = OutputConfig.BATCH_SIZE


def _drive(loader: ImageLoader, aggregator: BatchAggregator, on_entry) -> None:
    """
    Обход образа с накоплением в aggregator. При сбое загрузчика или
    форматирования уже принятые записи всё равно сбрасываются.
    """
    try:
        loader.load(on_entry)
    except SinkFailure:
        raise
    except Exception:
        aggregator.finish()
        raise
    aggregator.finish()


class SnapshotWriter:
    def __init__(self, formatter: EntryFormatter, batch_size: int = DEFAULT_BATCH_SIZE,
                 close_sink: bool = True):
        self.formatter = formatter
        self.batch_size = batch_size
        # False для чужих потоков, например sys.stdout
        self.close_sink = close_sink

    @staticmethod
    def _write_lines(sink: TextIO, lines: List[str]) -> None:
        """Запись пакета строк в приёмник"""
        try:
            sink.write(''.join(line + '\n' for line in lines))
        except (OSError, ValueError) as e:
            raise SinkFailure(f"Error writing output: {e}") from e

    def _release(self, sink: TextIO) -> None:
        try:
            sink.flush()
            if self.close_sink:
                sink.close()
        except (OSError, ValueError) as e:
            raise SinkFailure(f"Error closing output: {e}") from e

    def write(self, loader: ImageLoader, sink: TextIO) -> WriteResult:
        """Выгрузка всех записей образа в sink, по строке на запись"""
        result = WriteResult(start_time=datetime.now())
        logger.info(f"Writing {self.formatter.shape} records")

        try:
            aggregator = BatchAggregator(self.batch_size, lambda batch: self._write_lines(sink, batch))

            header = self.formatter.header()
            if header is not None:
                self._write_lines(sink, [header])

            def on_entry(parent_path: str, entry: Entry) -> None:
                aggregator.accept(self.formatter.format(parent_path, entry))
                result.count(entry)

            try:
                _drive(loader, aggregator, on_entry)
            except Exception as e:
                logger.error(f"Writing stopped after {aggregator.items_flushed} records: {str(e)}")
                raise
            result.batches = aggregator.batches_flushed
        finally:
            self._release(sink)

        result.end_time = datetime.now()
        logger.info(
            f"Wrote {result.records:,} records "
            f"({result.directories:,} directories, {result.files:,} files, {result.symlinks:,} symlinks) "
            f"in {result.batches} batches, {result.duration:.2f} seconds"
        )
        return result


class DatabaseWriter:
    """Сохранение записей образа в PostgreSQL пакетами"""

    def __init__(self, formatter: EntryFormatter, database: Database,
                 batch_size: int = DEFAULT_BATCH_SIZE):
        self.formatter = formatter
        self.db = database
        self.batch_size = batch_size

    def write(self, loader: ImageLoader) -> WriteResult:
        result = WriteResult(start_time=datetime.now())

        try:
            self.db.ensure_table()
            aggregator: BatchAggregator[Dict[str, Any]] = BatchAggregator(
                self.batch_size, self.db.save_records_bulk
            )

            def on_entry(parent_path: str, entry: Entry) -> None:
                aggregator.accept(self.formatter.record(parent_path, entry))
                result.count(entry)

            _drive(loader, aggregator, on_entry)
            result.batches = aggregator.batches_flushed

            # статистика по таблице после сохранения
            directories, files, total_size = self.db.get_snapshot_stats()
        finally:
            self.db.close()

        result.end_time = datetime.now()
        logger.info(
            f"Stored {result.records:,} records in {result.batches} batches, "
            f"{result.duration:.2f} seconds\n"
            f"  Table directories: {directories:,}\n"
            f"  Table files: {files:,}\n"
            f"  Table size: {total_size:,} bytes"
        )
        return result
