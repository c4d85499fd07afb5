# imagedump/batch.py

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Generic, Iterable, List, Optional, TypeVar

from .errors import InvalidConfiguration

logger = logging.getLogger(__name__)

T = TypeVar('T')

class BatchAggregator(Generic[T]):
    """
    Накапливает элементы в пакеты фиксированного размера и передаёт
    каждый полный пакет в sink.

    Накопление идёт в одном потоке. merge() вызывается координирующим
    потоком после того, как части закончили накопление: остатки обеих
    сторон сбрасываются по отдельности, без склейки, поэтому ни один
    пакет не превышает batch_size.
    """

    def __init__(self, batch_size: int, sink: Callable[[List[T]], None]):
        if sink is None or not callable(sink):
            raise InvalidConfiguration("sink must be a callable")
        if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size <= 0:
            raise InvalidConfiguration(f"batch_size must be a positive integer, got {batch_size!r}")
        self.batch_size = batch_size
        self.sink = sink
        self.items: List[T] = []
        self.batches_flushed = 0
        self.items_flushed = 0

    @property
    def pending(self) -> int:
        return len(self.items)

    def _flush(self) -> None:
        """Передача накопленного буфера в sink"""
        if self.items:
            batch, self.items = self.items, []
            self.sink(batch)
            self.batches_flushed += 1
            self.items_flushed += len(batch)

    def accept(self, item: T) -> None:
        self.items.append(item)
        if len(self.items) >= self.batch_size:
            self._flush()

    def merge(self, other: 'BatchAggregator[T]') -> 'BatchAggregator[T]':
        self._flush()
        other._flush()
        merged = BatchAggregator(self.batch_size, self.sink)
        merged.batches_flushed = self.batches_flushed + other.batches_flushed
        merged.items_flushed = self.items_flushed + other.items_flushed
        return merged

    def finish(self) -> None:
        self._flush()


def collect(items: Iterable[T], batch_size: int, sink: Callable[[List[T]], None]) -> BatchAggregator[T]:
    """Последовательное накопление с финальным сбросом"""
    aggregator = BatchAggregator(batch_size, sink)
    for item in items:
        aggregator.accept(item)
    aggregator.finish()
    return aggregator


def collect_partitioned(
        partitions: Iterable[Iterable[T]],
        batch_size: int,
        sink: Callable[[List[T]], None],
        max_workers: Optional[int] = None
) -> BatchAggregator[T]:
    """
    Параллельное накопление: каждая часть в своём агрегаторе,
    затем объединение через merge(). sink должен допускать
    одновременные вызовы из нескольких потоков.
    """
    result = BatchAggregator(batch_size, sink)

    def accumulate(partition: Iterable[T]) -> BatchAggregator[T]:
        aggregator = BatchAggregator(batch_size, sink)
        for item in partition:
            aggregator.accept(item)
        return aggregator

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        for aggregator in executor.map(accumulate, partitions):
            result = result.merge(aggregator)

    logger.debug(f"Collected {result.items_flushed} items in {result.batches_flushed} batches")
    return result
