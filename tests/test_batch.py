import threading

import pytest

from imagedump.batch import BatchAggregator, collect, collect_partitioned
from imagedump.errors import InvalidConfiguration


@pytest.mark.parametrize('batch_size', [1, 2, 3, 7, 10])
@pytest.mark.parametrize('n', [0, 1, 5, 10, 23])
def test_sequential_batches_cover_every_item_once(batch_size, n):
    batches = []
    aggregator = collect(range(n), batch_size, batches.append)

    assert [item for batch in batches for item in batch] == list(range(n))
    assert sum(len(batch) for batch in batches) == n
    assert all(len(batch) == batch_size for batch in batches[:-1])
    if batches:
        assert 0 < len(batches[-1]) <= batch_size
    assert aggregator.items_flushed == n
    assert aggregator.pending == 0


def test_accept_flushes_when_batch_is_full():
    batches = []
    aggregator = BatchAggregator(3, batches.append)

    aggregator.accept('a')
    aggregator.accept('b')
    assert batches == []
    assert aggregator.pending == 2

    aggregator.accept('c')
    assert batches == [['a', 'b', 'c']]
    assert aggregator.pending == 0


def test_finish_flushes_remainder_once():
    batches = []
    aggregator = BatchAggregator(4, batches.append)
    for item in range(6):
        aggregator.accept(item)

    aggregator.finish()
    aggregator.finish()

    assert batches == [[0, 1, 2, 3], [4, 5]]
    assert aggregator.batches_flushed == 2


def test_finish_on_empty_buffer_does_not_call_sink():
    calls = []
    BatchAggregator(2, calls.append).finish()
    assert calls == []


@pytest.mark.parametrize('batch_size', [0, -1, True, 1.5, '3', None])
def test_rejects_invalid_batch_size(batch_size):
    with pytest.raises(InvalidConfiguration):
        BatchAggregator(batch_size, lambda batch: None)


def test_rejects_missing_sink():
    with pytest.raises(InvalidConfiguration):
        BatchAggregator(10, None)
    with pytest.raises(ValueError):
        BatchAggregator(10, 'not callable')


def test_merge_flushes_each_leftover_separately():
    batches = []
    left = BatchAggregator(3, batches.append)
    right = BatchAggregator(3, batches.append)
    for item in (1, 2):
        left.accept(item)
    right.accept(3)

    merged = left.merge(right)

    assert batches == [[1, 2], [3]]
    assert merged.pending == 0
    assert left.pending == 0
    assert right.pending == 0
    assert merged.items_flushed == 3
    assert merged.batches_flushed == 2


def test_merge_never_exceeds_batch_size():
    batches = []
    left = BatchAggregator(3, batches.append)
    right = BatchAggregator(3, batches.append)
    for item in range(5):
        left.accept(item)
    for item in range(5, 10):
        right.accept(item)

    left.merge(right).finish()

    assert all(len(batch) <= 3 for batch in batches)
    assert sorted(item for batch in batches for item in batch) == list(range(10))


def test_merge_of_empty_aggregators_calls_no_sink():
    calls = []
    merged = BatchAggregator(2, calls.append).merge(BatchAggregator(2, calls.append))

    assert calls == []
    assert merged.pending == 0
    assert merged.batch_size == 2


def test_merge_flushes_other_through_its_own_sink():
    left_batches, right_batches = [], []
    left = BatchAggregator(5, left_batches.append)
    right = BatchAggregator(5, right_batches.append)
    left.accept('l')
    right.accept('r')

    left.merge(right)

    assert left_batches == [['l']]
    assert right_batches == [['r']]


def test_failed_sink_does_not_redeliver_batch():
    delivered = []

    def sink(batch):
        delivered.append(list(batch))
        raise RuntimeError('sink is down')

    aggregator = BatchAggregator(2, sink)
    aggregator.accept(1)
    with pytest.raises(RuntimeError):
        aggregator.accept(2)

    aggregator.finish()
    assert delivered == [[1, 2]]


def test_collect_partitioned_delivers_every_item_once():
    batches = []
    lock = threading.Lock()

    def sink(batch):
        with lock:
            batches.append(batch)

    partitions = [range(0, 5), range(5, 12), range(12, 13), range(13, 13)]
    result = collect_partitioned(partitions, 3, sink, max_workers=4)

    assert sorted(item for batch in batches for item in batch) == list(range(13))
    assert all(len(batch) <= 3 for batch in batches)
    assert result.items_flushed == 13
    assert result.batches_flushed == len(batches)
    assert result.pending == 0


def test_collect_partitioned_keeps_order_within_partition():
    batches = []
    lock = threading.Lock()

    def sink(batch):
        with lock:
            batches.append(batch)

    collect_partitioned([['a1', 'a2', 'a3', 'a4']], 2, sink)

    assert batches == [['a1', 'a2'], ['a3', 'a4']]
