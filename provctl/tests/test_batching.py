import math

import pytest

from provctl.modules.engine.batching import batch_size, partition


@pytest.mark.parametrize("total,serial,expected", [
    (10, "100%", 10),
    (10, "30%", 3),
    (10, "25%", 2),
    (3, "10%", 1),
    (1, "1%", 1),
    (7, 2, 2),
    (3, 5, 3),
    (0, "50%", 0),
])
def test_batch_size(total, serial, expected):
    assert batch_size(total, serial) == expected


@pytest.mark.parametrize("total", [1, 2, 5, 9, 10, 17])
@pytest.mark.parametrize("percent", [1, 10, 25, 33, 50, 100])
def test_batch_count_matches_formula(total, percent):
    hosts = [f"node{i}" for i in range(total)]
    batches = partition(hosts, f"{percent}%")
    size = max(1, total * percent // 100)
    assert len(batches) == math.ceil(total / size)
    assert all(len(b) == size for b in batches[:-1])
    assert 0 < len(batches[-1]) <= size


def test_partition_keeps_host_order():
    hosts = ["c", "a", "b", "e", "d"]
    batches = partition(hosts, "40%")
    assert batches == [("c", "a"), ("b", "e"), ("d",)]
    assert [h for b in batches for h in b] == hosts


def test_partition_empty_group():
    assert partition([], "30%") == []


@pytest.mark.parametrize("serial", ["0%", "101%", "abc", "30", 0])
def test_invalid_serial(serial):
    with pytest.raises(ValueError):
        batch_size(5, serial)
