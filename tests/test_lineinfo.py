import pytest

from bytecode_factory import u32
from luaudisasm.errors import TruncatedInput
from luaudisasm.lineinfo import LineTable, interval_count, read_line_table
from luaudisasm.reader import ByteReader


def test_line_lookup_adds_interval_base_and_offset():
    table = LineTable(gap_log2=0, offsets=(0, 1, 2, 3), interval_bases=(10, 10, 10, 10))

    assert [table.line(pc) for pc in range(4)] == [10, 11, 12, 13]


def test_read_line_table_accumulates_offsets_and_deltas():
    # gap 0: every instruction starts its own interval.
    data = bytes([0]) + bytes([0, 1, 1, 1]) + u32(10) + u32(0) + u32(0) + u32(0)

    table = read_line_table(ByteReader(data), 4)

    assert table.offsets == (0, 1, 2, 3)
    assert table.interval_bases == (10, 10, 10, 10)
    assert [table.line(pc) for pc in range(4)] == [10, 11, 12, 13]


def test_read_line_table_groups_instructions_into_intervals():
    offsets = bytes([0, 2, 1, 0, 0, 3])
    data = bytes([2]) + offsets + u32(5) + u32(20)

    table = read_line_table(ByteReader(data), 6)

    assert table.interval_bases == (5, 25)
    assert table.offsets == (0, 2, 3, 3, 3, 6)
    assert [table.line(pc) for pc in range(6)] == [5, 7, 8, 8, 28, 31]


def test_offsets_wrap_around_at_eight_bits():
    data = bytes([0]) + bytes([200, 100]) + u32(1) + u32(0)

    table = read_line_table(ByteReader(data), 2)

    assert table.offsets == (200, 44)


@pytest.mark.parametrize(
    "count,gap,expected",
    [(0, 0, 0), (1, 0, 1), (4, 0, 4), (4, 2, 1), (5, 2, 2), (8, 3, 1), (9, 3, 2)],
)
def test_interval_count(count, gap, expected):
    assert interval_count(count, gap) == expected


def test_truncated_line_table():
    data = bytes([0]) + bytes([0, 1]) + u32(1)

    with pytest.raises(TruncatedInput, match="absolute line delta"):
        read_line_table(ByteReader(data), 2)
