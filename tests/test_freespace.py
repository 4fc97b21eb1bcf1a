"""Tests for free-interval tracking."""
import pytest

from errors import InternalConsistencyError
from freespace import free_blocks, merge_ranges
from models import FreeBlock


class TestFreeBlocks:

    def test_empty_pool_is_one_block(self):
        assert free_blocks(1024, 256, []) == [FreeBlock(1024, 256)]

    def test_gaps_between_allocations(self):
        blocks = free_blocks(0, 128, [(16, 16), (64, 32)])

        assert blocks == [FreeBlock(0, 16), FreeBlock(32, 32), FreeBlock(96, 32)]

    def test_input_order_does_not_matter(self):
        assert free_blocks(0, 128, [(64, 32), (16, 16)]) == free_blocks(
            0, 128, [(16, 16), (64, 32)]
        )

    def test_adjacent_allocations_leave_no_gap(self):
        assert free_blocks(0, 64, [(0, 32), (32, 16)]) == [FreeBlock(48, 16)]

    def test_fully_allocated(self):
        assert free_blocks(0, 64, [(0, 32), (32, 32)]) == []

    def test_blocks_partition_the_free_space(self):
        occupied = [(8, 8), (32, 16), (100, 4)]
        blocks = free_blocks(0, 128, occupied)

        assert sum(b.size for b in blocks) + sum(s for _, s in occupied) == 128
        assert [b.start for b in blocks] == sorted(b.start for b in blocks)
        for block in blocks:
            for start, size in occupied:
                assert block.end <= start or start + size <= block.start

    def test_overlap_is_fatal(self):
        with pytest.raises(InternalConsistencyError, match="overlaps"):
            free_blocks(0, 128, [(0, 32), (16, 16)])

    def test_range_outside_pool_is_fatal(self):
        with pytest.raises(InternalConsistencyError, match="outside"):
            free_blocks(0, 128, [(120, 16)])

        with pytest.raises(InternalConsistencyError):
            free_blocks(64, 64, [(0, 16)])


class TestMergeRanges:

    def test_merges_overlapping_and_adjacent(self):
        assert merge_ranges([(10, 12), (0, 4), (4, 8), (11, 20)]) == [(0, 8), (10, 20)]

    def test_disjoint_ranges_kept(self):
        assert merge_ranges([(5, 6), (0, 1)]) == [(0, 1), (5, 6)]

    def test_empty(self):
        assert merge_ranges([]) == []
