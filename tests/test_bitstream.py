"""
==============================================================================
Run-Length Bit Decoder Tests
==============================================================================

Tests for run-length bucketing, bit values and per-bit pixel intervals.

==============================================================================
"""

import numpy as np
import pytest

from magcode.decoder import SyntheticFrameFactory, bits_for_run_length, decode_bits


def runs(*pairs):
    """Build a binary sequence from (value, length) pairs."""
    return np.concatenate([np.full(length, value, dtype=np.int32) for value, length in pairs])


class TestRunLengthBuckets:
    """Tests for bits-per-run mapping."""

    @pytest.mark.parametrize("length,expected", [
        (0, 0), (4, 0),
        (5, 1), (29, 1),
        (30, 2), (49, 2),
        (50, 3), (69, 3),
        (70, 4), (89, 4),
        (90, 5), (400, 5),
    ])
    def test_bucket_boundaries(self, length, expected):
        """Test each bucket boundary."""
        assert bits_for_run_length(length) == expected


class TestDecodeBits:
    """Tests for bit decoding."""

    def test_empty_sequence(self):
        """Test empty input yields an empty result."""
        result = decode_bits(np.array([], dtype=np.int32))
        assert result.is_empty
        assert result.bit_count == 0

    def test_bit_value_from_run_value(self):
        """Test a 0-run decodes to 1 and a 255-run to 0."""
        result = decode_bits(runs((0, 20), (255, 20)))
        assert result.bits == (1, 0)

    def test_synthetic_sequence_decodes(self):
        """Test a 20 px-per-bit sequence decodes back to its bits."""
        bits = SyntheticFrameFactory.tail_bits([1, 1, 0, 0] * 10 + [1, 1])
        result = decode_bits(SyntheticFrameFactory.binary_sequence(bits))
        assert result.bits == bits
        assert result.bit_string() == "".join(str(b) for b in bits)

    def test_decode_is_deterministic(self):
        """Test repeated decodes of one sequence give identical bits and intervals."""
        bits = SyntheticFrameFactory.tail_bits([1, 1, 0, 0] * 10 + [1, 1])
        sequence = SyntheticFrameFactory.binary_sequence(bits)

        first = decode_bits(sequence)
        second = decode_bits(sequence.copy())

        assert first.bits == second.bits
        assert first.intervals == second.intervals
        assert len(first.intervals) == len(bits)

    def test_intervals_partition_run(self):
        """Test a 50 px run splits into 3 contiguous equal-width intervals."""
        result = decode_bits(runs((0, 50)))
        intervals = result.intervals

        assert result.bits == (1, 1, 1)
        assert intervals[0].pixel_start == 0
        assert intervals[-1].pixel_end == pytest.approx(50)
        for prev, nxt in zip(intervals, intervals[1:]):
            assert prev.pixel_end == pytest.approx(nxt.pixel_start)
        for interval in intervals:
            assert interval.pixel_width == pytest.approx(50 / 3)
            assert interval.bits_in_run == 3
        assert [i.position_in_run for i in intervals] == [0, 1, 2]

    def test_interval_provenance(self):
        """Test intervals carry run metadata and midpoints."""
        result = decode_bits(runs((255, 40), (0, 10)))
        first, second, third = result.intervals

        assert (first.run_start, first.run_end, first.run_length) == (0, 40, 40)
        assert first.run_value == 255
        assert first.pixel_center == 10
        assert second.pixel_start == 20
        assert third.run_value == 0
        assert third.bit_index == 2

    def test_discarded_run_counts_in_run_index(self):
        """Test run_index counts runs that encoded no bits."""
        # The 4 px 255-run survives noise suppression but encodes nothing
        result = decode_bits(runs((0, 20), (255, 4), (0, 20)))
        assert result.bits == (1, 1)
        assert [i.run_index for i in result.intervals] == [0, 2]

    def test_noise_suppression_merges_runs(self):
        """Test a short 255-run is absorbed into the surrounding 0-run."""
        result = decode_bits(runs((0, 20), (255, 3), (0, 20)))
        # One 43 px run
        assert result.bits == (1, 1)
        assert {i.run_index for i in result.intervals} == {0}
        assert result.intervals[-1].run_length == 43

    def test_binary_sequence_kept_before_suppression(self):
        """Test the stored sequence still contains the suppressed run."""
        sequence = runs((0, 20), (255, 3), (0, 20))
        result = decode_bits(sequence)
        assert result.binary_sequence.tolist() == sequence.tolist()

    def test_noise_max_run_zero_disables_suppression(self):
        """Test max run 0 keeps every 255-run."""
        result = decode_bits(runs((0, 20), (255, 3), (0, 20)), noise_max_run=0)
        assert result.bits == (1, 1)
        assert [i.run_index for i in result.intervals] == [0, 2]
