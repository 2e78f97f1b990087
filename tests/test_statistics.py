"""
Tests for the statistics engine.
"""

import pytest

from fairquote.services.pricing.statistics import band, median, quantile


class TestMedian:
    """Tests for median()."""

    def test_odd_length(self):
        assert median([3, 1, 2]) == 2

    def test_even_length(self):
        """Test the mean of the two central values is used."""
        assert median([4, 1, 3, 2]) == 2.5

    def test_empty(self):
        with pytest.raises(ValueError):
            median([])


class TestQuantile:
    """Tests for quantile()."""

    def test_exact_index(self):
        """Test a whole-number position picks the order statistic."""
        assert quantile([100, 120, 110, 90, 130], 0.25) == 100
        assert quantile([100, 120, 110, 90, 130], 0.75) == 120

    def test_interpolates(self):
        """Test fractional positions interpolate linearly."""
        # (4 - 1) * 0.25 = 0.75 -> 10 + 0.75 * (20 - 10)
        assert quantile([10, 20, 30, 40], 0.25) == pytest.approx(17.5)

    def test_bounds(self):
        values = [5, 1, 9]
        assert quantile(values, 0.0) == 1
        assert quantile(values, 1.0) == 9


class TestBand:
    """Tests for band()."""

    def test_worked_example(self):
        """Test the band for a five-quote oil change sample."""
        result = band([100, 120, 110, 90, 130])

        assert result.median == 110
        assert result.p25 == 100
        assert result.p75 == 120

    @pytest.mark.parametrize("values", [[], [50], [50, 60, 70, 80]])
    def test_absent_below_five(self, values):
        """Test small samples yield no band."""
        assert band(values) is None

    def test_ordering(self):
        """Test p25 <= median <= p75 on an unsorted sample."""
        result = band([300, 12.5, 80, 80, 1000, 45, 60])

        assert result.p25 <= result.median <= result.p75

    def test_custom_minimum(self):
        assert band([1, 2, 3], minimum=3) is not None
        assert band([1, 2], minimum=3) is None
