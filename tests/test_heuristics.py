"""
Tests for the heuristic rate table.
"""

import pytest

from fairquote.services.pricing.heuristics import DEFAULT_ROW, HEURISTIC_TABLE, heuristic_rate
from fairquote.services.pricing.normalizer import CANONICAL_KEYS


class TestHeuristicRate:
    """Tests for heuristic_rate()."""

    def test_known_key(self):
        rate = heuristic_rate("oil_change")

        assert (rate.min, rate.avg, rate.max, rate.standard_hours) == (40, 55, 80, 0.5)
        assert rate.is_known

    def test_default_row(self):
        """Test unseen keys use the default row."""
        rate = heuristic_rate("wheel_alignment")

        assert (rate.min, rate.avg, rate.max, rate.standard_hours) == DEFAULT_ROW
        assert not rate.is_known

    @pytest.mark.parametrize("key,expected", [
        ("rotor_resurfacing", "rotors"),
        ("brake_rotor_machining", "rotors"),
        ("brake_fluid_flush", "brake_pads"),
        ("front_tyre_fitting_x4", "tires"),
        ("tire_rotation", "tires"),
        ("cabin_air_filter_replacement", "cabin_filter"),
        ("engine_air_filter_kit", "air_filter"),
        ("spark_plug_set", "spark_plugs"),
        ("transmission_service", "transmission_fluid"),
        ("radiator_flush", "coolant"),
        ("battery_terminal_cleaning", "battery"),
        ("rear_wiper_arm", "wiper_blades"),
    ])
    def test_substring_fallback(self, key, expected):
        """Test slug keys borrow the first matching table row."""
        rate = heuristic_rate(key)

        assert (rate.min, rate.avg, rate.max, rate.standard_hours) == HEURISTIC_TABLE[expected]
        assert rate.is_known

    def test_air_without_filter_is_unknown(self):
        assert not heuristic_rate("air_conditioning_recharge").is_known

    def test_every_canonical_key_has_a_row(self):
        assert set(HEURISTIC_TABLE) == set(CANONICAL_KEYS)

    def test_rows_are_ordered(self):
        for key in HEURISTIC_TABLE:
            rate = heuristic_rate(key)
            assert 0 < rate.min <= rate.avg <= rate.max
