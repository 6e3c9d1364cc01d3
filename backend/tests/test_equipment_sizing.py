"""
test_equipment_sizing.py — Band lookups and pump-set parsing.

Lookup rule: smallest band >= requested value; above the last band, the
last band's rating.
"""

import pytest

from mep_portal.services.equipment_sizing import (
    DEFAULT_SIZING,
    LIFT_KW_BY_HEIGHT_M,
    EquipmentSizing,
    lookup_band,
    working_pump_count,
)
from mep_portal.services.load_errors import ConfigurationError


class TestLookupBand:

    def test_exact_band(self):
        assert lookup_band(LIFT_KW_BY_HEIGHT_M, 90) == 15.0

    def test_between_bands_rounds_up(self):
        """91 m is above the 90 m band, so the 100 m rating (18 kW) applies."""
        assert lookup_band(LIFT_KW_BY_HEIGHT_M, 91) == 18.0

    def test_below_first_band(self):
        """A 6 m building still gets the smallest lift rating."""
        assert lookup_band(LIFT_KW_BY_HEIGHT_M, 6) == 12.0

    def test_above_last_band_clamps(self):
        assert lookup_band(LIFT_KW_BY_HEIGHT_M, 400) == 28.0

    def test_empty_table(self):
        with pytest.raises(ConfigurationError):
            lookup_band((), 10)


class TestWorkingPumpCount:

    @pytest.mark.parametrize("pump_set, expected", [
        ("1W+1S", 1),
        ("2W+1S", 2),
        ("3 W + 1 S", 3),
        ("Main+SBY+Jky", 1),
        ("2 Main+SBY+Jky", 2),
        ("", 1),
        (None, 1),
    ])
    def test_counts(self, pump_set, expected):
        assert working_pump_count(pump_set) == expected


class TestEquipmentSizing:

    def test_hydrant_pump_2850_lpm(self):
        assert DEFAULT_SIZING.hydrant_pump_kw(2850) == 112.0

    def test_booster_pump_300_lpm(self):
        assert DEFAULT_SIZING.phe_pump_kw(300) == 2.2

    def test_lobby_ac_per_tonne(self):
        """10 TR × 1.2 kW/TR = 12 kW."""
        assert DEFAULT_SIZING.ac_kw(10) == pytest.approx(12.0)

    def test_lift_override_wins_over_height_table(self):
        sizing = EquipmentSizing(lift_kw_override={"firemen": 30.0})
        assert sizing.lift_kw("firemen", 20) == 30.0
        assert sizing.lift_kw("passenger", 20) == 12.0

    def test_unknown_lift_class(self):
        with pytest.raises(ConfigurationError):
            DEFAULT_SIZING.lift_kw("goods", 30)

    def test_ev_charger_types(self):
        assert DEFAULT_SIZING.ev_kw("standard") == 7.4
        assert DEFAULT_SIZING.ev_kw("dc_fast") == 50.0

    def test_unknown_ev_charger_type(self):
        with pytest.raises(ConfigurationError):
            DEFAULT_SIZING.ev_kw("hyper")
