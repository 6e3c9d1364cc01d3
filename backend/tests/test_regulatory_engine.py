"""
test_regulatory_engine.py — MSEDCL 2016 advisory checks.

Tests cover:
  - R1 minimum load: 75 W/m² residential, 150 / 200 W/m² commercial
  - R2 sanctioned load: max(TCL, minimum), kVA at pf 0.8, single vs multiple consumers
  - R3 DTC: threshold per area type, 500 kVA units, land 25 m² + 15 m² per extra unit
  - R4 substation: 33/11 kV bands, EHV above 20 MVA
  - run_compliance_checks: flags and combined land requirement
"""

import math

import pytest

from mep_portal.services.load_errors import ConfigurationError
from mep_portal.services.regulatory_engine import (
    BELOW_MINIMUM_LOAD,
    DTC_REQUIRED,
    MSEDCL_2016,
    SANCTIONED_KVA_EXCEEDED,
    SANCTIONED_KW_EXCEEDED,
    SUBSTATION_REQUIRED,
    check_dtc,
    check_substation,
    minimum_required_load_kw,
    run_compliance_checks,
    validate_sanctioned_load,
)


class TestMinimumLoad:

    def test_urban_10000_sqm_residential(self):
        """10,000 m² × 75 W/m² / 1000 = 750 kW."""
        assert minimum_required_load_kw(10_000.0) == 750.0

    def test_commercial_density_depends_on_ac(self):
        """1000 m² commercial: 150 kW without AC, 200 kW with AC."""
        assert minimum_required_load_kw(0.0, 1000.0, has_ac=False) == 150.0
        assert minimum_required_load_kw(0.0, 1000.0, has_ac=True) == 200.0

    def test_below_minimum_flagged(self):
        result = run_compliance_checks(700.0, 100.0, 10_000.0, "URBAN")
        assert result.has_flag(BELOW_MINIMUM_LOAD)
        assert not result.minimum_load.passed

    def test_at_minimum_not_flagged(self):
        result = run_compliance_checks(750.0, 100.0, 10_000.0, "URBAN")
        assert not result.has_flag(BELOW_MINIMUM_LOAD)

    def test_above_minimum_not_flagged(self):
        result = run_compliance_checks(900.0, 100.0, 10_000.0, "URBAN")
        assert not result.has_flag(BELOW_MINIMUM_LOAD)


class TestSanctionedLoad:

    def test_minimum_applied_when_tcl_lower(self):
        """TCL 700 < minimum 750 → sanctioned 750 kW = 937.5 kVA at pf 0.8."""
        result = run_compliance_checks(700.0, 100.0, 10_000.0, "URBAN")
        s = result.sanctioned_load
        assert s.minimum_applied
        assert s.sanctioned_kw == 750.0
        assert s.sanctioned_kva == pytest.approx(937.5)

    def test_single_consumer_limits(self):
        s = validate_sanctioned_load(170.0, 212.5)
        assert s.limit_type == "SINGLE_CONSUMER"
        assert s.exceeds_kw and s.exceeds_kva

    def test_multiple_consumer_limits(self):
        s = validate_sanctioned_load(400.0, 500.0, multiple_consumers=True)
        assert s.limit_type == "MULTIPLE_CONSUMERS"
        assert (s.max_kw, s.max_kva) == (480.0, 600.0)
        assert not s.exceeds_kw and not s.exceeds_kva

    def test_flags_raised_for_exceeded_limits(self):
        result = run_compliance_checks(800.0, 100.0, 1000.0, "URBAN")
        assert result.has_flag(SANCTIONED_KW_EXCEEDED)
        assert result.has_flag(SANCTIONED_KVA_EXCEEDED)


class TestDtc:

    def test_urban_single_dtc(self):
        """180 kW / 0.9 = 200 kVA > 75 kVA → 1 × 500 kVA DTC, 25 m²."""
        dtc = check_dtc(180.0, "URBAN")
        assert dtc.needed
        assert dtc.dtc_count == 1
        assert dtc.land_required_sqm == 25.0

    def test_three_units_land(self):
        """1000 kW / 0.9 = 1111.1 kVA → ceil(/500) = 3 units → 25 + 2×15 = 55 m²."""
        dtc = check_dtc(1000.0, "URBAN")
        assert dtc.dtc_count == 3
        assert dtc.land_required_sqm == 55.0

    def test_rural_below_threshold(self):
        """20 kW / 0.9 = 22.2 kVA ≤ 25 kVA."""
        assert not check_dtc(20.0, "RURAL").needed

    def test_metro_threshold(self):
        assert check_dtc(200.0, "METRO").threshold_kva == 250.0
        assert not check_dtc(200.0, "METRO").needed

    def test_unknown_area_type(self):
        with pytest.raises(ConfigurationError):
            check_dtc(100.0, "SUBURBAN")


class TestSubstation:

    def test_urban_above_3_mva(self):
        s = check_substation(3200.0, "URBAN")
        assert s.needed
        assert s.substation_type == "33/11 kV or 22/11 kV Substation"
        assert s.land_required_sqm == MSEDCL_2016.substation_land_sqm

    def test_metro_band_starts_at_3_5_mva(self):
        assert not check_substation(3200.0, "METRO").needed
        assert check_substation(3600.0, "METRO").needed

    def test_ehv_above_20_mva(self):
        s = check_substation(25_000.0, "RURAL")
        assert s.substation_type == "EHV Substation"

    def test_small_load_needs_none(self):
        s = check_substation(500.0, "URBAN")
        assert not s.needed
        assert s.substation_type is None


class TestComplianceSummary:

    def test_land_sums_dtc_and_substation(self):
        """
        3200 kW / 0.9 = 3555.6 kVA → 8 DTCs → 25 + 7×15 = 130 m²;
        substation 3500 m²; total 3630 m².
        """
        result = run_compliance_checks(8000.0, 3200.0, 10_000.0, "URBAN", multiple_consumers=True)
        assert result.has_flag(DTC_REQUIRED)
        assert result.has_flag(SUBSTATION_REQUIRED)
        assert result.dtc.dtc_count == math.ceil(3200.0 / 0.9 / 500.0) == 8
        assert result.land_required_sqm == pytest.approx(3630.0)

    def test_no_land_when_nothing_needed(self):
        result = run_compliance_checks(30.0, 20.0, 100.0, "RURAL")
        assert result.land_required_sqm == 0.0
        assert result.flags == ()
