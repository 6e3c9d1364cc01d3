"""
test_electrical_load_engine.py — End-to-end "Calculate" behaviour.

Tests cover the engine-level guarantees:
  - Determinism: identical inputs → equal CalculationResults
  - Twin equivalence: structural copy; twin excluded when its parent is selected;
    twin alone == parent alone
  - Additivity: Σ category totals == building totals (1e-6)
  - Monotonicity: more flats never lower a building's TCL
  - Transformer sizing: MaxDemand 450 kW → 500 kVA
  - Regulatory minimum: URBAN, 10,000 m² → 750 kW minimum
  - Empty selection / no occupancy → invalid result, never a zero "valid" one
  - Unresolved twin → configuration error before any totals
"""

import pytest

from mep_portal.services.electrical_load_engine import (
    NO_BUILDINGS_SELECTED,
    NO_OCCUPANCY_DATA,
    ElectricalLoadEngine,
    resolve_selection,
)
from mep_portal.services.factor_table import DEFAULT_FACTOR_ROWS, FactorTable
from mep_portal.services.load_errors import ConfigurationError, UnresolvedTwinError
from mep_portal.services.load_evaluators import FLAT_LOADS, LIFTS, CalculationInputs
from mep_portal.services.perf_monitor import tracker
from mep_portal.services.project_arena import CounterIdGenerator, ProjectArena
from mep_portal.services.regulatory_engine import BELOW_MINIMUM_LOAD

TOL = 1e-6


def _ids(arena, *names):
    return [arena.building_by_name(n).id for n in names]


def _ten_thousand_sqm_arena():
    """One floor, 100 × 2BHK @ 100 m² = 10,000 m² carpet."""
    arena = ProjectArena(id_generator=CounterIdGenerator("big"))
    b = arena.add_building("Tower X")
    floor = arena.add_floor(b.id, "Floor 1")
    arena.add_flat(floor.id, "2BHK", 100.0, 100)
    return arena, b.id


# ===========================================================================
# Determinism
# ===========================================================================

class TestDeterminism:

    def test_two_runs_equal(self, engine, arena):
        ids = _ids(arena, "Tower A", "Tower B")
        assert engine.calculate(arena, ids) == engine.calculate(arena, ids)

    def test_two_engines_equal(self, arena):
        ids = _ids(arena, "Tower A", "Tower B")
        first = ElectricalLoadEngine(id_generator_factory=lambda: CounterIdGenerator("eff"))
        second = ElectricalLoadEngine(id_generator_factory=lambda: CounterIdGenerator("eff"))
        assert first.calculate(arena, ids) == second.calculate(arena, ids)


# ===========================================================================
# Twin equivalence
# ===========================================================================

class TestTwinEquivalence:

    def test_twin_items_equal_parent_items(self, engine, arena):
        result = engine.calculate(arena, _ids(arena, "Tower A", "Tower B"))
        a = result.breakdown("Tower A")
        b = result.breakdown("Tower B")
        assert b.categories == a.categories

    def test_twin_excluded_when_parent_selected(self, engine, arena, bare_inputs):
        """Tower A flats: 660 m² × 75 W = 49.5 kW. Tower B adds nothing."""
        result = engine.calculate(arena, _ids(arena, "Tower A", "Tower B"), bare_inputs)
        assert result.breakdown("Tower A").counted_in_totals
        assert not result.breakdown("Tower B").counted_in_totals
        assert result.totals.grand_total_tcl == pytest.approx(49.5)
        assert result.totals.counted_buildings == 1
        assert result.totals.number_of_buildings == 2

    def test_similar_to_links(self, engine, arena):
        result = engine.calculate(arena, _ids(arena, "Tower A", "Tower B"))
        assert result.breakdown("Tower A").similar_to == ("Tower B",)
        assert result.breakdown("Tower B").similar_to == ("Tower A",)

    def test_twin_alone_equals_parent_alone(self, engine, arena):
        only_parent = engine.calculate(arena, _ids(arena, "Tower A"))
        only_twin = engine.calculate(arena, _ids(arena, "Tower B"))
        assert only_twin.totals == only_parent.totals
        assert only_twin.breakdown("Tower B").counted_in_totals

    def test_selected_buildings_record_twin_link(self, engine, arena):
        result = engine.calculate(arena, _ids(arena, "Tower A", "Tower B"))
        twin = [s for s in result.selected_buildings if s["name"] == "Tower B"][0]
        assert twin["twin_of_building_name"] == "Tower A"
        assert twin["carpet_area_sqm"] == 660.0


# ===========================================================================
# Additivity
# ===========================================================================

class TestAdditivity:

    def test_categories_sum_to_building_totals(self, engine, arena):
        inputs = CalculationInputs(lobby_type="AC", mechanical_ventilation=True)
        result = engine.calculate(arena, _ids(arena, "Tower A", "Tower B"), inputs)
        for b in result.building_breakdowns:
            for axis in ("tcl", "max_demand", "essential", "fire"):
                by_category = sum(getattr(c.totals, axis) for c in b.categories)
                by_item = sum(getattr(i.totals, axis) for c in b.categories for i in c.items)
                assert abs(by_category - getattr(b.totals, axis)) < TOL
                assert abs(by_item - getattr(b.totals, axis)) < TOL

    def test_grand_is_per_building_plus_society(self, engine, arena):
        t = engine.calculate(arena, _ids(arena, "Tower A")).totals
        assert abs(t.grand_total_tcl - (t.per_building.tcl + t.society.tcl)) < TOL
        assert abs(t.total_fire - (t.per_building.fire + t.society.fire)) < TOL

    def test_merged_view_matches_counted_buildings(self, engine, arena):
        result = engine.calculate(arena, _ids(arena, "Tower A", "Tower B"))
        merged = result.flat_loads.totals.tcl + sum(c.totals.tcl for c in result.building_ca_loads)
        assert abs(merged - result.totals.per_building.tcl) < TOL


# ===========================================================================
# Monotonicity
# ===========================================================================

class TestMonotonicity:

    def test_more_flats_never_lowers_tcl(self, engine, arena):
        tower_a = arena.building_by_name("Tower A")
        flat_id = arena.floors_of(tower_a.id)[0].flat_ids[0]
        previous = None
        for count in (0, 1, 4, 5, 20):
            arena.update_flat(flat_id, count=count)
            tcl = engine.calculate(arena, [tower_a.id]).breakdown("Tower A").totals.tcl
            if previous is not None:
                assert tcl >= previous
            previous = tcl


# ===========================================================================
# Transformer sizing and regulatory minimum
# ===========================================================================

class TestTransformerAndMinimum:

    def test_450_kw_demand_gives_500_kva(self, engine, bare_inputs):
        """10,000 m² × 75 W = 750 kW TCL × MDF 0.6 = 450 kW MD → ceil(450 / 0.9) = 500 kVA."""
        arena, bid = _ten_thousand_sqm_arena()
        totals = engine.calculate(arena, [bid], bare_inputs).totals
        assert totals.total_max_demand == pytest.approx(450.0)
        assert totals.transformer_size_kva == 500

    def test_at_minimum_has_no_flag(self, engine, bare_inputs):
        arena, bid = _ten_thousand_sqm_arena()
        result = engine.calculate(arena, [bid], bare_inputs)
        assert result.totals.grand_total_tcl == pytest.approx(750.0)
        assert result.regulatory_compliance.minimum_load.required_kw == pytest.approx(750.0)
        assert not result.regulatory_compliance.has_flag(BELOW_MINIMUM_LOAD)

    def test_below_minimum_is_flagged(self, bare_inputs):
        """A 70 W/m² flat density gives 700 kW < 750 kW."""
        rows = [dict(r) for r in DEFAULT_FACTOR_ROWS]
        for r in rows:
            if r["description"] == "Residential Flat Load":
                r["watt_per_sqm"] = 70.0
        engine = ElectricalLoadEngine(factor_table=FactorTable.from_rows(rows))
        arena, bid = _ten_thousand_sqm_arena()
        result = engine.calculate(arena, [bid], bare_inputs)
        assert result.is_valid
        assert result.totals.grand_total_tcl == pytest.approx(700.0)
        assert result.regulatory_compliance.has_flag(BELOW_MINIMUM_LOAD)

    def test_single_consumer_when_twin_not_counted(self, engine, arena):
        result = engine.calculate(arena, _ids(arena, "Tower A", "Tower B"))
        assert result.regulatory_compliance.sanctioned_load.limit_type == "SINGLE_CONSUMER"


# ===========================================================================
# Invalid results and configuration errors
# ===========================================================================

class TestInvalidResults:

    def test_empty_selection(self, engine, arena):
        result = engine.calculate(arena, [])
        assert not result.is_valid
        assert result.invalid_reason == NO_BUILDINGS_SELECTED
        assert result.totals is None
        assert tracker.get_metrics()["invalid_results"] == 1

    def test_no_occupancy(self, engine, arena):
        for flat_id in list(arena.flats):
            arena.update_flat(flat_id, count=0)
        result = engine.calculate(arena, _ids(arena, "Tower A"))
        assert not result.is_valid
        assert result.invalid_reason == NO_OCCUPANCY_DATA
        assert result.totals is None
        assert result.breakdown("Tower A") is not None

    def test_unresolved_twin_raises_before_totals(self, engine):
        arena = ProjectArena(id_generator=CounterIdGenerator("u"))
        arena.add_building("Tower A")
        orphan = arena.add_building("Tower B", twin_of_building_name="Tower Z")
        with pytest.raises(UnresolvedTwinError):
            engine.calculate(arena, [orphan.id])
        metrics = tracker.get_metrics()
        assert metrics["error_count_by_class"] == {"UnresolvedTwinError": 1}
        assert metrics["calculations_completed"] == 0

    def test_twin_of_twin_raises(self, engine, arena):
        chained = arena.add_building("Tower C", twin_of_building_name="Tower B")
        with pytest.raises(UnresolvedTwinError):
            engine.calculate(arena, [chained.id])

    def test_unknown_area_type(self, engine, arena):
        with pytest.raises(ConfigurationError):
            engine.calculate(arena, _ids(arena, "Tower A"), CalculationInputs(area_type="SUBURBAN"))

    def test_power_factor_out_of_range(self, engine, arena):
        with pytest.raises(ConfigurationError):
            engine.calculate(arena, _ids(arena, "Tower A"), CalculationInputs(power_factor=1.2))


# ===========================================================================
# Payload entry point
# ===========================================================================

class TestCalculateFromPayload:

    def test_selection_by_name(self, engine, building_payload, bare_inputs):
        result = engine.calculate_from_payload(building_payload, ["Tower A", "Tower B"], bare_inputs)
        assert result.is_valid
        assert [b.building_name for b in result.building_breakdowns] == ["Tower A", "Tower B"]
        assert result.flat_loads.name == FLAT_LOADS
        assert [c.name for c in result.building_ca_loads] == [LIFTS]

    def test_unknown_selection(self, engine, building_payload):
        with pytest.raises(ConfigurationError):
            engine.calculate_from_payload(building_payload, ["Tower Q"])

    def test_resolve_selection_prefers_ids(self, arena):
        tower_a = arena.building_by_name("Tower A")
        assert resolve_selection(arena, [tower_a.id, "Tower B"]) == _ids(arena, "Tower A", "Tower B")

    def test_factor_snapshot_attached(self, engine, building_payload):
        result = engine.calculate_from_payload(building_payload, ["Tower A"])
        assert len(result.factors_used) == len(DEFAULT_FACTOR_ROWS)

    def test_stage_timings_recorded(self, engine, building_payload):
        engine.calculate_from_payload(building_payload, ["Tower A"])
        metrics = tracker.get_metrics()
        assert metrics["calculations_completed"] == 1
        assert {"normalize", "evaluate"} <= set(metrics["stage_avg_durations_ms"])
