"""
Electrical Load Engine — the "Calculate" action.

Pipeline (synchronous, no I/O; every input is materialised by the caller):

    1. Selection        empty → invalid result
    2. Normalize        twins resolved, geometry derived (configuration errors raise)
    3. Evaluate         building categories per effective building, society categories once
    4. Aggregate        breakdowns, twin roll-up, totals, transformer size
    5. Validate         no occupancy data or MaxDemand ≤ 0 → invalid result
    6. Comply           MSEDCL advisory flags

One engine instance may serve concurrent calculations: it holds only
read-only tables, and each call gets its own id generator.
"""
from __future__ import annotations

import dataclasses
import logging
import time
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence

from mep_portal.config import AREA_TYPES
from mep_portal.services.equipment_sizing import DEFAULT_SIZING, EquipmentSizing
from mep_portal.services.factor_table import FactorTable, default_factor_table
from mep_portal.services.hierarchy_normalizer import normalize_buildings
from mep_portal.services.load_aggregator import aggregate, build_breakdowns, merge_categories
from mep_portal.services.load_errors import ConfigurationError, LoadCalculationError
from mep_portal.services.load_evaluators import (
    BUILDING_CATEGORY_ORDER,
    FLAT_LOADS,
    BuildingContext,
    CalculationInputs,
    evaluate_building_categories,
    evaluate_society_categories,
)
from mep_portal.services.load_models import (
    BuildingBreakdown,
    CalculationResult,
    EffectiveBuilding,
)
from mep_portal.services.perf_monitor import tracker
from mep_portal.services.project_arena import CounterIdGenerator, IdGenerator, ProjectArena
from mep_portal.services.regulatory_engine import MSEDCL_2016, RegulatoryFramework, run_compliance_checks

logger = logging.getLogger("mep-portal-engine")

NO_BUILDINGS_SELECTED = "no buildings selected"
NO_OCCUPANCY_DATA = "no load-bearing occupancy data (every flat, commercial and villa area is zero)"
NO_MAXIMUM_DEMAND = "grand total maximum demand is zero"


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


def _has_occupancy(building: EffectiveBuilding) -> bool:
    a = building.attributes
    return (
        building.carpet_area_sqm > 0
        or a.villa_count * a.villa_area > 0
        or a.shop_count * a.shop_area > 0
        or a.office_count * a.office_area > 0
    )


def _areas(buildings: Sequence[EffectiveBuilding], breakdowns: Sequence[BuildingBreakdown]):
    """(residential m², commercial m²) over the buildings counted in totals."""
    counted = {b.building_id for b in breakdowns if b.counted_in_totals}
    residential = commercial = 0.0
    for b in buildings:
        if b.id not in counted:
            continue
        a = b.attributes
        residential += b.carpet_area_sqm + a.villa_count * a.villa_area
        commercial += a.shop_count * a.shop_area + a.office_count * a.office_area
    return residential, commercial


class ElectricalLoadEngine:
    def __init__(
        self,
        factor_table: Optional[FactorTable] = None,
        sizing: Optional[EquipmentSizing] = None,
        framework: Optional[RegulatoryFramework] = None,
        id_generator_factory: Optional[Callable[[], IdGenerator]] = None,
    ):
        self.factor_table = factor_table or default_factor_table()
        self.sizing = sizing or DEFAULT_SIZING
        self.framework = framework or MSEDCL_2016
        self.id_generator_factory = id_generator_factory or (lambda: CounterIdGenerator("eff"))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def calculate(
        self,
        arena: ProjectArena,
        selected_building_ids: Iterable[str],
        inputs: Optional[CalculationInputs] = None,
        calculation_id: Optional[str] = None,
    ) -> CalculationResult:
        inputs = inputs or CalculationInputs()
        start = time.perf_counter()
        try:
            result = self._calculate(arena, list(selected_building_ids), inputs)
        except LoadCalculationError as exc:
            tracker.record_error(type(exc).__name__)
            logger.warning(
                "Calculation rejected: %s", exc,
                extra={"calculation_id": calculation_id},
            )
            raise

        duration_ms = _elapsed_ms(start)
        tracker.record_calculation(duration_ms, result.is_valid)
        if result.is_valid:
            logger.info(
                "Calculated %d buildings: TCL %.2f kW, MD %.2f kW, transformer %s kVA",
                len(result.building_breakdowns),
                result.totals.grand_total_tcl,
                result.totals.total_max_demand,
                result.totals.transformer_size_kva,
                extra={"calculation_id": calculation_id, "duration_ms": duration_ms},
            )
        else:
            logger.info(
                "Invalid calculation: %s", result.invalid_reason,
                extra={"calculation_id": calculation_id, "duration_ms": duration_ms},
            )
        return result

    def calculate_from_payload(
        self,
        buildings_payload: Iterable[Mapping[str, Any]],
        selected: Iterable[Any],
        inputs: Optional[CalculationInputs] = None,
        societies_payload: Iterable[Mapping[str, Any]] = (),
        calculation_id: Optional[str] = None,
    ) -> CalculationResult:
        """
        Request-handler convenience: build an arena from the nested project
        payload and resolve ``selected`` entries by id first, then by name.
        """
        arena = ProjectArena.from_payload(
            buildings_payload, societies_payload, id_generator=CounterIdGenerator("bld"),
        )
        return self.calculate(arena, resolve_selection(arena, selected), inputs, calculation_id)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _sizing_for(self, inputs: CalculationInputs) -> EquipmentSizing:
        if not inputs.lift_kw and not inputs.ev_charger_kw:
            return self.sizing
        return dataclasses.replace(
            self.sizing,
            lift_kw_override={**self.sizing.lift_kw_override, **inputs.lift_kw},
            ev_charger_kw={**self.sizing.ev_charger_kw, **inputs.ev_charger_kw},
        )

    def _invalid(self, area_type: str, reason: str, **fields: Any) -> CalculationResult:
        return CalculationResult(
            is_valid=False,
            area_type=area_type,
            invalid_reason=reason,
            factors_used=self.factor_table.snapshot(),
            **fields,
        )

    def _calculate(
        self,
        arena: ProjectArena,
        selected_ids: List[str],
        inputs: CalculationInputs,
    ) -> CalculationResult:
        area_type = (inputs.area_type or "").upper()
        if area_type not in AREA_TYPES:
            raise ConfigurationError(f"Unknown area type '{inputs.area_type}' (expected one of {AREA_TYPES})")
        if not 0 < inputs.power_factor <= 1:
            raise ConfigurationError(f"Power factor {inputs.power_factor} outside (0, 1]")

        if not selected_ids:
            return self._invalid(area_type, NO_BUILDINGS_SELECTED)

        stage_start = time.perf_counter()
        buildings = normalize_buildings(arena, selected_ids, self.id_generator_factory())
        selected_summary = tuple(b.summary() for b in buildings)
        tracker.record_stage("normalize", _elapsed_ms(stage_start))

        stage_start = time.perf_counter()
        sizing = self._sizing_for(inputs)
        categories_by_building = {
            b.id: evaluate_building_categories(BuildingContext(b, inputs), self.factor_table, sizing)
            for b in buildings
        }
        society_categories = evaluate_society_categories(inputs.society, self.factor_table, sizing)
        tracker.record_stage("evaluate", _elapsed_ms(stage_start))

        breakdowns = build_breakdowns(buildings, categories_by_building, area_type)

        if not any(_has_occupancy(b) for b in buildings):
            return self._invalid(
                area_type, NO_OCCUPANCY_DATA,
                building_breakdowns=tuple(breakdowns),
                selected_buildings=selected_summary,
            )

        totals = aggregate(breakdowns, society_categories, inputs.power_factor)
        if totals.total_max_demand <= 0:
            return self._invalid(
                area_type, NO_MAXIMUM_DEMAND,
                building_breakdowns=tuple(breakdowns),
                selected_buildings=selected_summary,
            )

        residential_area, commercial_area = _areas(buildings, breakdowns)
        compliance = run_compliance_checks(
            grand_tcl_kw=totals.grand_total_tcl,
            load_after_df_kw=totals.load_after_df_kw,
            residential_area_sqm=residential_area,
            area_type=area_type,
            commercial_area_sqm=commercial_area,
            commercial_has_ac=inputs.commercial_ac,
            multiple_consumers=totals.counted_buildings > 1,
            framework=self.framework,
        )

        flat_loads = merge_categories(breakdowns, (FLAT_LOADS,))
        return CalculationResult(
            is_valid=True,
            area_type=area_type,
            building_breakdowns=tuple(breakdowns),
            building_ca_loads=tuple(
                merge_categories(breakdowns, [n for n in BUILDING_CATEGORY_ORDER if n != FLAT_LOADS])
            ),
            flat_loads=flat_loads[0] if flat_loads else None,
            society_ca_loads=tuple(society_categories),
            totals=totals,
            regulatory_compliance=compliance,
            factors_used=self.factor_table.snapshot(),
            selected_buildings=selected_summary,
        )


def resolve_selection(arena: ProjectArena, selected: Iterable[Any]) -> List[str]:
    ids = []
    for entry in selected:
        key = str(entry)
        if key in arena.buildings:
            ids.append(key)
            continue
        building = arena.building_by_name(key)
        if building is None:
            raise ConfigurationError(f"Selected building '{key}' is not in this project")
        ids.append(building.id)
    return ids
