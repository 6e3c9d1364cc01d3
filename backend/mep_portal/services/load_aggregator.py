"""
Aggregator / Totals Engine.

Sums items → categories → buildings → project on four axes
(TCL, MaxDemand, Essential, Fire) and derives the transformer size:

    transformer_kVA = ceil(grand MaxDemand / pf)        pf = 0.9

Twin roll-up: a twin whose parent is in the same selection is kept as its own
breakdown (for per-building display) but excluded from the subtotal, so that
per_building == Σ breakdowns with counted_in_totals.

Diversity (MSEDCL NSC circular 35530 §C.2) only feeds the capacity-sizing
"load after diversity" figure used by the DTC/substation checks. It never
touches TCL or any per-building total.
"""
from __future__ import annotations

import math
from collections import OrderedDict
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from mep_portal.config import (
    DEFAULT_POWER_FACTOR,
    DIVERSITY_FACTOR_METRO,
    DIVERSITY_FACTOR_OTHER,
    STANDARD_TRANSFORMER_KVA,
    TRANSFORMER_STEP_ABOVE_RANGE_KVA,
)
from mep_portal.services.load_models import (
    BuildingBreakdown,
    EffectiveBuilding,
    LoadCategory,
    LoadItem,
    LoadTotals,
    ProjectTotals,
)


def sum_categories(categories: Iterable[LoadCategory]) -> LoadTotals:
    return LoadTotals.sum_of(c.totals for c in categories)


def diversity_factor(area_type: str) -> float:
    if (area_type or "").upper() in ("METRO", "MAJOR_CITIES"):
        return DIVERSITY_FACTOR_METRO
    return DIVERSITY_FACTOR_OTHER


def transformer_size_kva(max_demand_kw: float, power_factor: float = DEFAULT_POWER_FACTOR) -> Optional[int]:
    """ceil(MaxDemand / pf); None when there is no demand to size for."""
    if max_demand_kw <= 0:
        return None
    return math.ceil(max_demand_kw / power_factor)


def standard_transformer_rating(kva: Optional[float]) -> Optional[int]:
    """Next IS/IEC rating at or above ``kva``; above 3150 kVA, next 500 kVA step."""
    if kva is None or kva <= 0:
        return None
    for rating in STANDARD_TRANSFORMER_KVA:
        if rating >= kva:
            return rating
    step = TRANSFORMER_STEP_ABOVE_RANGE_KVA
    return int(math.ceil(kva / step) * step)


def build_breakdowns(
    buildings: Sequence[EffectiveBuilding],
    categories_by_building: Mapping[str, Sequence[LoadCategory]],
    area_type: str,
) -> List[BuildingBreakdown]:
    selected = {b.id for b in buildings}

    groups: Dict[str, List[str]] = {}
    for b in buildings:
        groups.setdefault(b.twin_of_building_id or b.id, []).append(b.name)

    df = diversity_factor(area_type)
    breakdowns = []
    for b in buildings:
        counted = not (b.is_twin and b.twin_of_building_id in selected)
        group = groups[b.twin_of_building_id or b.id]
        breakdowns.append(BuildingBreakdown(
            building_id=b.id,
            building_name=b.name,
            application_type=b.application_type,
            source_building_id=b.source_building_id,
            society_id=b.society_id,
            twin_of_building_id=b.twin_of_building_id,
            twin_of_building_name=b.twin_of_building_name,
            total_height_m=b.total_height_m,
            floor_count=b.floor_count,
            carpet_area_sqm=b.carpet_area_sqm,
            total_units=b.total_units,
            diversity_factor=df,
            categories=tuple(categories_by_building.get(b.id, ())),
            counted_in_totals=counted,
            similar_to=tuple(name for name in group if name != b.name),
        ))
    return breakdowns


def aggregate(
    breakdowns: Sequence[BuildingBreakdown],
    society_categories: Sequence[LoadCategory],
    power_factor: float = DEFAULT_POWER_FACTOR,
) -> ProjectTotals:
    counted = [b for b in breakdowns if b.counted_in_totals]
    per_building = LoadTotals.sum_of(b.totals for b in counted)
    society = sum_categories(society_categories)
    grand = per_building + society

    load_after_df = sum(b.totals.max_demand * b.diversity_factor for b in counted) + society.max_demand
    kva = transformer_size_kva(grand.max_demand, power_factor)

    return ProjectTotals(
        per_building=per_building,
        society=society,
        grand=grand,
        load_after_df_kw=load_after_df,
        transformer_size_kva=kva,
        standard_transformer_kva=standard_transformer_rating(kva),
        power_factor=power_factor,
        counted_buildings=len(counted),
        number_of_buildings=len(breakdowns),
    )


def _merge_items(items: Iterable[LoadItem]) -> List[LoadItem]:
    merged: "OrderedDict[tuple, LoadItem]" = OrderedDict()
    for item in items:
        key = (item.description, item.factor_key)
        prev = merged.get(key)
        if prev is None:
            merged[key] = item
            continue
        merged[key] = LoadItem(
            description=item.description,
            tcl_kw=prev.tcl_kw + item.tcl_kw,
            mdf=item.mdf,
            edf=item.edf,
            fdf=item.fdf,
            factor_key=item.factor_key,
            nos=prev.nos + item.nos,
            area_sqm=(prev.area_sqm or 0.0) + (item.area_sqm or 0.0) if prev.area_sqm is not None else None,
            watt_per_sqm=prev.watt_per_sqm if prev.watt_per_sqm == item.watt_per_sqm else None,
            kw_per_unit=prev.kw_per_unit if prev.kw_per_unit == item.kw_per_unit else None,
        )
    return list(merged.values())


def merge_categories(breakdowns: Sequence[BuildingBreakdown], names: Sequence[str]) -> List[LoadCategory]:
    """
    Project-wide view of the named categories across counted buildings.
    Items with the same description and factor row are summed.
    """
    counted = [b for b in breakdowns if b.counted_in_totals]
    merged = []
    for name in names:
        items = [
            item
            for b in counted
            for c in b.categories if c.name == name
            for item in c.items
        ]
        if items:
            merged.append(LoadCategory(name=name, items=tuple(_merge_items(items))))
    return merged
