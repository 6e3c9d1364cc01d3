"""
CalculationResult <-> JSON-safe dict.

The dict layout is what gets stored on a saved calculation record:

    building_ca_loads      merged common-area categories (counted buildings)
    flat_loads             merged flat-load category
    society_ca_loads       society-level categories
    total_loads            grand totals, per-building / society subtotals, transformer
    building_breakdowns    one entry per effective building
    regulatory_compliance  minimum load, sanctioned load, DTC, substation, flags
    factors_used           factor rows snapshot
    selected_buildings     normalized selection with twin links
    is_valid / invalid_reason / area_type

Derived values (max_demand_kw, totals) are written for readers of the stored
JSON and recomputed on load, so result_from_dict(result_to_dict(r)) == r.
"""
from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Optional

from mep_portal.services.load_models import (
    BuildingBreakdown,
    CalculationResult,
    ComplianceFlag,
    DtcCheck,
    LoadCategory,
    LoadItem,
    LoadTotals,
    MinimumLoadCheck,
    ProjectTotals,
    RegulatoryCompliance,
    SanctionedLoadCheck,
    SubstationCheck,
)

_ITEM_FIELDS = (
    "description", "tcl_kw", "mdf", "edf", "fdf", "factor_key",
    "nos", "area_sqm", "watt_per_sqm", "kw_per_unit",
)


# ── Load items / categories ──────────────────────────────────────────────────

def item_to_dict(item: LoadItem) -> Dict[str, Any]:
    data = {name: getattr(item, name) for name in _ITEM_FIELDS}
    data.update(
        max_demand_kw=item.max_demand_kw,
        essential_kw=item.essential_kw,
        fire_kw=item.fire_kw,
    )
    return data


def item_from_dict(data: Dict[str, Any]) -> LoadItem:
    return LoadItem(**{name: data.get(name) for name in _ITEM_FIELDS if name in data})


def category_to_dict(category: LoadCategory) -> Dict[str, Any]:
    return {
        "name": category.name,
        "items": [item_to_dict(i) for i in category.items],
        "totals": category.totals.as_dict(),
    }


def category_from_dict(data: Dict[str, Any]) -> LoadCategory:
    return LoadCategory(name=data["name"], items=tuple(item_from_dict(i) for i in data.get("items", [])))


def _totals_from_dict(data: Dict[str, Any]) -> LoadTotals:
    return LoadTotals(
        tcl=data["tcl"],
        max_demand=data["maxDemand"],
        essential=data["essential"],
        fire=data["fire"],
    )


# ── Building breakdowns ──────────────────────────────────────────────────────

_BREAKDOWN_FIELDS = (
    "building_id", "building_name", "application_type", "source_building_id",
    "society_id", "twin_of_building_id", "twin_of_building_name", "total_height_m",
    "floor_count", "carpet_area_sqm", "total_units", "diversity_factor",
    "counted_in_totals",
)


def breakdown_to_dict(b: BuildingBreakdown) -> Dict[str, Any]:
    data = {name: getattr(b, name) for name in _BREAKDOWN_FIELDS}
    data["similar_to"] = list(b.similar_to)
    data["categories"] = [category_to_dict(c) for c in b.categories]
    data["totals"] = b.totals.as_dict()
    return data


def breakdown_from_dict(data: Dict[str, Any]) -> BuildingBreakdown:
    return BuildingBreakdown(
        **{name: data[name] for name in _BREAKDOWN_FIELDS},
        categories=tuple(category_from_dict(c) for c in data.get("categories", [])),
        similar_to=tuple(data.get("similar_to", [])),
    )


# ── Totals ───────────────────────────────────────────────────────────────────

def totals_to_dict(t: ProjectTotals) -> Dict[str, Any]:
    return {
        "grandTotalTCL": t.grand_total_tcl,
        "totalMaxDemand": t.total_max_demand,
        "totalEssential": t.total_essential,
        "totalFire": t.total_fire,
        "transformerSizeKVA": t.transformer_size_kva,
        "standardTransformerKVA": t.standard_transformer_kva,
        "perBuilding": t.per_building.as_dict(),
        "society": t.society.as_dict(),
        "loadAfterDiversityKW": t.load_after_df_kw,
        "powerFactor": t.power_factor,
        "countedBuildings": t.counted_buildings,
        "numberOfBuildings": t.number_of_buildings,
    }


def totals_from_dict(data: Dict[str, Any]) -> ProjectTotals:
    return ProjectTotals(
        per_building=_totals_from_dict(data["perBuilding"]),
        society=_totals_from_dict(data["society"]),
        grand=LoadTotals(
            tcl=data["grandTotalTCL"],
            max_demand=data["totalMaxDemand"],
            essential=data["totalEssential"],
            fire=data["totalFire"],
        ),
        load_after_df_kw=data["loadAfterDiversityKW"],
        transformer_size_kva=data["transformerSizeKVA"],
        standard_transformer_kva=data["standardTransformerKVA"],
        power_factor=data["powerFactor"],
        counted_buildings=data["countedBuildings"],
        number_of_buildings=data["numberOfBuildings"],
    )


# ── Regulatory compliance ────────────────────────────────────────────────────

def compliance_to_dict(c: RegulatoryCompliance) -> Dict[str, Any]:
    data = asdict(c)
    data["substation"]["special_requirements"] = list(c.substation.special_requirements)
    data["flags"] = [{"code": f.code, "message": f.message} for f in c.flags]
    return data


def compliance_from_dict(data: Dict[str, Any]) -> RegulatoryCompliance:
    substation = dict(data["substation"])
    substation["special_requirements"] = tuple(substation.get("special_requirements") or ())
    return RegulatoryCompliance(
        framework=data["framework"],
        area_type=data["area_type"],
        minimum_load=MinimumLoadCheck(**data["minimum_load"]),
        sanctioned_load=SanctionedLoadCheck(**data["sanctioned_load"]),
        dtc=DtcCheck(**data["dtc"]),
        substation=SubstationCheck(**substation),
        land_required_sqm=data["land_required_sqm"],
        flags=tuple(ComplianceFlag(**f) for f in data.get("flags", [])),
    )


# ── Result ───────────────────────────────────────────────────────────────────

def result_to_dict(result: CalculationResult) -> Dict[str, Any]:
    return {
        "is_valid": result.is_valid,
        "invalid_reason": result.invalid_reason,
        "area_type": result.area_type,
        "building_ca_loads": [category_to_dict(c) for c in result.building_ca_loads],
        "flat_loads": category_to_dict(result.flat_loads) if result.flat_loads else None,
        "society_ca_loads": [category_to_dict(c) for c in result.society_ca_loads],
        "total_loads": totals_to_dict(result.totals) if result.totals else None,
        "building_breakdowns": [breakdown_to_dict(b) for b in result.building_breakdowns],
        "regulatory_compliance": (
            compliance_to_dict(result.regulatory_compliance) if result.regulatory_compliance else None
        ),
        "factors_used": [dict(f) for f in result.factors_used],
        "selected_buildings": [dict(b) for b in result.selected_buildings],
    }


def result_from_dict(data: Dict[str, Any]) -> CalculationResult:
    flat_loads: Optional[Dict[str, Any]] = data.get("flat_loads")
    totals = data.get("total_loads")
    compliance = data.get("regulatory_compliance")
    return CalculationResult(
        is_valid=bool(data["is_valid"]),
        area_type=data["area_type"],
        building_breakdowns=tuple(breakdown_from_dict(b) for b in data.get("building_breakdowns") or []),
        building_ca_loads=tuple(category_from_dict(c) for c in data.get("building_ca_loads") or []),
        flat_loads=category_from_dict(flat_loads) if flat_loads else None,
        society_ca_loads=tuple(category_from_dict(c) for c in data.get("society_ca_loads") or []),
        totals=totals_from_dict(totals) if totals else None,
        regulatory_compliance=compliance_from_dict(compliance) if compliance else None,
        factors_used=tuple(dict(f) for f in data.get("factors_used") or []),
        selected_buildings=tuple(dict(b) for b in data.get("selected_buildings") or []),
        invalid_reason=data.get("invalid_reason"),
    )
