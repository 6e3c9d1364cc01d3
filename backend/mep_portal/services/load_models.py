"""
Domain model for the electrical load engine.

Two families of types live here:

  Input records   — Flat / Floor / Building / Society as authored in the
                    project-input workflow and held in the ProjectArena
                    (ids + id lists, no nesting).
  Resolved shapes — EffectiveFlat / EffectiveFloor / EffectiveBuilding produced
                    by the Hierarchy Normalizer (twins expanded, geometry derived).
  Output          — LoadItem → LoadCategory → BuildingBreakdown → CalculationResult.

All output types are frozen: a CalculationResult is never mutated in place.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional


# ── Input records ────────────────────────────────────────────────────────────

@dataclass
class Flat:
    id: str
    type: str
    area: float = 0.0        # carpet area per unit, m²
    count: int = 0


@dataclass
class Floor:
    id: str
    building_id: str
    sequence: int
    name: str
    height: float = 3.0
    twin_of_floor_name: Optional[str] = None
    typical_lobby_area: Optional[float] = None
    flat_ids: list[str] = field(default_factory=list)


@dataclass
class BuildingAttributes:
    """Load-relevant building fields. A twin building inherits its parent's."""
    gf_entrance_lobby: Optional[float] = None
    typical_lobby_area: Optional[float] = None
    passenger_lifts: int = 0
    passenger_fire_lifts: int = 0
    firemen_lifts: int = 0
    staircases: Optional[int] = None
    fire_lobby_systems: Optional[int] = None
    car_parking_area: float = 0.0
    two_wheeler_parking_area: float = 0.0
    shop_count: int = 0
    shop_area: float = 0.0
    office_count: int = 0
    office_area: float = 0.0
    villa_count: int = 0
    villa_area: float = 0.0


@dataclass
class Building:
    id: str
    name: str
    application_type: str = "Residential"
    twin_of_building_name: Optional[str] = None
    society_id: Optional[str] = None
    floor_ids: list[str] = field(default_factory=list)
    attributes: BuildingAttributes = field(default_factory=BuildingAttributes)

    @property
    def is_twin(self) -> bool:
        return bool(self.twin_of_building_name)


@dataclass
class Society:
    id: str
    name: str


# ── Resolved shapes (Normalizer output) ──────────────────────────────────────

@dataclass(frozen=True)
class EffectiveFlat:
    id: str
    type: str
    area: float
    count: int
    source_flat_id: str

    @property
    def carpet_area(self) -> float:
        return self.area * self.count


@dataclass(frozen=True)
class EffectiveFloor:
    id: str
    sequence: int
    name: str
    height: float
    typical_lobby_area: Optional[float]
    flats: tuple[EffectiveFlat, ...]
    source_floor_id: str
    twin_of_floor_name: Optional[str] = None


@dataclass(frozen=True)
class EffectiveBuilding:
    id: str
    name: str
    application_type: str
    society_id: Optional[str]
    attributes: BuildingAttributes
    floors: tuple[EffectiveFloor, ...]
    source_building_id: str
    twin_of_building_id: Optional[str]
    twin_of_building_name: Optional[str]
    total_height_m: float
    floor_count: int
    carpet_area_sqm: float

    @property
    def is_twin(self) -> bool:
        return self.twin_of_building_id is not None

    @property
    def total_units(self) -> int:
        return sum(f.count for floor in self.floors for f in floor.flats)

    def summary(self) -> dict[str, Any]:
        """Plain-dict view used for CalculationResult.selected_buildings."""
        return {
            "id": self.id,
            "name": self.name,
            "application_type": self.application_type,
            "society_id": self.society_id,
            "source_building_id": self.source_building_id,
            "twin_of_building_id": self.twin_of_building_id,
            "twin_of_building_name": self.twin_of_building_name,
            "total_height_m": self.total_height_m,
            "floor_count": self.floor_count,
            "carpet_area_sqm": self.carpet_area_sqm,
            "total_units": self.total_units,
        }


# ── Output ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class LoadTotals:
    tcl: float = 0.0
    max_demand: float = 0.0
    essential: float = 0.0
    fire: float = 0.0

    def __add__(self, other: "LoadTotals") -> "LoadTotals":
        return LoadTotals(
            tcl=self.tcl + other.tcl,
            max_demand=self.max_demand + other.max_demand,
            essential=self.essential + other.essential,
            fire=self.fire + other.fire,
        )

    @classmethod
    def sum_of(cls, parts: Iterable["LoadTotals"]) -> "LoadTotals":
        total = cls()
        for p in parts:
            total = total + p
        return total

    def as_dict(self) -> dict[str, float]:
        return {
            "tcl": self.tcl,
            "maxDemand": self.max_demand,
            "essential": self.essential,
            "fire": self.fire,
        }


@dataclass(frozen=True)
class LoadItem:
    description: str
    tcl_kw: float
    mdf: float
    edf: float
    fdf: float
    factor_key: str
    nos: float = 1
    area_sqm: Optional[float] = None
    watt_per_sqm: Optional[float] = None
    kw_per_unit: Optional[float] = None

    @property
    def max_demand_kw(self) -> float:
        return self.tcl_kw * self.mdf

    @property
    def essential_kw(self) -> float:
        return self.tcl_kw * self.edf

    @property
    def fire_kw(self) -> float:
        return self.tcl_kw * self.fdf

    @property
    def totals(self) -> LoadTotals:
        return LoadTotals(self.tcl_kw, self.max_demand_kw, self.essential_kw, self.fire_kw)


@dataclass(frozen=True)
class LoadCategory:
    name: str
    items: tuple[LoadItem, ...] = ()

    @property
    def totals(self) -> LoadTotals:
        return LoadTotals.sum_of(i.totals for i in self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items


@dataclass(frozen=True)
class BuildingBreakdown:
    building_id: str
    building_name: str
    application_type: str
    source_building_id: str
    society_id: Optional[str]
    twin_of_building_id: Optional[str]
    twin_of_building_name: Optional[str]
    total_height_m: float
    floor_count: int
    carpet_area_sqm: float
    total_units: int
    diversity_factor: float
    categories: tuple[LoadCategory, ...]
    counted_in_totals: bool = True
    similar_to: tuple[str, ...] = ()

    @property
    def totals(self) -> LoadTotals:
        return LoadTotals.sum_of(c.totals for c in self.categories)

    def category(self, name: str) -> Optional[LoadCategory]:
        for c in self.categories:
            if c.name == name:
                return c
        return None


@dataclass(frozen=True)
class ProjectTotals:
    per_building: LoadTotals
    society: LoadTotals
    grand: LoadTotals
    load_after_df_kw: float
    transformer_size_kva: Optional[int]
    standard_transformer_kva: Optional[int]
    power_factor: float
    counted_buildings: int
    number_of_buildings: int

    @property
    def grand_total_tcl(self) -> float:
        return self.grand.tcl

    @property
    def total_max_demand(self) -> float:
        return self.grand.max_demand

    @property
    def total_essential(self) -> float:
        return self.grand.essential

    @property
    def total_fire(self) -> float:
        return self.grand.fire


@dataclass(frozen=True)
class ComplianceFlag:
    code: str
    message: str


@dataclass(frozen=True)
class MinimumLoadCheck:
    residential_area_sqm: float
    commercial_area_sqm: float
    residential_w_per_sqm: float
    commercial_w_per_sqm: float
    required_kw: float
    connected_kw: float
    passed: bool


@dataclass(frozen=True)
class SanctionedLoadCheck:
    sanctioned_kw: float
    sanctioned_kva: float
    power_factor: float
    minimum_applied: bool
    limit_type: str
    max_kw: float
    max_kva: float
    exceeds_kw: bool
    exceeds_kva: bool


@dataclass(frozen=True)
class DtcCheck:
    area_type: str
    load_after_df_kw: float
    load_after_df_kva: float
    threshold_kva: float
    needed: bool
    dtc_count: int
    capacity_per_unit_kva: float
    land_required_sqm: float


@dataclass(frozen=True)
class SubstationCheck:
    area_type: str
    load_after_df_mva: float
    needed: bool
    substation_type: Optional[str] = None
    incoming_feeders: Optional[int] = None
    land_required_sqm: Optional[float] = None
    special_requirements: tuple[str, ...] = ()


@dataclass(frozen=True)
class RegulatoryCompliance:
    framework: str
    area_type: str
    minimum_load: MinimumLoadCheck
    sanctioned_load: SanctionedLoadCheck
    dtc: DtcCheck
    substation: SubstationCheck
    land_required_sqm: float
    flags: tuple[ComplianceFlag, ...] = ()

    def has_flag(self, code: str) -> bool:
        return any(f.code == code for f in self.flags)


@dataclass(frozen=True)
class CalculationResult:
    is_valid: bool
    area_type: str
    building_breakdowns: tuple[BuildingBreakdown, ...] = ()
    building_ca_loads: tuple[LoadCategory, ...] = ()
    flat_loads: Optional[LoadCategory] = None
    society_ca_loads: tuple[LoadCategory, ...] = ()
    totals: Optional[ProjectTotals] = None
    regulatory_compliance: Optional[RegulatoryCompliance] = None
    factors_used: tuple[dict, ...] = ()
    selected_buildings: tuple[dict, ...] = ()
    invalid_reason: Optional[str] = None

    def breakdown(self, building_name: str) -> Optional[BuildingBreakdown]:
        for b in self.building_breakdowns:
            if b.building_name == building_name:
                return b
        return None
