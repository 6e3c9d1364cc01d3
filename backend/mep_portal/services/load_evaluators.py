"""
Category Load Evaluators — building and society load categories.

Every item follows the same rule:

    TCL        = area_m² × density_W/m² / 1000   or   kW per unit × nos
    MaxDemand  = TCL × MDF
    Essential  = TCL × EDF
    Fire       = TCL × FDF

Fan, pump and lift ratings come from EquipmentSizing; densities and demand
factors come from the FactorTable. A factor row is looked up only when its
item is actually present, so a project without (say) villas never needs a
villa row. Absent optional inputs count as zero.

Building level  : Flat Loads, Commercial, Lighting, Lifts, HVAC,
                  Pressurization, PHE
Society level   : Fire Fighting, PHE Transfer, Infrastructure
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from mep_portal.config import (
    DEFAULT_AREA_TYPE,
    DEFAULT_BOOSTER_PUMP_FLOW_LPM,
    DEFAULT_EV_CHARGER_TYPE,
    DEFAULT_FIRE_LOBBY_SYSTEMS,
    DEFAULT_FIRE_PUMP_SET,
    DEFAULT_GF_ENTRANCE_LOBBY_SQM,
    DEFAULT_LANDSCAPE_LIGHTING_KW,
    DEFAULT_MAIN_PUMP_FLOW_LPM,
    DEFAULT_POWER_FACTOR,
    DEFAULT_PUMP_SET,
    DEFAULT_SPRINKLER_FLOW_LPM,
    DEFAULT_STAIRCASES,
    DEFAULT_TERRACE_AREA_SQM,
    DEFAULT_TYPICAL_LOBBY_SQM,
    DEFAULT_VENTILATION_CFM,
    DEFAULT_VENTILATION_FANS,
    DEFAULT_WET_RISER_KW,
    HIGH_RISE_THRESHOLD_M,
    LANDING_FIXTURE_W,
    LANDINGS_PER_FLOOR,
    LOBBY_SQFT_PER_TR,
    SQM_TO_SQFT,
)
from mep_portal.services.equipment_sizing import EquipmentSizing, working_pump_count
from mep_portal.services.factor_table import FactorTable, make_factor_key
from mep_portal.services.load_models import EffectiveBuilding, LoadCategory, LoadItem

# ── Category names (display order) ───────────────────────────────────────────

FLAT_LOADS = "Flat Loads"
COMMERCIAL = "Commercial"
LIGHTING = "Lighting"
LIFTS = "Lifts"
HVAC = "HVAC"
PRESSURIZATION = "Pressurization"
PHE = "PHE"
FIRE_FIGHTING = "Fire Fighting"
PHE_TRANSFER = "PHE Transfer"
INFRASTRUCTURE = "Infrastructure"

BUILDING_CATEGORY_ORDER = (FLAT_LOADS, COMMERCIAL, LIGHTING, LIFTS, HVAC, PRESSURIZATION, PHE)
SOCIETY_CATEGORY_ORDER = (FIRE_FIGHTING, PHE_TRANSFER, INFRASTRUCTURE)

# ── Factor keys ──────────────────────────────────────────────────────────────

FLAT_GENERIC_KEY = make_factor_key("RESIDENTIAL", "FLAT", "Residential Flat Load")
VILLA_KEY = make_factor_key("RESIDENTIAL", "FLAT", "Villa")
SHOP_KEY = make_factor_key("COMMERCIAL", "SHOP", "Shop")
OFFICE_KEY = make_factor_key("COMMERCIAL", "OFFICE", "Office")
GF_LOBBY_KEY = make_factor_key("LIGHTING", "LOBBY", "GF Entrance Lobby")
TYPICAL_LOBBY_KEY = make_factor_key("LIGHTING", "LOBBY", "Typical Floor Lobby")
STAIRCASE_LIGHTING_KEY = make_factor_key("LIGHTING", "STAIRCASE", "Staircases & Landings")
TERRACE_KEY = make_factor_key("LIGHTING", "TERRACE", "Terrace Lighting")
PARKING_KEY = make_factor_key("LIGHTING", "PARKING", "Parking Area")
LANDSCAPE_KEY = make_factor_key("LIGHTING", "LANDSCAPE", "Landscape & External Lighting")
LIFT_KEYS = {
    "passenger": make_factor_key("LIFTS", "PASSENGER", "Passenger Lift"),
    "passenger_fire": make_factor_key("LIFTS", "PASSENGER_FIRE", "Passenger + Fire Lift"),
    "firemen": make_factor_key("LIFTS", "FIREMEN", "Firemen Lift"),
}
LOBBY_AC_KEY = make_factor_key("HVAC", "AC", "Lobby Air Conditioning")
VENTILATION_KEY = make_factor_key("HVAC", "VENTILATION", "Mechanical Ventilation Fans")
STAIR_PRESS_KEY = make_factor_key("PRESSURIZATION", "STAIRCASE", "Staircase Pressurization")
LOBBY_PRESS_KEY = make_factor_key("PRESSURIZATION", "LOBBY", "Fire Lift Lobby Pressurization")
BOOSTER_KEY = make_factor_key("PHE", "BOOSTER", "Booster Pump")
SEWAGE_KEY = make_factor_key("PHE", "SEWAGE", "Sewage Pump")
TRANSFER_KEY = make_factor_key("PHE", "TRANSFER", "Domestic Transfer Pump")
WET_RISER_KEY = make_factor_key("FIREFIGHTING", "WET_RISER", "Wet Riser Pump")
HYDRANT_KEY = make_factor_key("FIREFIGHTING", "HYDRANT", "Fire Main Pump")
SPRINKLER_KEY = make_factor_key("FIREFIGHTING", "SPRINKLER", "Sprinkler Pump")
JOCKEY_KEY = make_factor_key("FIREFIGHTING", "JOCKEY", "Fire Jockey Pump")
STP_KEY = make_factor_key("INFRASTRUCTURE", "STP", "STP & WTP Plant")
CLUBHOUSE_KEY = make_factor_key("INFRASTRUCTURE", "CLUBHOUSE", "Clubhouse & Amenities")
EV_KEY = make_factor_key("INFRASTRUCTURE", "EV", "EV Charger")
STREET_LIGHTING_KEY = make_factor_key("INFRASTRUCTURE", "STREET_LIGHTING", "Street Lighting")
SECURITY_KEY = make_factor_key("INFRASTRUCTURE", "SECURITY", "Security System")
SMALL_POWER_KEY = make_factor_key("INFRASTRUCTURE", "SMALL_POWER", "Common Area Power")


# ── Per-calculation inputs ───────────────────────────────────────────────────

@dataclass
class SocietyInputs:
    """Society-level equipment shared by every selected building."""
    main_pump_flow_lpm: float = DEFAULT_MAIN_PUMP_FLOW_LPM
    fire_pump_set: str = DEFAULT_FIRE_PUMP_SET
    sprinkler: bool = False
    sprinkler_flow_lpm: float = DEFAULT_SPRINKLER_FLOW_LPM
    sprinkler_pump_set: str = DEFAULT_FIRE_PUMP_SET
    transfer_pump_flow_lpm: float = 0.0
    transfer_pump_set: str = DEFAULT_PUMP_SET
    stp_capacity_kld: float = 0.0
    clubhouse_kw: float = 0.0
    street_lighting_kw: float = 0.0
    ev_chargers: int = 0
    ev_charger_type: str = DEFAULT_EV_CHARGER_TYPE
    security_kw: float = 0.0
    small_power_kw: float = 0.0


@dataclass
class CalculationInputs:
    area_type: str = DEFAULT_AREA_TYPE
    power_factor: float = DEFAULT_POWER_FACTOR
    commercial_ac: bool = False               # minimum-load density for shops/offices
    # Lighting
    gf_entrance_lobby_sqm: float = DEFAULT_GF_ENTRANCE_LOBBY_SQM
    typical_lobby_sqm: float = DEFAULT_TYPICAL_LOBBY_SQM
    staircases: int = DEFAULT_STAIRCASES
    terrace_lighting: bool = True
    terrace_area_sqm: float = DEFAULT_TERRACE_AREA_SQM
    parking_lighting: bool = True
    landscape_lighting: bool = False
    landscape_lighting_kw: float = DEFAULT_LANDSCAPE_LIGHTING_KW
    # HVAC / pressurization
    lobby_type: str = "Non-AC"
    mechanical_ventilation: bool = False
    ventilation_cfm: float = DEFAULT_VENTILATION_CFM
    ventilation_fans: int = DEFAULT_VENTILATION_FANS
    fire_lobby_systems: int = DEFAULT_FIRE_LOBBY_SYSTEMS
    # PHE
    booster_pump_flow_lpm: float = DEFAULT_BOOSTER_PUMP_FLOW_LPM
    booster_pump_set: str = DEFAULT_PUMP_SET
    sewage_pump_capacity_lpm: float = 0.0
    sewage_pump_set: str = DEFAULT_PUMP_SET
    wet_riser: Optional[bool] = None          # None → automatic above the high-rise threshold
    wet_riser_kw: float = DEFAULT_WET_RISER_KW
    # Equipment overrides merged into EquipmentSizing
    lift_kw: Dict[str, float] = field(default_factory=dict)
    ev_charger_kw: Dict[str, float] = field(default_factory=dict)
    society: SocietyInputs = field(default_factory=SocietyInputs)


@dataclass(frozen=True)
class BuildingContext:
    building: EffectiveBuilding
    inputs: CalculationInputs

    @property
    def staircases(self) -> int:
        s = self.building.attributes.staircases
        return s if s is not None else self.inputs.staircases

    @property
    def gf_lobby_sqm(self) -> float:
        a = self.building.attributes.gf_entrance_lobby
        return a if a is not None else self.inputs.gf_entrance_lobby_sqm

    @property
    def typical_lobby_sqm(self) -> float:
        """Σ per-floor lobby area, each floor falling back to the building / project default."""
        default = self.building.attributes.typical_lobby_area
        if default is None:
            default = self.inputs.typical_lobby_sqm
        return sum(
            f.typical_lobby_area if f.typical_lobby_area is not None else default
            for f in self.building.floors
        )

    @property
    def is_high_rise(self) -> bool:
        return self.building.total_height_m > HIGH_RISE_THRESHOLD_M


# ── Item builders ────────────────────────────────────────────────────────────

def area_item(
    factors: FactorTable,
    description: str,
    area_sqm: float,
    *keys: str,
    nos: float = 1,
) -> Optional[LoadItem]:
    """Density-driven item; None when the area is zero."""
    if area_sqm <= 0:
        return None
    factor = factors.resolve(*keys)
    density = factor.watt_per_sqm or 0.0
    return LoadItem(
        description=description,
        tcl_kw=area_sqm * density / 1000.0,
        mdf=factor.mdf,
        edf=factor.edf,
        fdf=factor.fdf,
        factor_key=factor.key,
        nos=nos,
        area_sqm=area_sqm,
        watt_per_sqm=density,
    )


def fixed_item(
    factors: FactorTable,
    description: str,
    kw_per_unit: float,
    nos: float,
    key: str,
) -> Optional[LoadItem]:
    """Equipment item: kW per unit × nos; None when either is zero."""
    if kw_per_unit <= 0 or nos <= 0:
        return None
    factor = factors.require(key)
    return LoadItem(
        description=description,
        tcl_kw=kw_per_unit * nos,
        mdf=factor.mdf,
        edf=factor.edf,
        fdf=factor.fdf,
        factor_key=factor.key,
        nos=nos,
        kw_per_unit=kw_per_unit,
    )


def _category(name: str, *items: Optional[LoadItem]) -> LoadCategory:
    return LoadCategory(name=name, items=tuple(i for i in items if i is not None))


# ═══════════════════════════════════════════════════════════════════════════════
# Building level
# ═══════════════════════════════════════════════════════════════════════════════

def evaluate_flat_loads(ctx: BuildingContext, factors: FactorTable, sizing: EquipmentSizing) -> LoadCategory:
    """One item per distinct flat type (first-seen order) plus villas."""
    area_by_type: Dict[str, float] = {}
    units_by_type: Dict[str, int] = {}
    for floor in ctx.building.floors:
        for flat in floor.flats:
            area_by_type[flat.type] = area_by_type.get(flat.type, 0.0) + flat.carpet_area
            units_by_type[flat.type] = units_by_type.get(flat.type, 0) + flat.count

    items = [
        area_item(
            factors, flat_type, area,
            make_factor_key("RESIDENTIAL", "FLAT", flat_type), FLAT_GENERIC_KEY,
            nos=units_by_type[flat_type],
        )
        for flat_type, area in area_by_type.items()
    ]

    attrs = ctx.building.attributes
    items.append(area_item(
        factors, "Villa", attrs.villa_count * attrs.villa_area,
        VILLA_KEY, FLAT_GENERIC_KEY, nos=attrs.villa_count,
    ))
    return _category(FLAT_LOADS, *items)


def evaluate_commercial_loads(ctx: BuildingContext, factors: FactorTable, sizing: EquipmentSizing) -> LoadCategory:
    attrs = ctx.building.attributes
    return _category(
        COMMERCIAL,
        area_item(factors, "Shops", attrs.shop_count * attrs.shop_area, SHOP_KEY, nos=attrs.shop_count),
        area_item(factors, "Offices", attrs.office_count * attrs.office_area, OFFICE_KEY, nos=attrs.office_count),
    )


def evaluate_lighting(ctx: BuildingContext, factors: FactorTable, sizing: EquipmentSizing) -> LoadCategory:
    b = ctx.building
    attrs = b.attributes
    landings = b.floor_count * ctx.staircases * LANDINGS_PER_FLOOR
    parking = attrs.car_parking_area + attrs.two_wheeler_parking_area
    return _category(
        LIGHTING,
        area_item(factors, "GF Entrance Lobby", ctx.gf_lobby_sqm, GF_LOBBY_KEY),
        area_item(factors, "Typical Floor Lobby", ctx.typical_lobby_sqm, TYPICAL_LOBBY_KEY, nos=b.floor_count),
        fixed_item(factors, "Staircases & Landings", LANDING_FIXTURE_W / 1000.0, landings, STAIRCASE_LIGHTING_KEY),
        area_item(
            factors, "Terrace Lighting",
            ctx.inputs.terrace_area_sqm if ctx.inputs.terrace_lighting else 0.0,
            TERRACE_KEY,
        ),
        area_item(factors, "Parking Area", parking if ctx.inputs.parking_lighting else 0.0, PARKING_KEY),
        fixed_item(
            factors, "Landscape & External Lighting",
            ctx.inputs.landscape_lighting_kw if ctx.inputs.landscape_lighting else 0.0, 1,
            LANDSCAPE_KEY,
        ),
    )


def evaluate_lifts(ctx: BuildingContext, factors: FactorTable, sizing: EquipmentSizing) -> LoadCategory:
    b = ctx.building
    counts = {
        "passenger": b.attributes.passenger_lifts,
        "passenger_fire": b.attributes.passenger_fire_lifts,
        "firemen": b.attributes.firemen_lifts,
    }
    items = []
    for lift_class, count in counts.items():
        if count <= 0:
            continue
        key = LIFT_KEYS[lift_class]
        description = key.rsplit("/", 1)[-1]
        items.append(fixed_item(factors, description, sizing.lift_kw(lift_class, b.total_height_m), count, key))
    return _category(LIFTS, *items)


def evaluate_hvac(ctx: BuildingContext, factors: FactorTable, sizing: EquipmentSizing) -> LoadCategory:
    inputs = ctx.inputs
    ac = None
    if inputs.lobby_type.strip().upper() == "AC":
        lobby_sqft = (ctx.gf_lobby_sqm + ctx.typical_lobby_sqm) * SQM_TO_SQFT
        tonnage = lobby_sqft / LOBBY_SQFT_PER_TR
        ac = fixed_item(factors, "Lobby Air Conditioning", sizing.ac_kw(tonnage), 1, LOBBY_AC_KEY)

    ventilation = None
    if inputs.mechanical_ventilation:
        ventilation = fixed_item(
            factors, "Mechanical Ventilation Fans",
            sizing.ventilation_fan_kw(inputs.ventilation_cfm), inputs.ventilation_fans,
            VENTILATION_KEY,
        )
    return _category(HVAC, ac, ventilation)


def evaluate_pressurization(ctx: BuildingContext, factors: FactorTable, sizing: EquipmentSizing) -> LoadCategory:
    """NBC 2016: one pressurization fan per staircase above 15 m, plus fire-lift lobbies."""
    if not ctx.is_high_rise:
        return LoadCategory(name=PRESSURIZATION)

    attrs = ctx.building.attributes
    lobby = None
    if attrs.passenger_fire_lifts + attrs.firemen_lifts > 0:
        systems = attrs.fire_lobby_systems
        if systems is None:
            systems = ctx.inputs.fire_lobby_systems
        lobby = fixed_item(factors, "Fire Lift Lobby Pressurization", sizing.lobby_fan_kw, systems, LOBBY_PRESS_KEY)

    return _category(
        PRESSURIZATION,
        fixed_item(factors, "Staircase Pressurization", sizing.staircase_fan_kw, ctx.staircases, STAIR_PRESS_KEY),
        lobby,
    )


def evaluate_building_phe(ctx: BuildingContext, factors: FactorTable, sizing: EquipmentSizing) -> LoadCategory:
    inputs = ctx.inputs
    booster = None
    if inputs.booster_pump_flow_lpm > 0:
        booster = fixed_item(
            factors, f"Booster Pump ({inputs.booster_pump_set})",
            sizing.phe_pump_kw(inputs.booster_pump_flow_lpm),
            working_pump_count(inputs.booster_pump_set), BOOSTER_KEY,
        )

    sewage = None
    if inputs.sewage_pump_capacity_lpm > 0:
        sewage = fixed_item(
            factors, f"Sewage Pump ({inputs.sewage_pump_set})",
            sizing.sewage_pump_kw(inputs.sewage_pump_capacity_lpm),
            working_pump_count(inputs.sewage_pump_set), SEWAGE_KEY,
        )

    wet_riser_on = inputs.wet_riser if inputs.wet_riser is not None else ctx.is_high_rise
    wet_riser = None
    if wet_riser_on:
        wet_riser = fixed_item(factors, "Wet Riser Pump", inputs.wet_riser_kw, 1, WET_RISER_KEY)

    return _category(PHE, booster, sewage, wet_riser)


_BUILDING_EVALUATORS = (
    evaluate_flat_loads,
    evaluate_commercial_loads,
    evaluate_lighting,
    evaluate_lifts,
    evaluate_hvac,
    evaluate_pressurization,
    evaluate_building_phe,
)


def evaluate_building_categories(
    ctx: BuildingContext,
    factors: FactorTable,
    sizing: EquipmentSizing,
) -> List[LoadCategory]:
    """Non-empty building categories in BUILDING_CATEGORY_ORDER."""
    categories = [evaluate(ctx, factors, sizing) for evaluate in _BUILDING_EVALUATORS]
    return [c for c in categories if not c.is_empty]


# ═══════════════════════════════════════════════════════════════════════════════
# Society level
# ═══════════════════════════════════════════════════════════════════════════════

def _has_jockey(pump_set: str) -> bool:
    return "jky" in (pump_set or "").lower() or "jockey" in (pump_set or "").lower()


def evaluate_fire_fighting(inputs: SocietyInputs, factors: FactorTable, sizing: EquipmentSizing) -> LoadCategory:
    items: List[Optional[LoadItem]] = []
    if inputs.main_pump_flow_lpm > 0:
        items.append(fixed_item(
            factors, f"Fire Main Pump ({inputs.fire_pump_set})",
            sizing.hydrant_pump_kw(inputs.main_pump_flow_lpm),
            working_pump_count(inputs.fire_pump_set), HYDRANT_KEY,
        ))
        if _has_jockey(inputs.fire_pump_set):
            items.append(fixed_item(factors, "Hydrant Jockey Pump", sizing.jockey_pump_kw, 1, JOCKEY_KEY))

    if inputs.sprinkler and inputs.sprinkler_flow_lpm > 0:
        items.append(fixed_item(
            factors, f"Sprinkler Pump ({inputs.sprinkler_pump_set})",
            sizing.sprinkler_pump_kw(inputs.sprinkler_flow_lpm),
            working_pump_count(inputs.sprinkler_pump_set), SPRINKLER_KEY,
        ))
        if _has_jockey(inputs.sprinkler_pump_set):
            items.append(fixed_item(factors, "Sprinkler Jockey Pump", sizing.jockey_pump_kw, 1, JOCKEY_KEY))

    return _category(FIRE_FIGHTING, *items)


def evaluate_phe_transfer(inputs: SocietyInputs, factors: FactorTable, sizing: EquipmentSizing) -> LoadCategory:
    if inputs.transfer_pump_flow_lpm <= 0:
        return LoadCategory(name=PHE_TRANSFER)
    return _category(
        PHE_TRANSFER,
        fixed_item(
            factors, f"Domestic Transfer Pump ({inputs.transfer_pump_set})",
            sizing.phe_pump_kw(inputs.transfer_pump_flow_lpm),
            working_pump_count(inputs.transfer_pump_set), TRANSFER_KEY,
        ),
    )


def evaluate_society_infrastructure(
    inputs: SocietyInputs,
    factors: FactorTable,
    sizing: EquipmentSizing,
) -> LoadCategory:
    stp = None
    if inputs.stp_capacity_kld > 0:
        stp = fixed_item(factors, "STP & WTP Plant", sizing.stp_kw(inputs.stp_capacity_kld), 1, STP_KEY)

    ev = None
    if inputs.ev_chargers > 0:
        ev = fixed_item(
            factors, f"EV Charger ({inputs.ev_charger_type})",
            sizing.ev_kw(inputs.ev_charger_type), inputs.ev_chargers, EV_KEY,
        )

    return _category(
        INFRASTRUCTURE,
        stp,
        fixed_item(factors, "Clubhouse & Amenities", inputs.clubhouse_kw, 1, CLUBHOUSE_KEY),
        fixed_item(factors, "Street Lighting", inputs.street_lighting_kw, 1, STREET_LIGHTING_KEY),
        ev,
        fixed_item(factors, "Security System", inputs.security_kw, 1, SECURITY_KEY),
        fixed_item(factors, "Common Area Power", inputs.small_power_kw, 1, SMALL_POWER_KEY),
    )


_SOCIETY_EVALUATORS = (
    evaluate_fire_fighting,
    evaluate_phe_transfer,
    evaluate_society_infrastructure,
)


def evaluate_society_categories(
    inputs: SocietyInputs,
    factors: FactorTable,
    sizing: EquipmentSizing,
) -> List[LoadCategory]:
    categories = [evaluate(inputs, factors, sizing) for evaluate in _SOCIETY_EVALUATORS]
    return [c for c in categories if not c.is_empty]
