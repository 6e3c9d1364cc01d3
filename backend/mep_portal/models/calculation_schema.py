"""
Request / response schemas for the electrical load API.

Building payloads use the camelCase names of the project-input form
(floorName, twinOfBuildingName, ...). Calculation inputs are snake_case.
"""
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

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
)
from mep_portal.services.load_evaluators import CalculationInputs, SocietyInputs

Id = Union[str, int]


# ─── Project hierarchy ───────────────────────────────────────────────────────

class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class FlatIn(_CamelModel):
    id: Optional[Id] = None
    type: str = Field(..., description="Flat type, e.g. 1BHK, 2BHK")
    area: float = Field(0.0, description="Carpet area per unit, m²")
    count: int = Field(0, description="Number of units of this type on the floor")


class FloorIn(_CamelModel):
    id: Optional[Id] = None
    floor_name: str = Field(..., alias="floorName")
    floor_number: Optional[int] = Field(None, alias="floorNumber")
    floor_height: float = Field(3.0, alias="floorHeight", description="m")
    typical_lobby_area: Optional[float] = Field(None, alias="typicalLobbyArea")
    twin_of_floor_name: Optional[str] = Field(None, alias="twinOfFloorName")
    flats: List[FlatIn] = Field(default_factory=list)


class BuildingIn(_CamelModel):
    id: Optional[Id] = None
    name: str
    application_type: str = Field("Residential", alias="applicationType")
    twin_of_building_name: Optional[str] = Field(None, alias="twinOfBuildingName")
    society_id: Optional[Id] = Field(None, alias="societyId")
    gf_entrance_lobby: Optional[float] = Field(None, alias="gfEntranceLobby")
    typical_lobby_area: Optional[float] = Field(None, alias="typicalLobbyArea")
    passenger_lifts: int = Field(0, alias="passengerLifts")
    passenger_fire_lifts: int = Field(0, alias="passengerFireLifts")
    firemen_lifts: int = Field(0, alias="firemenLifts")
    staircases: Optional[int] = None
    fire_lobby_systems: Optional[int] = Field(None, alias="fireLobbySystems")
    car_parking_area: float = Field(0.0, alias="carParkingArea")
    two_wheeler_parking_area: float = Field(0.0, alias="twoWheelerParkingArea")
    shop_count: int = Field(0, alias="shopCount")
    shop_area: float = Field(0.0, alias="shopArea")
    office_count: int = Field(0, alias="officeCount")
    office_area: float = Field(0.0, alias="officeArea")
    villa_count: int = Field(0, alias="villaCount")
    villa_area: float = Field(0.0, alias="villaArea")
    floors: List[FloorIn] = Field(default_factory=list)


class SocietyIn(BaseModel):
    id: Id
    name: str


# ─── Calculation inputs ──────────────────────────────────────────────────────

class SocietyInputsIn(BaseModel):
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
    ev_chargers: int = Field(0, ge=0)
    ev_charger_type: str = DEFAULT_EV_CHARGER_TYPE
    security_kw: float = 0.0
    small_power_kw: float = 0.0

    def to_inputs(self) -> SocietyInputs:
        return SocietyInputs(**self.model_dump())


class CalculationInputsIn(BaseModel):
    area_type: str = Field(DEFAULT_AREA_TYPE, description="RURAL | URBAN | METRO | MAJOR_CITIES")
    power_factor: float = Field(DEFAULT_POWER_FACTOR, gt=0, le=1)
    commercial_ac: bool = False
    gf_entrance_lobby_sqm: float = DEFAULT_GF_ENTRANCE_LOBBY_SQM
    typical_lobby_sqm: float = DEFAULT_TYPICAL_LOBBY_SQM
    staircases: int = DEFAULT_STAIRCASES
    terrace_lighting: bool = True
    terrace_area_sqm: float = DEFAULT_TERRACE_AREA_SQM
    parking_lighting: bool = True
    landscape_lighting: bool = False
    landscape_lighting_kw: float = DEFAULT_LANDSCAPE_LIGHTING_KW
    lobby_type: str = Field("Non-AC", description="AC | Non-AC")
    mechanical_ventilation: bool = False
    ventilation_cfm: float = DEFAULT_VENTILATION_CFM
    ventilation_fans: int = DEFAULT_VENTILATION_FANS
    fire_lobby_systems: int = DEFAULT_FIRE_LOBBY_SYSTEMS
    booster_pump_flow_lpm: float = DEFAULT_BOOSTER_PUMP_FLOW_LPM
    booster_pump_set: str = DEFAULT_PUMP_SET
    sewage_pump_capacity_lpm: float = 0.0
    sewage_pump_set: str = DEFAULT_PUMP_SET
    wet_riser: Optional[bool] = Field(None, description="None = automatic above 15 m")
    wet_riser_kw: float = DEFAULT_WET_RISER_KW
    lift_kw: Dict[str, float] = Field(default_factory=dict, description="passenger / passenger_fire / firemen")
    ev_charger_kw: Dict[str, float] = Field(default_factory=dict)
    society: SocietyInputsIn = Field(default_factory=SocietyInputsIn)

    def to_inputs(self) -> CalculationInputs:
        data = self.model_dump(exclude={"society"})
        return CalculationInputs(**data, society=self.society.to_inputs())


# ─── Requests / responses ────────────────────────────────────────────────────

class CalculateRequest(BaseModel):
    buildings: List[BuildingIn]
    societies: List[SocietyIn] = Field(default_factory=list)
    selected_buildings: List[Id] = Field(default_factory=list, description="Building names or ids")
    inputs: CalculationInputsIn = Field(default_factory=CalculationInputsIn)

    def buildings_payload(self) -> List[Dict[str, Any]]:
        return [b.model_dump(by_alias=True) for b in self.buildings]

    def societies_payload(self) -> List[Dict[str, Any]]:
        return [s.model_dump() for s in self.societies]


class SaveCalculationRequest(CalculateRequest):
    calculation_name: str = Field(..., min_length=1, max_length=500)
    project_id: Optional[str] = None
    calculated_by: Optional[str] = None
    remarks: Optional[str] = None


class SavedCalculationResponse(BaseModel):
    id: str
    calculation_name: str
    project_id: Optional[str] = None
    revision: int
    status: str
    result: Dict[str, Any]
