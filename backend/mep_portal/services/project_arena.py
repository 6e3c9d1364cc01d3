"""
Project Arena — flat, id-keyed storage for a project's societies, buildings,
floors and flats.

Parent → child links are id lists (Building.floor_ids, Floor.flat_ids), so an
edit is a dict lookup rather than a walk of a nested tree. Twin and society
wiring goes through explicit mutations that are validated against the
current state before anything is changed.
"""
from __future__ import annotations

import itertools
import logging
import uuid
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from mep_portal.services.load_errors import (
    ConfigurationError,
    InvalidBuildingDataError,
    TwinAssignmentError,
    UnresolvedTwinError,
)
from mep_portal.services.load_models import (
    Building,
    BuildingAttributes,
    Flat,
    Floor,
    Society,
)

logger = logging.getLogger("mep-portal-arena")

IdGenerator = Callable[[], str]


class CounterIdGenerator:
    """Monotonic ``{prefix}-{n}`` ids. Reproducible across runs."""

    def __init__(self, prefix: str = "id"):
        self.prefix = prefix
        self._counter = itertools.count(1)

    def __call__(self) -> str:
        return f"{self.prefix}-{next(self._counter)}"


def uuid_id_generator() -> str:
    return str(uuid.uuid4())


# Payload keys (camelCase from the project-input form, snake_case from stored rows)
_ATTRIBUTE_KEYS: Dict[str, tuple] = {
    "gf_entrance_lobby": ("gfEntranceLobby", "gf_entrance_lobby"),
    "typical_lobby_area": ("typicalLobbyArea", "typical_lobby_area"),
    "passenger_lifts": ("passengerLifts", "passenger_lifts"),
    "passenger_fire_lifts": ("passengerFireLifts", "passenger_fire_lifts"),
    "firemen_lifts": ("firemenLifts", "firemen_lifts"),
    "staircases": ("staircases", "staircaseCount", "staircase_count"),
    "fire_lobby_systems": ("fireLobbySystems", "fire_lobby_systems"),
    "car_parking_area": ("carParkingArea", "car_parking_area"),
    "two_wheeler_parking_area": ("twoWheelerParkingArea", "two_wheeler_parking_area"),
    "shop_count": ("shopCount", "shop_count"),
    "shop_area": ("shopArea", "shop_area"),
    "office_count": ("officeCount", "office_count"),
    "office_area": ("officeArea", "office_area"),
    "villa_count": ("villaCount", "villa_count"),
    "villa_area": ("villaArea", "villa_area"),
}

_INT_ATTRIBUTES = {
    "passenger_lifts", "passenger_fire_lifts", "firemen_lifts", "staircases",
    "fire_lobby_systems", "shop_count", "office_count", "villa_count",
}
_OPTIONAL_ATTRIBUTES = {"gf_entrance_lobby", "typical_lobby_area", "staircases", "fire_lobby_systems"}


def _pick(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """First non-empty value among ``keys``. Form fields arrive as '' when blank."""
    for key in keys:
        value = data.get(key)
        if value is not None and value != "":
            return value
    return default


def _num(value: Any, field_name: str, cast: Callable = float) -> Any:
    try:
        return cast(float(value)) if cast is int else cast(value)
    except (TypeError, ValueError):
        raise InvalidBuildingDataError(f"'{field_name}' must be numeric, got {value!r}") from None


def attributes_from_payload(data: Mapping[str, Any]) -> BuildingAttributes:
    values: Dict[str, Any] = {}
    for name, keys in _ATTRIBUTE_KEYS.items():
        raw = _pick(data, *keys)
        if raw is None:
            if name not in _OPTIONAL_ATTRIBUTES:
                values[name] = 0 if name in _INT_ATTRIBUTES else 0.0
            continue
        values[name] = _num(raw, name, int if name in _INT_ATTRIBUTES else float)
    return BuildingAttributes(**values)


class ProjectArena:
    def __init__(self, id_generator: Optional[IdGenerator] = None):
        self._new_id: IdGenerator = id_generator or uuid_id_generator
        self.societies: Dict[str, Society] = {}
        self.buildings: Dict[str, Building] = {}
        self.floors: Dict[str, Floor] = {}
        self.flats: Dict[str, Flat] = {}

    # ── Lookups ──────────────────────────────────────────────────────────────

    def building(self, building_id: str) -> Building:
        try:
            return self.buildings[building_id]
        except KeyError:
            raise ConfigurationError(f"Unknown building id '{building_id}'") from None

    def floor(self, floor_id: str) -> Floor:
        try:
            return self.floors[floor_id]
        except KeyError:
            raise ConfigurationError(f"Unknown floor id '{floor_id}'") from None

    def flat(self, flat_id: str) -> Flat:
        try:
            return self.flats[flat_id]
        except KeyError:
            raise ConfigurationError(f"Unknown flat id '{flat_id}'") from None

    def building_by_name(self, name: str) -> Optional[Building]:
        for b in self.buildings.values():
            if b.name == name:
                return b
        return None

    def floors_of(self, building_id: str) -> List[Floor]:
        return sorted(
            (self.floors[fid] for fid in self.building(building_id).floor_ids),
            key=lambda f: f.sequence,
        )

    def flats_of(self, floor_id: str) -> List[Flat]:
        return [self.flats[fid] for fid in self.floor(floor_id).flat_ids]

    def floor_by_name(self, building_id: str, name: str) -> Optional[Floor]:
        for floor in self.floors_of(building_id):
            if floor.name == name:
                return floor
        return None

    def twins_of(self, building_name: str) -> List[Building]:
        return [b for b in self.buildings.values() if b.twin_of_building_name == building_name]

    # ── Construction ─────────────────────────────────────────────────────────

    def add_society(self, name: str, society_id: Optional[str] = None) -> Society:
        society = Society(id=society_id or self._new_id(), name=name)
        self.societies[society.id] = society
        return society

    def add_building(
        self,
        name: str,
        application_type: str = "Residential",
        attributes: Optional[BuildingAttributes] = None,
        twin_of_building_name: Optional[str] = None,
        society_id: Optional[str] = None,
        building_id: Optional[str] = None,
    ) -> Building:
        """Twin references are not checked here; see set_twin_of / validate_twin_references."""
        if not name:
            raise InvalidBuildingDataError("Building name is required")
        if self.building_by_name(name) is not None:
            raise InvalidBuildingDataError(f"Duplicate building name '{name}'")
        if society_id is not None and society_id not in self.societies:
            raise ConfigurationError(f"Unknown society id '{society_id}'")
        building = Building(
            id=building_id or self._new_id(),
            name=name,
            application_type=application_type or "Residential",
            twin_of_building_name=twin_of_building_name or None,
            society_id=society_id,
            attributes=attributes or BuildingAttributes(),
        )
        self.buildings[building.id] = building
        return building

    def add_floor(
        self,
        building_id: str,
        name: str,
        height: float = 3.0,
        sequence: Optional[int] = None,
        twin_of_floor_name: Optional[str] = None,
        typical_lobby_area: Optional[float] = None,
        floor_id: Optional[str] = None,
    ) -> Floor:
        building = self.building(building_id)
        if sequence is None:
            sequence = len(building.floor_ids) + 1
        floor = Floor(
            id=floor_id or self._new_id(),
            building_id=building_id,
            sequence=sequence,
            name=name,
            height=height,
            twin_of_floor_name=twin_of_floor_name or None,
            typical_lobby_area=typical_lobby_area,
        )
        self.floors[floor.id] = floor
        building.floor_ids.append(floor.id)
        return floor

    def add_flat(
        self,
        floor_id: str,
        type: str,
        area: float = 0.0,
        count: int = 0,
        flat_id: Optional[str] = None,
    ) -> Flat:
        floor = self.floor(floor_id)
        flat = Flat(id=flat_id or self._new_id(), type=type, area=area, count=count)
        self.flats[flat.id] = flat
        floor.flat_ids.append(flat.id)
        return flat

    def update_flat(self, flat_id: str, **fields: Any) -> Flat:
        flat = self.flat(flat_id)
        unknown = set(fields) - {"type", "area", "count"}
        if unknown:
            raise ConfigurationError(f"Cannot update flat fields: {sorted(unknown)}")
        for key, value in fields.items():
            setattr(flat, key, value)
        return flat

    def remove_flat(self, flat_id: str) -> None:
        self.flat(flat_id)
        for floor in self.floors.values():
            if flat_id in floor.flat_ids:
                floor.flat_ids.remove(flat_id)
        del self.flats[flat_id]

    # ── Twin / society wiring ────────────────────────────────────────────────

    def set_twin_of(self, building_id: str, parent_name: Optional[str]) -> Building:
        """Make ``building_id`` a twin of the building named ``parent_name`` (None clears)."""
        building = self.building(building_id)
        if parent_name is None:
            building.twin_of_building_name = None
            return building

        parent = self.building_by_name(parent_name)
        if parent is None:
            raise TwinAssignmentError(f"No building named '{parent_name}' in this project")
        if parent.id == building.id:
            raise TwinAssignmentError(f"Building '{building.name}' cannot be a twin of itself")
        if parent.is_twin:
            raise TwinAssignmentError(
                f"'{parent_name}' is itself a twin of '{parent.twin_of_building_name}'; "
                f"point '{building.name}' at '{parent.twin_of_building_name}' instead"
            )
        dependants = [b.name for b in self.twins_of(building.name)]
        if dependants:
            raise TwinAssignmentError(
                f"'{building.name}' is the parent of {dependants} and cannot become a twin"
            )

        building.twin_of_building_name = parent_name
        logger.info("Building '%s' set as twin of '%s'", building.name, parent_name)
        return building

    def set_floor_twin_of(self, floor_id: str, parent_floor_name: Optional[str]) -> Floor:
        floor = self.floor(floor_id)
        if parent_floor_name is None:
            floor.twin_of_floor_name = None
            return floor

        parent = self.floor_by_name(floor.building_id, parent_floor_name)
        if parent is None:
            raise TwinAssignmentError(f"No floor named '{parent_floor_name}' in this building")
        if parent.id == floor.id:
            raise TwinAssignmentError(f"Floor '{floor.name}' cannot be a twin of itself")
        if parent.twin_of_floor_name:
            raise TwinAssignmentError(f"Floor '{parent_floor_name}' is itself a twin floor")
        if any(f.twin_of_floor_name == floor.name for f in self.floors_of(floor.building_id)):
            raise TwinAssignmentError(f"Floor '{floor.name}' is the parent of other twin floors")

        floor.twin_of_floor_name = parent_floor_name
        return floor

    def assign_society(self, building_id: str, society_id: Optional[str]) -> Building:
        building = self.building(building_id)
        if society_id is not None and society_id not in self.societies:
            raise ConfigurationError(f"Unknown society id '{society_id}'")
        building.society_id = society_id
        return building

    def validate_twin_references(self) -> None:
        """Raise UnresolvedTwinError for the first dangling or chained twin reference."""
        for building in self.buildings.values():
            if building.is_twin:
                parent = self.building_by_name(building.twin_of_building_name)
                if parent is None:
                    raise UnresolvedTwinError(building.name, building.twin_of_building_name)
                if parent.id == building.id:
                    raise UnresolvedTwinError(building.name, building.twin_of_building_name, "itself")
                if parent.is_twin:
                    raise UnresolvedTwinError(
                        building.name, building.twin_of_building_name, "itself a twin"
                    )
            for floor in self.floors_of(building.id):
                if not floor.twin_of_floor_name:
                    continue
                parent_floor = self.floor_by_name(building.id, floor.twin_of_floor_name)
                if parent_floor is None or parent_floor.id == floor.id or parent_floor.twin_of_floor_name:
                    raise UnresolvedTwinError(
                        f"{building.name} / {floor.name}", floor.twin_of_floor_name,
                        "not a non-twin floor of the same building",
                    )

    # ── Payload import ───────────────────────────────────────────────────────

    @classmethod
    def from_payload(
        cls,
        buildings: Iterable[Mapping[str, Any]],
        societies: Iterable[Mapping[str, Any]] = (),
        id_generator: Optional[IdGenerator] = None,
        validate: bool = True,
    ) -> "ProjectArena":
        """
        Build an arena from the nested project payload:

            {"name": "Tower A", "applicationType": "Residential",
             "twinOfBuildingName": None, "societyId": "s1",
             "floors": [{"floorName": "1st", "floorHeight": 3.0,
                         "flats": [{"type": "2BHK", "area": 60, "count": 4}]}]}

        Supplied ids are kept (as strings); missing ids come from the generator.
        Twin references are validated once every building is loaded.
        """
        arena = cls(id_generator=id_generator)
        for s in societies:
            sid = s.get("id")
            arena.add_society(s.get("name") or "", society_id=str(sid) if sid is not None else None)

        for b in buildings:
            bid = b.get("id")
            society_id = _pick(b, "societyId", "society_id")
            building = arena.add_building(
                name=str(_pick(b, "name", default="")),
                application_type=_pick(b, "applicationType", "application_type", default="Residential"),
                attributes=attributes_from_payload(b),
                twin_of_building_name=_pick(b, "twinOfBuildingName", "twin_of_building_name"),
                society_id=None,
                building_id=str(bid) if bid is not None else None,
            )
            if society_id is not None:
                society_id = str(society_id)
                if society_id not in arena.societies:
                    arena.add_society(_pick(b, "societyName", "society_name", default=""), society_id)
                building.society_id = society_id

            for index, f in enumerate(b.get("floors") or [], start=1):
                fid = f.get("id")
                lobby = _pick(f, "typicalLobbyArea", "typical_lobby_area")
                floor = arena.add_floor(
                    building.id,
                    name=str(_pick(f, "floorName", "floor_name", "name", default=f"Floor {index}")),
                    height=_num(_pick(f, "floorHeight", "floor_height", "height", default=3.0), "floorHeight"),
                    sequence=int(_pick(f, "floorNumber", "floor_number", default=index)),
                    twin_of_floor_name=_pick(f, "twinOfFloorName", "twin_of_floor_name"),
                    typical_lobby_area=_num(lobby, "typicalLobbyArea") if lobby is not None else None,
                    floor_id=str(fid) if fid is not None else None,
                )
                for flat in f.get("flats") or []:
                    flat_id = flat.get("id")
                    arena.add_flat(
                        floor.id,
                        type=str(_pick(flat, "type", "flat_type", default="")),
                        area=_num(_pick(flat, "area", "area_sqm", default=0), "area"),
                        count=_num(_pick(flat, "count", "number_of_flats", default=0), "count", int),
                        flat_id=str(flat_id) if flat_id is not None else None,
                    )

        if validate:
            arena.validate_twin_references()
        logger.debug(
            "Arena loaded: %d buildings, %d floors, %d flats",
            len(arena.buildings), len(arena.floors), len(arena.flats),
        )
        return arena
