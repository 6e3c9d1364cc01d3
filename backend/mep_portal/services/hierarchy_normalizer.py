"""
Hierarchy Normalizer — selected buildings → fully resolved EffectiveBuildings.

Twin rules:
  • A twin building clones its parent's floor/flat tree with fresh ids and
    inherits the parent's load attributes (lifts, lobbies, parking, shops,
    villas). It keeps its own id, name and society.
  • Twin references resolve against the whole project, so a twin is valid
    even when its parent is not part of the selection.
  • A twin floor clones the flats of its parent floor in the same building.
    When the twin floor still carries its own flats, they must pair with the
    parent's by (type, ordinal within type); otherwise the floor is stale
    and the calculation is refused.

Derived geometry per building:
    total_height_m  = Σ floor.height
    floor_count     = number of effective floors
    carpet_area_sqm = Σ flat.area × flat.count

The arena is never mutated. Errors are raised before anything is returned.
"""
from __future__ import annotations

import dataclasses
import logging
from collections import Counter
from typing import Iterable, List, Optional

from mep_portal.services.load_errors import (
    ConfigurationError,
    InvalidBuildingDataError,
    TwinFloorMismatchError,
    UnresolvedTwinError,
)
from mep_portal.services.load_models import (
    Building,
    EffectiveBuilding,
    EffectiveFlat,
    EffectiveFloor,
    Flat,
)
from mep_portal.services.project_arena import CounterIdGenerator, IdGenerator, ProjectArena

logger = logging.getLogger("mep-portal-normalizer")


def _pairing_keys(flats: Iterable[Flat]) -> List[tuple]:
    """(type, ordinal-within-type) for each flat, in list order."""
    seen: Counter = Counter()
    keys = []
    for flat in flats:
        keys.append((flat.type, seen[flat.type]))
        seen[flat.type] += 1
    return keys


def _check_flat(building: Building, flat: Flat) -> None:
    if flat.area < 0:
        raise InvalidBuildingDataError(
            f"Flat '{flat.type}' in '{building.name}' has negative area {flat.area}"
        )
    if flat.count < 0:
        raise InvalidBuildingDataError(
            f"Flat '{flat.type}' in '{building.name}' has negative count {flat.count}"
        )


def resolve_twin_parent(arena: ProjectArena, building: Building) -> Building:
    parent = arena.building_by_name(building.twin_of_building_name)
    if parent is None:
        raise UnresolvedTwinError(building.name, building.twin_of_building_name)
    if parent.id == building.id:
        raise UnresolvedTwinError(building.name, building.twin_of_building_name, "itself")
    if parent.is_twin:
        raise UnresolvedTwinError(building.name, building.twin_of_building_name, "itself a twin")
    return parent


def _resolve_floors(
    arena: ProjectArena,
    building: Building,
    source: Building,
    new_id: IdGenerator,
) -> tuple[EffectiveFloor, ...]:
    floors = []
    for floor in arena.floors_of(source.id):
        if floor.height <= 0:
            raise InvalidBuildingDataError(
                f"Floor '{floor.name}' in '{source.name}' has non-positive height {floor.height}"
            )

        flats = arena.flats_of(floor.id)
        lobby_area = floor.typical_lobby_area

        if floor.twin_of_floor_name:
            parent_floor = arena.floor_by_name(source.id, floor.twin_of_floor_name)
            if parent_floor is None or parent_floor.id == floor.id or parent_floor.twin_of_floor_name:
                raise UnresolvedTwinError(
                    f"{building.name} / {floor.name}", floor.twin_of_floor_name,
                    "not a non-twin floor of the same building",
                )
            parent_flats = arena.flats_of(parent_floor.id)
            if flats and set(_pairing_keys(flats)) != set(_pairing_keys(parent_flats)):
                raise TwinFloorMismatchError(building.name, floor.name, parent_floor.name)
            flats = parent_flats
            if lobby_area is None:
                lobby_area = parent_floor.typical_lobby_area

        effective_flats = []
        for flat in flats:
            _check_flat(source, flat)
            effective_flats.append(EffectiveFlat(
                id=new_id(),
                type=flat.type,
                area=float(flat.area),
                count=int(flat.count),
                source_flat_id=flat.id,
            ))

        floors.append(EffectiveFloor(
            id=new_id(),
            sequence=floor.sequence,
            name=floor.name,
            height=float(floor.height),
            typical_lobby_area=lobby_area,
            flats=tuple(effective_flats),
            source_floor_id=floor.id,
            twin_of_floor_name=floor.twin_of_floor_name,
        ))
    return tuple(floors)


def normalize_building(
    arena: ProjectArena,
    building: Building,
    new_id: IdGenerator,
) -> EffectiveBuilding:
    parent: Optional[Building] = None
    source = building
    if building.is_twin:
        parent = resolve_twin_parent(arena, building)
        source = parent

    floors = _resolve_floors(arena, building, source, new_id)
    return EffectiveBuilding(
        id=building.id,
        name=building.name,
        application_type=source.application_type,
        society_id=building.society_id,
        attributes=dataclasses.replace(source.attributes),
        floors=floors,
        source_building_id=source.id,
        twin_of_building_id=parent.id if parent else None,
        twin_of_building_name=parent.name if parent else None,
        total_height_m=sum(f.height for f in floors),
        floor_count=len(floors),
        carpet_area_sqm=sum(flat.carpet_area for f in floors for flat in f.flats),
    )


def normalize_buildings(
    arena: ProjectArena,
    selected_ids: Iterable[str],
    id_generator: Optional[IdGenerator] = None,
) -> List[EffectiveBuilding]:
    """
    Resolve the selected buildings, in selection order, without duplicates.
    Raises ConfigurationError subclasses naming the first bad reference.
    """
    new_id = id_generator or CounterIdGenerator("eff")
    result: List[EffectiveBuilding] = []
    seen = set()
    for building_id in selected_ids:
        if building_id in seen:
            continue
        seen.add(building_id)
        if building_id not in arena.buildings:
            raise ConfigurationError(f"Selected building '{building_id}' is not in this project")
        result.append(normalize_building(arena, arena.buildings[building_id], new_id))

    logger.debug(
        "Normalized %d buildings (%d twins)",
        len(result), sum(1 for b in result if b.is_twin),
    )
    return result
