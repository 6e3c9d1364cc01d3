"""
test_project_arena.py — Arena-indexed project storage and twin / society wiring.

Tests cover:
  - CounterIdGenerator: reproducible ids
  - add_building / add_floor / add_flat / update_flat / remove_flat
  - set_twin_of: missing parent, self, twin-of-twin, parent with dependants
  - set_floor_twin_of and assign_society validation
  - validate_twin_references: dangling references
  - from_payload: camelCase payload import, numeric validation
"""

import pytest

from mep_portal.services.load_errors import (
    ConfigurationError,
    InvalidBuildingDataError,
    TwinAssignmentError,
    UnresolvedTwinError,
)
from mep_portal.services.project_arena import CounterIdGenerator, ProjectArena


@pytest.fixture
def empty_arena():
    return ProjectArena(id_generator=CounterIdGenerator("t"))


class TestIdGeneration:

    def test_counter_ids_are_sequential(self):
        gen = CounterIdGenerator("bld")
        assert [gen(), gen(), gen()] == ["bld-1", "bld-2", "bld-3"]

    def test_arena_uses_injected_generator(self, empty_arena):
        b = empty_arena.add_building("Tower A")
        f = empty_arena.add_floor(b.id, "Floor 1")
        assert (b.id, f.id) == ("t-1", "t-2")


class TestConstruction:

    def test_floors_sorted_by_sequence(self, empty_arena):
        b = empty_arena.add_building("Tower A")
        empty_arena.add_floor(b.id, "Floor 2", sequence=2)
        empty_arena.add_floor(b.id, "Floor 1", sequence=1)
        assert [f.name for f in empty_arena.floors_of(b.id)] == ["Floor 1", "Floor 2"]

    def test_duplicate_building_name_rejected(self, empty_arena):
        empty_arena.add_building("Tower A")
        with pytest.raises(InvalidBuildingDataError):
            empty_arena.add_building("Tower A")

    def test_unknown_society_rejected(self, empty_arena):
        with pytest.raises(ConfigurationError):
            empty_arena.add_building("Tower A", society_id="nope")

    def test_update_flat_count(self, arena):
        flat_id = next(iter(arena.flats))
        arena.update_flat(flat_id, count=10)
        assert arena.flat(flat_id).count == 10

    def test_update_flat_rejects_unknown_fields(self, arena):
        flat_id = next(iter(arena.flats))
        with pytest.raises(ConfigurationError):
            arena.update_flat(flat_id, floor_id="x")

    def test_remove_flat_detaches_from_floor(self, arena):
        flat_id = next(iter(arena.flats))
        arena.remove_flat(flat_id)
        assert flat_id not in arena.flats
        assert all(flat_id not in f.flat_ids for f in arena.floors.values())

    def test_unknown_ids_raise(self, empty_arena):
        with pytest.raises(ConfigurationError):
            empty_arena.building("missing")
        with pytest.raises(ConfigurationError):
            empty_arena.flat("missing")


class TestTwinWiring:

    def test_set_twin_of(self, empty_arena):
        empty_arena.add_building("Tower A")
        b = empty_arena.add_building("Tower B")
        empty_arena.set_twin_of(b.id, "Tower A")
        assert b.twin_of_building_name == "Tower A"
        assert [t.name for t in empty_arena.twins_of("Tower A")] == ["Tower B"]

    def test_clear_twin(self, arena):
        tower_b = arena.building_by_name("Tower B")
        arena.set_twin_of(tower_b.id, None)
        assert not tower_b.is_twin

    def test_missing_parent(self, empty_arena):
        b = empty_arena.add_building("Tower B")
        with pytest.raises(TwinAssignmentError):
            empty_arena.set_twin_of(b.id, "Tower Z")

    def test_twin_of_itself(self, empty_arena):
        b = empty_arena.add_building("Tower B")
        with pytest.raises(TwinAssignmentError):
            empty_arena.set_twin_of(b.id, "Tower B")

    def test_twin_of_a_twin_rejected(self, arena):
        """Tower B is already a twin of Tower A, so Tower C must point at Tower A."""
        c = arena.add_building("Tower C")
        with pytest.raises(TwinAssignmentError):
            arena.set_twin_of(c.id, "Tower B")

    def test_parent_cannot_become_twin(self, arena):
        arena.add_building("Tower C")
        tower_a = arena.building_by_name("Tower A")
        with pytest.raises(TwinAssignmentError):
            arena.set_twin_of(tower_a.id, "Tower C")

    def test_floor_twin_must_be_same_building(self, arena):
        tower_a = arena.building_by_name("Tower A")
        floor_2 = arena.floor_by_name(tower_a.id, "Floor 2")
        arena.set_floor_twin_of(floor_2.id, "Floor 1")
        assert floor_2.twin_of_floor_name == "Floor 1"
        with pytest.raises(TwinAssignmentError):
            arena.set_floor_twin_of(floor_2.id, "Floor 9")

    def test_assign_society(self, arena):
        society = arena.add_society("Green Meadows")
        tower_a = arena.building_by_name("Tower A")
        arena.assign_society(tower_a.id, society.id)
        assert tower_a.society_id == society.id
        with pytest.raises(ConfigurationError):
            arena.assign_society(tower_a.id, "unknown")

    def test_validate_dangling_reference(self, empty_arena):
        empty_arena.add_building("Tower B", twin_of_building_name="Tower Z")
        with pytest.raises(UnresolvedTwinError) as exc:
            empty_arena.validate_twin_references()
        assert exc.value.twin_of == "Tower Z"


class TestFromPayload:

    def test_nested_payload(self, building_payload):
        arena = ProjectArena.from_payload(building_payload, id_generator=CounterIdGenerator("p"))
        tower_a = arena.building_by_name("Tower A")
        assert tower_a.attributes.passenger_lifts == 1
        assert len(arena.floors_of(tower_a.id)) == 2
        assert len(arena.flats) == 4
        assert arena.building_by_name("Tower B").twin_of_building_name == "Tower A"

    def test_unresolved_twin_raises_on_load(self):
        with pytest.raises(UnresolvedTwinError):
            ProjectArena.from_payload([{"name": "Tower B", "twinOfBuildingName": "Tower Z"}])

    def test_blank_form_fields_count_as_zero(self):
        arena = ProjectArena.from_payload([{"name": "Tower A", "shopCount": "", "shopArea": ""}])
        attrs = arena.building_by_name("Tower A").attributes
        assert attrs.shop_count == 0 and attrs.shop_area == 0.0

    def test_non_numeric_field_rejected(self):
        with pytest.raises(InvalidBuildingDataError):
            ProjectArena.from_payload([{"name": "Tower A", "passengerLifts": "two"}])

    def test_society_created_from_building_reference(self):
        arena = ProjectArena.from_payload([{"name": "Tower A", "societyId": 7, "societyName": "Phase 1"}])
        assert arena.societies["7"].name == "Phase 1"
        assert arena.building_by_name("Tower A").society_id == "7"
