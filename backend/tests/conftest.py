"""
conftest.py — Shared pytest fixtures for the MEP portal backend test suite.

No database or external service fixtures are defined here. Everything except
the API smoke test exercises the load engine in isolation.

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that all
    ``mep_portal.*`` imports resolve correctly regardless of where pytest is
    invoked.
"""

import sys
import os
import pytest

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any mep_portal imports occur.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)


# ---------------------------------------------------------------------------
# Tracker hygiene
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def reset_tracker():
    """Calculation metrics are a process-wide singleton; start every test at zero."""
    from mep_portal.services.perf_monitor import tracker
    tracker.reset()
    yield
    tracker.reset()


# ---------------------------------------------------------------------------
# Tables and engine
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def factor_table():
    """The built-in MSEDCL 2016 factor table (30 rows)."""
    from mep_portal.services.factor_table import default_factor_table
    return default_factor_table()


@pytest.fixture(scope="session")
def sizing():
    from mep_portal.services.equipment_sizing import DEFAULT_SIZING
    return DEFAULT_SIZING


@pytest.fixture
def engine():
    """Engine with a counter id generator so effective ids are reproducible."""
    from mep_portal.services.electrical_load_engine import ElectricalLoadEngine
    from mep_portal.services.project_arena import CounterIdGenerator
    return ElectricalLoadEngine(id_generator_factory=lambda: CounterIdGenerator("eff"))


# ---------------------------------------------------------------------------
# Calculation inputs
# ---------------------------------------------------------------------------

@pytest.fixture
def bare_inputs():
    """
    URBAN inputs with every default common-area load switched off, so that a
    building's totals come from its flats (and whatever the test adds) only:

      no GF / typical lobby area, no staircases, no terrace or parking lighting,
      no booster pump, no fire main pump.
    """
    from mep_portal.services.load_evaluators import CalculationInputs, SocietyInputs
    return CalculationInputs(
        area_type="URBAN",
        gf_entrance_lobby_sqm=0.0,
        typical_lobby_sqm=0.0,
        staircases=0,
        terrace_lighting=False,
        parking_lighting=False,
        booster_pump_flow_lpm=0.0,
        society=SocietyInputs(main_pump_flow_lpm=0.0),
    )


# ---------------------------------------------------------------------------
# Project hierarchies
# ---------------------------------------------------------------------------

def _add_typical_floors(arena, building_id, floors=2, height=3.0):
    """
    Each floor: 4 × 2BHK @ 60 m² + 2 × 1BHK @ 45 m² = 330 m² carpet.
    """
    for n in range(1, floors + 1):
        floor = arena.add_floor(building_id, name=f"Floor {n}", height=height)
        arena.add_flat(floor.id, type="2BHK", area=60.0, count=4)
        arena.add_flat(floor.id, type="1BHK", area=45.0, count=2)


@pytest.fixture
def arena():
    """
    Two-building project:

      Tower A  2 floors × 3 m, 330 m² carpet per floor (660 m² total)
               2BHK: 8 units / 480 m²,  1BHK: 4 units / 180 m²
      Tower B  twin of Tower A (no floors of its own)
    """
    from mep_portal.services.project_arena import CounterIdGenerator, ProjectArena
    arena = ProjectArena(id_generator=CounterIdGenerator("id"))
    tower_a = arena.add_building("Tower A")
    _add_typical_floors(arena, tower_a.id)
    arena.add_building("Tower B", twin_of_building_name="Tower A")
    return arena


@pytest.fixture
def add_typical_floors():
    return _add_typical_floors


@pytest.fixture
def building_payload():
    """Nested payload in the project-input form's camelCase shape."""
    return [
        {
            "name": "Tower A",
            "applicationType": "Residential",
            "passengerLifts": 1,
            "floors": [
                {
                    "floorName": "Floor 1",
                    "floorHeight": 3.0,
                    "flats": [
                        {"type": "2BHK", "area": 60.0, "count": 4},
                        {"type": "1BHK", "area": 45.0, "count": 2},
                    ],
                },
                {
                    "floorName": "Floor 2",
                    "floorHeight": 3.0,
                    "flats": [
                        {"type": "2BHK", "area": 60.0, "count": 4},
                        {"type": "1BHK", "area": 45.0, "count": 2},
                    ],
                },
            ],
        },
        {"name": "Tower B", "twinOfBuildingName": "Tower A", "floors": []},
    ]
