"""
test_calculation_repository.py — Saving and re-reading calculation records.

The async functions are driven with a minimal in-memory session stand-in;
no database is required.
"""

import asyncio
import uuid

import pytest

from mep_portal.models.orm_models import ElectricalLoadCalculation
from mep_portal.services.calculation_repository import (
    RESULT_COLUMNS,
    load_calculation,
    record_fields,
    row_to_result,
    save_calculation,
)
from mep_portal.services.load_errors import CalculationNotFoundError, InvalidInputError


class _Session:
    """Just enough of AsyncSession for the repository functions."""

    def __init__(self, rows=None):
        self.rows = dict(rows or {})
        self.added = []
        self.flushes = 0

    def add(self, row):
        self.added.append(row)

    async def get(self, model, key):
        return self.rows.get(key)

    async def flush(self):
        self.flushes += 1


def _ids(arena, *names):
    return [arena.building_by_name(n).id for n in names]


@pytest.fixture
def result(engine, arena):
    return engine.calculate(arena, _ids(arena, "Tower A", "Tower B"))


class TestRecordFields:

    def test_summary_columns(self, result):
        fields = record_fields(result, "Option 1", project_id="P-7", calculated_by="je@site")
        assert fields["calculation_name"] == "Option 1"
        assert fields["project_id"] == "P-7"
        assert fields["total_connected_load_kw"] == round(result.totals.grand_total_tcl, 2)
        assert fields["maximum_demand_kw"] == round(result.totals.total_max_demand, 2)
        assert fields["transformer_size_kva"] == result.totals.transformer_size_kva
        assert fields["input_parameters"] == {}
        assert set(RESULT_COLUMNS) <= set(fields)

    def test_invalid_result_refused(self, engine, arena):
        with pytest.raises(InvalidInputError):
            record_fields(engine.calculate(arena, []), "Empty")

    def test_row_round_trip(self, result):
        row = ElectricalLoadCalculation(**record_fields(result, "Option 1"))
        restored = row_to_result(row)
        assert restored.totals == result.totals
        assert restored.building_breakdowns == result.building_breakdowns


class TestSaveAndLoad:

    def test_new_record_added(self, result):
        session = _Session()
        row = asyncio.run(save_calculation(session, result, "Option 1"))
        assert session.added == [row]
        assert session.flushes == 1

    def test_overwrite_bumps_revision(self, result):
        calc_id = str(uuid.uuid4())
        existing = ElectricalLoadCalculation(**record_fields(result, "Option 1"))
        existing.id = calc_id
        existing.revision = 1
        session = _Session({calc_id: existing})

        row = asyncio.run(save_calculation(session, result, "Option 1b", calculation_id=calc_id))
        assert row is existing
        assert row.revision == 2
        assert row.calculation_name == "Option 1b"
        assert session.added == []

    def test_overwrite_unknown_id(self, result):
        with pytest.raises(CalculationNotFoundError):
            asyncio.run(save_calculation(_Session(), result, "Option 1", calculation_id=str(uuid.uuid4())))

    def test_load_returns_result(self, result):
        calc_id = str(uuid.uuid4())
        row = ElectricalLoadCalculation(**record_fields(result, "Option 1"))
        session = _Session({calc_id: row})
        loaded_row, loaded = asyncio.run(load_calculation(session, calc_id))
        assert loaded_row is row
        assert loaded.totals == result.totals

    def test_malformed_id_is_not_found(self):
        with pytest.raises(CalculationNotFoundError):
            asyncio.run(load_calculation(_Session(), "not-a-uuid"))
