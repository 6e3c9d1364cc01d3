"""
Persistence of calculation results and factor rows.

A save stores result_to_dict verbatim plus summary columns. Re-saving under an
existing calculation id is a full overwrite that bumps the revision; there is
no field-level patching. Invalid results are never stored.
"""
from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mep_portal.models.orm_models import ElectricalLoadCalculation, ElectricalLoadFactor
from mep_portal.services.factor_table import DEFAULT_FACTOR_ROWS, FactorTable, default_factor_table
from mep_portal.services.load_errors import CalculationNotFoundError, InvalidInputError
from mep_portal.services.load_models import CalculationResult
from mep_portal.services.perf_monitor import timed_async
from mep_portal.services.result_serializer import result_from_dict, result_to_dict

logger = logging.getLogger("mep-portal-repository")

# Columns holding result_to_dict output verbatim
RESULT_COLUMNS = (
    "building_ca_loads",
    "flat_loads",
    "society_ca_loads",
    "total_loads",
    "building_breakdowns",
    "regulatory_compliance",
    "factors_used",
    "selected_buildings",
)


def record_fields(
    result: CalculationResult,
    name: str,
    project_id: Optional[str] = None,
    input_parameters: Optional[Dict[str, Any]] = None,
    calculated_by: Optional[str] = None,
    remarks: Optional[str] = None,
) -> Dict[str, Any]:
    """Column values for an ElectricalLoadCalculation row. Pure; no session needed."""
    if not result.is_valid or result.totals is None:
        raise InvalidInputError(
            f"Refusing to save an invalid calculation: {result.invalid_reason or 'no totals'}"
        )
    data = result_to_dict(result)
    totals = result.totals
    fields = {column: data[column] for column in RESULT_COLUMNS}
    fields.update(
        calculation_name=name,
        project_id=project_id,
        area_type=result.area_type,
        input_parameters=input_parameters or {},
        total_connected_load_kw=round(totals.grand_total_tcl, 2),
        maximum_demand_kw=round(totals.total_max_demand, 2),
        essential_demand_kw=round(totals.total_essential, 2),
        fire_demand_kw=round(totals.total_fire, 2),
        transformer_size_kva=totals.transformer_size_kva,
        calculated_by=calculated_by,
        remarks=remarks,
    )
    return fields


def _check_id(calculation_id: str) -> str:
    try:
        return str(uuid.UUID(str(calculation_id)))
    except ValueError:
        raise CalculationNotFoundError(calculation_id) from None


def row_to_result(row: ElectricalLoadCalculation) -> CalculationResult:
    data = {column: getattr(row, column) for column in RESULT_COLUMNS}
    data.update(is_valid=True, invalid_reason=None, area_type=row.area_type)
    return result_from_dict(data)


@timed_async
async def save_calculation(
    session: AsyncSession,
    result: CalculationResult,
    name: str,
    project_id: Optional[str] = None,
    input_parameters: Optional[Dict[str, Any]] = None,
    calculated_by: Optional[str] = None,
    remarks: Optional[str] = None,
    calculation_id: Optional[str] = None,
) -> ElectricalLoadCalculation:
    fields = record_fields(result, name, project_id, input_parameters, calculated_by, remarks)

    if calculation_id is None:
        row = ElectricalLoadCalculation(**fields)
        session.add(row)
    else:
        row = await session.get(ElectricalLoadCalculation, _check_id(calculation_id))
        if row is None:
            raise CalculationNotFoundError(calculation_id)
        for column, value in fields.items():
            setattr(row, column, value)
        row.revision = (row.revision or 1) + 1

    await session.flush()
    logger.info(
        "Saved calculation '%s' (revision %s)", name, row.revision,
        extra={"calculation_id": row.id, "project_id": project_id},
    )
    return row


@timed_async
async def load_calculation(
    session: AsyncSession,
    calculation_id: str,
) -> Tuple[ElectricalLoadCalculation, CalculationResult]:
    row = await session.get(ElectricalLoadCalculation, _check_id(calculation_id))
    if row is None:
        raise CalculationNotFoundError(calculation_id)
    return row, row_to_result(row)


@timed_async
async def load_factor_table(session: AsyncSession) -> FactorTable:
    """Active factor rows, or the default seed when the table is empty."""
    rows = (
        await session.execute(
            select(ElectricalLoadFactor).where(ElectricalLoadFactor.is_active.is_(True))
        )
    ).scalars().all()
    if not rows:
        logger.info("No active factor rows stored; using default factor table")
        return default_factor_table()
    return FactorTable.from_rows(
        {
            "category": r.category,
            "sub_category": r.sub_category,
            "description": r.description,
            "watt_per_sqm": r.watt_per_sqm,
            "mdf": r.mdf,
            "edf": r.edf,
            "fdf": r.fdf,
            "notes": r.notes,
        }
        for r in rows
    )


async def seed_default_factors(session: AsyncSession) -> int:
    """Insert DEFAULT_FACTOR_ROWS when the factor table is empty. Returns rows added."""
    existing = (await session.execute(select(func.count(ElectricalLoadFactor.id)))).scalar_one()
    if existing:
        return 0
    for row in DEFAULT_FACTOR_ROWS:
        session.add(ElectricalLoadFactor(
            category=row["discipline"],
            sub_category=row["area"],
            description=row["description"],
            watt_per_sqm=row["watt_per_sqm"],
            mdf=row["mdf"],
            edf=row["edf"],
            fdf=row["fdf"],
            notes=row["note"] or None,
        ))
    await session.flush()
    return len(DEFAULT_FACTOR_ROWS)
