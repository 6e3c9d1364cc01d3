"""Electrical load routes — calculate, save / reload calculations, factor table."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from mep_portal.db import db_configured, get_db
from mep_portal.models.calculation_schema import (
    CalculateRequest,
    SaveCalculationRequest,
    SavedCalculationResponse,
)
from mep_portal.models.orm_models import ElectricalLoadCalculation
from mep_portal.services.calculation_repository import (
    load_calculation,
    load_factor_table,
    save_calculation,
)
from mep_portal.services.electrical_load_engine import ElectricalLoadEngine
from mep_portal.services.factor_table import FactorTable, default_factor_table
from mep_portal.services.load_errors import (
    CalculationNotFoundError,
    ConfigurationError,
    InvalidInputError,
    LoadCalculationError,
)
from mep_portal.services.load_models import CalculationResult
from mep_portal.services.result_serializer import result_to_dict

router = APIRouter(prefix="/api/electrical-load", tags=["Electrical Load"])
logger = logging.getLogger("mep-portal-api")


# ─── Helpers ──────────────────────────────────────────────────────────────────

def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def _http_error(exc: LoadCalculationError) -> HTTPException:
    if isinstance(exc, CalculationNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ConfigurationError):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, InvalidInputError):
        return HTTPException(status_code=400, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


def _require_db():
    if not db_configured():
        raise HTTPException(status_code=503, detail="Database not configured; calculations cannot be stored")


async def _factors(db: AsyncSession) -> FactorTable:
    """Stored factor rows when a database is configured, the built-in table otherwise."""
    if db_configured():
        return await load_factor_table(db)
    return default_factor_table()


def _run(body: CalculateRequest, factors: FactorTable, calculation_id: Optional[str]) -> CalculationResult:
    engine = ElectricalLoadEngine(factor_table=factors)
    try:
        return engine.calculate_from_payload(
            body.buildings_payload(),
            body.selected_buildings,
            inputs=body.inputs.to_inputs(),
            societies_payload=body.societies_payload(),
            calculation_id=calculation_id,
        )
    except LoadCalculationError as exc:
        raise _http_error(exc)


def _saved(row: ElectricalLoadCalculation, result: CalculationResult) -> SavedCalculationResponse:
    return SavedCalculationResponse(
        id=str(row.id),
        calculation_name=row.calculation_name,
        project_id=row.project_id,
        revision=row.revision,
        status=row.status,
        result=result_to_dict(result),
    )


async def _store(
    body: SaveCalculationRequest,
    request: Request,
    db: AsyncSession,
    calculation_id: Optional[str] = None,
) -> SavedCalculationResponse:
    factors = await load_factor_table(db)
    result = _run(body, factors, _request_id(request))
    try:
        row = await save_calculation(
            db,
            result,
            body.calculation_name,
            project_id=body.project_id,
            input_parameters=body.inputs.model_dump(),
            calculated_by=body.calculated_by,
            remarks=body.remarks,
            calculation_id=calculation_id,
        )
    except LoadCalculationError as exc:
        raise _http_error(exc)
    return _saved(row, result)


# ─── Endpoints ────────────────────────────────────────────────────────────────

@router.post("/calculate")
async def calculate(
    body: CalculateRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """
    Run a calculation without storing it. Reads the same factor rows a save
    would; with no database configured it falls back to the built-in table.
    """
    result = _run(body, await _factors(db), _request_id(request))
    return result_to_dict(result)


@router.post("/calculations", response_model=SavedCalculationResponse, status_code=201)
async def create_calculation(
    body: SaveCalculationRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    _require_db()
    return await _store(body, request, db)


@router.put("/calculations/{calculation_id}", response_model=SavedCalculationResponse)
async def overwrite_calculation(
    calculation_id: str,
    body: SaveCalculationRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Recalculate and overwrite a stored calculation; bumps its revision."""
    _require_db()
    return await _store(body, request, db, calculation_id=calculation_id)


@router.get("/calculations/{calculation_id}", response_model=SavedCalculationResponse)
async def get_calculation(calculation_id: str, db: AsyncSession = Depends(get_db)):
    _require_db()
    try:
        row, result = await load_calculation(db, calculation_id)
    except LoadCalculationError as exc:
        raise _http_error(exc)
    return _saved(row, result)


@router.get("/factors")
async def list_factors(db: AsyncSession = Depends(get_db)):
    """The factor table calculations run against (W/m², MDF / EDF / FDF per discipline and area)."""
    factors = await _factors(db)
    return {"count": len(factors), "factors": list(factors.snapshot())}
