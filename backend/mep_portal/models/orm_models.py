"""ORM Models for the MEP portal electrical load module — SQLAlchemy 2.0"""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional
from sqlalchemy import (
    String, Text, Boolean, Integer, Numeric, DateTime,
    UniqueConstraint, Index
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
from mep_portal.db import Base


def gen_uuid():
    return str(uuid.uuid4())


# ── CALCULATIONS ─────────────────────────────────────────────────────────────
class ElectricalLoadCalculation(Base):
    """A saved CalculationResult. Saves are full overwrites; revision counts them."""
    __tablename__ = "electrical_load_calculations"
    __table_args__ = (
        Index("idx_elec_calc_project", "project_id"),
        Index("idx_elec_calc_status", "status"),
    )
    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=gen_uuid)
    project_id: Mapped[Optional[str]] = mapped_column(String(64))
    calculation_name: Mapped[str] = mapped_column(String(500), nullable=False)
    area_type: Mapped[str] = mapped_column(String(32), nullable=False)

    # Inputs
    selected_buildings: Mapped[list] = mapped_column(JSONB, nullable=False)
    input_parameters: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)

    # Results (stored verbatim from result_to_dict)
    building_ca_loads: Mapped[list] = mapped_column(JSONB, nullable=False)
    flat_loads: Mapped[Optional[dict]] = mapped_column(JSONB)
    society_ca_loads: Mapped[list] = mapped_column(JSONB, nullable=False)
    total_loads: Mapped[dict] = mapped_column(JSONB, nullable=False)
    building_breakdowns: Mapped[list] = mapped_column(JSONB, nullable=False)
    regulatory_compliance: Mapped[Optional[dict]] = mapped_column(JSONB)
    factors_used: Mapped[list] = mapped_column(JSONB, nullable=False)

    # Summary values for quick queries
    total_connected_load_kw: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    maximum_demand_kw: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    essential_demand_kw: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    fire_demand_kw: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    transformer_size_kva: Mapped[Optional[int]] = mapped_column(Integer)

    # Metadata
    revision: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[str] = mapped_column(String(50), default="Draft")  # Draft | Verified | Submitted
    calculated_by: Mapped[Optional[str]] = mapped_column(String(255))
    verified_by: Mapped[Optional[str]] = mapped_column(String(255))
    remarks: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=func.now())


# ── FACTOR TABLE ─────────────────────────────────────────────────────────────
class ElectricalLoadFactor(Base):
    """One Factor Table row, keyed category/sub_category/description."""
    __tablename__ = "electrical_load_factors"
    __table_args__ = (
        UniqueConstraint("category", "sub_category", "description", name="uq_elec_factor_key"),
    )
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    category: Mapped[str] = mapped_column(String(64), nullable=False)
    sub_category: Mapped[str] = mapped_column(String(64), nullable=False, default="default")
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    watt_per_sqm: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    mdf: Mapped[Decimal] = mapped_column(Numeric(5, 3), nullable=False, default=Decimal("1.000"))
    edf: Mapped[Decimal] = mapped_column(Numeric(5, 3), nullable=False, default=Decimal("0.000"))
    fdf: Mapped[Decimal] = mapped_column(Numeric(5, 3), nullable=False, default=Decimal("0.000"))
    guideline: Mapped[str] = mapped_column(String(64), default="MSEDCL")
    notes: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
