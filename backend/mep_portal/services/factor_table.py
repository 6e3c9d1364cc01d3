"""
Factor Table — category → {load density, MDF, EDF, FDF, reference note}.

Rows are keyed by the composite "{discipline}/{area}/{description}", the same
shape the regulatory standards table stores as category/sub_category/description.
A table is immutable for the duration of a calculation and may be shared across
concurrent calculations.

Default values follow MSEDCL 2016 / NBC 2016 practice for Maharashtra
residential societies.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, asdict
from functools import lru_cache
from typing import Any, Iterable, Mapping, Optional

from mep_portal.services.load_errors import ConfigurationError, MissingFactorError

logger = logging.getLogger("mep-portal-factors")


def make_factor_key(discipline: str, area: Optional[str], description: str) -> str:
    return f"{discipline}/{area or 'default'}/{description}"


@dataclass(frozen=True)
class Factor:
    discipline: str
    area: str
    description: str
    watt_per_sqm: Optional[float]
    mdf: float
    edf: float
    fdf: float
    note: str = ""

    @property
    def key(self) -> str:
        return make_factor_key(self.discipline, self.area, self.description)


# ---------------------------------------------------------------------------
# Default seed
#   (discipline, area, description, W/m², MDF, EDF, FDF, note)
#   W/m² is None for fixed-load categories (kW entered or sized from a table).
# ---------------------------------------------------------------------------

_DEFAULT_ROWS: list[tuple] = [
    ("RESIDENTIAL", "FLAT", "Residential Flat Load", 75.0, 0.60, 0.00, 0.00, "MSEDCL §C.1 — 75 W/m² carpet"),
    ("RESIDENTIAL", "FLAT", "Villa", 100.0, 0.60, 0.00, 0.00, "Independent villa"),
    ("COMMERCIAL", "SHOP", "Shop", 150.0, 0.80, 0.20, 0.00, "Commercial without AC"),
    ("COMMERCIAL", "OFFICE", "Office", 200.0, 0.80, 0.30, 0.00, "Commercial with AC"),
    ("LIGHTING", "LOBBY", "GF Entrance Lobby", 30.0, 0.80, 1.00, 0.30, "Ground floor entrance lobby"),
    ("LIGHTING", "LOBBY", "Typical Floor Lobby", 20.0, 0.80, 1.00, 0.30, "Typical floor lobby"),
    ("LIGHTING", "STAIRCASE", "Staircases & Landings", None, 1.00, 1.00, 1.00, "Escape route lighting"),
    ("LIGHTING", "TERRACE", "Terrace Lighting", 10.0, 0.70, 0.50, 0.00, "Terrace area"),
    ("LIGHTING", "PARKING", "Parking Area", 15.0, 0.70, 0.50, 0.00, "Stilt / basement parking"),
    ("LIGHTING", "LANDSCAPE", "Landscape & External Lighting", None, 0.70, 0.50, 0.00, "Fixed kW, site lighting"),
    ("LIFTS", "PASSENGER", "Passenger Lift", None, 0.60, 0.60, 0.00, "Essential supply only"),
    ("LIFTS", "PASSENGER_FIRE", "Passenger + Fire Lift", None, 0.60, 1.00, 1.00, "NBC Part 4 fire lift"),
    ("LIFTS", "FIREMEN", "Firemen Lift", None, 0.60, 1.00, 1.00, "Firemen evacuation lift"),
    ("HVAC", "AC", "Lobby Air Conditioning", None, 0.80, 0.00, 0.00, ""),
    ("HVAC", "VENTILATION", "Mechanical Ventilation Fans", None, 0.80, 0.50, 0.00, ""),
    ("PRESSURIZATION", "STAIRCASE", "Staircase Pressurization", None, 0.00, 1.00, 1.00, "Runs on fire signal only"),
    ("PRESSURIZATION", "LOBBY", "Fire Lift Lobby Pressurization", None, 0.00, 1.00, 1.00, "Runs on fire signal only"),
    ("PHE", "BOOSTER", "Booster Pump", None, 0.80, 1.00, 0.00, ""),
    ("PHE", "SEWAGE", "Sewage Pump", None, 0.60, 1.00, 0.00, ""),
    ("PHE", "TRANSFER", "Domestic Transfer Pump", None, 0.80, 1.00, 0.00, ""),
    ("FIREFIGHTING", "WET_RISER", "Wet Riser Pump", None, 0.00, 0.00, 1.00, "Mandatory above 15 m (NBC 2016)"),
    ("FIREFIGHTING", "HYDRANT", "Fire Main Pump", None, 0.00, 0.00, 1.00, ""),
    ("FIREFIGHTING", "SPRINKLER", "Sprinkler Pump", None, 0.00, 0.00, 1.00, ""),
    ("FIREFIGHTING", "JOCKEY", "Fire Jockey Pump", None, 0.20, 1.00, 1.00, "Pressure maintenance"),
    ("INFRASTRUCTURE", "STP", "STP & WTP Plant", None, 0.80, 1.00, 0.00, ""),
    ("INFRASTRUCTURE", "CLUBHOUSE", "Clubhouse & Amenities", None, 0.70, 0.30, 0.00, ""),
    ("INFRASTRUCTURE", "EV", "EV Charger", None, 0.50, 0.00, 0.00, "Load as per A1 form (actual)"),
    ("INFRASTRUCTURE", "STREET_LIGHTING", "Street Lighting", None, 1.00, 0.50, 0.00, ""),
    ("INFRASTRUCTURE", "SECURITY", "Security System", None, 1.00, 1.00, 0.00, "Security & CCTV"),
    ("INFRASTRUCTURE", "SMALL_POWER", "Common Area Power", None, 0.50, 0.30, 0.00, ""),
]

DEFAULT_FACTOR_ROWS: list[dict[str, Any]] = [
    {
        "discipline": d, "area": a, "description": desc, "watt_per_sqm": w,
        "mdf": mdf, "edf": edf, "fdf": fdf, "note": note,
    }
    for d, a, desc, w, mdf, edf, fdf, note in _DEFAULT_ROWS
]


def _ratio(row: Mapping[str, Any], name: str, key: str) -> float:
    raw = row.get(name)
    value = float(raw) if raw is not None else 0.0
    if not 0.0 <= value <= 1.0:
        raise ConfigurationError(f"Factor '{key}': {name.upper()} {value} outside [0, 1]")
    return value


class FactorTable:
    """Read-only lookup of Factor rows by composite key."""

    def __init__(self, factors: Iterable[Factor]):
        self._factors: dict[str, Factor] = {f.key: f for f in factors}

    @classmethod
    def from_rows(cls, rows: Iterable[Mapping[str, Any]]) -> "FactorTable":
        """
        Build from plain dicts. Accepts both the engine naming
        (discipline/area/note) and the stored-row naming
        (category/sub_category/notes).
        """
        factors = []
        for row in rows:
            discipline = row.get("discipline") or row.get("category")
            area = row.get("area") or row.get("sub_category") or "default"
            description = row.get("description")
            if not discipline or not description:
                raise ConfigurationError(f"Factor row missing discipline/description: {dict(row)}")
            key = make_factor_key(discipline, area, description)
            density = row.get("watt_per_sqm")
            factors.append(Factor(
                discipline=str(discipline),
                area=str(area),
                description=str(description),
                watt_per_sqm=float(density) if density is not None else None,
                mdf=_ratio(row, "mdf", key),
                edf=_ratio(row, "edf", key),
                fdf=_ratio(row, "fdf", key),
                note=str(row.get("note") or row.get("notes") or ""),
            ))
        return cls(factors)

    def __len__(self) -> int:
        return len(self._factors)

    def __contains__(self, key: str) -> bool:
        return key in self._factors

    def get(self, key: str) -> Optional[Factor]:
        return self._factors.get(key)

    def require(self, key: str) -> Factor:
        factor = self._factors.get(key)
        if factor is None:
            raise MissingFactorError(key)
        return factor

    def resolve(self, *keys: str) -> Factor:
        """First factor present among ``keys`` (most specific first)."""
        for key in keys:
            factor = self._factors.get(key)
            if factor is not None:
                return factor
        raise MissingFactorError(*keys)

    def snapshot(self) -> tuple[dict[str, Any], ...]:
        """Audit copy of every row, sorted by key."""
        return tuple(
            {"key": key, **asdict(self._factors[key])}
            for key in sorted(self._factors)
        )


@lru_cache(maxsize=1)
def default_factor_table() -> FactorTable:
    logger.debug("Building default factor table (%d rows)", len(DEFAULT_FACTOR_ROWS))
    return FactorTable.from_rows(DEFAULT_FACTOR_ROWS)
