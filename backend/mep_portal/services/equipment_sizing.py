"""
Equipment sizing tables — lift, pump, fan, STP and EV charger ratings.

Source: MSEDCL electrical load workbook ("Data" sheet), NBC 2016 Part 4.

Every table is a sorted sequence of (band, kW) pairs. Lookup rule: the
smallest band greater than or equal to the requested value; requests above
the largest band use the largest band's rating.
"""
from __future__ import annotations

import bisect
import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Tuple

from mep_portal.services.load_errors import ConfigurationError

Band = Tuple[float, float]

# ── Default tables ───────────────────────────────────────────────────────────

LIFT_KW_BY_HEIGHT_M: Tuple[Band, ...] = (
    (60, 12.0), (70, 14.0), (90, 15.0), (100, 18.0), (110, 20.0),
    (120, 22.0), (130, 24.0), (140, 26.0), (150, 28.0),
)

PHE_PUMP_KW_BY_LPM: Tuple[Band, ...] = (
    (100, 0.75), (200, 1.1), (300, 2.2), (400, 3.0),
    (500, 4.0), (600, 5.5), (750, 7.5), (1000, 11.0),
)

SEWAGE_PUMP_KW_BY_LPM: Tuple[Band, ...] = (
    (200, 2.2), (300, 3.0), (500, 5.5), (750, 7.5),
)

HYDRANT_PUMP_KW_BY_LPM: Tuple[Band, ...] = (
    (2280, 93.25), (2850, 112.0), (3200, 130.5), (3800, 150.0),
)

SPRINKLER_PUMP_KW_BY_LPM: Tuple[Band, ...] = (
    (1140, 46.63), (1425, 56.0), (1600, 65.25), (1900, 75.0),
)

VENTILATION_FAN_KW_BY_CFM: Tuple[Band, ...] = (
    (1000, 0.5), (2000, 1.0), (3000, 1.5), (5000, 2.2), (10000, 4.0),
)

STP_KW_BY_KLD: Tuple[Band, ...] = (
    (100, 15.0), (200, 22.0), (300, 30.0), (500, 45.0), (750, 60.0), (1000, 75.0),
)

JOCKEY_PUMP_KW = 9.33               # standard 180 LPM jockey
AC_KW_PER_TR = 1.2
STAIRCASE_PRESSURIZATION_FAN_KW = 5.5
LOBBY_PRESSURIZATION_FAN_KW = 7.5

EV_CHARGER_KW: Dict[str, float] = {
    "slow": 3.3,
    "standard": 7.4,
    "fast": 22.0,
    "dc_fast": 50.0,
}

LIFT_CLASSES = ("passenger", "passenger_fire", "firemen")

_WORKING_RE = re.compile(r"(\d+)\s*W\b", re.IGNORECASE)
_MAIN_RE = re.compile(r"(\d+)\s*Main\b", re.IGNORECASE)


def lookup_band(table: Sequence[Band], value: float) -> float:
    """Rating for ``value``: smallest band >= value, else the largest band."""
    if not table:
        raise ConfigurationError("Empty sizing table")
    bands = [b for b, _ in table]
    idx = bisect.bisect_left(bands, value)
    if idx >= len(table):
        idx = len(table) - 1
    return table[idx][1]


def working_pump_count(pump_set: Optional[str]) -> int:
    """
    Working pumps in a set string. Standby ("S", "SBY") and jockey units are
    excluded from connected load.

    >>> working_pump_count("2W+1S")
    2
    >>> working_pump_count("2 Main+SBY+Jky")
    2
    >>> working_pump_count("Main+SBY+Jky")
    1
    """
    if not pump_set:
        return 1
    m = _WORKING_RE.search(pump_set) or _MAIN_RE.search(pump_set)
    if m:
        return int(m.group(1))
    return 1


@dataclass(frozen=True)
class EquipmentSizing:
    """Injectable bundle of every sizing table the evaluators consume."""
    lift_kw_by_height: Tuple[Band, ...] = LIFT_KW_BY_HEIGHT_M
    lift_kw_override: Dict[str, float] = field(default_factory=dict)
    phe_pump_kw_by_lpm: Tuple[Band, ...] = PHE_PUMP_KW_BY_LPM
    sewage_pump_kw_by_lpm: Tuple[Band, ...] = SEWAGE_PUMP_KW_BY_LPM
    hydrant_pump_kw_by_lpm: Tuple[Band, ...] = HYDRANT_PUMP_KW_BY_LPM
    sprinkler_pump_kw_by_lpm: Tuple[Band, ...] = SPRINKLER_PUMP_KW_BY_LPM
    ventilation_fan_kw_by_cfm: Tuple[Band, ...] = VENTILATION_FAN_KW_BY_CFM
    stp_kw_by_kld: Tuple[Band, ...] = STP_KW_BY_KLD
    jockey_pump_kw: float = JOCKEY_PUMP_KW
    ac_kw_per_tr: float = AC_KW_PER_TR
    staircase_fan_kw: float = STAIRCASE_PRESSURIZATION_FAN_KW
    lobby_fan_kw: float = LOBBY_PRESSURIZATION_FAN_KW
    ev_charger_kw: Dict[str, float] = field(default_factory=lambda: dict(EV_CHARGER_KW))

    def lift_kw(self, lift_class: str, building_height_m: float) -> float:
        if lift_class not in LIFT_CLASSES:
            raise ConfigurationError(f"Unknown lift class '{lift_class}'")
        if lift_class in self.lift_kw_override:
            return float(self.lift_kw_override[lift_class])
        return lookup_band(self.lift_kw_by_height, building_height_m)

    def phe_pump_kw(self, flow_lpm: float) -> float:
        return lookup_band(self.phe_pump_kw_by_lpm, flow_lpm)

    def sewage_pump_kw(self, capacity_lpm: float) -> float:
        return lookup_band(self.sewage_pump_kw_by_lpm, capacity_lpm)

    def hydrant_pump_kw(self, flow_lpm: float) -> float:
        return lookup_band(self.hydrant_pump_kw_by_lpm, flow_lpm)

    def sprinkler_pump_kw(self, flow_lpm: float) -> float:
        return lookup_band(self.sprinkler_pump_kw_by_lpm, flow_lpm)

    def ventilation_fan_kw(self, cfm: float) -> float:
        return lookup_band(self.ventilation_fan_kw_by_cfm, cfm)

    def stp_kw(self, capacity_kld: float) -> float:
        return lookup_band(self.stp_kw_by_kld, capacity_kld)

    def ac_kw(self, tonnage_tr: float) -> float:
        return tonnage_tr * self.ac_kw_per_tr

    def ev_kw(self, charger_type: str) -> float:
        try:
            return float(self.ev_charger_kw[charger_type])
        except KeyError:
            raise ConfigurationError(
                f"Unknown EV charger type '{charger_type}' "
                f"(expected one of {sorted(self.ev_charger_kw)})"
            ) from None


DEFAULT_SIZING = EquipmentSizing()
