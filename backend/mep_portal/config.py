"""
Electrical load configuration — single source of truth for calculation
constants, default input values and environment-driven settings.

Import from here in evaluators, the engine and request handlers rather than
hardcoding values.
"""
from __future__ import annotations

import os

# ── Environment settings ──────────────────────────────────────────────────────

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON: bool = os.getenv("LOG_FORMAT", "json").lower() != "text"

_cors_default = "http://localhost:3000,http://localhost:5173"
CORS_ORIGINS: list[str] = [
    o.strip() for o in os.getenv("CORS_ORIGINS", _cors_default).split(",") if o.strip()
]

APP_VERSION: str = "1.0.0"

# Async engine pool (saved calculations only; calculate needs no database)
DB_POOL_SIZE: int = int(os.getenv("DB_POOL_SIZE", "5"))
DB_MAX_OVERFLOW: int = int(os.getenv("DB_MAX_OVERFLOW", "10"))
DB_RESET_ON_STARTUP: bool = os.getenv("DB_RESET_ON_STARTUP", "").lower() in ("1", "true", "yes")


# ── Area types (MSEDCL classification) ────────────────────────────────────────

AREA_TYPES: tuple[str, ...] = ("RURAL", "URBAN", "METRO", "MAJOR_CITIES")
DEFAULT_AREA_TYPE: str = "URBAN"


# ── Sizing constants ──────────────────────────────────────────────────────────

# Transformer sizing power factor (kVA = kW / pf)
DEFAULT_POWER_FACTOR: float = 0.9

# NBC 2016 high-rise threshold: pressurization + wet riser mandatory above this
HIGH_RISE_THRESHOLD_M: float = 15.0

# Staircase landing lighting: one 20 W LED fixture per landing, two landings per floor
LANDING_FIXTURE_W: float = 20.0
LANDINGS_PER_FLOOR: int = 2

# Lobby AC rule of thumb: 1 TR per 200 sq ft
LOBBY_SQFT_PER_TR: float = 200.0
SQM_TO_SQFT: float = 10.764

# Diversity factor for capacity sizing (MSEDCL NSC circular 35530, §C.2)
# Metro / Major Cities: DF = 2 → ×0.50; elsewhere DF = 2.5 → ×0.40
DIVERSITY_FACTOR_METRO: float = 0.50
DIVERSITY_FACTOR_OTHER: float = 0.40

# IS/IEC standard distribution transformer ratings (kVA)
STANDARD_TRANSFORMER_KVA: tuple[int, ...] = (
    100, 160, 200, 250, 315, 400, 500, 630, 800,
    1000, 1250, 1600, 2000, 2500, 3150,
)
TRANSFORMER_STEP_ABOVE_RANGE_KVA: int = 500


# ── Default calculation inputs ────────────────────────────────────────────────
# Used when a request omits a value; mirrors the project-input form defaults.

DEFAULT_GF_ENTRANCE_LOBBY_SQM: float = 100.0
DEFAULT_TYPICAL_LOBBY_SQM: float = 30.0
DEFAULT_TERRACE_AREA_SQM: float = 200.0
DEFAULT_LANDSCAPE_LIGHTING_KW: float = 10.0
DEFAULT_STAIRCASES: int = 2
DEFAULT_FIRE_LOBBY_SYSTEMS: int = 1
DEFAULT_VENTILATION_CFM: float = 5000.0
DEFAULT_VENTILATION_FANS: int = 4
DEFAULT_WET_RISER_KW: float = 11.0
DEFAULT_BOOSTER_PUMP_FLOW_LPM: float = 300.0
DEFAULT_SPRINKLER_FLOW_LPM: float = 1425.0
DEFAULT_MAIN_PUMP_FLOW_LPM: float = 2850.0
DEFAULT_PUMP_SET: str = "1W+1S"
DEFAULT_FIRE_PUMP_SET: str = "Main+SBY+Jky"
DEFAULT_EV_CHARGER_TYPE: str = "standard"
