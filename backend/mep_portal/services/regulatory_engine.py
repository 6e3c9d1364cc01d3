"""
Regulatory Compliance — MSEDCL NSC circular 35530 (2016)

R1: Minimum load      carpet area × minimum density (W/m²)
                      Residential 75 · Commercial (no AC) 150 · Commercial (AC) 200
R2: Sanctioned load   max(TCL, R1 minimum), kVA at pf 0.8, against the
                      single-consumer (160 kW / 200 kVA) or multiple-consumer
                      (480 kW / 600 kVA) ceiling
R3: DTC               load after diversity (kVA at pf 0.9) vs area-type threshold;
                      500 kVA per DTC, outdoor land 25 m² + 15 m² per extra unit
R4: Substation        load after diversity (MVA) vs 33/11 kV bands; EHV above 20 MVA

Every breach is an advisory ComplianceFlag attached to the result. Nothing here
blocks a calculation.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Optional

from mep_portal.services.load_errors import ConfigurationError
from mep_portal.services.load_models import (
    ComplianceFlag,
    DtcCheck,
    MinimumLoadCheck,
    RegulatoryCompliance,
    SanctionedLoadCheck,
    SubstationCheck,
)

logger = logging.getLogger("mep-portal-regulatory")

# ── Flag codes ───────────────────────────────────────────────────────────────

BELOW_MINIMUM_LOAD = "BELOW_MINIMUM_LOAD"
DTC_REQUIRED = "DTC_REQUIRED"
SUBSTATION_REQUIRED = "SUBSTATION_REQUIRED"
SANCTIONED_KW_EXCEEDED = "SANCTIONED_KW_EXCEEDED"
SANCTIONED_KVA_EXCEEDED = "SANCTIONED_KVA_EXCEEDED"


# ── Framework ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SubstationBand:
    area_type: str                  # "ALL" applies to every area type
    min_mva: float                  # exclusive
    max_mva: Optional[float]        # inclusive; None = open-ended
    substation_type: str
    incoming_feeders: int
    special_requirements: tuple[str, ...] = ()


_RING_MAIN = "Ring Main System created for redundancy"
_METRO_REQUIREMENTS = (
    "Ring Main System created for redundancy and quick diversion",
    "Individual transformers for each building in metropolitan and major city areas",
    "LT Ring main network mandatory",
)

MSEDCL_SUBSTATION_BANDS: tuple[SubstationBand, ...] = (
    SubstationBand("METRO", 3.5, 20.0, "33/11 kV or 22/11 kV Substation", 2, _METRO_REQUIREMENTS),
    SubstationBand("MAJOR_CITIES", 3.5, 20.0, "33/11 kV or 22/11 kV Substation", 2, _METRO_REQUIREMENTS),
    SubstationBand("URBAN", 3.0, 20.0, "33/11 kV or 22/11 kV Substation", 2, (_RING_MAIN,)),
    SubstationBand("RURAL", 3.0, 20.0, "33/11 kV or 22/11 kV Substation", 2, (_RING_MAIN,)),
    SubstationBand("ALL", 20.0, None, "EHV Substation", 2,
                   ("Coordination with MSETCL required", "As per MSETCL norms")),
)


@dataclass(frozen=True)
class RegulatoryFramework:
    name: str = "MSEDCL 2016"
    residential_w_per_sqm: float = 75.0
    commercial_ac_w_per_sqm: float = 200.0
    commercial_no_ac_w_per_sqm: float = 150.0
    dtc_threshold_kva: dict = field(default_factory=lambda: {
        "RURAL": 25.0, "URBAN": 75.0, "METRO": 250.0, "MAJOR_CITIES": 250.0,
    })
    single_consumer_max_kw: float = 160.0
    single_consumer_max_kva: float = 200.0
    multiple_consumers_max_kw: float = 480.0
    multiple_consumers_max_kva: float = 600.0
    sanctioned_power_factor: float = 0.8
    load_after_df_power_factor: float = 0.9
    dtc_capacity_kva: float = 500.0
    dtc_land_sqm: float = 25.0                  # outdoor DTC, first unit
    dtc_additional_land_sqm: float = 15.0       # each further unit
    substation_bands: tuple[SubstationBand, ...] = MSEDCL_SUBSTATION_BANDS
    substation_land_sqm: float = 3500.0         # 33/11 kV outdoor

    def threshold_for(self, area_type: str) -> float:
        try:
            return float(self.dtc_threshold_kva[area_type])
        except KeyError:
            raise ConfigurationError(
                f"Unknown area type '{area_type}' (expected one of {sorted(self.dtc_threshold_kva)})"
            ) from None


MSEDCL_2016 = RegulatoryFramework()


# ── R1: Minimum load ─────────────────────────────────────────────────────────

def minimum_required_load_kw(
    residential_area_sqm: float,
    commercial_area_sqm: float = 0.0,
    has_ac: bool = False,
    framework: RegulatoryFramework = MSEDCL_2016,
) -> float:
    commercial_density = framework.commercial_ac_w_per_sqm if has_ac else framework.commercial_no_ac_w_per_sqm
    return (
        residential_area_sqm * framework.residential_w_per_sqm
        + commercial_area_sqm * commercial_density
    ) / 1000.0


# ── R2: Sanctioned load ──────────────────────────────────────────────────────

def validate_sanctioned_load(
    sanctioned_kw: float,
    sanctioned_kva: float,
    multiple_consumers: bool = False,
    minimum_applied: bool = False,
    framework: RegulatoryFramework = MSEDCL_2016,
) -> SanctionedLoadCheck:
    if multiple_consumers:
        limit_type, max_kw, max_kva = (
            "MULTIPLE_CONSUMERS", framework.multiple_consumers_max_kw, framework.multiple_consumers_max_kva,
        )
    else:
        limit_type, max_kw, max_kva = (
            "SINGLE_CONSUMER", framework.single_consumer_max_kw, framework.single_consumer_max_kva,
        )
    return SanctionedLoadCheck(
        sanctioned_kw=sanctioned_kw,
        sanctioned_kva=sanctioned_kva,
        power_factor=framework.sanctioned_power_factor,
        minimum_applied=minimum_applied,
        limit_type=limit_type,
        max_kw=max_kw,
        max_kva=max_kva,
        exceeds_kw=sanctioned_kw > max_kw,
        exceeds_kva=sanctioned_kva > max_kva,
    )


# ── R3: DTC ──────────────────────────────────────────────────────────────────

def check_dtc(
    load_after_df_kw: float,
    area_type: str,
    framework: RegulatoryFramework = MSEDCL_2016,
) -> DtcCheck:
    threshold = framework.threshold_for(area_type)
    kva = load_after_df_kw / framework.load_after_df_power_factor
    count = math.ceil(kva / framework.dtc_capacity_kva) if kva > 0 else 0
    land = framework.dtc_land_sqm + (count - 1) * framework.dtc_additional_land_sqm if count else 0.0
    return DtcCheck(
        area_type=area_type,
        load_after_df_kw=load_after_df_kw,
        load_after_df_kva=kva,
        threshold_kva=threshold,
        needed=kva > threshold,
        dtc_count=count,
        capacity_per_unit_kva=framework.dtc_capacity_kva,
        land_required_sqm=land,
    )


# ── R4: Substation ───────────────────────────────────────────────────────────

def check_substation(
    load_after_df_kw: float,
    area_type: str,
    framework: RegulatoryFramework = MSEDCL_2016,
) -> SubstationCheck:
    framework.threshold_for(area_type)
    mva = load_after_df_kw / 1000.0
    bands = sorted(
        (b for b in framework.substation_bands if b.area_type in (area_type, "ALL")),
        key=lambda b: b.min_mva,
    )
    for band in bands:
        upper = band.max_mva if band.max_mva is not None else math.inf
        if band.min_mva < mva <= upper:
            return SubstationCheck(
                area_type=area_type,
                load_after_df_mva=mva,
                needed=True,
                substation_type=band.substation_type,
                incoming_feeders=band.incoming_feeders,
                land_required_sqm=framework.substation_land_sqm,
                special_requirements=band.special_requirements,
            )
    return SubstationCheck(area_type=area_type, load_after_df_mva=mva, needed=False)


# ── Full check ───────────────────────────────────────────────────────────────

def run_compliance_checks(
    grand_tcl_kw: float,
    load_after_df_kw: float,
    residential_area_sqm: float,
    area_type: str,
    commercial_area_sqm: float = 0.0,
    commercial_has_ac: bool = False,
    multiple_consumers: bool = False,
    framework: RegulatoryFramework = MSEDCL_2016,
) -> RegulatoryCompliance:
    """
    Sanctioned load (billing) is based on TCL without diversity; DTC and
    substation sizing use the load after diversity only.
    """
    required_kw = minimum_required_load_kw(
        residential_area_sqm, commercial_area_sqm, commercial_has_ac, framework,
    )
    minimum = MinimumLoadCheck(
        residential_area_sqm=residential_area_sqm,
        commercial_area_sqm=commercial_area_sqm,
        residential_w_per_sqm=framework.residential_w_per_sqm,
        commercial_w_per_sqm=(
            framework.commercial_ac_w_per_sqm if commercial_has_ac else framework.commercial_no_ac_w_per_sqm
        ),
        required_kw=required_kw,
        connected_kw=grand_tcl_kw,
        passed=grand_tcl_kw >= required_kw,
    )

    sanctioned_kw = max(grand_tcl_kw, required_kw)
    sanctioned = validate_sanctioned_load(
        sanctioned_kw,
        sanctioned_kw / framework.sanctioned_power_factor,
        multiple_consumers=multiple_consumers,
        minimum_applied=required_kw > grand_tcl_kw,
        framework=framework,
    )
    dtc = check_dtc(load_after_df_kw, area_type, framework)
    substation = check_substation(load_after_df_kw, area_type, framework)

    flags: list[ComplianceFlag] = []
    if not minimum.passed:
        flags.append(ComplianceFlag(
            BELOW_MINIMUM_LOAD,
            f"Connected load {grand_tcl_kw:.2f} kW is below the {framework.name} minimum of "
            f"{required_kw:.2f} kW for {residential_area_sqm:.0f} m² residential"
            + (f" + {commercial_area_sqm:.0f} m² commercial" if commercial_area_sqm else "")
            + " carpet area",
        ))
    if dtc.needed:
        flags.append(ComplianceFlag(
            DTC_REQUIRED,
            f"Load after diversity {dtc.load_after_df_kva:.2f} kVA exceeds the {area_type} threshold of "
            f"{dtc.threshold_kva:.0f} kVA: {dtc.dtc_count} × {dtc.capacity_per_unit_kva:.0f} kVA DTC, "
            f"{dtc.land_required_sqm:.0f} m² land",
        ))
    if substation.needed:
        flags.append(ComplianceFlag(
            SUBSTATION_REQUIRED,
            f"Load after diversity {substation.load_after_df_mva:.3f} MVA requires a "
            f"{substation.substation_type} with {substation.incoming_feeders} incoming feeders",
        ))
    if sanctioned.exceeds_kw:
        flags.append(ComplianceFlag(
            SANCTIONED_KW_EXCEEDED,
            f"Sanctioned load {sanctioned.sanctioned_kw:.2f} kW exceeds the "
            f"{sanctioned.limit_type.lower().replace('_', ' ')} limit of {sanctioned.max_kw:.0f} kW",
        ))
    if sanctioned.exceeds_kva:
        flags.append(ComplianceFlag(
            SANCTIONED_KVA_EXCEEDED,
            f"Sanctioned load {sanctioned.sanctioned_kva:.2f} kVA exceeds the "
            f"{sanctioned.limit_type.lower().replace('_', ' ')} limit of {sanctioned.max_kva:.0f} kVA",
        ))

    land = 0.0
    if dtc.needed:
        land += dtc.land_required_sqm
    if substation.needed and substation.land_required_sqm:
        land += substation.land_required_sqm

    if flags:
        logger.info("Compliance flags (%s): %s", area_type, ", ".join(f.code for f in flags))

    return RegulatoryCompliance(
        framework=framework.name,
        area_type=area_type,
        minimum_load=minimum,
        sanctioned_load=sanctioned,
        dtc=dtc,
        substation=substation,
        land_required_sqm=land,
        flags=tuple(flags),
    )
