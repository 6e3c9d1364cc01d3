"""
Error taxonomy for the electrical load engine.

  ConfigurationError  — input data must be fixed before the calculation can
                        run (unresolved twin, missing factor row, bad geometry).
  InvalidInputError   — nothing meaningful to compute or persist.

Compliance breaches are never errors; they are advisory flags on a result.
"""


class LoadCalculationError(Exception):
    """Base class for every failure raised by the load engine."""


class ConfigurationError(LoadCalculationError):
    """Input data is inconsistent; the caller must fix it and retry."""


class UnresolvedTwinError(ConfigurationError):
    def __init__(self, building_name: str, twin_of: str, reason: str = "not found"):
        self.building_name = building_name
        self.twin_of = twin_of
        self.reason = reason
        super().__init__(
            f"Building '{building_name}' is a twin of '{twin_of}', which is {reason}"
        )


class TwinAssignmentError(ConfigurationError):
    """A setTwinOf / assignSociety mutation was rejected."""


class TwinFloorMismatchError(ConfigurationError):
    def __init__(self, building_name: str, floor_name: str, parent_floor_name: str):
        self.building_name = building_name
        self.floor_name = floor_name
        self.parent_floor_name = parent_floor_name
        super().__init__(
            f"Twin floor '{floor_name}' in '{building_name}' no longer matches the "
            f"flats of '{parent_floor_name}'; re-sync the twin floor before calculating"
        )


class MissingFactorError(ConfigurationError):
    def __init__(self, *keys: str):
        self.keys = keys
        super().__init__(f"No factor row for: {', '.join(keys)}")


class InvalidBuildingDataError(ConfigurationError):
    """Negative area/count, non-positive floor height and similar."""


class InvalidInputError(LoadCalculationError):
    """Nothing to compute (empty selection, all-zero occupancy) or to save."""


class CalculationNotFoundError(LoadCalculationError):
    def __init__(self, calculation_id: str):
        self.calculation_id = calculation_id
        super().__init__(f"Calculation '{calculation_id}' not found")
