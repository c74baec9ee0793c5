from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Tuple

from pydantic import BaseModel


class Criterion(str, Enum):
    AKI = "aki"
    HYPERBILIRUBINEMIA = "hyperbilirubinemia"
    THROMBOCYTOPENIA = "thrombocytopenia"
    LACTATE = "lactate"
    VASOPRESSOR = "vasopressor"
    INVASIVE_MECHANICAL_VENTILATION = "invasive_mechanical_ventilation"


# Tie-break when two criteria share the earliest timestamp: lower index wins.
CRITERIA_PRIORITY: Tuple[Criterion, ...] = (
    Criterion.THROMBOCYTOPENIA,
    Criterion.AKI,
    Criterion.INVASIVE_MECHANICAL_VENTILATION,
    Criterion.LACTATE,
    Criterion.VASOPRESSOR,
    Criterion.HYPERBILIRUBINEMIA,
)

# Column order of the wide output.
CRITERIA_COLUMN_ORDER: Tuple[Criterion, ...] = (
    Criterion.AKI,
    Criterion.HYPERBILIRUBINEMIA,
    Criterion.THROMBOCYTOPENIA,
    Criterion.LACTATE,
    Criterion.VASOPRESSOR,
    Criterion.INVASIVE_MECHANICAL_VENTILATION,
)


def criterion_time_field(criterion: Criterion) -> str:
    return f"{Criterion(criterion).value}_time"


class SepsisCase(BaseModel):
    """
    Earliest qualifying time per organ dysfunction criterion for one hospitalization.

    Criteria that never qualified stay ``None``.
    """
    hospitalization_id: str
    presumed_infection_time: Optional[datetime] = None
    aki_time: Optional[datetime] = None
    hyperbilirubinemia_time: Optional[datetime] = None
    thrombocytopenia_time: Optional[datetime] = None
    lactate_time: Optional[datetime] = None
    vasopressor_time: Optional[datetime] = None
    invasive_mechanical_ventilation_time: Optional[datetime] = None

    def criterion_times(self, include_lactate: bool = True) -> Dict[Criterion, datetime]:
        """Met criteria and their times, in tie-break priority order."""
        times = {}
        for criterion in CRITERIA_PRIORITY:
            if criterion is Criterion.LACTATE and not include_lactate:
                continue
            value = getattr(self, criterion_time_field(criterion))
            if value is not None:
                times[criterion] = value
        return times

    def first_criterion(
        self, include_lactate: bool = True
    ) -> Tuple[Optional[Criterion], Optional[datetime]]:
        times = self.criterion_times(include_lactate)
        if not times:
            return None, None
        # min() keeps the first of equal keys, i.e. the higher-priority criterion
        first = min(times, key=lambda c: times[c])
        return first, times[first]

    def is_sepsis(self, include_lactate: bool = True) -> bool:
        return bool(self.criterion_times(include_lactate))
