from .hospitalization import DischargeCategory, TERMINAL_DISCHARGE_CATEGORIES
from .sepsis_case import (
    Criterion,
    CRITERIA_PRIORITY,
    CRITERIA_COLUMN_ORDER,
    SepsisCase,
    criterion_time_field,
)

__all__ = [
    'DischargeCategory',
    'TERMINAL_DISCHARGE_CATEGORIES',
    'Criterion',
    'CRITERIA_PRIORITY',
    'CRITERIA_COLUMN_ORDER',
    'SepsisCase',
    'criterion_time_field',
]
