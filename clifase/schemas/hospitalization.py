from enum import Enum


class DischargeCategory(str, Enum):
    ACUTE_CARE_HOSPITAL = "Acute Care Hospital"
    ACUTE_INPATIENT_REHAB = "Acute Inpatient Rehab Facility"
    AMA = "Against Medical Adivce (AMA)"
    ASSISTED_LIVING = "Assisted Living"
    CHEMICAL_DEPENDENCY = "Chemical Dependency"
    EXPIRED = "Expired"
    GROUP_HOME = "Group Home"
    HOME = "Home"
    HOSPICE = "Hospice"
    JAIL = "Jail"
    LTACH = "Long Term Care Hospital (LTACH)"
    MISSING = "Missing"
    OTHER = "Other"
    PSYCHIATRIC_HOSPITAL = "Psychiatric Hospital"
    SHELTER = "Shelter"
    SNF = "Skilled Nursing Facility (SNF)"
    STILL_ADMITTED = "Still Admitted"


# Dispositions that end observable follow-up for QAD accrual.
TERMINAL_DISCHARGE_CATEGORIES = (
    DischargeCategory.EXPIRED,
    DischargeCategory.HOSPICE,
    DischargeCategory.ACUTE_CARE_HOSPITAL,
)
