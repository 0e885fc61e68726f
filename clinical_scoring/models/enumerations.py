from enum import Enum


class AssessmentKind(str, Enum):
    START_OF_CARE = "start_of_care"            # SOC, M0030 anchor
    RESUMPTION_OF_CARE = "resumption_of_care"  # ROC, M0032 anchor
    FOLLOW_UP = "follow_up"                    # recertification
    TRANSFER = "transfer"                      # transfer to inpatient facility
    DISCHARGE = "discharge"                    # discharge from agency


class ValueKind(str, Enum):
    NUMERIC = "numeric"
    ENUMERATED = "enumerated"
    DATE = "date"


class Indicator(str, Enum):
    # Administrative dates
    M0030 = "M0030"  # start of care date
    M0032 = "M0032"  # resumption of care date
    M0090 = "M0090"  # date assessment completed

    # Clinical record / history
    M1000 = "M1000"  # prior inpatient discharge within 14 days
    M1020 = "M1020"  # primary diagnosis code
    M1028 = "M1028"  # active comorbidity count

    # Living arrangement
    M1100 = "M1100"  # living situation
    M1110 = "M1110"  # gap in available assistance (0 around the clock .. 2 none)

    # Cognitive / behavioural
    M1700 = "M1700"  # cognitive functioning
    M1710 = "M1710"  # when confused
    M1720 = "M1720"  # when anxious
    M1730 = "M1730"  # depression screening
    M1740 = "M1740"  # behaviours demonstrated

    # Activities of daily living
    M1800 = "M1800"  # grooming
    M1810 = "M1810"  # dress upper body
    M1820 = "M1820"  # dress lower body
    M1830 = "M1830"  # bathing
    M1840 = "M1840"  # toilet transferring
    M1845 = "M1845"  # toileting hygiene

    # Mobility
    M1850 = "M1850"  # transferring
    M1860 = "M1860"  # ambulation / locomotion

    # Medications
    M2020 = "M2020"  # management of oral medications
    M2030 = "M2030"  # management of injectable medications


class Domain(str, Enum):
    FUNCTIONAL = "functional"
    MOBILITY = "mobility"
    COGNITIVE = "cognitive"
    BEHAVIORAL = "behavioral"
    CLINICAL = "clinical"


class ScoreCategory(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    CRITICAL = "critical"


class RiskLevel(str, Enum):
    MINIMAL = "minimal"
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    CRITICAL = "critical"


class RiskFactorName(str, Enum):
    FALL = "fall"
    COGNITIVE = "cognitive"
    FUNCTIONAL = "functional"
    MEDICATION = "medication"
    SOCIAL = "social"
    READMISSION = "readmission"


class AlertSeverity(str, Enum):
    HIGH = "high"
    CRITICAL = "critical"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Sort rank, higher is more urgent."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    Priority.LOW: 1,
    Priority.MEDIUM: 2,
    Priority.HIGH: 3,
    Priority.CRITICAL: 4,
}


class EvidenceLevel(str, Enum):
    STRONG = "strong"      # Strong evidence base
    MODERATE = "moderate"  # Moderate evidence base
    EXPERT = "expert"      # Expert consensus
    WEAK = "weak"          # Limited evidence base

    @property
    def confidence(self) -> float:
        return _EVIDENCE_CONFIDENCE[self]


_EVIDENCE_CONFIDENCE = {
    EvidenceLevel.STRONG: 0.9,
    EvidenceLevel.MODERATE: 0.7,
    EvidenceLevel.EXPERT: 0.6,
    EvidenceLevel.WEAK: 0.5,
}


class CircuitStatus(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"
