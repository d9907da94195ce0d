from isolation_lab.domain.entities.account import BASELINE_ACCOUNTS, Account
from isolation_lab.domain.entities.scenario_report import (
    ScenarioOutcome,
    ScenarioReport,
    StepRecord,
)
from isolation_lab.domain.entities.schedule import (
    VERIFICATION_LABEL,
    AnomalyCheck,
    Differs,
    EqualsValue,
    Participant,
    Schedule,
    Step,
    StepKind,
)

__all__ = [
    "Account",
    "AnomalyCheck",
    "BASELINE_ACCOUNTS",
    "Differs",
    "EqualsValue",
    "Participant",
    "ScenarioOutcome",
    "ScenarioReport",
    "Schedule",
    "Step",
    "StepKind",
    "StepRecord",
    "VERIFICATION_LABEL",
]
