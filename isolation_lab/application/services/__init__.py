from isolation_lab.application.services.scenario_catalog import ScenarioCatalog, default_catalog
from isolation_lab.application.services.scenario_runner import ScenarioRunner
from isolation_lab.application.services.scenario_suite import ScenarioSuite, SuiteResult

__all__ = [
    "ScenarioCatalog",
    "ScenarioRunner",
    "ScenarioSuite",
    "SuiteResult",
    "default_catalog",
]
