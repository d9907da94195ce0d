"""ScenarioSuite - 顺序执行目录中的场景

每个场景运行前重建表并写入基线数据。重建失败（SeedError）对整次运行是致命的，直接抛出；
单个场景中止不影响后续场景，除非 fail_fast=True。
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from isolation_lab.application.services.scenario_catalog import ScenarioCatalog
from isolation_lab.application.services.scenario_runner import ScenarioRunner
from isolation_lab.domain.entities.account import BASELINE_ACCOUNTS
from isolation_lab.domain.entities.scenario_report import ScenarioReport
from isolation_lab.domain.exceptions import SeedError
from isolation_lab.domain.ports.account_engine import AccountEngine
from isolation_lab.domain.value_objects.isolation_level import IsolationLevel

logger = logging.getLogger(__name__)


@dataclass
class SuiteResult:
    reports: list[ScenarioReport] = field(default_factory=list)
    stopped_early: bool = False

    @property
    def succeeded(self) -> bool:
        return not self.stopped_early and all(report.succeeded for report in self.reports)

    def report(self, name: str) -> ScenarioReport:
        for report in self.reports:
            if report.scenario == name:
                return report
        raise KeyError(name)


class ScenarioSuite:
    def __init__(
        self,
        engine: AccountEngine,
        catalog: ScenarioCatalog,
        runner: ScenarioRunner | None = None,
    ) -> None:
        self._engine = engine
        self._catalog = catalog
        self._runner = runner or ScenarioRunner(engine)

    def run(
        self,
        names: Sequence[str] | None = None,
        *,
        fail_fast: bool = False,
        isolation_override: IsolationLevel | None = None,
    ) -> SuiteResult:
        schedules = self._catalog.select(names)
        result = SuiteResult()

        for schedule in schedules:
            if isolation_override is not None:
                schedule = schedule.with_isolation_level(isolation_override)

            try:
                self._engine.reseed(BASELINE_ACCOUNTS)
            except SeedError as exc:
                logger.error(
                    "reseed_failed",
                    extra={"scenario": schedule.name, "error": str(exc)},
                )
                raise
            logger.info(
                "reseeded",
                extra={"scenario": schedule.name, "rows": len(BASELINE_ACCOUNTS)},
            )

            report = self._runner.run(schedule)
            result.reports.append(report)

            if fail_fast and not report.succeeded:
                result.stopped_early = len(result.reports) < len(schedules)
                logger.warning(
                    "suite_stopped",
                    extra={"scenario": schedule.name, "remaining": len(schedules) - len(result.reports)},
                )
                break

        logger.info(
            "suite_finished",
            extra={
                "scenarios": len(result.reports),
                "aborted": sum(1 for report in result.reports if not report.succeeded),
            },
        )
        return result
