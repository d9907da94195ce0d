"""ScenarioReport 实体 - 一次场景运行的观测结果

生命周期：RUNNING → COMPLETED / ABORTED

- steps: 已执行步骤及读到的值
- observations: 按 Step.key 记录的观测值（含 verification）
- error / failed_step: 主调度中第一个失败的步骤（ABORTED 时设置）
- verification / verification_error: 独立事务读到的最终状态，失败只记录不抛出
- anomaly_observed: 调度完整执行后 AnomalyCheck 的结论；ABORTED 时为 None
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from isolation_lab.domain.entities.schedule import Step
from isolation_lab.domain.exceptions import DomainStateError, EngineError


class ScenarioOutcome(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class StepRecord:
    index: int
    tx: str
    operation: str
    description: str
    value: int | None = None


@dataclass
class ScenarioReport:
    scenario: str
    isolation_levels: dict[str, str | None]
    outcome: ScenarioOutcome = ScenarioOutcome.RUNNING
    steps: list[StepRecord] = field(default_factory=list)
    observations: dict[str, int] = field(default_factory=dict)
    failed_step: str | None = None
    error: EngineError | None = None
    verification: int | None = None
    verification_error: str | None = None
    anomaly_observed: bool | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is ScenarioOutcome.COMPLETED

    def record(self, index: int, step: Step, value: int | None = None) -> None:
        self._require_running("record")
        self.steps.append(
            StepRecord(
                index=index,
                tx=step.tx,
                operation=step.kind.value,
                description=step.describe(),
                value=value,
            )
        )
        if step.key is not None and value is not None:
            self.observations[step.key] = value

    def record_verification(self, step: Step, value: int) -> None:
        self.verification = value
        if step.key is not None:
            self.observations[step.key] = value

    def fail_verification(self, error: EngineError) -> None:
        self.verification_error = str(error)

    def abort(self, failed_step: str, error: EngineError) -> None:
        self._require_running("abort")
        self.outcome = ScenarioOutcome.ABORTED
        self.failed_step = failed_step
        self.error = error
        self.finished_at = datetime.now(UTC)

    def complete(self, anomaly_observed: bool | None) -> None:
        self._require_running("complete")
        self.outcome = ScenarioOutcome.COMPLETED
        self.anomaly_observed = anomaly_observed
        self.finished_at = datetime.now(UTC)

    def _require_running(self, action: str) -> None:
        if self.outcome is not ScenarioOutcome.RUNNING:
            raise DomainStateError(
                f"cannot {action} report for {self.scenario}: outcome is {self.outcome.value}"
            )
