"""ScenarioRunner - 按固定顺序驱动多个并存事务

执行流程：
1. 按声明顺序打开参与者：begin，若配置了隔离级别则 set_isolation_level，
   再读回引擎实际生效的级别（读回失败只记录 WARNING）
2. 逐步执行 steps；第一个 EngineError 终止剩余步骤（fail fast），记录到报告
3. 回滚仍处于打开状态的参与者
4. 无条件执行独立的 verification 事务；其错误只记录 WARNING，不抛出
5. 调度完整执行时计算 anomaly_observed

所有操作在同一控制线程中按顺序阻塞执行，交错顺序完全由 Schedule 决定。
ContractViolationError 属于编程错误，直接向上抛出。
"""

from __future__ import annotations

import logging

from isolation_lab.domain.entities.scenario_report import ScenarioOutcome, ScenarioReport
from isolation_lab.domain.entities.schedule import Schedule, Step, StepKind
from isolation_lab.domain.exceptions import EngineError, QueryError
from isolation_lab.domain.ports.account_engine import AccountEngine
from isolation_lab.domain.services.transaction_handle import TransactionHandle

logger = logging.getLogger(__name__)


class ScenarioRunner:
    def __init__(self, engine: AccountEngine) -> None:
        self._engine = engine

    def run(self, schedule: Schedule) -> ScenarioReport:
        report = ScenarioReport(
            scenario=schedule.name,
            isolation_levels={
                p.label: p.isolation_level.value if p.isolation_level else None
                for p in schedule.participants
            },
        )
        logger.info(
            "scenario_started",
            extra={
                "scenario": schedule.name,
                "participants": len(schedule.participants),
                "steps": len(schedule.steps),
            },
        )

        handles: dict[str, TransactionHandle] = {}
        current = "open participants"
        try:
            for participant in schedule.participants:
                current = f"{participant.label} begin"
                handle = TransactionHandle(self._engine, participant.label, scenario=schedule.name)
                handle.begin()
                handles[participant.label] = handle
                if participant.isolation_level is not None:
                    current = f"{participant.label} set-isolation-level"
                    handle.set_isolation_level(participant.isolation_level)
                    self._report_isolation_level(schedule, handle)

            for index, step in enumerate(schedule.steps):
                current = step.describe()
                value = self._execute(handles[step.tx], step)
                report.record(index, step, value)
        except EngineError as exc:
            report.abort(current, exc)
            logger.error(
                "scenario_aborted",
                extra={
                    "scenario": schedule.name,
                    "failed_step": current,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
        finally:
            self._release(schedule, handles)
            self._verify(schedule, report)

        if report.outcome is ScenarioOutcome.RUNNING:
            report.complete(schedule.check.evaluate(report.observations))
        logger.info(
            "scenario_finished",
            extra={
                "scenario": schedule.name,
                "outcome": report.outcome.value,
                "anomaly_observed": report.anomaly_observed,
                "verification": report.verification,
            },
        )
        return report

    def _execute(self, handle: TransactionHandle, step: Step) -> int | None:
        if step.kind is StepKind.READ_COUNT:
            return handle.read_count()
        if step.kind is StepKind.READ_BALANCE:
            assert step.account_id is not None
            return handle.read_balance(step.account_id)
        if step.kind is StepKind.UPDATE_BALANCE:
            assert step.account_id is not None and step.value is not None
            handle.update_balance(step.account_id, step.value)
            return None
        if step.kind is StepKind.INSERT:
            assert step.account_id is not None and step.value is not None
            handle.insert_row(step.account_id, step.value)
            return None
        if step.kind is StepKind.DELETE:
            assert step.account_id is not None
            handle.delete_row(step.account_id)
            return None
        if step.kind is StepKind.COMMIT:
            handle.commit()
            return None
        handle.rollback()
        return None

    def _report_isolation_level(self, schedule: Schedule, handle: TransactionHandle) -> None:
        """读取引擎实际生效的隔离级别，仅用于诊断，失败不影响调度"""
        try:
            handle.engine_isolation_level()
        except QueryError as exc:
            logger.warning(
                "isolation_level_unknown",
                extra={"scenario": schedule.name, "tx": handle.label, "error": str(exc)},
            )

    def _release(self, schedule: Schedule, handles: dict[str, TransactionHandle]) -> None:
        for handle in handles.values():
            if handle.release():
                logger.info(
                    "participant_released",
                    extra={"scenario": schedule.name, "tx": handle.label, "state": handle.state.value},
                )

    def _verify(self, schedule: Schedule, report: ScenarioReport) -> None:
        step = schedule.verification
        handle = TransactionHandle(self._engine, step.tx, scenario=schedule.name)
        try:
            handle.begin()
            value = self._execute(handle, step)
            handle.commit()
        except EngineError as exc:
            handle.release()
            report.fail_verification(exc)
            logger.warning(
                "verification_failed",
                extra={
                    "scenario": schedule.name,
                    "tx": step.tx,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            return
        assert value is not None
        report.record_verification(step, value)
