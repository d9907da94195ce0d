"""TransactionHandle - 独占一个引擎事务的句柄

职责：
1. 状态机：NOT_BEGUN → BEGUN → LEVEL_SET → COMMITTED / ROLLED_BACK / FAILED，
   非法转换在到达引擎之前抛出 ContractViolationError
2. 组合读写原语：read_count / read_balance / update_balance / insert_row / delete_row
3. 可观测性：每个操作输出一条结构化日志（scenario、tx、operation、outcome、标量负载）

错误处理：
- 引擎失败（EngineError 子类）记录上下文后原样抛出，不重试
- commit 失败后句柄进入 FAILED，rollback 无论成功与否都进入终态

使用示例：
    with TransactionHandle(engine, "tx1", scenario="phantom_read").begin() as tx1:
        tx1.set_isolation_level(IsolationLevel.READ_COMMITTED)
        tx1.read_count()
        tx1.commit()
"""

from __future__ import annotations

import logging
from typing import Any

from isolation_lab.domain.exceptions import (
    ContractViolationError,
    EngineError,
    RollbackError,
    RowNotFoundError,
)
from isolation_lab.domain.ports.account_engine import AccountEngine, AccountTransaction
from isolation_lab.domain.value_objects.isolation_level import IsolationLevel
from isolation_lab.domain.value_objects.transaction_state import TransactionState

logger = logging.getLogger(__name__)


class TransactionHandle:
    def __init__(self, engine: AccountEngine, label: str, *, scenario: str | None = None) -> None:
        self._engine = engine
        self._label = label
        self._scenario = scenario
        self._tx: AccountTransaction | None = None
        self._state = TransactionState.NOT_BEGUN
        self._isolation_level: IsolationLevel | None = None
        self._statements = 0

    @property
    def label(self) -> str:
        return self._label

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def isolation_level(self) -> IsolationLevel | None:
        return self._isolation_level

    @property
    def is_open(self) -> bool:
        return self._state.is_open()

    # ==================== 生命周期 ====================

    def begin(self) -> TransactionHandle:
        self._require_transition(TransactionState.BEGUN, "begin")
        try:
            tx = self._engine.begin()
        except EngineError as exc:
            self._log_failure("begin", exc)
            raise
        self._tx = tx
        self._state = TransactionState.BEGUN
        self._log_event("tx_started", "begin")
        return self

    def set_isolation_level(self, level: IsolationLevel) -> None:
        operation = "set_isolation_level"
        if self._state is TransactionState.LEVEL_SET:
            raise ContractViolationError(
                self._label, operation, self._state.value, "isolation level is already set"
            )
        if self._statements:
            raise ContractViolationError(
                self._label,
                operation,
                self._state.value,
                "isolation level must be set before the first statement",
            )
        self._require_transition(TransactionState.LEVEL_SET, operation)
        try:
            self._transaction().set_isolation_level(level)
        except EngineError as exc:
            self._log_failure(operation, exc, isolation_level=level.value)
            raise
        self._isolation_level = level
        self._state = TransactionState.LEVEL_SET
        self._log_event("isolation_level_set", operation, isolation_level=level.value)

    def engine_isolation_level(self) -> str:
        """引擎报告的本事务实际隔离级别"""
        operation = "engine_isolation_level"
        tx = self._open_transaction(operation)
        try:
            reported = tx.current_isolation_level()
        except EngineError as exc:
            self._log_failure(operation, exc)
            raise
        self._log_event("isolation_level_read", operation, isolation_level=reported)
        return reported

    def commit(self) -> None:
        tx = self._open_transaction("commit")
        try:
            tx.commit()
        except EngineError as exc:
            self._state = TransactionState.FAILED
            self._log_failure("commit", exc)
            raise
        self._state = TransactionState.COMMITTED
        self._log_event("tx_committed", "commit")

    def rollback(self) -> None:
        tx = self._open_transaction("rollback")
        try:
            tx.rollback()
        except EngineError as exc:
            self._state = TransactionState.FAILED
            self._log_failure("rollback", exc)
            raise
        self._state = TransactionState.ROLLED_BACK
        self._log_event("tx_rolled_back", "rollback")

    def release(self) -> bool:
        """句柄仍处于打开状态时回滚

        返回是否发出了回滚；回滚失败只记录日志，句柄进入 FAILED。
        """
        if not self.is_open:
            return False
        try:
            self.rollback()
        except RollbackError:
            logger.warning(
                "release_rollback_failed",
                extra={"scenario": self._scenario, "tx": self._label, "operation": "release"},
            )
        return True

    def __enter__(self) -> TransactionHandle:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self.is_open:
            return
        if exc_type is None:
            self.rollback()
        else:
            self.release()

    # ==================== 读写原语 ====================

    def read_count(self) -> int:
        operation = "read_count"
        tx = self._statement(operation)
        try:
            count = tx.count_accounts()
        except EngineError as exc:
            self._log_failure(operation, exc)
            raise
        self._log_event("count_read", operation, count=count)
        return count

    def read_balance(self, account_id: int) -> int:
        operation = "read_balance"
        tx = self._statement(operation)
        try:
            balance = tx.get_balance(account_id)
            if balance is None:
                raise RowNotFoundError(account_id)
        except EngineError as exc:
            self._log_failure(operation, exc, account_id=account_id)
            raise
        self._log_event("balance_read", operation, account_id=account_id, balance=balance)
        return balance

    def update_balance(self, account_id: int, balance: int) -> int:
        operation = "update_balance"
        tx = self._statement(operation)
        try:
            affected = tx.update_balance(account_id, balance)
        except EngineError as exc:
            self._log_failure(operation, exc, account_id=account_id, balance=balance)
            raise
        self._log_event(
            "balance_updated", operation, account_id=account_id, balance=balance, affected=affected
        )
        return affected

    def insert_row(self, account_id: int, balance: int) -> None:
        operation = "insert_row"
        tx = self._statement(operation)
        try:
            tx.insert_account(account_id, balance)
        except EngineError as exc:
            self._log_failure(operation, exc, account_id=account_id, balance=balance)
            raise
        self._log_event("account_inserted", operation, account_id=account_id, balance=balance)

    def delete_row(self, account_id: int) -> int:
        operation = "delete_row"
        tx = self._statement(operation)
        try:
            affected = tx.delete_account(account_id)
        except EngineError as exc:
            self._log_failure(operation, exc, account_id=account_id)
            raise
        self._log_event("account_deleted", operation, account_id=account_id, affected=affected)
        return affected

    # ==================== 内部方法 ====================

    def _require_transition(self, target: TransactionState, operation: str) -> None:
        if not self._state.can_transition_to(target):
            raise ContractViolationError(self._label, operation, self._state.value)

    def _transaction(self) -> AccountTransaction:
        assert self._tx is not None
        return self._tx

    def _open_transaction(self, operation: str) -> AccountTransaction:
        if not self._state.is_open():
            if self._state.is_terminal():
                reason = f"transaction is already {self._state.value}"
            else:
                reason = "transaction has not begun"
            raise ContractViolationError(self._label, operation, self._state.value, reason)
        return self._transaction()

    def _statement(self, operation: str) -> AccountTransaction:
        tx = self._open_transaction(operation)
        self._statements += 1
        return tx

    def _log_event(self, event: str, operation: str, **payload: Any) -> None:
        logger.info(
            event,
            extra={
                "scenario": self._scenario,
                "tx": self._label,
                "operation": operation,
                "outcome": "ok",
                **payload,
            },
        )

    def _log_failure(self, operation: str, exc: EngineError, **payload: Any) -> None:
        logger.error(
            f"{operation}_failed",
            extra={
                "scenario": self._scenario,
                "tx": self._label,
                "operation": operation,
                "outcome": "error",
                "error": str(exc),
                "error_type": type(exc).__name__,
                **payload,
            },
        )
