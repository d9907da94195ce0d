"""测试：TransactionHandle

测试策略：
1. 状态机：合法/非法转换，非法转换不应到达引擎
2. 读写原语：返回值、RowNotFoundError
3. 引擎错误：原样抛出，commit/rollback 失败后进入 FAILED
4. 日志：每个操作一条结构化日志
"""

import logging
from unittest.mock import Mock

import pytest

from isolation_lab.domain.exceptions import (
    CommitError,
    ContractViolationError,
    IsolationSetError,
    QueryError,
    RollbackError,
    RowNotFoundError,
    TransactionStartError,
)
from isolation_lab.domain.services.transaction_handle import TransactionHandle
from isolation_lab.domain.value_objects.isolation_level import IsolationLevel
from isolation_lab.domain.value_objects.transaction_state import TransactionState


@pytest.fixture
def engine_tx():
    tx = Mock()
    tx.count_accounts.return_value = 2
    tx.get_balance.return_value = 1000
    tx.update_balance.return_value = 1
    tx.delete_account.return_value = 1
    tx.current_isolation_level.return_value = "read committed"
    return tx


@pytest.fixture
def engine(engine_tx):
    mock_engine = Mock()
    mock_engine.begin.return_value = engine_tx
    return mock_engine


@pytest.fixture
def handle(engine):
    return TransactionHandle(engine, "tx1", scenario="unit")


class TestTransactionHandleLifecycle:
    def test_begin_moves_to_begun(self, handle, engine):
        # Act
        result = handle.begin()

        # Assert
        assert result is handle, "begin() 应返回句柄本身，便于链式调用"
        assert handle.state is TransactionState.BEGUN
        assert handle.is_open
        engine.begin.assert_called_once()

    def test_begin_twice_violates_contract(self, handle, engine):
        handle.begin()

        with pytest.raises(ContractViolationError, match="tx1: begin is not allowed"):
            handle.begin()
        assert engine.begin.call_count == 1

    def test_begin_failure_keeps_not_begun(self, handle, engine):
        """测试：引擎无法开启事务时，错误原样抛出，句柄保持 NOT_BEGUN"""
        engine.begin.side_effect = TransactionStartError("pool exhausted", operation="begin")

        with pytest.raises(TransactionStartError, match="pool exhausted"):
            handle.begin()
        assert handle.state is TransactionState.NOT_BEGUN

    def test_set_isolation_level(self, handle, engine_tx):
        handle.begin()

        handle.set_isolation_level(IsolationLevel.SERIALIZABLE)

        assert handle.state is TransactionState.LEVEL_SET
        assert handle.isolation_level is IsolationLevel.SERIALIZABLE
        engine_tx.set_isolation_level.assert_called_once_with(IsolationLevel.SERIALIZABLE)

    def test_set_isolation_level_twice_violates_contract(self, handle, engine_tx):
        handle.begin()
        handle.set_isolation_level(IsolationLevel.READ_COMMITTED)

        with pytest.raises(ContractViolationError, match="already set"):
            handle.set_isolation_level(IsolationLevel.SERIALIZABLE)
        engine_tx.set_isolation_level.assert_called_once()

    def test_set_isolation_level_after_statement_violates_contract(self, handle, engine_tx):
        handle.begin()
        handle.read_count()

        with pytest.raises(ContractViolationError, match="before the first statement"):
            handle.set_isolation_level(IsolationLevel.SERIALIZABLE)
        engine_tx.set_isolation_level.assert_not_called()

    def test_set_isolation_level_before_begin_violates_contract(self, handle):
        with pytest.raises(ContractViolationError):
            handle.set_isolation_level(IsolationLevel.SERIALIZABLE)

    def test_rejected_isolation_level_keeps_begun(self, handle, engine_tx):
        handle.begin()
        engine_tx.set_isolation_level.side_effect = IsolationSetError("unsupported")

        with pytest.raises(IsolationSetError):
            handle.set_isolation_level(IsolationLevel.READ_COMMITTED)
        assert handle.state is TransactionState.BEGUN
        assert handle.isolation_level is None

    def test_engine_isolation_level(self, handle):
        handle.begin()

        assert handle.engine_isolation_level() == "read committed"

    def test_commit(self, handle, engine_tx):
        handle.begin()

        handle.commit()

        assert handle.state is TransactionState.COMMITTED
        assert not handle.is_open
        engine_tx.commit.assert_called_once()

    def test_commit_twice_violates_contract(self, handle, engine_tx):
        handle.begin()
        handle.commit()

        with pytest.raises(ContractViolationError, match="already committed"):
            handle.commit()
        engine_tx.commit.assert_called_once()

    def test_commit_failure_moves_to_failed(self, handle, engine_tx):
        """测试：提交失败（如序列化冲突）后句柄进入 FAILED，之后的操作违反契约"""
        handle.begin()
        engine_tx.commit.side_effect = CommitError("could not serialize access")

        with pytest.raises(CommitError):
            handle.commit()
        assert handle.state is TransactionState.FAILED
        with pytest.raises(ContractViolationError, match="already failed"):
            handle.read_count()

    def test_rollback(self, handle, engine_tx):
        handle.begin()

        handle.rollback()

        assert handle.state is TransactionState.ROLLED_BACK
        engine_tx.rollback.assert_called_once()

    def test_rollback_failure_moves_to_failed(self, handle, engine_tx):
        handle.begin()
        engine_tx.rollback.side_effect = RollbackError("connection lost")

        with pytest.raises(RollbackError):
            handle.rollback()
        assert handle.state is TransactionState.FAILED

    def test_operation_before_begin_violates_contract(self, handle, engine):
        with pytest.raises(ContractViolationError, match="has not begun"):
            handle.read_balance(1)
        engine.begin.assert_not_called()

    def test_commit_before_begin_violates_contract(self, handle):
        with pytest.raises(ContractViolationError, match="has not begun"):
            handle.commit()


class TestTransactionHandleRelease:
    def test_release_rolls_back_open_handle(self, handle, engine_tx):
        handle.begin()

        assert handle.release() is True
        assert handle.state is TransactionState.ROLLED_BACK
        engine_tx.rollback.assert_called_once()

    def test_release_is_noop_after_commit(self, handle, engine_tx):
        handle.begin()
        handle.commit()

        assert handle.release() is False
        engine_tx.rollback.assert_not_called()

    def test_release_is_noop_before_begin(self, handle):
        assert handle.release() is False
        assert handle.state is TransactionState.NOT_BEGUN

    def test_release_swallows_rollback_failure(self, handle, engine_tx, caplog):
        handle.begin()
        engine_tx.rollback.side_effect = RollbackError("connection lost")

        with caplog.at_level(logging.WARNING):
            assert handle.release() is True

        assert handle.state is TransactionState.FAILED
        assert "release_rollback_failed" in caplog.messages

    def test_context_manager_rolls_back_open_handle(self, engine, engine_tx):
        with TransactionHandle(engine, "tx1").begin() as tx1:
            tx1.read_count()

        assert tx1.state is TransactionState.ROLLED_BACK
        engine_tx.rollback.assert_called_once()

    def test_context_manager_keeps_committed_handle(self, engine, engine_tx):
        with TransactionHandle(engine, "tx1").begin() as tx1:
            tx1.commit()

        engine_tx.rollback.assert_not_called()

    def test_context_manager_releases_on_error(self, engine, engine_tx):
        with pytest.raises(RuntimeError):
            with TransactionHandle(engine, "tx1").begin() as tx1:
                raise RuntimeError("boom")

        assert tx1.state is TransactionState.ROLLED_BACK


class TestTransactionHandleStatements:
    def test_read_count(self, handle):
        handle.begin()

        assert handle.read_count() == 2

    def test_read_balance(self, handle, engine_tx):
        handle.begin()

        assert handle.read_balance(1) == 1000
        engine_tx.get_balance.assert_called_once_with(1)

    def test_read_missing_balance_raises_row_not_found(self, handle, engine_tx):
        handle.begin()
        engine_tx.get_balance.return_value = None

        with pytest.raises(RowNotFoundError) as exc_info:
            handle.read_balance(42)

        assert exc_info.value.account_id == 42
        assert isinstance(exc_info.value, QueryError), "RowNotFoundError 应属于 QueryError"
        assert handle.is_open, "读不到行不改变句柄状态"

    def test_update_balance_returns_affected_rows(self, handle, engine_tx):
        handle.begin()
        engine_tx.update_balance.return_value = 0

        assert handle.update_balance(99, 10) == 0
        engine_tx.update_balance.assert_called_once_with(99, 10)

    def test_insert_row(self, handle, engine_tx):
        handle.begin()

        handle.insert_row(3, 1000)

        engine_tx.insert_account.assert_called_once_with(3, 1000)

    def test_delete_row(self, handle, engine_tx):
        handle.begin()

        assert handle.delete_row(3) == 1
        engine_tx.delete_account.assert_called_once_with(3)

    def test_query_error_propagates_and_keeps_handle_open(self, handle, engine_tx):
        handle.begin()
        engine_tx.count_accounts.side_effect = QueryError("relation does not exist")

        with pytest.raises(QueryError):
            handle.read_count()
        assert handle.is_open


class TestTransactionHandleLogging:
    def test_each_operation_logs_structured_event(self, handle, caplog):
        with caplog.at_level(logging.INFO, logger="isolation_lab"):
            handle.begin()
            handle.set_isolation_level(IsolationLevel.READ_COMMITTED)
            handle.read_balance(1)
            handle.commit()

        assert caplog.messages == [
            "tx_started",
            "isolation_level_set",
            "balance_read",
            "tx_committed",
        ]
        read = caplog.records[2]
        assert read.scenario == "unit"
        assert read.tx == "tx1"
        assert read.operation == "read_balance"
        assert read.outcome == "ok"
        assert read.account_id == 1
        assert read.balance == 1000

    def test_failure_logs_error_event(self, handle, engine_tx, caplog):
        handle.begin()
        engine_tx.update_balance.side_effect = QueryError("deadlock detected")

        with caplog.at_level(logging.ERROR, logger="isolation_lab"):
            with pytest.raises(QueryError):
                handle.update_balance(1, 10)

        record = caplog.records[-1]
        assert record.getMessage() == "update_balance_failed"
        assert record.outcome == "error"
        assert record.error_type == "QueryError"
        assert record.error == "deadlock detected"


class TestTransactionHandleWithMemoryEngine:
    """测试：与内存引擎配合的真实读写"""

    def test_uncommitted_write_is_visible_to_own_transaction_only(self, memory_engine):
        with TransactionHandle(memory_engine, "tx1").begin() as tx1:
            tx1.update_balance(1, 500)
            assert tx1.read_balance(1) == 500

            with TransactionHandle(memory_engine, "tx2").begin() as tx2:
                assert tx2.read_balance(1) == 1000
                tx2.commit()

        assert memory_engine.committed_rows()[1] == 1000, "tx1 退出时应回滚"

    def test_committed_insert_and_delete(self, memory_engine):
        tx1 = TransactionHandle(memory_engine, "tx1").begin()
        tx1.insert_row(3, 1000)
        assert tx1.delete_row(2) == 1
        tx1.commit()

        assert memory_engine.committed_rows() == {1: 1000, 3: 1000}
