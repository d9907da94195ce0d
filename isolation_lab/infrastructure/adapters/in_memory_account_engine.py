"""内存 AccountEngine 实现（Infrastructure）

进程内引擎，模拟四个标准隔离级别的可见性规则，无需数据库即可运行调度：

- READ UNCOMMITTED: 最新已提交状态 + 其他打开事务未提交的写入
- READ COMMITTED: 每条语句读取最新已提交状态
- REPEATABLE READ: 第一条语句时取快照；提交时若写过的行在快照后被他人提交过，则失败
- SERIALIZABLE: 同 REPEATABLE READ；有写入的事务若读过的行或计数在快照后变化，提交也失败

写入从不阻塞，冲突在提交时检测：
- 主键冲突：INSERT 的 id 在提交时已存在，提交失败
- 只有 INSERT 能创建行；对已被他人删除的行的 UPDATE 在提交时不生效

未设置隔离级别的事务使用 READ COMMITTED（PostgreSQL 默认值）。
"""

from __future__ import annotations

import threading
from collections.abc import Iterable

from isolation_lab.domain.entities.account import Account
from isolation_lab.domain.exceptions import (
    CommitError,
    EngineConnectionError,
    EngineError,
    IsolationSetError,
    QueryError,
    RollbackError,
    SeedError,
    TransactionStartError,
    WriteError,
)
from isolation_lab.domain.value_objects.isolation_level import IsolationLevel

DEFAULT_ISOLATION_LEVEL = IsolationLevel.READ_COMMITTED
_SNAPSHOT_LEVELS = {IsolationLevel.REPEATABLE_READ, IsolationLevel.SERIALIZABLE}


class InMemoryAccountTransaction:
    def __init__(self, engine: InMemoryAccountEngine, tx_id: int) -> None:
        self._engine = engine
        self.tx_id = tx_id
        self.level = DEFAULT_ISOLATION_LEVEL
        self.writes: dict[int, int | None] = {}
        self.inserts: set[int] = set()
        self.replaced: set[int] = set()
        self._snapshot: dict[int, int] | None = None
        self._snapshot_seq = 0
        self._read_rows: set[int] = set()
        self._read_count = False
        self._finished = False

    def set_isolation_level(self, level: IsolationLevel) -> None:
        self._require_open("set_isolation_level", IsolationSetError)
        if self._snapshot is not None:
            raise IsolationSetError(
                "SET TRANSACTION ISOLATION LEVEL must be called before any query",
                operation="set_isolation_level",
            )
        self.level = level

    def current_isolation_level(self) -> str:
        self._require_open("current_isolation_level", QueryError)
        return self.level.value.lower()

    def count_accounts(self) -> int:
        self._require_open("count_accounts", QueryError)
        self._read_count = True
        return len(self._visible())

    def get_balance(self, account_id: int) -> int | None:
        self._require_open("get_balance", QueryError)
        self._read_rows.add(account_id)
        return self._visible().get(account_id)

    def update_balance(self, account_id: int, balance: int) -> int:
        self._require_open("update_balance", WriteError)
        if account_id not in self._visible():
            return 0
        self.writes[account_id] = balance
        return 1

    def insert_account(self, account_id: int, balance: int) -> None:
        self._require_open("insert_account", WriteError)
        if account_id in self._visible():
            raise WriteError(
                f'duplicate key value violates unique constraint "accounts_pkey" (id={account_id})',
                operation="insert_account",
            )
        if account_id in self.writes:
            self.replaced.add(account_id)
        else:
            self.inserts.add(account_id)
        self.writes[account_id] = balance

    def delete_account(self, account_id: int) -> int:
        self._require_open("delete_account", WriteError)
        if account_id not in self._visible():
            return 0
        if account_id in self.inserts:
            self.inserts.discard(account_id)
            del self.writes[account_id]
            return 1
        self.replaced.discard(account_id)
        self.writes[account_id] = None
        return 1

    def commit(self) -> None:
        self._require_open("commit", CommitError)
        try:
            self._engine._apply(self)
        finally:
            self._finish()

    def rollback(self) -> None:
        self._require_open("rollback", RollbackError)
        self._finish()

    def conflicts(self, row_versions: dict[int, int], table_version: int) -> list[str]:
        """当前隔离级别下阻止本事务提交的原因"""
        if self.level not in _SNAPSHOT_LEVELS or not self.writes:
            return []
        reasons = [
            f"row {account_id} was updated concurrently"
            for account_id in self.writes
            if row_versions.get(account_id, 0) > self._snapshot_seq
        ]
        if self.level is IsolationLevel.SERIALIZABLE:
            reasons += [
                f"row {account_id} read by this transaction changed"
                for account_id in sorted(self._read_rows - set(self.writes))
                if row_versions.get(account_id, 0) > self._snapshot_seq
            ]
            if self._read_count and table_version > self._snapshot_seq:
                reasons.append("row set read by this transaction changed")
        return reasons

    def _visible(self) -> dict[int, int]:
        if self._snapshot is None:
            self._snapshot, self._snapshot_seq = self._engine._snapshot()
        if self.level in _SNAPSHOT_LEVELS:
            rows = dict(self._snapshot)
        else:
            rows, _ = self._engine._snapshot()
        if self.level is IsolationLevel.READ_UNCOMMITTED:
            for other in self._engine._open_transactions(exclude=self):
                _overlay(rows, other.writes)
        _overlay(rows, self.writes)
        return rows

    def _require_open(self, operation: str, error: type[EngineError]) -> None:
        if self._finished:
            raise error(f"transaction {self.tx_id} is already closed", operation=operation)
        if self._engine.closed:
            raise error("connection is closed", operation=operation)

    def _finish(self) -> None:
        self._finished = True
        self._engine._close_transaction(self)


class InMemoryAccountEngine:
    def __init__(self, *, max_open_transactions: int = 8) -> None:
        self._max_open = max_open_transactions
        self._rows: dict[int, int] = {}
        self._row_versions: dict[int, int] = {}
        self._table_version = 0
        self._commit_seq = 0
        self._next_tx_id = 1
        self._open: list[InMemoryAccountTransaction] = []
        self._lock = threading.Lock()
        self.closed = False

    @property
    def open_transactions(self) -> int:
        return len(self._open)

    def committed_rows(self) -> dict[int, int]:
        with self._lock:
            return dict(self._rows)

    def ping(self) -> None:
        if self.closed:
            raise EngineConnectionError("failed to ping db: engine is closed", operation="ping")

    def reseed(self, accounts: Iterable[Account]) -> None:
        if self.closed:
            raise SeedError("failed to reseed: engine is closed", operation="reseed")
        rows: dict[int, int] = {}
        for account in accounts:
            if account.id in rows:
                raise SeedError(f"duplicate seed row id={account.id}", operation="reseed")
            rows[account.id] = account.balance
        with self._lock:
            self._commit_seq += 1
            self._rows = rows
            self._row_versions = {account_id: self._commit_seq for account_id in rows}
            self._table_version = self._commit_seq

    def begin(self) -> InMemoryAccountTransaction:
        with self._lock:
            if self.closed:
                raise TransactionStartError("failed to begin tx: engine is closed", operation="begin")
            if len(self._open) >= self._max_open:
                raise TransactionStartError(
                    f"failed to begin tx: {self._max_open} transactions already open",
                    operation="begin",
                )
            tx = InMemoryAccountTransaction(self, self._next_tx_id)
            self._next_tx_id += 1
            self._open.append(tx)
            return tx

    def dispose(self) -> None:
        with self._lock:
            self.closed = True
            self._open.clear()

    def _snapshot(self) -> tuple[dict[int, int], int]:
        with self._lock:
            return dict(self._rows), self._commit_seq

    def _open_transactions(self, exclude: InMemoryAccountTransaction) -> list[InMemoryAccountTransaction]:
        with self._lock:
            return [tx for tx in self._open if tx is not exclude]

    def _apply(self, tx: InMemoryAccountTransaction) -> None:
        with self._lock:
            duplicates = sorted(account_id for account_id in tx.inserts if account_id in self._rows)
            if duplicates:
                raise CommitError(
                    f'duplicate key value violates unique constraint "accounts_pkey" (id={duplicates[0]})',
                    operation="commit",
                )
            reasons = tx.conflicts(self._row_versions, self._table_version)
            if reasons:
                raise CommitError(
                    "could not serialize access: " + "; ".join(reasons),
                    operation="commit",
                )
            if not tx.writes:
                return
            self._commit_seq += 1
            for account_id, balance in tx.writes.items():
                existed = account_id in self._rows
                if balance is None:
                    if existed:
                        del self._rows[account_id]
                        self._table_version = self._commit_seq
                else:
                    if not existed:
                        if account_id not in tx.inserts and account_id not in tx.replaced:
                            continue
                        self._table_version = self._commit_seq
                    self._rows[account_id] = balance
                self._row_versions[account_id] = self._commit_seq

    def _close_transaction(self, tx: InMemoryAccountTransaction) -> None:
        with self._lock:
            if tx in self._open:
                self._open.remove(tx)


def _overlay(rows: dict[int, int], writes: dict[int, int | None]) -> None:
    for account_id, balance in writes.items():
        if balance is None:
            rows.pop(account_id, None)
        else:
            rows[account_id] = balance
