"""SQLAlchemy AccountEngine 实现

职责：
1. 每个事务独占一个 Connection，隔离级别通过 execution_options(isolation_level=...) 设置
2. 账户表的读写语句（SQLAlchemy Core）
3. 异常转换：sqlalchemy.exc.SQLAlchemyError → 领域 EngineError 子类

SQLAlchemy 要求在 Connection.begin() 之前设置隔离级别，因此 begin() 只获取连接，
真正的 Transaction 在 set_isolation_level 或第一条语句时创建。DBAPI 层的 BEGIN
本身也是在第一条语句前才发出，引擎看到的顺序与调用顺序一致。
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import Connection, Engine, delete, func, insert, select, text, update
from sqlalchemy.engine import RootTransaction
from sqlalchemy.exc import SQLAlchemyError

from isolation_lab.domain.entities.account import Account
from isolation_lab.domain.exceptions import (
    CommitError,
    EngineConnectionError,
    IsolationSetError,
    QueryError,
    RollbackError,
    SeedError,
    TransactionStartError,
    WriteError,
)
from isolation_lab.domain.value_objects.isolation_level import IsolationLevel
from isolation_lab.infrastructure.database.models import accounts_table

logger = logging.getLogger(__name__)


class SQLAlchemyAccountTransaction:
    def __init__(self, connection: Connection) -> None:
        self._connection = connection
        self._transaction: RootTransaction | None = None

    def _active(self) -> Connection:
        if self._transaction is None:
            self._transaction = self._connection.begin()
        return self._connection

    def set_isolation_level(self, level: IsolationLevel) -> None:
        try:
            self._connection.execution_options(isolation_level=level.value)
            self._active()
        except SQLAlchemyError as exc:
            raise IsolationSetError(
                f"failed to set isolation level {level.value}: {exc}",
                operation="set_isolation_level",
            ) from exc

    def current_isolation_level(self) -> str:
        try:
            return str(self._active().get_isolation_level())
        except SQLAlchemyError as exc:
            raise QueryError(
                f"failed to get isolation level: {exc}", operation="current_isolation_level"
            ) from exc

    def count_accounts(self) -> int:
        stmt = select(func.count()).select_from(accounts_table)
        try:
            return int(self._active().execute(stmt).scalar_one())
        except SQLAlchemyError as exc:
            raise QueryError(f"failed to get count: {exc}", operation="count_accounts") from exc

    def get_balance(self, account_id: int) -> int | None:
        stmt = select(accounts_table.c.balance).where(accounts_table.c.id == account_id)
        try:
            balance = self._active().execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise QueryError(f"failed to get balance: {exc}", operation="get_balance") from exc
        return None if balance is None else int(balance)

    def update_balance(self, account_id: int, balance: int) -> int:
        stmt = update(accounts_table).where(accounts_table.c.id == account_id).values(balance=balance)
        try:
            return self._active().execute(stmt).rowcount
        except SQLAlchemyError as exc:
            raise WriteError(f"failed to update balance: {exc}", operation="update_balance") from exc

    def insert_account(self, account_id: int, balance: int) -> None:
        stmt = insert(accounts_table).values(id=account_id, balance=balance)
        try:
            self._active().execute(stmt)
        except SQLAlchemyError as exc:
            raise WriteError(f"failed to insert account: {exc}", operation="insert_account") from exc

    def delete_account(self, account_id: int) -> int:
        stmt = delete(accounts_table).where(accounts_table.c.id == account_id)
        try:
            return self._active().execute(stmt).rowcount
        except SQLAlchemyError as exc:
            raise WriteError(f"failed to delete account: {exc}", operation="delete_account") from exc

    def commit(self) -> None:
        try:
            if self._transaction is not None:
                self._transaction.commit()
        except SQLAlchemyError as exc:
            raise CommitError(f"failed to commit tx: {exc}", operation="commit") from exc
        finally:
            self._connection.close()

    def rollback(self) -> None:
        try:
            if self._transaction is not None:
                self._transaction.rollback()
        except SQLAlchemyError as exc:
            raise RollbackError(f"failed to rollback tx: {exc}", operation="rollback") from exc
        finally:
            self._connection.close()


class SQLAlchemyAccountEngine:
    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    @property
    def engine(self) -> Engine:
        return self._engine

    def ping(self) -> None:
        try:
            with self._engine.connect() as connection:
                connection.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            raise EngineConnectionError(f"failed to ping db: {exc}", operation="ping") from exc

    def reseed(self, accounts: Iterable[Account]) -> None:
        rows = [{"id": account.id, "balance": account.balance} for account in accounts]
        step = "drop_table"
        try:
            with self._engine.begin() as connection:
                accounts_table.drop(connection, checkfirst=True)
                logger.info("seed_step_executed", extra={"step": step, "table": accounts_table.name})

                step = "create_table"
                accounts_table.create(connection)
                logger.info("seed_step_executed", extra={"step": step, "table": accounts_table.name})

                step = "insert_rows"
                if rows:
                    connection.execute(insert(accounts_table), rows)
                logger.info("seed_step_executed", extra={"step": step, "rows": len(rows)})
        except SQLAlchemyError as exc:
            raise SeedError(f"failed to execute seed step {step}: {exc}", operation="reseed") from exc

    def begin(self) -> SQLAlchemyAccountTransaction:
        try:
            connection = self._engine.connect()
        except SQLAlchemyError as exc:
            raise TransactionStartError(f"failed to begin tx: {exc}", operation="begin") from exc
        return SQLAlchemyAccountTransaction(connection)

    def dispose(self) -> None:
        self._engine.dispose()
