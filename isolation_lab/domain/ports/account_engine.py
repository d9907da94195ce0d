"""AccountEngine Port - 被测关系型引擎的事务契约

目标：
- TransactionHandle 和 ScenarioRunner 只依赖这里的抽象
- 基础设施层提供 SQLAlchemy 实现和内存实现
- 实现方负责把引擎异常转换为 isolation_lab.domain.exceptions 中的 EngineError 子类
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from isolation_lab.domain.entities.account import Account
from isolation_lab.domain.value_objects.isolation_level import IsolationLevel


class AccountTransaction(Protocol):
    """一个独占的引擎事务

    set_isolation_level 必须在第一条数据语句之前调用。
    commit/rollback 之后该对象不可再用。
    """

    def set_isolation_level(self, level: IsolationLevel) -> None: ...

    def current_isolation_level(self) -> str: ...

    def count_accounts(self) -> int: ...

    def get_balance(self, account_id: int) -> int | None: ...

    def update_balance(self, account_id: int, balance: int) -> int: ...

    def insert_account(self, account_id: int, balance: int) -> None: ...

    def delete_account(self, account_id: int) -> int: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


class AccountEngine(Protocol):
    def ping(self) -> None: ...

    def reseed(self, accounts: Iterable[Account]) -> None: ...

    def begin(self) -> AccountTransaction: ...

    def dispose(self) -> None: ...
