"""IsolationLevel 枚举 - 标准 SQL 事务隔离级别

枚举值与 SQLAlchemy `execution_options(isolation_level=...)` 接受的字符串一致，
adapter 可以直接透传。
"""

from __future__ import annotations

from enum import Enum


class IsolationLevel(str, Enum):
    READ_UNCOMMITTED = "READ UNCOMMITTED"
    READ_COMMITTED = "READ COMMITTED"
    REPEATABLE_READ = "REPEATABLE READ"
    SERIALIZABLE = "SERIALIZABLE"

    @property
    def strength(self) -> int:
        return _STRENGTH[self]

    @property
    def cli_name(self) -> str:
        return self.name.lower().replace("_", "-")

    def is_at_least(self, other: IsolationLevel) -> bool:
        return self.strength >= other.strength

    @classmethod
    def parse(cls, raw: str) -> IsolationLevel:
        """接受 "read-committed"、"READ_COMMITTED"、"read committed" 等写法"""
        normalized = raw.strip().upper().replace("-", " ").replace("_", " ")
        for level in cls:
            if level.value == normalized:
                return level
        raise ValueError(f"unknown isolation level: {raw}")


_STRENGTH: dict[IsolationLevel, int] = {
    IsolationLevel.READ_UNCOMMITTED: 0,
    IsolationLevel.READ_COMMITTED: 1,
    IsolationLevel.REPEATABLE_READ: 2,
    IsolationLevel.SERIALIZABLE: 3,
}
