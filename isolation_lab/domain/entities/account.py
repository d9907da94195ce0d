"""Account 实体 - 被所有场景共享的账户行

每次运行场景前表会被重建并写入两行基线数据：(1, 1000) 与 (2, 1000)。
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Account:
    id: int
    balance: int


BASELINE_ACCOUNTS: tuple[Account, ...] = (
    Account(id=1, balance=1000),
    Account(id=2, balance=1000),
)
