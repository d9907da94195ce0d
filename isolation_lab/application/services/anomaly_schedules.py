"""四个固定的异常调度

每个调度打开 tx1 和 tx2，按手写的交错顺序驱动它们，
最后由独立的 tx3 读取落定后的状态。
"""

from __future__ import annotations

from isolation_lab.domain.entities import schedule as s
from isolation_lab.domain.entities.schedule import (
    VERIFICATION_LABEL,
    Differs,
    EqualsValue,
    Participant,
    Schedule,
)
from isolation_lab.domain.value_objects.isolation_level import IsolationLevel

ACCOUNT_ID = 1
NEW_BALANCE = 100_000
STALE_BALANCE = 10
PHANTOM_ACCOUNT_ID = 3
PHANTOM_BALANCE = 1000


def _pair(level: IsolationLevel) -> tuple[Participant, ...]:
    return (Participant("tx1", level), Participant("tx2", level))


DIRTY_READ = Schedule(
    name="dirty_read",
    description="tx2 reads a balance tx1 wrote but later rolled back",
    participants=_pair(IsolationLevel.READ_UNCOMMITTED),
    steps=(
        s.update_balance("tx1", ACCOUNT_ID, NEW_BALANCE),
        s.read_balance("tx2", ACCOUNT_ID, key="tx2_read"),
        s.rollback("tx1"),
        s.commit("tx2"),
    ),
    verification=s.read_balance(VERIFICATION_LABEL, ACCOUNT_ID, key="verified"),
    check=EqualsValue("tx2_read", NEW_BALANCE),
)

NON_REPEATABLE_READ = Schedule(
    name="non_repeatable_read",
    description="tx1 reads the same balance twice around tx2's committed update",
    participants=_pair(IsolationLevel.READ_COMMITTED),
    steps=(
        s.read_balance("tx1", ACCOUNT_ID, key="first_read"),
        s.update_balance("tx2", ACCOUNT_ID, NEW_BALANCE),
        s.commit("tx2"),
        s.read_balance("tx1", ACCOUNT_ID, key="second_read"),
        s.commit("tx1"),
    ),
    verification=s.read_balance(VERIFICATION_LABEL, ACCOUNT_ID, key="verified"),
    check=Differs("first_read", "second_read"),
)

PHANTOM_READ = Schedule(
    name="phantom_read",
    description="tx1 counts rows twice around tx2's committed insert",
    participants=_pair(IsolationLevel.READ_COMMITTED),
    steps=(
        s.read_count("tx1", key="first_count"),
        s.insert("tx2", PHANTOM_ACCOUNT_ID, PHANTOM_BALANCE),
        s.commit("tx2"),
        s.read_count("tx1", key="second_count"),
        s.commit("tx1"),
    ),
    verification=s.read_count(VERIFICATION_LABEL, key="verified"),
    check=Differs("first_count", "second_count"),
)

LOST_UPDATE = Schedule(
    name="lost_update",
    description="tx2 overwrites tx1's committed update from a stale read",
    participants=_pair(IsolationLevel.READ_COMMITTED),
    steps=(
        s.read_balance("tx1", ACCOUNT_ID, key="tx1_read"),
        s.read_balance("tx2", ACCOUNT_ID, key="tx2_read"),
        s.update_balance("tx1", ACCOUNT_ID, NEW_BALANCE),
        s.commit("tx1"),
        s.update_balance("tx2", ACCOUNT_ID, STALE_BALANCE),
        s.commit("tx2"),
    ),
    verification=s.read_balance(VERIFICATION_LABEL, ACCOUNT_ID, key="verified"),
    check=EqualsValue("verified", STALE_BALANCE),
)

ANOMALY_SCHEDULES: tuple[Schedule, ...] = (
    DIRTY_READ,
    NON_REPEATABLE_READ,
    PHANTOM_READ,
    LOST_UPDATE,
)
