"""TransactionState 枚举 - TransactionHandle 生命周期状态

状态机：
    NOT_BEGUN → BEGUN → LEVEL_SET → COMMITTED | ROLLED_BACK | FAILED
                BEGUN ─────────────→ COMMITTED | ROLLED_BACK | FAILED

终态（COMMITTED / ROLLED_BACK / FAILED）不可离开。
"""

from __future__ import annotations

from enum import Enum


class TransactionState(str, Enum):
    NOT_BEGUN = "not_begun"
    BEGUN = "begun"
    LEVEL_SET = "level_set"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"

    def can_transition_to(self, target: TransactionState) -> bool:
        return target in _ALLOWED[self]

    def is_terminal(self) -> bool:
        return self in {
            TransactionState.COMMITTED,
            TransactionState.ROLLED_BACK,
            TransactionState.FAILED,
        }

    def is_open(self) -> bool:
        return self in {TransactionState.BEGUN, TransactionState.LEVEL_SET}


_TERMINAL = {TransactionState.COMMITTED, TransactionState.ROLLED_BACK, TransactionState.FAILED}

_ALLOWED: dict[TransactionState, set[TransactionState]] = {
    TransactionState.NOT_BEGUN: {TransactionState.BEGUN},
    TransactionState.BEGUN: {TransactionState.LEVEL_SET, *_TERMINAL},
    TransactionState.LEVEL_SET: set(_TERMINAL),
    TransactionState.COMMITTED: set(),
    TransactionState.ROLLED_BACK: set(),
    TransactionState.FAILED: set(),
}
