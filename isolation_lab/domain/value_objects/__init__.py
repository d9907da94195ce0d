"""Domain 值对象"""

from isolation_lab.domain.value_objects.isolation_level import IsolationLevel
from isolation_lab.domain.value_objects.transaction_state import TransactionState

__all__ = ["IsolationLevel", "TransactionState"]
