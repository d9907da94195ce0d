from isolation_lab.infrastructure.adapters.in_memory_account_engine import (
    InMemoryAccountEngine,
    InMemoryAccountTransaction,
)

__all__ = ["InMemoryAccountEngine", "InMemoryAccountTransaction"]
