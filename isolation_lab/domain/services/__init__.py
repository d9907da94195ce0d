from isolation_lab.domain.services.transaction_handle import TransactionHandle

__all__ = ["TransactionHandle"]
