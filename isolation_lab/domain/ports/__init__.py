"""领域层 Ports - 领域层需要的外部依赖接口"""

from isolation_lab.domain.ports.account_engine import AccountEngine, AccountTransaction

__all__ = ["AccountEngine", "AccountTransaction"]
