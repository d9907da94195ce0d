"""数据库基础设施 - SQLAlchemy 引擎、账户表模型和 AccountEngine 实现"""

from isolation_lab.infrastructure.database.base import Base
from isolation_lab.infrastructure.database.engine import create_sync_engine, redact_url
from isolation_lab.infrastructure.database.models import AccountModel, accounts_table
from isolation_lab.infrastructure.database.sqlalchemy_account_engine import (
    SQLAlchemyAccountEngine,
    SQLAlchemyAccountTransaction,
)

__all__ = [
    "AccountModel",
    "Base",
    "SQLAlchemyAccountEngine",
    "SQLAlchemyAccountTransaction",
    "accounts_table",
    "create_sync_engine",
    "redact_url",
]
