"""ORM 模型 - 账户表

列：
- id: 整数主键，不自增（基线数据和场景都显式指定 id）
- balance: 非空整数
"""

from sqlalchemy import BigInteger, Integer
from sqlalchemy.orm import Mapped, mapped_column

from isolation_lab.infrastructure.database.base import Base


class AccountModel(Base):
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    balance: Mapped[int] = mapped_column(BigInteger, nullable=False)

    def __repr__(self) -> str:
        return f"<AccountModel(id={self.id}, balance={self.balance})>"


accounts_table = AccountModel.__table__
