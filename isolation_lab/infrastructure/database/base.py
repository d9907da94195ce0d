"""数据库 Base 模型

所有 ORM 模型继承自 Base；Base.metadata 用于在每次场景运行前重建表。
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """ORM 模型基类"""

    pass
