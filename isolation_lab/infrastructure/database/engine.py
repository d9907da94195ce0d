"""数据库引擎配置

每个 TransactionHandle 独占一个连接，场景中最多同时打开三个事务（tx1、tx2、tx3），
默认连接池足够。SQLite 使用单线程连接池，不接受 pool_size / max_overflow。
"""

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import make_url


def create_sync_engine(database_url: str, *, echo: bool = False) -> Engine:
    """创建同步数据库引擎

    配置说明：
    - echo: 是否打印 SQL
    - pool_size / max_overflow: 连接池大小（非 SQLite）
    - pool_pre_ping: 连接前检查（避免使用失效连接）

    返回：
        Engine: 同步数据库引擎
    """
    url = make_url(database_url)
    options: dict[str, object] = {"echo": echo, "pool_pre_ping": True}
    if url.get_backend_name() != "sqlite":
        options.update(pool_size=5, max_overflow=10)
    return create_engine(url, **options)


def redact_url(database_url: str) -> str:
    return make_url(database_url).render_as_string(hide_password=True)
