"""引擎启动 - 按配置的 URL 选择 AccountEngine 并验证连通性

memory:// 使用进程内引擎，其余 URL 交给 SQLAlchemy。
两条路径返回前都会 ping，任何失败都以 EngineConnectionError 抛出。
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from isolation_lab.config import Settings
from isolation_lab.domain.exceptions import EngineConnectionError
from isolation_lab.domain.ports.account_engine import AccountEngine
from isolation_lab.infrastructure.adapters.in_memory_account_engine import InMemoryAccountEngine
from isolation_lab.infrastructure.database.engine import create_sync_engine, redact_url
from isolation_lab.infrastructure.database.sqlalchemy_account_engine import SQLAlchemyAccountEngine

logger = logging.getLogger(__name__)

MEMORY_URL_PREFIX = "memory://"


def connect_engine(settings: Settings) -> AccountEngine:
    engine = _create(settings)
    try:
        engine.ping()
    except EngineConnectionError as exc:
        logger.error("ping_failed", extra={"error": str(exc)})
        engine.dispose()
        raise
    logger.info("ping_ok")
    return engine


def _create(settings: Settings) -> AccountEngine:
    url = settings.database_url
    if url.startswith(MEMORY_URL_PREFIX):
        logger.info("connected_to_db", extra={"database": url, "backend": "memory"})
        return InMemoryAccountEngine()

    try:
        sa_engine = create_sync_engine(url, echo=settings.debug)
        database = redact_url(url)
    except (SQLAlchemyError, ImportError) as exc:
        logger.error("connect_failed", extra={"error": str(exc)})
        raise EngineConnectionError(f"failed to connect to db: {exc}", operation="connect") from exc
    logger.info(
        "connected_to_db",
        extra={"database": database, "backend": sa_engine.dialect.name},
    )
    return SQLAlchemyAccountEngine(sa_engine)
