"""Pytest 配置文件 - 全局 fixtures"""

import logging

import pytest

from isolation_lab.domain.entities.account import BASELINE_ACCOUNTS
from isolation_lab.infrastructure.adapters.in_memory_account_engine import InMemoryAccountEngine


@pytest.fixture
def memory_engine():
    """已写入基线数据 (1, 1000)、(2, 1000) 的内存引擎"""
    engine = InMemoryAccountEngine()
    engine.reseed(BASELINE_ACCOUNTS)
    yield engine
    engine.dispose()


@pytest.fixture
def sqlite_url(tmp_path) -> str:
    """基于临时文件的 SQLite URL（多个连接共享同一数据库）"""
    return f"sqlite:///{tmp_path / 'accounts.db'}"


@pytest.fixture(autouse=True)
def reset_isolation_lab_logging():
    """CLI 测试会在 isolation_lab logger 上安装 handler，测试结束后移除"""
    yield
    root = logging.getLogger("isolation_lab")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.NOTSET)
