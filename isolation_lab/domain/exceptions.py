"""领域层异常定义

异常分层：
- EngineError: 数据库引擎报告的运行时失败（连接、开启事务、查询、写入、提交、回滚、建表）
- ContractViolationError: 调用方违反 TransactionHandle 状态机（重复提交、终态后继续操作等）
- DomainStateError: 实体状态流转非法
- ScheduleError / UnknownScenarioError: 场景定义或目录查找错误

Adapter 负责把具体引擎异常（如 sqlalchemy.exc.SQLAlchemyError）转换为 EngineError 子类，
上层只依赖这里定义的类型。
"""


class IsolationLabError(Exception):
    """所有项目异常的基类"""

    pass


class EngineError(IsolationLabError):
    """引擎报告的失败

    参数：
        message: 错误信息
        operation: 失败的操作名（如 "read_balance"）
    """

    def __init__(self, message: str, *, operation: str | None = None):
        self.operation = operation
        super().__init__(message)


class EngineConnectionError(EngineError):
    """无法连接数据库或 ping 失败"""


class TransactionStartError(EngineError):
    """引擎无法分配新事务（连接丢失、连接池耗尽）"""


class IsolationSetError(EngineError):
    """引擎拒绝隔离级别设置"""


class QueryError(EngineError):
    """读操作失败"""


class RowNotFoundError(QueryError):
    """按 id 读取余额时行不存在

    继承 QueryError，调用方按通用查询失败处理也不会漏掉。
    """

    def __init__(self, account_id: int):
        self.account_id = account_id
        super().__init__(f"account not found: {account_id}", operation="read_balance")


class WriteError(EngineError):
    """写操作失败（包括主键冲突）"""


class CommitError(EngineError):
    """提交失败（如序列化冲突）；事务效果未生效"""


class RollbackError(EngineError):
    """回滚失败"""


class SeedError(EngineError):
    """重建表或写入基线数据失败"""


class ContractViolationError(IsolationLabError):
    """TransactionHandle 状态转换非法

    示例：
        handle.commit()
        handle.commit()  # ContractViolationError: tx1 is already committed
    """

    def __init__(self, label: str, operation: str, state: str, reason: str | None = None):
        self.label = label
        self.operation = operation
        self.state = state
        detail = reason or f"{operation} is not allowed in state {state}"
        super().__init__(f"{label}: {detail}")


class DomainStateError(IsolationLabError):
    """实体状态流转非法（如对已结束的 ScenarioReport 再次 abort）"""


class ScheduleError(IsolationLabError):
    """场景调度定义非法（未声明的参与者、终态后还有步骤等）"""


class UnknownScenarioError(IsolationLabError):
    def __init__(self, name: str, known: list[str]):
        self.name = name
        self.known = known
        super().__init__(f"unknown scenario: {name} (known: {', '.join(sorted(known))})")
