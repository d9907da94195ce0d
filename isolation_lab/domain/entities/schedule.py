"""Schedule 实体 - 一个异常场景的固定交错调度

业务定义：
- Schedule 声明参与的事务（Participant，各自固定隔离级别）
- steps 是跨事务的有序操作列表，顺序本身就是被测试的内容
- verification 是主调度结束后由独立事务执行的一次读
- check 根据观测值判断异常是否出现

构造时校验调度是否合法，运行期不会再生成或修改步骤。
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from isolation_lab.domain.exceptions import ScheduleError
from isolation_lab.domain.value_objects.isolation_level import IsolationLevel

VERIFICATION_LABEL = "tx3"


class StepKind(str, Enum):
    READ_COUNT = "read-count"
    READ_BALANCE = "read-balance"
    UPDATE_BALANCE = "update-balance"
    INSERT = "insert"
    DELETE = "delete"
    COMMIT = "commit"
    ROLLBACK = "rollback"

    def is_read(self) -> bool:
        return self in {StepKind.READ_COUNT, StepKind.READ_BALANCE}

    def is_terminal(self) -> bool:
        return self in {StepKind.COMMIT, StepKind.ROLLBACK}


_NEEDS_ACCOUNT = {StepKind.READ_BALANCE, StepKind.UPDATE_BALANCE, StepKind.INSERT, StepKind.DELETE}
_NEEDS_VALUE = {StepKind.UPDATE_BALANCE, StepKind.INSERT}


@dataclass(frozen=True)
class Step:
    """调度中的一步

    属性说明：
    - tx: 执行该步骤的事务标签（如 "tx1"）
    - kind: 操作类型
    - account_id: 账户 id（read-balance / update-balance / insert / delete 必填）
    - value: 写入的余额（update-balance / insert 必填）
    - key: 读操作的观测值名称，供 AnomalyCheck 引用（可选）

    使用下方的工厂函数构造，不直接调用 Step(...)。
    """

    tx: str
    kind: StepKind
    account_id: int | None = None
    value: int | None = None
    key: str | None = None

    def __post_init__(self) -> None:
        if not self.tx or not self.tx.strip():
            raise ScheduleError("step tx label must not be empty")
        if self.kind in _NEEDS_ACCOUNT and self.account_id is None:
            raise ScheduleError(f"{self.kind.value} step requires account_id")
        if self.kind in _NEEDS_VALUE and self.value is None:
            raise ScheduleError(f"{self.kind.value} step requires value")
        if self.key is not None and not self.kind.is_read():
            raise ScheduleError(f"only read steps can record an observation, got {self.kind.value}")

    def describe(self) -> str:
        if self.kind is StepKind.READ_BALANCE:
            return f"{self.tx} read-balance({self.account_id})"
        if self.kind is StepKind.UPDATE_BALANCE:
            return f"{self.tx} update-balance({self.account_id}, {self.value})"
        if self.kind is StepKind.INSERT:
            return f"{self.tx} insert({self.account_id}, {self.value})"
        if self.kind is StepKind.DELETE:
            return f"{self.tx} delete({self.account_id})"
        return f"{self.tx} {self.kind.value}"


def read_count(tx: str, *, key: str | None = None) -> Step:
    return Step(tx=tx, kind=StepKind.READ_COUNT, key=key)


def read_balance(tx: str, account_id: int, *, key: str | None = None) -> Step:
    return Step(tx=tx, kind=StepKind.READ_BALANCE, account_id=account_id, key=key)


def update_balance(tx: str, account_id: int, value: int) -> Step:
    return Step(tx=tx, kind=StepKind.UPDATE_BALANCE, account_id=account_id, value=value)


def insert(tx: str, account_id: int, balance: int) -> Step:
    return Step(tx=tx, kind=StepKind.INSERT, account_id=account_id, value=balance)


def delete(tx: str, account_id: int) -> Step:
    return Step(tx=tx, kind=StepKind.DELETE, account_id=account_id)


def commit(tx: str) -> Step:
    return Step(tx=tx, kind=StepKind.COMMIT)


def rollback(tx: str) -> Step:
    return Step(tx=tx, kind=StepKind.ROLLBACK)


@dataclass(frozen=True)
class Participant:
    label: str
    isolation_level: IsolationLevel | None = None


@dataclass(frozen=True)
class Differs:
    """两个观测值不同即视为出现异常（不可重复读、幻读）"""

    first: str
    second: str

    @property
    def keys(self) -> tuple[str, ...]:
        return (self.first, self.second)

    def evaluate(self, observations: Mapping[str, int]) -> bool | None:
        if self.first not in observations or self.second not in observations:
            return None
        return observations[self.first] != observations[self.second]


@dataclass(frozen=True)
class EqualsValue:
    """观测值等于指定值即视为出现异常（脏读读到未提交值、丢失更新后的最终值）"""

    key: str
    value: int

    @property
    def keys(self) -> tuple[str, ...]:
        return (self.key,)

    def evaluate(self, observations: Mapping[str, int]) -> bool | None:
        if self.key not in observations:
            return None
        return observations[self.key] == self.value


AnomalyCheck = Differs | EqualsValue


@dataclass(frozen=True)
class Schedule:
    name: str
    description: str
    participants: tuple[Participant, ...]
    steps: tuple[Step, ...]
    verification: Step
    check: AnomalyCheck

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ScheduleError("schedule name must not be empty")

        labels = [p.label for p in self.participants]
        if not labels:
            raise ScheduleError(f"{self.name}: at least one participant is required")
        if len(set(labels)) != len(labels):
            raise ScheduleError(f"{self.name}: duplicate participant labels {labels}")

        terminated: set[str] = set()
        keys: list[str] = []
        for index, step in enumerate(self.steps):
            if step.tx not in labels:
                raise ScheduleError(f"{self.name}: step {index} uses undeclared tx {step.tx}")
            if step.tx in terminated:
                raise ScheduleError(
                    f"{self.name}: step {index} ({step.describe()}) follows {step.tx}'s terminal step"
                )
            if step.kind.is_terminal():
                terminated.add(step.tx)
            if step.key is not None:
                keys.append(step.key)

        missing = [label for label in labels if label not in terminated]
        if missing:
            raise ScheduleError(f"{self.name}: participants never committed or rolled back: {missing}")

        if not self.verification.kind.is_read():
            raise ScheduleError(f"{self.name}: verification must be a read step")
        if self.verification.tx in labels:
            raise ScheduleError(f"{self.name}: verification tx must not be a participant")
        if self.verification.key is not None:
            keys.append(self.verification.key)

        if len(set(keys)) != len(keys):
            raise ScheduleError(f"{self.name}: duplicate observation keys {keys}")
        unknown = [key for key in self.check.keys if key not in keys]
        if unknown:
            raise ScheduleError(f"{self.name}: anomaly check references unknown keys {unknown}")

    def participant(self, label: str) -> Participant:
        for participant in self.participants:
            if participant.label == label:
                return participant
        raise ScheduleError(f"{self.name}: no participant {label}")

    def with_isolation_level(self, level: IsolationLevel) -> Schedule:
        """返回所有参与者都固定为 level 的副本"""
        return dataclasses.replace(
            self,
            participants=tuple(dataclasses.replace(p, isolation_level=level) for p in self.participants),
        )
