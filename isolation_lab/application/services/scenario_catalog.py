"""ScenarioCatalog - 场景名称到调度的只读映射

通过构造函数注入调度列表，不使用进程级全局状态；测试可以各自构造目录。
迭代顺序不作保证，调用方不应依赖。
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from types import MappingProxyType

from isolation_lab.application.services.anomaly_schedules import ANOMALY_SCHEDULES
from isolation_lab.domain.entities.schedule import Schedule
from isolation_lab.domain.exceptions import ScheduleError, UnknownScenarioError


class ScenarioCatalog:
    def __init__(self, schedules: Iterable[Schedule]) -> None:
        entries: dict[str, Schedule] = {}
        for schedule in schedules:
            if schedule.name in entries:
                raise ScheduleError(f"duplicate scenario name: {schedule.name}")
            entries[schedule.name] = schedule
        self._entries = MappingProxyType(entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[Schedule]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def names(self) -> list[str]:
        return list(self._entries)

    def get(self, name: str) -> Schedule:
        try:
            return self._entries[name]
        except KeyError:
            raise UnknownScenarioError(name, self.names()) from None

    def select(self, names: Sequence[str] | None = None) -> list[Schedule]:
        """按名称选择要运行的调度；None 或空序列表示全部

        保持请求顺序并去重；任何未知名称都会在运行前抛出 UnknownScenarioError。
        """
        if not names:
            return list(self._entries.values())
        selected: list[Schedule] = []
        for name in dict.fromkeys(names):
            selected.append(self.get(name))
        return selected


def default_catalog() -> ScenarioCatalog:
    return ScenarioCatalog(ANOMALY_SCHEDULES)
