"""日志配置

事件通过标准库 logging 输出，结构化字段放在 extra 中
（scenario、tx、operation、outcome 及标量负载）。本模块只决定输出格式：

- json: 每条记录一个 JSON 对象（python-json-logger）
- text: `time | level | logger | event`，后接 key=value 对
"""

from __future__ import annotations

import logging
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pythonjsonlogger.json import JsonFormatter

TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RESERVED = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}

_FIELD_ORDER = ("scenario", "tx", "operation", "outcome")


def structured_fields(record: logging.LogRecord) -> dict[str, Any]:
    fields = {key: value for key, value in record.__dict__.items() if key not in _RESERVED}
    ordered = {key: fields.pop(key) for key in _FIELD_ORDER if key in fields}
    ordered.update(sorted(fields.items()))
    return ordered


class StructuredJsonFormatter(JsonFormatter):
    """附加 ISO 时间戳、level、component 字段的 JSON 格式化器"""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.fromtimestamp(record.created, UTC).isoformat()
        log_record["level"] = record.levelname
        log_record["component"] = record.name


class KeyValueFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__(TEXT_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        pairs = " ".join(
            f"{key}={value}" for key, value in structured_fields(record).items() if value is not None
        )
        return f"{line} | {pairs}" if pairs else line


def build_formatter(log_format: str) -> logging.Formatter:
    if log_format == "json":
        return StructuredJsonFormatter("%(message)s", rename_fields={"message": "event"})
    return KeyValueFormatter()


def configure_logging(
    level: str = "INFO",
    log_format: str = "text",
    log_file: str | None = None,
) -> None:
    """在 isolation_lab logger 上安装 handler（重复调用会替换旧 handler）"""
    formatter = build_formatter(log_format)
    root = logging.getLogger("isolation_lab")
    root.setLevel(level.upper())
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
